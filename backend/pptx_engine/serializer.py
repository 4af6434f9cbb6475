"""
Package Serializer
Re-compresses the mutated part set into a .pptx buffer.
No XML well-formedness check happens here: a broken part produces a broken file.
"""
from dataclasses import dataclass

from config import LOG_LEVEL, LOG_FILE, PPTX_MIME_TYPE
from utils.logger import get_logger
from .package import Package

logger = get_logger(__name__, LOG_LEVEL, LOG_FILE)


@dataclass(frozen=True)
class SerializedPackage:
    content: bytes
    mime_type: str
    slide_count: int
    replaced_field_count: int
    image_count: int

    @property
    def size(self) -> int:
        return len(self.content)


def serialize_package(package: Package, replaced_field_count: int = 0, image_count: int = 0) -> SerializedPackage:
    slide_count = len(package.slide_id_entries()) or len(package.slide_paths())
    content = package.to_bytes()
    logger.info(f"📦 Serialized package: {package.part_count} parts, {slide_count} slides, {len(content)} bytes")
    return SerializedPackage(
        content=content,
        mime_type=PPTX_MIME_TYPE,
        slide_count=slide_count,
        replaced_field_count=replaced_field_count,
        image_count=image_count,
    )
