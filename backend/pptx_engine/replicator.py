"""
Slide Replicator
Appends one copy of every template slide per workstation, substituted with
that workstation's fields and images.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from config import LOG_LEVEL, LOG_FILE
from utils.logger import get_logger
from .analyzer import SlideInfo
from .classifier import NON_TEMPLATE_ROLES
from .data import GenerationData
from .errors import TemplateSlideError
from .fields import collect_image_urls, prepare_workstation_fields
from .media import ImageInjector
from .oxml import XMLSyntaxError, parse_xml, qn, serialize_xml
from .package import Package, REL_TYPE_NOTES_SLIDE, rels_path_for
from .report import ReplacementLog
from .transformer import apply_text_substitution

# slide path -> (slide bytes, rels bytes or None)
Snapshot = Dict[str, Tuple[Optional[bytes], Optional[bytes]]]


def take_snapshot(package: Package, slides: List[SlideInfo]) -> Snapshot:
    """Copy slide parts before they are transformed; copies are made from these."""
    return {
        info.path: (package.read_bytes(info.path), package.read_bytes(rels_path_for(info.path)))
        for info in slides
    }


def strip_notes_relationships(rels_xml: bytes) -> bytes:
    """A copied slide gets no notes; its notesSlide relationship is dropped"""
    root = parse_xml(rels_xml)
    for rel in root.findall(qn('rel:Relationship')):
        if rel.get('Type') == REL_TYPE_NOTES_SLIDE:
            root.remove(rel)
    return serialize_xml(root)


@dataclass
class ReplicationResult:
    created: List[str] = field(default_factory=list)
    image_count: int = 0
    replaced_count: int = 0
    logs: List[ReplacementLog] = field(default_factory=list)
    failed: List[Dict] = field(default_factory=list)


class SlideReplicator:
    def __init__(self, package: Package, data: GenerationData, project_fields: Dict[str, str],
                 injector: Optional[ImageInjector] = None):
        self.logger = get_logger(__name__, LOG_LEVEL, LOG_FILE)
        self.package = package
        self.data = data
        self.project_fields = project_fields
        self.injector = injector or ImageInjector(package)

    @staticmethod
    def template_slides(slides: List[SlideInfo]) -> List[SlideInfo]:
        return [s for s in slides if s.role not in NON_TEMPLATE_ROLES and not s.has_loop_block]

    def _read_source(self, info: SlideInfo, snapshot: Snapshot) -> Tuple[str, Optional[bytes]]:
        slide_bytes, rels_bytes = snapshot.get(info.path, (None, None))
        if slide_bytes is None:
            raise TemplateSlideError(f"Template slide {info.path} cannot be read")
        try:
            slide_xml = slide_bytes.decode('utf-8')
            rels_xml = strip_notes_relationships(rels_bytes) if rels_bytes is not None else None
        except (UnicodeDecodeError, XMLSyntaxError) as e:
            raise TemplateSlideError(f"Template slide {info.path} cannot be read: {e}") from e
        return slide_xml, rels_xml

    def _copy(self, info: SlideInfo, source: Tuple[str, Optional[bytes]], fields: Dict[str, str],
              image_urls: Dict[str, str], result: ReplicationResult) -> str:
        slide_xml, rels_xml = source
        number = self.package.allocate_slide_number()
        path = f'ppt/slides/slide{number}.xml'
        rels_path = rels_path_for(path)
        checkpoint = self.package.checkpoint()
        try:
            content, entries = apply_text_substitution(slide_xml, fields)
            self.package.write(path, content)
            if rels_xml is not None:
                self.package.write(rels_path, rels_xml)

            injected, image_entries = self.injector.inject(path, image_urls)
            self.package.register_slide(number)
        except Exception:
            # Undo every part written for this copy
            self.package.restore(checkpoint)
            raise

        log = ReplacementLog(len(self.package.slide_id_entries()) - 1, info.role.value)
        log.extend(entries)
        log.extend(image_entries)
        result.logs.append(log)
        result.image_count += injected
        result.replaced_count += len(entries)
        return path

    def replicate(self, slides: List[SlideInfo], snapshot: Snapshot) -> ReplicationResult:
        """
        For each workstation in order, append a substituted copy of each template slide.

        Raises:
            TemplateSlideError: a template slide's source part cannot be read
        """
        result = ReplicationResult()
        templates = self.template_slides(slides)
        if not templates:
            self.logger.info("No workstation template slides found")
            return result

        sources = {info.path: self._read_source(info, snapshot) for info in templates}

        for ws_index, ws in enumerate(self.data.workstations):
            fields = {**self.project_fields, **prepare_workstation_fields(ws, ws_index, self.data)}
            image_urls = collect_image_urls(ws, self.data.modules_for(ws))
            for info in templates:
                try:
                    path = self._copy(info, sources[info.path], fields, image_urls, result)
                except Exception as e:
                    self.logger.error(f"❌ Failed to copy slide {info.index} for workstation {ws_index + 1}: {e}")
                    result.failed.append({'index': info.index, 'workstation': ws_index, 'error': str(e)})
                    continue
                result.created.append(path)

        self.logger.info(
            f"Generated {len(result.created)} workstation slides from {len(templates)} templates, "
            f"{result.image_count} images"
        )
        return result
