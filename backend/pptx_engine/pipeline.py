"""
Template Generator
One generation pipeline: load -> analyze -> transform -> replicate -> serialize,
parameterized by the replacement strategy. Style extraction is a separate
read-only entry point.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from config import LOG_LEVEL, LOG_FILE, DEFAULT_OUTPUT_FILE_NAME, REPLACEMENT_LOG_LIMIT
from utils.logger import get_logger
from utils.template_store import OutputStore, sanitize_file_name
from .analyzer import SlideInfo, StructureAnalyzer
from .classifier import SlideClassifier
from .data import GenerationData
from .errors import InputError, UnresolvedPlaceholderError
from .fields import prepare_project_fields
from .loader import TemplateLoader
from .media import ImageInjector
from .package import Package
from .placeholders import unresolved_names
from .replicator import SlideReplicator, take_snapshot
from .report import ReplacementLog
from .serializer import serialize_package
from .styles import ExtractedStyles, StyleExtractor
from .transformer import ContentTransformer, ReplacementStrategy


class GenerationOptions(BaseModel):
    """Per-request switches; camelCase names are accepted as well."""

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    duplicate_workstation_slides: bool = Field(False, alias='duplicateWorkstationSlides')
    slide_roles: Dict[int, str] = Field(default_factory=dict, alias='slideRoles')
    enable_smart_replace: bool = Field(True, alias='enableSmartReplace')
    cover_aware: bool = Field(True, alias='coverAware')
    strict_placeholders: bool = Field(False, alias='strictPlaceholders')

    @property
    def strategy(self) -> ReplacementStrategy:
        return ReplacementStrategy.SMART if self.enable_smart_replace else ReplacementStrategy.PLACEHOLDERS


@dataclass
class GenerationResult:
    content: bytes
    file_name: str
    slide_count: int
    template_name: str = ''
    field_keys: List[str] = field(default_factory=list)
    slide_roles: List[Dict[str, Any]] = field(default_factory=list)
    smart_replace_enabled: bool = True
    replaced_count: int = 0
    image_count: int = 0
    replacement_logs: List[ReplacementLog] = field(default_factory=list)
    unresolved: List[str] = field(default_factory=list)
    failed_slides: List[Dict] = field(default_factory=list)
    file_path: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)

    def to_dict(self) -> Dict[str, Any]:
        """Report without the binary content"""
        return {
            'file_name': self.file_name,
            'file_size': self.size,
            'file_path': self.file_path,
            'slide_count': self.slide_count,
            'template_name': self.template_name,
            'replaced_fields': list(self.field_keys),
            'slide_types': list(self.slide_roles),
            'smart_replace_enabled': self.smart_replace_enabled,
            'total_replacements': self.replaced_count,
            'total_images': self.image_count,
            'replacement_logs': [log.to_dict() for log in self.replacement_logs],
            'unresolved_placeholders': list(self.unresolved),
            'failed_slides': list(self.failed_slides),
        }


def coerce_data(data: Union[GenerationData, Dict[str, Any]]) -> GenerationData:
    if isinstance(data, GenerationData):
        return data
    if not isinstance(data, dict):
        raise InputError("Generation data must be an object")
    try:
        return GenerationData.model_validate(data)
    except ValidationError as e:
        raise InputError(f"Invalid generation data: {e.error_count()} errors; {e.errors()[0]['msg']}") from e


def coerce_options(options: Union[GenerationOptions, Dict[str, Any], None]) -> GenerationOptions:
    if isinstance(options, GenerationOptions):
        return options
    try:
        return GenerationOptions.model_validate(options or {})
    except ValidationError as e:
        raise InputError(f"Invalid generation options: {e.errors()[0]['msg']}") from e


class TemplateGenerator:
    def __init__(self, loader: Optional[TemplateLoader] = None,
                 session: Optional[requests.Session] = None,
                 output_store: Optional[OutputStore] = None,
                 allow_local_paths: bool = True):
        self.logger = get_logger(__name__, LOG_LEVEL, LOG_FILE)
        self.session = session or requests.Session()
        self.loader = loader or TemplateLoader(session=self.session, allow_local_paths=allow_local_paths)
        self.output_store = output_store

    # -------------------------------------------------------------- analysis

    def analyze(self, template_ref: str, slide_roles: Optional[Dict[int, str]] = None,
                cover_aware: bool = True) -> List[SlideInfo]:
        template = self.loader.load(template_ref)
        analyzer = StructureAnalyzer(template.package, SlideClassifier(cover_aware=cover_aware))
        return analyzer.analyze(slide_roles)

    def extract_styles(self, template_ref: str) -> ExtractedStyles:
        template = self.loader.load(template_ref)
        return StyleExtractor(template.package).extract()

    def extract_styles_from_bytes(self, content: bytes) -> ExtractedStyles:
        return StyleExtractor(self.loader.open_bytes(content)).extract()

    # ------------------------------------------------------------ generation

    def generate(self, template_ref: str, data: Union[GenerationData, Dict[str, Any]],
                 options: Union[GenerationOptions, Dict[str, Any], None] = None,
                 output_file_name: Optional[str] = None,
                 owner: Optional[str] = None) -> GenerationResult:
        """
        Generate a deck from a stored template id, URL or local path.

        Args:
            template_ref: Template id, http(s) URL or file path
            data: GenerationData (or its dict form)
            options: GenerationOptions (or its dict form)
            output_file_name: Requested file name, sanitized before use
            owner: When given and an output store is configured, the deck is saved under this owner

        Returns:
            GenerationResult with the .pptx bytes and the report
        """
        data = coerce_data(data)
        options = coerce_options(options)
        template = self.loader.load(template_ref)
        result = self.generate_from_package(template.package, data, options, output_file_name,
                                            template_name=template.name)
        if owner is not None and self.output_store is not None:
            result.file_path = self.output_store.save(result.content, result.file_name, owner)
        return result

    def generate_from_package(self, package: Package, data: Union[GenerationData, Dict[str, Any]],
                              options: Union[GenerationOptions, Dict[str, Any], None] = None,
                              output_file_name: Optional[str] = None,
                              template_name: str = '') -> GenerationResult:
        data = coerce_data(data)
        options = coerce_options(options)
        smart = options.enable_smart_replace

        analyzer = StructureAnalyzer(package, SlideClassifier(cover_aware=options.cover_aware), collect_runs=smart)
        slides = analyzer.analyze(options.slide_roles)

        duplicate = options.duplicate_workstation_slides and bool(data.workstations)
        snapshot = take_snapshot(package, SlideReplicator.template_slides(slides)) if duplicate else {}

        fields = prepare_project_fields(data)
        injector = ImageInjector(package, session=self.session)

        transformer = ContentTransformer(package, data, options.strategy, injector, fields)
        logs = transformer.run(slides)
        replaced_count = transformer.replaced_count
        image_count = transformer.image_count
        failed = list(transformer.failed_slides)

        if duplicate:
            self.logger.info("Generating per-workstation slides...")
            replication = SlideReplicator(package, data, fields, injector).replicate(slides, snapshot)
            logs = logs + replication.logs
            replaced_count += replication.replaced_count
            image_count += replication.image_count
            failed.extend(replication.failed)

        unresolved = self._unresolved(package)
        if unresolved:
            self.logger.warning(f"Unresolved placeholders: {', '.join(unresolved)}")
            if options.strict_placeholders:
                raise UnresolvedPlaceholderError(unresolved)

        serialized = serialize_package(package, replaced_count, image_count)
        self.logger.info(f"Smart replace enabled: {smart}")
        self.logger.info(f"Generated PPTX, size: {serialized.size} bytes, slides: {serialized.slide_count}")

        return GenerationResult(
            content=serialized.content,
            file_name=sanitize_file_name(output_file_name or DEFAULT_OUTPUT_FILE_NAME),
            slide_count=serialized.slide_count,
            template_name=template_name,
            field_keys=list(fields.keys()),
            slide_roles=[{'index': s.index, 'type': s.role.value} for s in slides],
            smart_replace_enabled=smart,
            replaced_count=replaced_count,
            image_count=image_count,
            replacement_logs=logs[:REPLACEMENT_LOG_LIMIT],
            unresolved=unresolved,
            failed_slides=failed,
        )

    @staticmethod
    def _unresolved(package: Package) -> List[str]:
        names: List[str] = []
        for path in package.slide_paths():
            for name in unresolved_names(package.read_text(path) or ''):
                if name not in names:
                    names.append(name)
        return names
