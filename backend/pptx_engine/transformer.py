"""
Content Transformer
Rewrites slide parts in place: loop expansion and placeholder substitution
where the slide has explicit markers, heuristic smart replacement where it has
none, then image marker resolution.
"""
from enum import Enum
from typing import Dict, List, Optional, Tuple

from config import LOG_LEVEL, LOG_FILE
from utils.logger import get_logger
from .analyzer import SlideInfo
from .classifier import SlideRole
from .data import GenerationData
from .fields import collect_image_urls, prepare_project_fields
from .media import ImageInjector
from .package import Package
from .placeholders import expand_loops, normalize_split_placeholders, substitute_fields
from .report import ReplacementEntry, ReplacementLog
from .smart_replace import SmartReplacer

MASTER_PATTERN = r'^ppt/slideMasters/slideMaster\d+\.xml$'
LAYOUT_PATTERN = r'^ppt/slideLayouts/slideLayout\d+\.xml$'

COVER_ROLES = (SlideRole.COVER, SlideRole.TITLE)


class ReplacementStrategy(str, Enum):
    PLACEHOLDERS = 'placeholders'  # explicit markers only
    SMART = 'smart'  # markers, plus heuristics on slides without any


def apply_text_substitution(xml: str, fields: Dict[str, str],
                            data: Optional[GenerationData] = None) -> Tuple[str, List[ReplacementEntry]]:
    """
    Placeholder path for one part: merge split tokens, expand loops, substitute fields.

    Loops are expanded only when ``data`` is given.
    """
    entries: List[ReplacementEntry] = []
    result = normalize_split_placeholders(xml)
    if data is not None:
        result, expanded = expand_loops(result, data)
        for name, count in expanded:
            entries.append(ReplacementEntry(f'{{{{#{name}}}}}', f'{count} items', 'loop'))
    result, replaced = substitute_fields(result, fields)
    for name in replaced:
        entries.append(ReplacementEntry(f'{{{{{name}}}}}', fields[name], 'placeholder'))
    return result, entries


class ContentTransformer:
    def __init__(self, package: Package, data: GenerationData,
                 strategy: ReplacementStrategy = ReplacementStrategy.SMART,
                 injector: Optional[ImageInjector] = None,
                 fields: Optional[Dict[str, str]] = None):
        self.logger = get_logger(__name__, LOG_LEVEL, LOG_FILE)
        self.package = package
        self.data = data
        self.strategy = ReplacementStrategy(strategy)
        self.injector = injector or ImageInjector(package)
        self.fields = fields if fields is not None else prepare_project_fields(data)
        self.smart = SmartReplacer(self.fields, data.language)

        first_ws = data.workstations[0] if data.workstations else None
        self.image_urls = collect_image_urls(first_ws, data.all_modules())

        self.logs: List[ReplacementLog] = []
        self.replaced_count = 0
        self.image_count = 0
        self.failed_slides: List[Dict] = []

    def is_cover(self, info: SlideInfo) -> bool:
        # Slide 0 is already COVER when the classifier is cover-aware, unless a role override says otherwise
        return info.role in COVER_ROLES

    def transform_slide(self, info: SlideInfo) -> ReplacementLog:
        log = ReplacementLog(info.index, info.role.value)
        xml = self.package.read_text(info.path)
        if xml is None:
            self.logger.warning(f"Slide part missing: {info.path}")
            return log

        if info.has_placeholders:
            result, entries = apply_text_substitution(xml, self.fields, self.data if info.has_loop_block else None)
        elif self.strategy == ReplacementStrategy.SMART:
            result, entries = self.smart.replace(xml, self.is_cover(info))
        else:
            result, entries = xml, []

        log.extend(entries)
        self.replaced_count += sum(1 for e in entries if e.kind not in ('loop', 'image'))
        if result != xml:
            self.package.write(info.path, result)

        injected, image_entries = self.injector.inject(info.path, self.image_urls)
        self.image_count += injected
        log.extend(image_entries)
        return log

    def transform_slides(self, slides: List[SlideInfo]) -> List[ReplacementLog]:
        """Transform each slide; a slide that raises is logged, recorded and skipped."""
        for info in slides:
            try:
                log = self.transform_slide(info)
            except Exception as e:
                self.logger.error(f"❌ Failed to transform slide {info.index} ({info.path}): {e}")
                self.failed_slides.append({'index': info.index, 'path': info.path, 'error': str(e)})
                continue
            if log:
                self.logs.append(log)
        return self.logs

    def transform_masters_and_layouts(self) -> int:
        """Project-level placeholders on masters and layouts; returns how many parts changed"""
        changed = 0
        for path in self.package.find(MASTER_PATTERN) + self.package.find(LAYOUT_PATTERN):
            xml = self.package.read_text(path)
            if not xml:
                continue
            result, entries = apply_text_substitution(xml, self.fields)
            if result != xml:
                self.package.write(path, result)
                changed += 1
                self.replaced_count += len(entries)
        if changed:
            self.logger.info(f"Substituted placeholders in {changed} masters/layouts")
        return changed

    def run(self, slides: List[SlideInfo]) -> List[ReplacementLog]:
        self.transform_slides(slides)
        self.transform_masters_and_layouts()
        self.logger.info(
            f"Transformed {len(slides)} slides: {self.replaced_count} replacements, {self.image_count} images"
        )
        return self.logs
