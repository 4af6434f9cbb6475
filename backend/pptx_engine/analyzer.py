"""
Structure Analyzer
Builds the slide inventory of a package: roles, custom placeholders, image
slots, loop blocks and (for smart replacement) formatted text runs.
Read-only: never writes to the package.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from config import LOG_LEVEL, LOG_FILE, FORMAT_SCAN_WINDOW, DEFAULT_FONT_SIZE
from utils.logger import get_logger
from .classifier import SlideClassifier, SlideRole, coerce_role
from .errors import InvalidArchiveError
from .package import Package, REL_TYPE_SLIDE_LAYOUT, slide_number
from .placeholders import (
    TEXT_NODE_RE, find_image_slots, find_loop_names, find_placeholder_names, logical_text, unescape_xml,
)

_SIZE_RE = re.compile(r'\bsz="(\d+)"')
_BOLD_RE = re.compile(r'\bb="(1|0|true|false)"')
_DATE_TEXT_RE = re.compile(r'\d{4}[-/.年]\d{1,2}[-/.月]?\d{0,2}')
_SHAPE_START_RE = re.compile(r'<p:sp[\s>]')
_PH_TYPE_RE = re.compile(r'<p:ph\b[^>]*\btype="([^"]+)"')

TITLE_FONT_SIZE = 28
SUBTITLE_FONT_SIZE = 18


@dataclass
class TextRun:
    text: str
    font_size: float
    bold: bool
    tag: str  # title / subtitle / body / date / footer / unknown
    position: int

    def to_dict(self) -> Dict:
        return {'text': self.text, 'font_size': self.font_size, 'bold': self.bold, 'tag': self.tag}


@dataclass
class SlideInfo:
    index: int
    path: str
    number: int
    layout_ref: str = ''
    layout_part: Optional[str] = None
    layout_category: str = 'unknown'
    role: SlideRole = SlideRole.UNKNOWN
    custom_fields: List[str] = field(default_factory=list)
    image_slots: List[str] = field(default_factory=list)
    loop_names: List[str] = field(default_factory=list)
    text_runs: List[TextRun] = field(default_factory=list)

    @property
    def has_loop_block(self) -> bool:
        return bool(self.loop_names)

    @property
    def has_placeholders(self) -> bool:
        return bool(self.custom_fields) or self.has_loop_block

    def to_dict(self) -> Dict:
        return {
            'index': self.index,
            'path': self.path,
            'layout_ref': self.layout_ref,
            'layout_category': self.layout_category,
            'role': self.role.value,
            'custom_fields': list(self.custom_fields),
            'image_slots': list(self.image_slots),
            'has_loop_block': self.has_loop_block,
            'loop_names': list(self.loop_names),
            'text_runs': [run.to_dict() for run in self.text_runs],
        }


def resolve_run_format(xml: str, position: int, window: int = FORMAT_SCAN_WINDOW,
                       default_size: float = DEFAULT_FONT_SIZE) -> Tuple[float, bool]:
    """
    Font size (pt) and bold flag for the text run at ``position``.

    Scans backward at most ``window`` characters for the nearest size and bold
    declarations. Sizes are stored in hundredths of a point.
    """
    area = xml[max(0, position - window):position]
    sizes = _SIZE_RE.findall(area)
    bolds = _BOLD_RE.findall(area)
    size = int(sizes[-1]) / 100 if sizes else default_size
    bold = bool(bolds) and bolds[-1] in ('1', 'true')
    return size, bold


def _placeholder_type_at(xml: str, position: int) -> Optional[str]:
    starts = [m.start() for m in _SHAPE_START_RE.finditer(xml, 0, position)]
    if not starts:
        return None
    match = _PH_TYPE_RE.search(xml, starts[-1], position)
    return match.group(1) if match else None


def classify_run(text: str, font_size: float, bold: bool, placeholder_type: Optional[str] = None) -> str:
    if placeholder_type in ('ftr', 'sldNum'):
        return 'footer'
    if placeholder_type == 'dt':
        return 'date'
    if font_size >= TITLE_FONT_SIZE or bold:
        return 'title'
    if font_size >= SUBTITLE_FONT_SIZE:
        return 'subtitle'
    if _DATE_TEXT_RE.search(text):
        return 'date'
    if text:
        return 'body'
    return 'unknown'


def extract_text_runs(xml: str, window: int = FORMAT_SCAN_WINDOW) -> List[TextRun]:
    runs = []
    for match in TEXT_NODE_RE.finditer(xml or ''):
        text = unescape_xml(match.group(2)).strip()
        if not text:
            continue
        size, bold = resolve_run_format(xml, match.start(), window)
        runs.append(TextRun(
            text=text,
            font_size=size,
            bold=bold,
            tag=classify_run(text, size, bold, _placeholder_type_at(xml, match.start())),
            position=match.start(),
        ))
    return runs


def guess_layout_category(xml: str) -> str:
    """Content heuristic used when the layout part gives no type"""
    if 'titleOnly' in xml:
        return 'titleOnly'
    if 'title' in xml:
        return 'title'
    if 'blank' in xml:
        return 'blank'
    if 'twoCol' in xml:
        return 'twoCol'
    if 'obj' in xml:
        return 'obj'
    return 'unknown'


class StructureAnalyzer:
    def __init__(self, package: Package, classifier: Optional[SlideClassifier] = None,
                 collect_runs: bool = True, window: int = FORMAT_SCAN_WINDOW):
        self.logger = get_logger(__name__, LOG_LEVEL, LOG_FILE)
        self.package = package
        self.classifier = classifier or SlideClassifier()
        self.collect_runs = collect_runs
        self.window = window

    def layout_of(self, slide_path: str) -> Tuple[str, Optional[str], Optional[str]]:
        """(relationship id, layout part, layout type attribute) of a slide"""
        for rel in self.package.relationships(slide_path):
            if rel.type == REL_TYPE_SLIDE_LAYOUT and not rel.is_external:
                layout_part = self.package.resolve_target(slide_path, rel.target)
                try:
                    layout = self.package.read_xml(layout_part)
                except InvalidArchiveError as e:
                    self.logger.warning(f"Ignoring layout of {slide_path}: {e}")
                    layout = None
                return rel.id, layout_part, layout.get('type') if layout is not None else None
        return '', None, None

    def analyze_slide(self, index: int, path: str, xml: str,
                      role_override: Optional[SlideRole] = None) -> SlideInfo:
        text = logical_text(xml)
        layout_ref, layout_part, layout_type = self.layout_of(path)
        category = layout_type or guess_layout_category(xml)
        role = role_override or self.classifier.classify(text, category, index)

        return SlideInfo(
            index=index,
            path=path,
            number=slide_number(path) or index + 1,
            layout_ref=layout_ref,
            layout_part=layout_part,
            layout_category=category,
            role=role,
            custom_fields=find_placeholder_names(text),
            image_slots=find_image_slots(text),
            loop_names=find_loop_names(text),
            text_runs=extract_text_runs(xml, self.window) if self.collect_runs else [],
        )

    def analyze(self, slide_roles: Optional[Dict[int, str]] = None) -> List[SlideInfo]:
        """
        Inventory every slide in numeric part order.

        Args:
            slide_roles: optional slide index -> role name; overrides detection

        Returns:
            List of SlideInfo, index 0 first
        """
        overrides = {int(k): coerce_role(v) for k, v in (slide_roles or {}).items()}
        slides = []
        for index, path in enumerate(self.package.slide_paths()):
            xml = self.package.read_text(path) or ''
            slides.append(self.analyze_slide(index, path, xml, overrides.get(index)))

        self.logger.info(f"Found {len(slides)} slides, roles: {', '.join(s.role.value for s in slides)}")
        return slides
