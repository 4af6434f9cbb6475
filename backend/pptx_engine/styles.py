"""
Style Extractor
Read-only view of a template's look: theme colors, background, logo, footer
flags, fonts, slide size and layout placeholder geometry.
"""
import base64
import posixpath
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Tuple

from lxml import etree

from config import (
    LOG_LEVEL, LOG_FILE, EMU_PER_INCH, LOGO_MAX_SIZE_INCHES, LOGO_CONTENT_MARGIN,
)
from utils.color_manager import ColorManager, SCHEME_SLOTS, SEMANTIC_COLORS
from utils.logger import get_logger
from .oxml import NAMESPACES, element_text, int_attr, placeholder_attributes, qn, shape_geometry
from .package import Package, PRESENTATION_PATH, REL_TYPE_THEME

MASTER_PATTERN = r'^ppt/slideMasters/slideMaster\d+\.xml$'
LAYOUT_PATTERN = r'^ppt/slideLayouts/slideLayout\d+\.xml$'
THEME_PATTERN = r'^ppt/theme/theme\d+\.xml$'

IMAGE_MIME_TYPES = {
    'png': 'image/png',
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'gif': 'image/gif',
    'bmp': 'image/bmp',
    'tif': 'image/tiff',
    'tiff': 'image/tiff',
    'svg': 'image/svg+xml',
    'emf': 'image/x-emf',
    'wmf': 'image/x-wmf',
}


@dataclass(frozen=True)
class BackgroundInfo:
    type: str = 'none'  # solid / gradient / image / none
    color: Optional[str] = None
    gradient_colors: Tuple[str, ...] = ()
    gradient_angle: Optional[float] = None
    image: Optional[str] = None  # data URI


@dataclass(frozen=True)
class LogoInfo:
    image: str  # data URI
    width_emu: int
    height_emu: int
    x: float  # inches
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class FooterInfo:
    show_slide_number: bool = False
    show_date: bool = False
    show_footer: bool = False
    footer_text: Optional[str] = None


@dataclass(frozen=True)
class PlaceholderGeometry:
    type: str
    idx: Optional[str]
    x: int
    y: int
    cx: int
    cy: int
    inherited: bool = False


@dataclass(frozen=True)
class LayoutInfo:
    name: str
    category: str
    path: str
    placeholders: Tuple[PlaceholderGeometry, ...] = ()


@dataclass(frozen=True)
class ExtractedStyles:
    background: BackgroundInfo = field(default_factory=BackgroundInfo)
    logo: Optional[LogoInfo] = None
    footer: FooterInfo = field(default_factory=FooterInfo)
    scheme_colors: Dict[str, str] = field(default_factory=dict)
    theme_colors: Dict[str, str] = field(default_factory=dict)  # primary / secondary / accent / background / text
    slide_width: Optional[float] = None  # inches
    slide_height: Optional[float] = None
    layouts: Tuple[LayoutInfo, ...] = ()
    title_font: Optional[str] = None
    body_font: Optional[str] = None
    title_font_ea: Optional[str] = None
    body_font_ea: Optional[str] = None
    title_font_size: Optional[float] = None
    body_font_size: Optional[float] = None
    master_count: int = 0
    layout_count: int = 0

    def to_dict(self) -> Dict:
        return asdict(self)


def _font_name(value: Optional[str]) -> Optional[str]:
    """Empty names and theme tokens (+mj-lt, +mn-ea, ...) count as absent"""
    if not value or value.startswith('+mj-') or value.startswith('+mn-'):
        return None
    return value


class StyleExtractor:
    def __init__(self, package: Package,
                 logo_max_inches: float = LOGO_MAX_SIZE_INCHES,
                 content_margin: float = LOGO_CONTENT_MARGIN):
        self.logger = get_logger(__name__, LOG_LEVEL, LOG_FILE)
        self.package = package
        self.logo_max_inches = logo_max_inches
        self.content_margin = content_margin
        self.colors = ColorManager()

    # ------------------------------------------------------------------ parts

    def master_paths(self) -> List[str]:
        return self.package.find(MASTER_PATTERN)

    def layout_paths(self) -> List[str]:
        return self.package.find(LAYOUT_PATTERN)

    def theme_path(self) -> Optional[str]:
        masters = self.master_paths()
        if masters:
            related = self.package.related_parts_by_type(masters[0], REL_TYPE_THEME)
            if related and related[0] in self.package:
                return related[0]
        themes = self.package.find(THEME_PATTERN)
        return themes[0] if themes else None

    def data_uri(self, part_path: str) -> Optional[str]:
        content = self.package.read_bytes(part_path)
        if content is None:
            return None
        ext = posixpath.splitext(part_path)[1].lstrip('.').lower()
        mime = IMAGE_MIME_TYPES.get(ext, f'image/{ext or "png"}')
        return f"data:{mime};base64,{base64.b64encode(content).decode('ascii')}"

    def embedded_image(self, part_path: str, blip: Optional[etree._Element]) -> Optional[str]:
        """Data URI of the picture an <a:blip r:embed> points at"""
        if blip is None or not blip.get(qn('r:embed')):
            return None
        image_part = self.package.related_part(part_path, blip.get(qn('r:embed')))
        return self.data_uri(image_part) if image_part else None

    # ----------------------------------------------------------------- theme

    def scheme_colors(self, theme: Optional[etree._Element]) -> Dict[str, str]:
        scheme = theme.find('.//a:clrScheme', NAMESPACES) if theme is not None else None
        if scheme is None:
            return {}
        resolver = ColorManager()
        colors = {}
        for slot in SCHEME_SLOTS:
            color = resolver.resolve_color(scheme.find(f'a:{slot}', NAMESPACES))
            if color:
                colors[slot] = color
        return colors

    def fonts(self, theme: Optional[etree._Element]) -> Dict[str, Optional[str]]:
        result = {}
        for key, tag in (('title', 'majorFont'), ('body', 'minorFont')):
            block = theme.find(f'.//a:{tag}', NAMESPACES) if theme is not None else None
            latin = block.find('a:latin', NAMESPACES) if block is not None else None
            ea = block.find('a:ea', NAMESPACES) if block is not None else None
            result[f'{key}_font'] = _font_name(latin.get('typeface') if latin is not None else None)
            result[f'{key}_font_ea'] = _font_name(ea.get('typeface') if ea is not None else None)
        return result

    # ------------------------------------------------------------ background

    def background(self, part_path: str, root: etree._Element) -> BackgroundInfo:
        bg = root.find('p:cSld/p:bg', NAMESPACES)
        if bg is None:
            return BackgroundInfo()

        fill = bg.find('p:bgPr', NAMESPACES)
        if fill is not None:
            solid = fill.find('a:solidFill', NAMESPACES)
            if solid is not None:
                color = self.colors.resolve_color(solid)
                if color:
                    return BackgroundInfo(type='solid', color=color)

            gradient = fill.find('a:gradFill', NAMESPACES)
            if gradient is not None:
                stops = [self.colors.resolve_color(stop) for stop in gradient.iterfind('a:gsLst/a:gs', NAMESPACES)]
                stops = [s for s in stops if s]
                if stops:
                    angle = int_attr(gradient.find('a:lin', NAMESPACES), 'ang')
                    return BackgroundInfo(
                        type='gradient',
                        color=stops[0],
                        gradient_colors=tuple(stops),
                        gradient_angle=angle / 60000 if angle is not None else None,
                    )

            image = self.embedded_image(part_path, fill.find('a:blipFill/a:blip', NAMESPACES))
            if image:
                return BackgroundInfo(type='image', image=image)

        bg_ref = bg.find('p:bgRef', NAMESPACES)
        if bg_ref is not None:
            color = self.colors.resolve_color(bg_ref)
            if color:
                return BackgroundInfo(type='solid', color=color)
        return BackgroundInfo()

    # ------------------------------------------------------------------ logo

    def logo(self, master_path: str, master: etree._Element, slide_size: Tuple[int, int]) -> Optional[LogoInfo]:
        """First small picture on the master whose center lies outside the content area"""
        max_emu = self.logo_max_inches * EMU_PER_INCH
        width, height = slide_size
        left, right = width * self.content_margin, width * (1 - self.content_margin)
        top, bottom = height * self.content_margin, height * (1 - self.content_margin)

        for pic in master.iter(qn('p:pic')):
            geometry = shape_geometry(pic)
            if not geometry:
                continue
            x, y, cx, cy = geometry
            if cx >= max_emu or cy >= max_emu:
                continue
            center_x, center_y = x + cx / 2, y + cy / 2
            if left <= center_x <= right and top <= center_y <= bottom:
                continue
            image = self.embedded_image(master_path, pic.find('p:blipFill/a:blip', NAMESPACES))
            if not image:
                continue
            return LogoInfo(
                image=image,
                width_emu=cx,
                height_emu=cy,
                x=round(x / EMU_PER_INCH, 3),
                y=round(y / EMU_PER_INCH, 3),
                width=round(cx / EMU_PER_INCH, 3),
                height=round(cy / EMU_PER_INCH, 3),
            )
        return None

    # ---------------------------------------------------------------- footer

    def footer(self, master: etree._Element) -> FooterInfo:
        flags = {'sldNum': False, 'dt': False, 'ftr': False}
        footer_text = None
        for shape in master.iter(qn('p:sp')):
            ph = placeholder_attributes(shape)
            if not ph or ph['type'] not in flags:
                continue
            flags[ph['type']] = True
            if ph['type'] == 'ftr':
                footer_text = element_text(shape).strip() or None
        return FooterInfo(
            show_slide_number=flags['sldNum'],
            show_date=flags['dt'],
            show_footer=flags['ftr'],
            footer_text=footer_text,
        )

    # ---------------------------------------------------------------- layout

    def text_style_size(self, master: etree._Element, style: str) -> Optional[float]:
        size = int_attr(master.find(f'p:txStyles/p:{style}/a:lvl1pPr/a:defRPr', NAMESPACES), 'sz')
        return size / 100 if size is not None else None

    def master_placeholders(self, master: etree._Element) -> Dict[str, Tuple[int, int, int, int]]:
        result = {}
        for shape in master.iter(qn('p:sp')):
            ph = placeholder_attributes(shape)
            geometry = shape_geometry(shape)
            if ph and geometry:
                result.setdefault(ph['type'], geometry)
        return result

    def layouts(self, master_geometry: Dict[str, Tuple[int, int, int, int]]) -> List[LayoutInfo]:
        layouts = []
        for path in self.layout_paths():
            root = self.package.read_xml(path)
            c_sld = root.find('p:cSld', NAMESPACES)
            placeholders = []
            for shape in root.iter(qn('p:sp')):
                ph = placeholder_attributes(shape)
                if not ph:
                    continue
                geometry = shape_geometry(shape)
                inherited = False
                if geometry is None:
                    # ctrTitle / subTitle inherit the master's title / body frame
                    fallback_type = {'ctrTitle': 'title', 'subTitle': 'body'}.get(ph['type'], ph['type'])
                    geometry = master_geometry.get(ph['type']) or master_geometry.get(fallback_type)
                    inherited = True
                if geometry is None:
                    continue
                placeholders.append(PlaceholderGeometry(ph['type'], ph.get('idx'), *geometry, inherited=inherited))
            name = c_sld.get('name') if c_sld is not None else None
            layouts.append(LayoutInfo(
                name=name or posixpath.basename(path),
                category=root.get('type') or 'cust',
                path=path,
                placeholders=tuple(placeholders),
            ))
        return layouts

    # --------------------------------------------------------------- extract

    def slide_size(self) -> Tuple[int, int]:
        root = self.package.read_xml(PRESENTATION_PATH)
        size = root.find('p:sldSz', NAMESPACES) if root is not None else None
        cx, cy = int_attr(size, 'cx'), int_attr(size, 'cy')
        if cx is None or cy is None:
            # 10in x 7.5in default
            return 9144000, 6858000
        return cx, cy

    def extract(self) -> ExtractedStyles:
        masters = self.master_paths()
        layouts = self.layout_paths()
        self.logger.info(f"Found {len(masters)} masters, {len(layouts)} layouts")

        theme_path = self.theme_path()
        theme = self.package.read_xml(theme_path) if theme_path else None
        scheme = self.scheme_colors(theme)
        self.colors = ColorManager(scheme)
        fonts = self.fonts(theme)

        slide_size = self.slide_size()
        background = BackgroundInfo()
        logo = None
        footer = FooterInfo()
        title_size = body_size = None
        master_geometry: Dict[str, Tuple[int, int, int, int]] = {}

        if masters:
            master = self.package.read_xml(masters[0])
            background = self.background(masters[0], master)
            logo = self.logo(masters[0], master, slide_size)
            footer = self.footer(master)
            title_size = self.text_style_size(master, 'titleStyle')
            body_size = self.text_style_size(master, 'bodyStyle')
            master_geometry = self.master_placeholders(master)

        styles = ExtractedStyles(
            background=background,
            logo=logo,
            footer=footer,
            scheme_colors=scheme,
            theme_colors={name: scheme[slot] for name, slot in SEMANTIC_COLORS.items() if slot in scheme},
            slide_width=round(slide_size[0] / EMU_PER_INCH, 3),
            slide_height=round(slide_size[1] / EMU_PER_INCH, 3),
            layouts=tuple(self.layouts(master_geometry)),
            title_font=fonts['title_font'],
            body_font=fonts['body_font'],
            title_font_ea=fonts['title_font_ea'],
            body_font_ea=fonts['body_font_ea'],
            title_font_size=title_size,
            body_font_size=body_size,
            master_count=len(masters),
            layout_count=len(layouts),
        )
        self.logger.info(f"Extracted styles: bgType={background.type}, colors={styles.theme_colors}")
        return styles
