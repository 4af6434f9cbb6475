"""
Color Manager for template styling
Resolves DrawingML color elements (srgbClr, sysClr, prstClr, schemeClr) to hex
values, applying luminance modifiers in HSL space
"""
import colorsys
import re
from typing import Dict, Optional, Tuple

from lxml import etree

from utils.logger import get_logger
from config import LOG_LEVEL, LOG_FILE

SCHEME_SLOTS = (
    'dk1', 'lt1', 'dk2', 'lt2',
    'accent1', 'accent2', 'accent3', 'accent4', 'accent5', 'accent6',
    'hlink', 'folHlink',
)

# Slide-level aliases mapped onto scheme slots (the default color map)
SCHEME_ALIASES = {
    'bg1': 'lt1',
    'tx1': 'dk1',
    'bg2': 'lt2',
    'tx2': 'dk2',
}

# Semantic names exposed in the style preview
SEMANTIC_COLORS = {
    'primary': 'accent1',
    'secondary': 'accent2',
    'accent': 'accent3',
    'background': 'lt1',
    'text': 'dk1',
}

SYSTEM_COLORS = {
    'windowText': '000000',
    'window': 'FFFFFF',
    'btnFace': 'F0F0F0',
    'btnText': '000000',
    'highlight': '0078D7',
    'highlightText': 'FFFFFF',
    'grayText': '6D6D6D',
    'menu': 'F0F0F0',
    'menuText': '000000',
    'infoBk': 'FFFFE1',
    'infoText': '000000',
    'captionText': '000000',
    'activeCaption': '99B4D1',
    'inactiveCaption': 'BFCDDB',
    'background': '000000',
    'scrollBar': 'C8C8C8',
    '3dDkShadow': '696969',
    '3dLight': 'E3E3E3',
}

PRESET_COLORS = {
    'black': '000000',
    'white': 'FFFFFF',
    'red': 'FF0000',
    'green': '008000',
    'blue': '0000FF',
    'yellow': 'FFFF00',
    'cyan': '00FFFF',
    'magenta': 'FF00FF',
    'gray': '808080',
    'grey': '808080',
    'silver': 'C0C0C0',
    'maroon': '800000',
    'olive': '808000',
    'lime': '00FF00',
    'aqua': '00FFFF',
    'teal': '008080',
    'navy': '000080',
    'purple': '800080',
    'fuchsia': 'FF00FF',
    'orange': 'FFA500',
    'gold': 'FFD700',
    'brown': 'A52A2A',
    'pink': 'FFC0CB',
    'violet': 'EE82EE',
    'indigo': '4B0082',
    'coral': 'FF7F50',
    'salmon': 'FA8072',
    'tomato': 'FF6347',
    'crimson': 'DC143C',
    'khaki': 'F0E68C',
    'beige': 'F5F5DC',
    'ivory': 'FFFFF0',
    'lavender': 'E6E6FA',
    'tan': 'D2B48C',
    'turquoise': '40E0D0',
    'skyBlue': '87CEEB',
    'steelBlue': '4682B4',
    'royalBlue': '4169E1',
    'dkBlue': '00008B',
    'dkGray': 'A9A9A9',
    'dkGreen': '006400',
    'dkRed': '8B0000',
    'ltBlue': 'ADD8E6',
    'ltGray': 'D3D3D3',
    'ltGreen': '90EE90',
    'ltYellow': 'FFFFE0',
    'darkBlue': '00008B',
    'darkGray': 'A9A9A9',
    'darkGreen': '006400',
    'darkRed': '8B0000',
    'lightBlue': 'ADD8E6',
    'lightGray': 'D3D3D3',
    'lightGreen': '90EE90',
    'lightYellow': 'FFFFE0',
}

DRAWINGML_NS = 'http://schemas.openxmlformats.org/drawingml/2006/main'
COLOR_ELEMENTS = frozenset(f'{{{DRAWINGML_NS}}}{name}' for name in ('srgbClr', 'sysClr', 'prstClr', 'schemeClr'))


def normalize_hex(value: Optional[str]) -> Optional[str]:
    """'#abc' / 'aabbcc' -> 'AABBCC'; None when it is not a hex color"""
    if not value:
        return None
    value = value.strip().lstrip('#')
    if len(value) == 3:
        value = ''.join(ch * 2 for ch in value)
    if not re.fullmatch(r'[0-9A-Fa-f]{6}', value):
        return None
    return value.upper()


def hex_to_rgb(hex_color: str) -> Tuple[int, int, int]:
    value = normalize_hex(hex_color)
    if value is None:
        raise ValueError(f"Invalid hex color: {hex_color}")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def rgb_to_hex(r: int, g: int, b: int) -> str:
    return '{:02X}{:02X}{:02X}'.format(*(max(0, min(255, int(round(c)))) for c in (r, g, b)))


def hex_to_hsl(hex_color: str) -> Tuple[float, float, float]:
    """Returns (hue, saturation, lightness), each in 0..1"""
    r, g, b = hex_to_rgb(hex_color)
    h, l, s = colorsys.rgb_to_hls(r / 255, g / 255, b / 255)
    return h, s, l


def hsl_to_hex(h: float, s: float, l: float) -> str:
    r, g, b = colorsys.hls_to_rgb(h, max(0.0, min(1.0, l)), s)
    return rgb_to_hex(r * 255, g * 255, b * 255)


def lightness(hex_color: str) -> float:
    return hex_to_hsl(hex_color)[2]


def apply_luminance(hex_color: str, lum_mod: Optional[float] = None, lum_off: Optional[float] = None) -> str:
    """
    Apply DrawingML luminance modifiers.

    Args:
        hex_color: Base color
        lum_mod: Multiplier on lightness as a fraction (0.5 = 50%)
        lum_off: Offset added to lightness after the multiply, as a fraction

    Returns:
        Resulting hex color (uppercase, no '#')
    """
    if lum_mod is None and lum_off is None:
        return normalize_hex(hex_color) or hex_color
    h, s, l = hex_to_hsl(hex_color)
    if lum_mod is not None:
        l = l * lum_mod
    if lum_off is not None:
        l = l + lum_off
    return hsl_to_hex(h, s, l)


def find_color_element(element: Optional[etree._Element]) -> Optional[etree._Element]:
    if element is None:
        return None
    for candidate in element.iter(*COLOR_ELEMENTS):
        return candidate
    return None


def _modifier(color: etree._Element, name: str) -> Optional[float]:
    """lumMod / lumOff child value as a fraction (val is in 1/1000 percent)"""
    child = color.find(f'{{{DRAWINGML_NS}}}{name}')
    if child is None:
        return None
    try:
        return int(child.get('val', '')) / 100000
    except ValueError:
        return None


class ColorManager:
    """Resolves color elements against a theme's scheme map."""

    def __init__(self, scheme: Optional[Dict[str, str]] = None):
        self.logger = get_logger(__name__, LOG_LEVEL, LOG_FILE)
        self.scheme: Dict[str, str] = dict(scheme or {})
        self.unresolved = []  # color references that could not be resolved

    def lookup_scheme(self, name: str) -> Optional[str]:
        slot = SCHEME_ALIASES.get(name, name)
        return self.scheme.get(slot)

    def resolve_element(self, element: etree._Element) -> Optional[str]:
        """Resolve one color element (a:srgbClr, a:sysClr, a:prstClr or a:schemeClr)."""
        kind = etree.QName(element).localname
        val = element.get('val', '')
        base = None

        if kind == 'srgbClr':
            base = normalize_hex(val)
        elif kind == 'sysClr':
            last = normalize_hex(element.get('lastClr'))
            base = last or SYSTEM_COLORS.get(val)
        elif kind == 'prstClr':
            base = PRESET_COLORS.get(val)
        elif kind == 'schemeClr':
            base = self.lookup_scheme(val)

        if base is None:
            self.unresolved.append(f"{kind}:{val}")
            self.logger.debug(f"Unresolved color reference {kind}:{val}")
            return None

        return apply_luminance(
            base,
            _modifier(element, 'lumMod'),
            _modifier(element, 'lumOff'),
        )

    def resolve_color(self, element: Optional[etree._Element]) -> Optional[str]:
        """Resolve the first color element at or below ``element``."""
        color = find_color_element(element)
        if color is None:
            return None
        return self.resolve_element(color)

    def semantic_colors(self) -> Dict[str, str]:
        return {name: self.scheme[slot] for name, slot in SEMANTIC_COLORS.items() if slot in self.scheme}
