"""
Slide role classification
Keyword rules tuned for mixed Chinese / English proposal decks. The rule set is
a strategy object so another deck style can bring its own.
"""
import re
from enum import Enum
from typing import List, Optional, Sequence, Tuple


class SlideRole(str, Enum):
    COVER = 'cover'
    TITLE = 'title'
    BASIC_INFO = 'basic_info'
    PRODUCT_SCHEMATIC = 'product_schematic'
    TECHNICAL_REQUIREMENTS = 'technical_requirements'
    THREE_VIEW = 'three_view'
    SCHEMATIC_DIAGRAM = 'schematic_diagram'
    MOTION_METHOD = 'motion_method'
    OPTICAL_SOLUTION = 'optical_solution'
    VISION_LIST = 'vision_list'
    BOM = 'bom'
    THANK_YOU = 'thank_you'
    UNKNOWN = 'unknown'


# Slides never used as per-workstation templates
NON_TEMPLATE_ROLES = frozenset({SlideRole.COVER, SlideRole.TITLE, SlideRole.THANK_YOU})

# Ordered; the first matching rule wins
DEFAULT_RULES: Tuple[Tuple[SlideRole, str], ...] = (
    (SlideRole.TITLE, r'封面|标题|title|项目方案|技术方案'),
    (SlideRole.BASIC_INFO, r'基本信息|项目信息|概述|overview|basic'),
    (SlideRole.PRODUCT_SCHEMATIC, r'产品示意|产品图|检测对象|product'),
    (SlideRole.TECHNICAL_REQUIREMENTS, r'技术要求|检测要求|requirements'),
    (SlideRole.THREE_VIEW, r'三视图|布局图|机械布局|layout|three.?view'),
    (SlideRole.SCHEMATIC_DIAGRAM, r'示意图|布置图|schematic|diagram'),
    (SlideRole.MOTION_METHOD, r'运动方式|检测方式|运动.*检测|motion|detection'),
    (SlideRole.OPTICAL_SOLUTION, r'光学方案|optical|镜头|相机|光源'),
    (SlideRole.VISION_LIST, r'视觉清单|测量方法|vision.*list|measurement'),
    (SlideRole.BOM, r'bom|物料|清单|硬件列表|hardware'),
    (SlideRole.THANK_YOU, r'谢谢|thank|结束|\bend\b'),
)


def coerce_role(value) -> SlideRole:
    if isinstance(value, SlideRole):
        return value
    try:
        return SlideRole(str(value).strip().lower())
    except ValueError:
        return SlideRole.UNKNOWN


class SlideClassifier:
    """
    Assigns a SlideRole from a slide's tag-stripped text.

    Args:
        rules: (role, regex) pairs tried in order, case-insensitive
        cover_aware: force slide index 0 to COVER
    """

    def __init__(self, rules: Optional[Sequence[Tuple[SlideRole, str]]] = None, cover_aware: bool = True):
        self.rules: List[Tuple[SlideRole, re.Pattern]] = [
            (role, re.compile(pattern, re.IGNORECASE)) for role, pattern in (rules or DEFAULT_RULES)
        ]
        self.cover_aware = cover_aware

    def classify(self, text: str, layout_category: str = '', index: int = 0) -> SlideRole:
        if self.cover_aware and index == 0:
            return SlideRole.COVER

        lowered = (text or '').lower()
        for role, pattern in self.rules:
            if pattern.search(lowered):
                return role

        if 'title' in (layout_category or '').lower():
            return SlideRole.TITLE
        return SlideRole.UNKNOWN
