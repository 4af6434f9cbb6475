"""
Smart replacement
Heuristic rewriting for templates that carry no explicit placeholders: the
cover's title / date / company / customer runs, and the value side of
"label: value" lines on every other slide.
"""
import re
from typing import Dict, List, Tuple

from config import LOG_LEVEL, LOG_FILE, FORMAT_SCAN_WINDOW
from utils.logger import get_logger
from .analyzer import resolve_run_format
from .placeholders import (
    TEXT_NODE_RE, escape_xml, map_paragraphs, paragraph_text_nodes, rewrite_text_nodes,
    splice_text_nodes, unescape_xml,
)
from .report import ReplacementEntry

DATE_PATTERN = re.compile(r'\d{4}[-/.年]\d{1,2}[-/.月]?\d{0,2}')
TITLE_KEYWORDS = re.compile(r'方案|项目|技术|视觉|检测|测试|plan|project|technical|vision|detection|inspection|proposal',
                            re.IGNORECASE)
TITLE_SUFFIX = re.compile(
    r'(技术方案|项目方案|检测方案|视觉方案|方案|Technical Plan|Technical Proposal|Vision Solution|Solution|Proposal)$',
    re.IGNORECASE,
)
COMPANY_KEYWORDS = re.compile(r'公司|Co\.|Ltd|有限|Inc\.|Corporation', re.IGNORECASE)
CUSTOMER_KEYWORDS = re.compile(r'客户|customer|致', re.IGNORECASE)

COVER_TITLE_SIZE = 24
COVER_SUBTITLE_SIZE = 14

# (label regex, field key, value regex); the value is the only part rewritten
LABEL_PATTERNS: Tuple[Tuple[str, str, str], ...] = (
    (r'项目名称|Project\s+Name', 'project_name', r'.+?'),
    (r'项目编号|Project\s+(?:Code|No\.?)', 'project_code', r'.+?'),
    (r'(?<!\w)(?:客户名称|客户)|\bCustomer', 'customer', r'.+?'),
    (r'日期|\bDate', 'date_formatted', r'.+?'),
    (r'负责人|\bResponsible', 'responsible', r'.+?'),
    (r'工位数量|Workstation\s+Count', 'workstation_count', r'\d+'),
    (r'相机数量|Camera\s+Count', 'camera_count', r'\d+'),
)


def _compile_label_pattern(label: str, value: str) -> re.Pattern:
    # Free-text values run to the end of the paragraph, trailing blanks excluded
    tail = '' if value == r'\d+' else r'(?=\s*$)'
    return re.compile(
        r'(?P<label>' + label + r')(?P<sep>\s*[：:]\s*)(?P<value>' + value + r')' + tail,
        re.IGNORECASE,
    )


class SmartReplacer:
    def __init__(self, fields: Dict[str, str], language: str = 'zh', window: int = FORMAT_SCAN_WINDOW):
        self.logger = get_logger(__name__, LOG_LEVEL, LOG_FILE)
        self.fields = fields
        self.language = language
        self.window = window
        self.label_patterns = [
            (_compile_label_pattern(label, value), key) for label, key, value in LABEL_PATTERNS
        ]

    # ------------------------------------------------------------------ cover

    def _cover_title(self, original: str) -> str:
        new_title = self.fields.get('project_name') or self.fields.get('project_code') or ''
        if not new_title:
            return ''
        match = TITLE_SUFFIX.search(original.strip())
        if not match:
            return new_title
        suffix = match.group(1)
        if suffix.isascii():
            return f"{new_title} {suffix}"
        return f"{new_title}{suffix}"

    def _cover_replacement(self, text: str, font_size: float, bold: bool) -> Tuple[str, str]:
        """(new text, kind) for one cover run, or ('', '') to leave it"""
        if DATE_PATTERN.search(text):
            value = self.fields.get('date_formatted', '')
            return (value, 'date') if value else ('', '')

        if font_size >= COVER_TITLE_SIZE or bold:
            if TITLE_KEYWORDS.search(text):
                title = self._cover_title(text)
                return (title, 'title') if title else ('', '')
            if COMPANY_KEYWORDS.search(text):
                value = self.fields.get('company_name', '')
                return (value, 'company') if value else ('', '')

        if COVER_SUBTITLE_SIZE <= font_size < COVER_TITLE_SIZE and not bold:
            if CUSTOMER_KEYWORDS.search(text) and self.fields.get('customer'):
                prefix = 'To: ' if self.language == 'en' else '致：'
                return f"{prefix}{self.fields['customer']}", 'customer'
        return '', ''

    def replace_cover(self, xml: str) -> Tuple[str, List[ReplacementEntry]]:
        entries: List[ReplacementEntry] = []

        def _sub(match):
            original = unescape_xml(match.group(2))
            if not original.strip():
                return match.group(0)
            size, bold = resolve_run_format(xml, match.start(), self.window)
            new_text, kind = self._cover_replacement(original, size, bold)
            if not kind or new_text == original:
                return match.group(0)
            entries.append(ReplacementEntry(original, new_text, kind))
            return f'{match.group(1)}{escape_xml(new_text)}{match.group(3)}'

        result = TEXT_NODE_RE.sub(_sub, xml)
        return result, entries

    # ----------------------------------------------------------------- labels

    def _replace_paragraph_labels(self, paragraph_xml: str, entries: List[ReplacementEntry]) -> str:
        texts = paragraph_text_nodes(paragraph_xml)
        if not texts:
            return paragraph_xml
        changed = False
        for pattern, key in self.label_patterns:
            value = self.fields.get(key)
            if not value:
                continue
            logical = ''.join(texts)
            match = pattern.search(logical)
            if not match:
                continue
            escaped = escape_xml(value)
            if match.group('value') == escaped:
                continue
            texts = splice_text_nodes(texts, match.start('value'), match.end('value'), escaped)
            entries.append(ReplacementEntry(unescape_xml(match.group('value')), value, match.group('label')))
            changed = True
        return rewrite_text_nodes(paragraph_xml, texts) if changed else paragraph_xml

    def replace_labels(self, xml: str) -> Tuple[str, List[ReplacementEntry]]:
        entries: List[ReplacementEntry] = []
        result = map_paragraphs(xml, lambda p: self._replace_paragraph_labels(p, entries))
        return result, entries

    def replace(self, xml: str, is_cover: bool) -> Tuple[str, List[ReplacementEntry]]:
        if is_cover:
            result, entries = self.replace_cover(xml)
        else:
            result, entries = self.replace_labels(xml)
        if entries:
            self.logger.debug(f"Smart replace: {len(entries)} substitutions ({'cover' if is_cover else 'labels'})")
        return result, entries
