"""
Placeholder syntax and text-run helpers
{{field}} scalars, {{#collection}}...{{/collection}} repetition blocks and
{{img:slot}} image markers, matched on the logical text of each paragraph so
that a token split across formatting runs still resolves.
"""
import re
from typing import Callable, Dict, List, Optional, Tuple

from .data import GenerationData, HARDWARE_COLLECTIONS, Module
from .fields import prepare_hardware_fields, prepare_module_fields, prepare_workstation_fields

LOOP_NAMES = ('workstations', 'modules') + tuple(f'hardware.{name}' for name in HARDWARE_COLLECTIONS)

PARAGRAPH_RE = re.compile(r'<a:p(?:\s[^>]*)?>.*?</a:p>', re.DOTALL)
TEXT_NODE_RE = re.compile(r'(<a:t(?:\s[^>]*)?>)([^<]*)(</a:t>)')
TAG_RE = re.compile(r'<[^>]*>')

TOKEN_RE = re.compile(r'\{\{[^{}]*\}\}')
FIELD_RE = re.compile(r'\{\{\s*([A-Za-z_][\w.]*)\s*\}\}')
IMAGE_MARKER_RE = re.compile(r'\{\{\s*img:(\w+)\s*\}\}')
LOOP_OPEN_RE = re.compile(r'\{\{\s*#([\w.]+)\s*\}\}')

_XML_ESCAPES = (('&', '&amp;'), ('<', '&lt;'), ('>', '&gt;'), ('"', '&quot;'), ("'", '&apos;'))


def escape_xml(value) -> str:
    text = '' if value is None else str(value)
    for raw, escaped in _XML_ESCAPES:
        text = text.replace(raw, escaped)
    return text


def unescape_xml(text: str) -> str:
    for raw, escaped in reversed(_XML_ESCAPES):
        text = text.replace(escaped, raw)
    return text


def strip_tags(xml: str) -> str:
    return TAG_RE.sub(' ', xml or '')


# ---------------------------------------------------------------- text runs

def paragraph_text_nodes(paragraph_xml: str) -> List[str]:
    """Escaped contents of every <a:t> in a paragraph, in document order."""
    return [match.group(2) for match in TEXT_NODE_RE.finditer(paragraph_xml)]


def rewrite_text_nodes(paragraph_xml: str, texts: List[str]) -> str:
    remaining = iter(texts)
    return TEXT_NODE_RE.sub(lambda m: f'{m.group(1)}{next(remaining, m.group(2))}{m.group(3)}', paragraph_xml)


def splice_text_nodes(texts: List[str], start: int, end: int, replacement: str) -> List[str]:
    """
    Replace the logical span [start, end) of the concatenated node texts.

    The replacement lands in the node holding ``start``; the rest of the span
    is cut out of the following nodes, so their run formatting is untouched.
    """
    bounds = []
    offset = 0
    for text in texts:
        bounds.append((offset, offset + len(text)))
        offset += len(text)

    owner = len(texts) - 1
    for i, (a, b) in enumerate(bounds):
        if a <= start < b:
            owner = i
            break

    result = []
    for i, (text, (a, _)) in enumerate(zip(texts, bounds)):
        local_start = min(max(start - a, 0), len(text))
        local_end = min(max(end - a, 0), len(text))
        inserted = replacement if i == owner else ''
        result.append(text[:local_start] + inserted + text[local_end:])
    return result


def map_paragraphs(xml: str, fn: Callable[[str], str]) -> str:
    return PARAGRAPH_RE.sub(lambda m: fn(m.group(0)), xml)


def _merge_split_tokens(paragraph_xml: str) -> str:
    texts = paragraph_text_nodes(paragraph_xml)
    if len(texts) < 2:
        return paragraph_xml
    logical = ''.join(texts)
    if '{{' not in logical:
        return paragraph_xml

    starts = []
    offset = 0
    for text in texts:
        starts.append(offset)
        offset += len(text)

    def node_at(position):
        index = 0
        for i, s in enumerate(starts):
            if s <= position:
                index = i
        return index

    split_tokens = [
        m for m in TOKEN_RE.finditer(logical)
        if node_at(m.start()) != node_at(m.end() - 1)
    ]
    if not split_tokens:
        return paragraph_xml
    # Right to left keeps earlier offsets valid
    for match in reversed(split_tokens):
        texts = splice_text_nodes(texts, match.start(), match.end(), match.group(0))
    return rewrite_text_nodes(paragraph_xml, texts)


def normalize_split_placeholders(xml: str) -> str:
    """Move every {{...}} token that spans several runs into the first run it touches."""
    if '{' not in (xml or ''):
        return xml
    return map_paragraphs(xml, _merge_split_tokens)


def logical_text(xml: str) -> str:
    """Unescaped paragraph texts (runs concatenated), one line per paragraph."""
    lines = [''.join(paragraph_text_nodes(m.group(0))) for m in PARAGRAPH_RE.finditer(xml or '')]
    return unescape_xml('\n'.join(lines))


# ------------------------------------------------------------------ scanning

def find_placeholder_names(text: str) -> List[str]:
    """Bare {{field}} names in first-seen order (loop markers and image markers excluded)."""
    names: List[str] = []
    for match in FIELD_RE.finditer(text or ''):
        name = match.group(1)
        if name not in names:
            names.append(name)
    return names


def find_image_slots(text: str) -> List[str]:
    slots: List[str] = []
    for match in IMAGE_MARKER_RE.finditer(text or ''):
        if match.group(1) not in slots:
            slots.append(match.group(1))
    return slots


def _loop_re(name: str) -> re.Pattern:
    escaped = re.escape(name)
    return re.compile(r'\{\{\s*#' + escaped + r'\s*\}\}(.*?)\{\{\s*/' + escaped + r'\s*\}\}', re.DOTALL)


def find_loop_names(text: str) -> List[str]:
    """Known collection names that have a paired open/close block."""
    return [name for name in LOOP_NAMES if _loop_re(name).search(text or '')]


def has_loop_block(text: str) -> bool:
    return bool(find_loop_names(text))


# -------------------------------------------------------------- substitution

def substitute_fields(xml: str, fields: Dict[str, str]) -> Tuple[str, List[str]]:
    """
    Replace {{key}} for every key present in ``fields`` in one pass.

    Values are XML-escaped; unknown names stay verbatim.
    Returns the new XML and the names that were replaced (with repeats).
    """
    replaced: List[str] = []

    def _sub(match):
        name = match.group(1)
        if name not in fields:
            return match.group(0)
        replaced.append(name)
        return escape_xml(fields[name])

    return FIELD_RE.sub(_sub, xml), replaced


class LoopExpander:
    """Expands repetition blocks against one GenerationData tree."""

    def __init__(self, data: GenerationData):
        self.data = data
        self.all_modules = data.all_modules()
        self.expanded: List[Tuple[str, int]] = []

    def module_number(self, mod: Module, fallback: int) -> int:
        """1-based position of a module in the deck-wide module list."""
        for i, candidate in enumerate(self.all_modules):
            if candidate is mod or (mod.id and candidate.id == mod.id):
                return i + 1
        return fallback + 1

    def _expand(self, xml: str, name: str, render: Callable[[str], str]) -> str:
        pattern = _loop_re(name)

        def _sub(match):
            return render(match.group(1))

        return pattern.sub(_sub, xml)

    def _render_modules(self, body: str, modules: List[Module]) -> str:
        parts = []
        for j, mod in enumerate(modules):
            copy, _ = substitute_fields(body, prepare_module_fields(mod, j))
            number = self.module_number(mod, j)
            copy = re.sub(r'\{\{\s*img:module_schematic\s*\}\}', f'{{{{img:module_schematic_{number}}}}}', copy)
            parts.append(copy)
        self.expanded.append(('modules', len(modules)))
        return ''.join(parts)

    def _render_workstations(self, body: str) -> str:
        parts = []
        for i, ws in enumerate(self.data.workstations):
            copy, _ = substitute_fields(body, prepare_workstation_fields(ws, i, self.data))
            modules = self.data.modules_for(ws)
            copy = self._expand(copy, 'modules', lambda inner, mods=modules: self._render_modules(inner, mods))
            parts.append(copy)
        self.expanded.append(('workstations', len(self.data.workstations)))
        return ''.join(parts)

    def _render_hardware(self, body: str, collection: str) -> str:
        items = self.data.hardware.collection(collection)
        parts = []
        for i, item in enumerate(items):
            copy, _ = substitute_fields(body, prepare_hardware_fields(item, i, collection))
            parts.append(copy)
        self.expanded.append((f'hardware.{collection}', len(items)))
        return ''.join(parts)

    def expand(self, xml: str) -> str:
        """Expand every known block; workstation blocks first, so nested module blocks bind to their workstation."""
        result = self._expand(xml, 'workstations', self._render_workstations)
        result = self._expand(result, 'modules', lambda body: self._render_modules(body, self.all_modules))
        for collection in HARDWARE_COLLECTIONS:
            result = self._expand(result, f'hardware.{collection}',
                                  lambda body, c=collection: self._render_hardware(body, c))
        return result


def expand_loops(xml: str, data: GenerationData) -> Tuple[str, List[Tuple[str, int]]]:
    expander = LoopExpander(data)
    result = expander.expand(xml)
    return result, expander.expanded


def unresolved_names(xml: str, known: Optional[Dict[str, str]] = None) -> List[str]:
    """Bare placeholders still present in ``xml``."""
    names = find_placeholder_names(logical_text(xml))
    if known:
        names = [n for n in names if n not in known]
    return names
