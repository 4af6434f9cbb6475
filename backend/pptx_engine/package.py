"""
OOXML Package
In-memory presentation archive: named parts plus the id allocators that keep
relationship ids, slide ids and media names unique while parts are rewritten.
"""
import io
import posixpath
import re
import zipfile
import zlib
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from lxml import etree

from config import LOG_LEVEL, LOG_FILE
from utils.logger import get_logger
from .errors import InvalidArchiveError
from .oxml import NAMESPACES, XMLSyntaxError, new_root, parse_xml, qn, serialize_xml

CONTENT_TYPES_PATH = '[Content_Types].xml'
PRESENTATION_PATH = 'ppt/presentation.xml'
PRESENTATION_RELS_PATH = 'ppt/_rels/presentation.xml.rels'

_REL_BASE = NAMESPACES['r']
REL_TYPE_SLIDE = f'{_REL_BASE}/slide'
REL_TYPE_IMAGE = f'{_REL_BASE}/image'
REL_TYPE_NOTES_SLIDE = f'{_REL_BASE}/notesSlide'
REL_TYPE_SLIDE_LAYOUT = f'{_REL_BASE}/slideLayout'
REL_TYPE_SLIDE_MASTER = f'{_REL_BASE}/slideMaster'
REL_TYPE_THEME = f'{_REL_BASE}/theme'

SLIDE_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.presentationml.slide+xml'

# Lowest slide id PowerPoint accepts is 256; new ids start above it
MIN_SLIDE_ID = 256

# Children of <p:presentation> that come before <p:sldIdLst>, in schema order
_BEFORE_SLD_ID_LST = ('p:sldMasterIdLst', 'p:notesMasterIdLst', 'p:handoutMasterIdLst')

_SLIDE_PART_RE = re.compile(r'^ppt/slides/slide(\d+)\.xml$', re.IGNORECASE)
_MEDIA_IMAGE_RE = re.compile(r'^ppt/media/image(\d+)\.[A-Za-z0-9]+$', re.IGNORECASE)
_RID_RE = re.compile(r'^rId(\d+)$')


@dataclass(frozen=True)
class Relationship:
    id: str
    type: str
    target: str
    target_mode: Optional[str] = None

    @property
    def is_external(self) -> bool:
        return (self.target_mode or '').lower() == 'external'


def slide_number(path: str) -> Optional[int]:
    match = _SLIDE_PART_RE.match(path or '')
    return int(match.group(1)) if match else None


def rels_path_for(part_path: str) -> str:
    """ppt/slides/slide1.xml -> ppt/slides/_rels/slide1.xml.rels"""
    directory, name = posixpath.split(part_path)
    return posixpath.join(directory, '_rels', f'{name}.rels')


class Package:
    def __init__(self, parts: Optional[Dict[str, bytes]] = None):
        self.logger = get_logger(__name__, LOG_LEVEL, LOG_FILE)
        self._parts: Dict[str, bytes] = dict(parts or {})
        # Allocators, created lazily from the current package state
        self._next_slide_id: Optional[int] = None
        self._next_slide_number: Optional[int] = None
        self._next_media_index: Optional[int] = None
        self._next_rel_ids: Dict[str, int] = {}

    # ------------------------------------------------------------------ loading

    @classmethod
    def from_bytes(cls, data: bytes) -> 'Package':
        """Open a zip buffer; raises InvalidArchiveError when it is not readable."""
        if not data or bytes(data[:4]) != b'PK\x03\x04':
            raise InvalidArchiveError("Template is not a zip archive (missing PK signature)")
        parts: Dict[str, bytes] = {}
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                for info in archive.infolist():
                    if info.is_dir():
                        continue
                    parts[info.filename] = archive.read(info)
        except (zipfile.BadZipFile, zlib.error, EOFError, OSError, ValueError) as e:
            raise InvalidArchiveError(f"Template archive is unreadable: {e}") from e
        return cls(parts)

    # -------------------------------------------------------------- part access

    def __contains__(self, path: str) -> bool:
        return path in self._parts

    def __len__(self) -> int:
        return len(self._parts)

    @property
    def part_count(self) -> int:
        return len(self._parts)

    def names(self) -> List[str]:
        return list(self._parts.keys())

    def read_bytes(self, path: str) -> Optional[bytes]:
        return self._parts.get(path)

    def read_text(self, path: str) -> Optional[str]:
        data = self._parts.get(path)
        if data is None:
            return None
        return data.decode('utf-8')

    def write(self, path: str, content: Union[str, bytes]) -> None:
        if isinstance(content, str):
            content = content.encode('utf-8')
        self._parts[path] = content

    def remove(self, path: str) -> None:
        self._parts.pop(path, None)

    def read_xml(self, path: str) -> Optional[etree._Element]:
        """Parsed root of an XML part; None when the part is missing."""
        data = self._parts.get(path)
        if data is None:
            return None
        try:
            return parse_xml(data)
        except XMLSyntaxError as e:
            raise InvalidArchiveError(f"Part {path} is not well-formed XML: {e}") from e

    def write_xml(self, path: str, root: etree._Element) -> None:
        self._parts[path] = serialize_xml(root)

    def checkpoint(self) -> Dict[str, bytes]:
        """Current part table; hand it to restore() to undo later writes"""
        return dict(self._parts)

    def restore(self, checkpoint: Dict[str, bytes]) -> None:
        # Allocators are left where they are; a restored package may have gaps in numbering
        self._parts = dict(checkpoint)

    def find(self, pattern: str) -> List[str]:
        """Part names matching ``pattern``, ordered by their trailing number."""
        regex = re.compile(pattern, re.IGNORECASE)
        matches = [name for name in self._parts if regex.search(name)]
        return sorted(matches, key=_numeric_sort_key)

    def slide_paths(self) -> List[str]:
        """Slide parts in numeric order (slide2 before slide10), whatever the zip order."""
        slides = [name for name in self._parts if slide_number(name) is not None]
        return sorted(slides, key=slide_number)

    # ------------------------------------------------------------ relationships

    def relationships(self, part_path: str) -> List[Relationship]:
        root = self.read_xml(rels_path_for(part_path))
        if root is None:
            return []
        result = []
        for rel in root.findall(qn('rel:Relationship')):
            if not rel.get('Id'):
                continue
            result.append(Relationship(
                id=rel.get('Id'),
                type=rel.get('Type', ''),
                target=rel.get('Target', ''),
                target_mode=rel.get('TargetMode'),
            ))
        return result

    def resolve_target(self, part_path: str, target: str) -> str:
        """Turn a relationship target into a package part name."""
        if target.startswith('/'):
            return target.lstrip('/')
        base = posixpath.dirname(part_path)
        return posixpath.normpath(posixpath.join(base, target))

    def related_part(self, part_path: str, rel_id: str) -> Optional[str]:
        for rel in self.relationships(part_path):
            if rel.id == rel_id and not rel.is_external:
                return self.resolve_target(part_path, rel.target)
        return None

    def related_parts_by_type(self, part_path: str, rel_type: str) -> List[str]:
        return [
            self.resolve_target(part_path, rel.target)
            for rel in self.relationships(part_path)
            if rel.type == rel_type and not rel.is_external
        ]

    def add_relationship(self, part_path: str, rel_type: str, target: str) -> str:
        """Append a relationship to ``part_path``'s rels file and return its new id."""
        rels_path = rels_path_for(part_path)
        root = self.read_xml(rels_path)
        if root is None:
            root = new_root('rel:Relationships', 'rel')
        rel_id = self._allocate_relationship_id(part_path, root)
        rel = etree.SubElement(root, qn('rel:Relationship'))
        rel.set('Id', rel_id)
        rel.set('Type', rel_type)
        rel.set('Target', target)
        self.write_xml(rels_path, root)
        return rel_id

    def _allocate_relationship_id(self, part_path: str, rels_root: etree._Element) -> str:
        highest = 0
        for rel in rels_root.findall(qn('rel:Relationship')):
            match = _RID_RE.match(rel.get('Id', ''))
            if match:
                highest = max(highest, int(match.group(1)))
        next_number = max(self._next_rel_ids.get(part_path, 1), highest + 1)
        self._next_rel_ids[part_path] = next_number + 1
        return f'rId{next_number}'

    # ------------------------------------------------------------ content types

    def _content_types(self) -> etree._Element:
        root = self.read_xml(CONTENT_TYPES_PATH)
        return root if root is not None else new_root('ct:Types', 'ct')

    def ensure_default_content_type(self, extension: str, content_type: str) -> bool:
        """Declare a Default for ``extension`` unless one exists. Returns True if added."""
        extension = extension.lower().lstrip('.')
        if extension in self.declared_extensions():
            return False
        root = self._content_types()
        etree.SubElement(root, qn('ct:Default'), Extension=extension, ContentType=content_type)
        self.write_xml(CONTENT_TYPES_PATH, root)
        return True

    def ensure_override(self, part_name: str, content_type: str) -> bool:
        root = self._content_types()
        if any(o.get('PartName') == part_name for o in root.findall(qn('ct:Override'))):
            return False
        etree.SubElement(root, qn('ct:Override'), PartName=part_name, ContentType=content_type)
        self.write_xml(CONTENT_TYPES_PATH, root)
        return True

    def declared_extensions(self) -> List[str]:
        root = self.read_xml(CONTENT_TYPES_PATH)
        if root is None:
            return []
        return [d.get('Extension', '').lower() for d in root.findall(qn('ct:Default'))]

    # -------------------------------------------------------------- allocators

    def allocate_slide_number(self) -> int:
        if self._next_slide_number is None:
            numbers = [slide_number(p) for p in self.slide_paths()]
            self._next_slide_number = max(numbers or [0]) + 1
        number = self._next_slide_number
        while f'ppt/slides/slide{number}.xml' in self._parts:
            number += 1
        self._next_slide_number = number + 1
        return number

    def allocate_slide_id(self) -> int:
        if self._next_slide_id is None:
            ids = [entry[0] for entry in self.slide_id_entries()]
            self._next_slide_id = max(ids + [MIN_SLIDE_ID]) + 1
        slide_id = self._next_slide_id
        self._next_slide_id += 1
        return slide_id

    def allocate_media_path(self, extension: str) -> str:
        """Reserve ``ppt/media/image<N>.<ext>`` with N above every existing image index."""
        extension = extension.lower().lstrip('.')
        if self._next_media_index is None:
            indexes = []
            for name in self._parts:
                match = _MEDIA_IMAGE_RE.match(name)
                if match:
                    indexes.append(int(match.group(1)))
            self._next_media_index = max(indexes or [0]) + 1
        index = self._next_media_index
        while any(name.lower().startswith(f'ppt/media/image{index}.') for name in self._parts):
            index += 1
        self._next_media_index = index + 1
        return f'ppt/media/image{index}.{extension}'

    # ----------------------------------------------------------------- manifest

    def slide_id_entries(self) -> List[Tuple[int, str]]:
        """(slide id, relationship id) pairs in presentation order."""
        root = self.read_xml(PRESENTATION_PATH)
        if root is None:
            return []
        entries = []
        for sld_id in root.iterfind('p:sldIdLst/p:sldId', NAMESPACES):
            try:
                entries.append((int(sld_id.get('id', '0')), sld_id.get(qn('r:id'), '')))
            except ValueError:
                continue
        return entries

    def manifest_slide_paths(self) -> List[str]:
        """Slide part names in the order the presentation shows them."""
        paths = []
        for _, rel_id in self.slide_id_entries():
            target = self.related_part(PRESENTATION_PATH, rel_id)
            if target:
                paths.append(target)
        return paths

    def register_slide(self, number: int) -> Tuple[str, int]:
        """Append slide ``number`` to the manifest; returns (relationship id, slide id)."""
        root = self.read_xml(PRESENTATION_PATH)
        if root is None:
            raise InvalidArchiveError("Archive has no ppt/presentation.xml; not a presentation")
        sld_id_lst = self._slide_id_list(root)
        if sld_id_lst is None:
            self.logger.warning(f"Presentation has no slide list anchor; slide{number} not listed")

        rel_id = self.add_relationship(PRESENTATION_PATH, REL_TYPE_SLIDE, f'slides/slide{number}.xml')
        slide_id = self.allocate_slide_id()
        if sld_id_lst is not None:
            nsmap = None if root.nsmap.get('r') == NAMESPACES['r'] else {'r': NAMESPACES['r']}
            entry = etree.SubElement(sld_id_lst, qn('p:sldId'), nsmap=nsmap)
            entry.set('id', str(slide_id))
            entry.set(qn('r:id'), rel_id)
            self.write_xml(PRESENTATION_PATH, root)

        self.ensure_override(f'/ppt/slides/slide{number}.xml', SLIDE_CONTENT_TYPE)
        return rel_id, slide_id

    @staticmethod
    def _slide_id_list(root: etree._Element) -> Optional[etree._Element]:
        """The <p:sldIdLst>, created in schema position when missing; None without an anchor"""
        sld_id_lst = root.find(qn('p:sldIdLst'))
        if sld_id_lst is not None:
            return sld_id_lst
        anchors = [root.find(qn(tag)) for tag in _BEFORE_SLD_ID_LST]
        anchors = [a for a in anchors if a is not None]
        if not anchors:
            return None
        sld_id_lst = etree.SubElement(root, qn('p:sldIdLst'))
        anchors[-1].addnext(sld_id_lst)
        return sld_id_lst

    # ------------------------------------------------------------ serialization

    def to_bytes(self) -> bytes:
        """Deflate every part into a new archive, content types first."""
        buffer = io.BytesIO()
        ordered = sorted(self._parts.keys(), key=lambda name: 0 if name == CONTENT_TYPES_PATH else 1)
        with zipfile.ZipFile(buffer, 'w', compression=zipfile.ZIP_DEFLATED) as archive:
            for name in ordered:
                archive.writestr(name, self._parts[name])
        return buffer.getvalue()


def _numeric_sort_key(name: str):
    match = re.search(r'(\d+)\.[^./]+$', name)
    return (re.sub(r'\d+\.[^./]+$', '', name), int(match.group(1)) if match else 0, name)
