"""
OOXML helpers
Namespaces, lxml parsing/serialization and small element readers shared by the
package, style and media code.
"""
from typing import Optional, Tuple, Union

from lxml import etree

NAMESPACES = {
    'a': 'http://schemas.openxmlformats.org/drawingml/2006/main',
    'p': 'http://schemas.openxmlformats.org/presentationml/2006/main',
    'r': 'http://schemas.openxmlformats.org/officeDocument/2006/relationships',
    'rel': 'http://schemas.openxmlformats.org/package/2006/relationships',
    'ct': 'http://schemas.openxmlformats.org/package/2006/content-types',
}

XMLSyntaxError = etree.XMLSyntaxError


def qn(tag: str) -> str:
    """'p:sldId' -> '{http://...presentationml/2006/main}sldId'"""
    prefix, local = tag.split(':', 1)
    return f'{{{NAMESPACES[prefix]}}}{local}'


def parse_xml(content: Union[str, bytes]) -> etree._Element:
    """Parse a part. Raises XMLSyntaxError when it is not well-formed."""
    if isinstance(content, str):
        content = content.encode('utf-8')
    parser = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)
    return etree.fromstring(content, parser=parser)


def serialize_xml(element: etree._Element) -> bytes:
    return etree.tostring(element, xml_declaration=True, encoding='UTF-8', standalone=True)


def new_root(tag: str, default_prefix: str) -> etree._Element:
    """Empty root element whose namespace is the default one, e.g. <Relationships xmlns="...">"""
    return etree.Element(qn(tag), nsmap={None: NAMESPACES[default_prefix]})


def int_attr(element: Optional[etree._Element], name: str) -> Optional[int]:
    if element is None:
        return None
    try:
        return int(element.get(name, ''))
    except ValueError:
        return None


def shape_geometry(shape: etree._Element) -> Optional[Tuple[int, int, int, int]]:
    """(x, y, cx, cy) in EMU from the shape's own transform; None when it has none"""
    xfrm = shape.find('p:spPr/a:xfrm', NAMESPACES)
    if xfrm is None:
        return None
    off = xfrm.find('a:off', NAMESPACES)
    ext = xfrm.find('a:ext', NAMESPACES)
    values = (int_attr(off, 'x'), int_attr(off, 'y'), int_attr(ext, 'cx'), int_attr(ext, 'cy'))
    if any(v is None for v in values):
        return None
    return values


def placeholder_attributes(shape: etree._Element) -> Optional[dict]:
    """Attributes of the shape's <p:ph>, with the implied type 'obj'; None for a plain shape"""
    ph = shape.find('p:nvSpPr/p:nvPr/p:ph', NAMESPACES)
    if ph is None:
        return None
    attrs = dict(ph.attrib)
    attrs.setdefault('type', 'obj')
    return attrs


def element_text(element: etree._Element) -> str:
    """Text of every <a:t> below ``element``, one line per paragraph"""
    lines = []
    for paragraph in element.iter(qn('a:p')):
        lines.append(''.join(t.text or '' for t in paragraph.iter(qn('a:t'))))
    return '\n'.join(lines)
