"""
Image Injector
Resolves {{img:slot}} markers: fetches the image, stores it as a new media
part, relates it to the slide and swaps the marker shape for a picture.
"""
import io
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import requests
from PIL import Image, UnidentifiedImageError
from lxml import etree

from config import LOG_LEVEL, LOG_FILE, IMAGE_FETCH_TIMEOUT, DEFAULT_IMAGE_FRAME
from utils.logger import get_logger
from .errors import InvalidArchiveError
from .oxml import NAMESPACES, XMLSyntaxError, element_text, int_attr, parse_xml, qn, shape_geometry
from .package import Package, REL_TYPE_IMAGE
from .placeholders import IMAGE_MARKER_RE, normalize_split_placeholders
from .report import ReplacementEntry

# content type -> (extension, content type declared in the package)
IMAGE_TYPES = {
    'image/png': ('png', 'image/png'),
    'image/jpeg': ('jpeg', 'image/jpeg'),
    'image/jpg': ('jpeg', 'image/jpeg'),
    'image/pjpeg': ('jpeg', 'image/jpeg'),
    'image/gif': ('gif', 'image/gif'),
    'image/bmp': ('bmp', 'image/bmp'),
    'image/x-ms-bmp': ('bmp', 'image/bmp'),
    'image/tiff': ('tiff', 'image/tiff'),
}

# Pillow format name -> content type
PILLOW_FORMATS = {
    'PNG': 'image/png',
    'JPEG': 'image/jpeg',
    'MPO': 'image/jpeg',
    'GIF': 'image/gif',
    'BMP': 'image/bmp',
    'TIFF': 'image/tiff',
}


@dataclass(frozen=True)
class FetchedImage:
    url: str
    content: bytes
    extension: str
    content_type: str
    width: Optional[int] = None
    height: Optional[int] = None


def sniff_image(content: bytes) -> Tuple[Optional[str], Optional[int], Optional[int]]:
    """(content type, width, height) as read by Pillow; Nones when unreadable"""
    try:
        with Image.open(io.BytesIO(content)) as img:
            return PILLOW_FORMATS.get(img.format or ''), img.size[0], img.size[1]
    except (UnidentifiedImageError, OSError, ValueError):
        return None, None, None


def fit_frame(frame: Dict[str, int], width: Optional[int], height: Optional[int]) -> Dict[str, int]:
    """Largest box with the image's aspect ratio centered inside ``frame`` (EMU)"""
    if not width or not height or not frame['cx'] or not frame['cy']:
        return dict(frame)
    scale = min(frame['cx'] / width, frame['cy'] / height)
    cx = int(round(width * scale))
    cy = int(round(height * scale))
    return {
        'x': frame['x'] + (frame['cx'] - cx) // 2,
        'y': frame['y'] + (frame['cy'] - cy) // 2,
        'cx': cx,
        'cy': cy,
    }


def shape_frame(shape: etree._Element) -> Dict[str, int]:
    geometry = shape_geometry(shape)
    if geometry is None:
        return dict(DEFAULT_IMAGE_FRAME)
    x, y, cx, cy = geometry
    return {'x': x, 'y': y, 'cx': cx, 'cy': cy}


def picture_element(parent: etree._Element, shape_id: int, rel_id: str, frame: Dict[str, int],
                    description: str = '') -> etree._Element:
    """<p:pic> appended to ``parent``, showing the related image stretched over ``frame``"""
    pic = etree.SubElement(parent, qn('p:pic'))
    nv_pic_pr = etree.SubElement(pic, qn('p:nvPicPr'))
    c_nv_pr = etree.SubElement(nv_pic_pr, qn('p:cNvPr'))
    c_nv_pr.set('id', str(shape_id))
    c_nv_pr.set('name', f'Picture {shape_id}')
    c_nv_pr.set('descr', description)
    c_nv_pic_pr = etree.SubElement(nv_pic_pr, qn('p:cNvPicPr'))
    etree.SubElement(c_nv_pic_pr, qn('a:picLocks'), noChangeAspect='1')
    etree.SubElement(nv_pic_pr, qn('p:nvPr'))

    blip_fill = etree.SubElement(pic, qn('p:blipFill'))
    if NAMESPACES['r'] in pic.nsmap.values():
        blip = etree.SubElement(blip_fill, qn('a:blip'))
    else:
        blip = etree.SubElement(blip_fill, qn('a:blip'), nsmap={'r': NAMESPACES['r']})
    blip.set(qn('r:embed'), rel_id)
    stretch = etree.SubElement(blip_fill, qn('a:stretch'))
    etree.SubElement(stretch, qn('a:fillRect'))

    sp_pr = etree.SubElement(pic, qn('p:spPr'))
    xfrm = etree.SubElement(sp_pr, qn('a:xfrm'))
    etree.SubElement(xfrm, qn('a:off'), x=str(frame['x']), y=str(frame['y']))
    etree.SubElement(xfrm, qn('a:ext'), cx=str(frame['cx']), cy=str(frame['cy']))
    geometry = etree.SubElement(sp_pr, qn('a:prstGeom'), prst='rect')
    etree.SubElement(geometry, qn('a:avLst'))
    return pic


def remove_marker(shape: etree._Element, slot: str) -> None:
    """Drop the first {{img:slot}} from the shape's text runs"""
    marker = re.compile(r'\{\{\s*img:' + re.escape(slot) + r'\s*\}\}')
    for text in shape.iter(qn('a:t')):
        if text.text and marker.search(text.text):
            text.text = marker.sub('', text.text, count=1)
            return


class ImageInjector:
    def __init__(self, package: Package, session: Optional[requests.Session] = None,
                 timeout: float = IMAGE_FETCH_TIMEOUT):
        self.logger = get_logger(__name__, LOG_LEVEL, LOG_FILE)
        self.package = package
        self.session = session or requests.Session()
        self.timeout = timeout
        self._cache: Dict[str, Optional[FetchedImage]] = {}
        self.failed_urls: List[str] = []

    def fetch(self, url: str) -> Optional[FetchedImage]:
        """Download an image; None (logged) on any failure. Results are cached per URL."""
        if url in self._cache:
            return self._cache[url]
        image = self._download(url)
        self._cache[url] = image
        if image is None:
            self.failed_urls.append(url)
        return image

    def _download(self, url: str) -> Optional[FetchedImage]:
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            self.logger.warning(f"Failed to fetch image {url}: {e}")
            return None
        if not 200 <= response.status_code < 300:
            self.logger.warning(f"Failed to fetch image {url}: HTTP {response.status_code}")
            return None

        content = response.content or b''
        if not content:
            self.logger.warning(f"Failed to fetch image {url}: empty body")
            return None

        header = (response.headers.get('content-type') or '').split(';')[0].strip().lower()
        sniffed_type, width, height = sniff_image(content)
        content_type = header if header in IMAGE_TYPES else sniffed_type
        if content_type not in IMAGE_TYPES:
            self.logger.warning(f"Failed to fetch image {url}: unsupported content ({header or 'unknown'})")
            return None

        extension, declared_type = IMAGE_TYPES[content_type]
        return FetchedImage(url, content, extension, declared_type, width, height)

    def _store(self, part_path: str, image: FetchedImage) -> Tuple[str, str]:
        """Write the media part, relate it to ``part_path``; returns (rel id, media path)"""
        media_path = self.package.allocate_media_path(image.extension)
        self.package.write(media_path, image.content)
        self.package.ensure_default_content_type(image.extension, image.content_type)
        target = '../media/' + media_path.rsplit('/', 1)[-1]
        rel_id = self.package.add_relationship(part_path, REL_TYPE_IMAGE, target)
        return rel_id, media_path

    def inject(self, part_path: str, urls: Dict[str, str]) -> Tuple[int, List[ReplacementEntry]]:
        """
        Resolve every image marker in ``part_path`` for which ``urls`` has a slot.

        Returns:
            (number of images injected, replacement entries)
        """
        xml = self.package.read_text(part_path)
        if not xml or '{' not in xml:
            return 0, []
        try:
            root = parse_xml(normalize_split_placeholders(xml))
        except XMLSyntaxError as e:
            raise InvalidArchiveError(f"Part {part_path} is not well-formed XML: {e}") from e

        entries: List[ReplacementEntry] = []
        next_id = max([int_attr(el, 'id') or 0 for el in root.iter(qn('p:cNvPr'))] or [1]) + 1

        for shape in list(root.iter(qn('p:sp'))):
            slots = [m.group(1) for m in IMAGE_MARKER_RE.finditer(element_text(shape))]
            if not slots:
                continue

            pictures = []
            for slot in slots:
                url = urls.get(slot)
                if not url:
                    self.logger.debug(f"No image for slot {slot} on {part_path}")
                    continue
                image = self.fetch(url)
                if image is None:
                    continue
                rel_id, media_path = self._store(part_path, image)
                frame = fit_frame(shape_frame(shape), image.width, image.height)
                pictures.append(picture_element(shape.getparent(), next_id, rel_id, frame, slot))
                next_id += 1
                remove_marker(shape, slot)
                entries.append(ReplacementEntry(f'{{{{img:{slot}}}}}', media_path, 'image'))

            if not pictures:
                continue
            anchor = shape
            for pic in pictures:
                anchor.addnext(pic)
                anchor = pic
            # A shape that only held markers becomes the picture itself
            if not element_text(shape).strip():
                shape.getparent().remove(shape)

        if entries:
            self.package.write_xml(part_path, root)
            self.logger.info(f"🖼️ Inserted {len(entries)} images into {part_path}")
        return len(entries), entries
