"""
Shared fixtures: a synthetic .pptx builder, fake HTTP sessions and sample data
"""
import io
import zipfile

import pytest
import requests
from PIL import Image

NS = (
    'xmlns:a="http://schemas.openxmlformats.org/drawingml/2006/main" '
    'xmlns:r="http://schemas.openxmlformats.org/officeDocument/2006/relationships" '
    'xmlns:p="http://schemas.openxmlformats.org/presentationml/2006/main"'
)
REL_NS = 'http://schemas.openxmlformats.org/package/2006/relationships'
REL_BASE = 'http://schemas.openxmlformats.org/officeDocument/2006/relationships'

DEFAULT_THEME = (
    f'<?xml version="1.0" encoding="UTF-8" standalone="yes"?><a:theme {NS} name="Office">'
    '<a:themeElements><a:clrScheme name="Test">'
    '<a:dk1><a:sysClr val="windowText" lastClr="000000"/></a:dk1>'
    '<a:lt1><a:sysClr val="window" lastClr="FFFFFF"/></a:lt1>'
    '<a:dk2><a:srgbClr val="1F497D"/></a:dk2><a:lt2><a:srgbClr val="EEECE1"/></a:lt2>'
    '<a:accent1><a:srgbClr val="4F81BD"/></a:accent1><a:accent2><a:srgbClr val="C0504D"/></a:accent2>'
    '<a:accent3><a:srgbClr val="9BBB59"/></a:accent3><a:accent4><a:srgbClr val="8064A2"/></a:accent4>'
    '<a:accent5><a:srgbClr val="4BACC6"/></a:accent5><a:accent6><a:srgbClr val="F79646"/></a:accent6>'
    '<a:hlink><a:srgbClr val="0000FF"/></a:hlink><a:folHlink><a:srgbClr val="800080"/></a:folHlink>'
    '</a:clrScheme><a:fontScheme name="Test">'
    '<a:majorFont><a:latin typeface="Calibri Light"/><a:ea typeface="微软雅黑"/></a:majorFont>'
    '<a:minorFont><a:latin typeface="Calibri"/><a:ea typeface=""/></a:minorFont>'
    '</a:fontScheme></a:themeElements></a:theme>'
)

DEFAULT_LAYOUT = (
    f'<?xml version="1.0" encoding="UTF-8" standalone="yes"?><p:sldLayout {NS} type="obj">'
    '<p:cSld name="Title and Content"><p:spTree>'
    '<p:sp><p:nvSpPr><p:cNvPr id="2" name="Title 1"/><p:cNvSpPr/><p:nvPr><p:ph type="title"/></p:nvPr></p:nvSpPr>'
    '<p:spPr/></p:sp>'
    '<p:sp><p:nvSpPr><p:cNvPr id="3" name="Content 2"/><p:cNvSpPr/><p:nvPr><p:ph idx="1"/></p:nvPr></p:nvSpPr>'
    '<p:spPr><a:xfrm><a:off x="838200" y="1825625"/><a:ext cx="10515600" cy="4351338"/></a:xfrm></p:spPr></p:sp>'
    '</p:spTree></p:cSld></p:sldLayout>'
)

DEFAULT_MASTER = (
    f'<?xml version="1.0" encoding="UTF-8" standalone="yes"?><p:sldMaster {NS}>'
    '<p:cSld><p:bg><p:bgPr><a:solidFill><a:schemeClr val="accent1"><a:lumMod val="50000"/></a:schemeClr>'
    '</a:solidFill></p:bgPr></p:bg><p:spTree>'
    '<p:sp><p:nvSpPr><p:cNvPr id="2" name="Title"/><p:cNvSpPr/><p:nvPr><p:ph type="title"/></p:nvPr></p:nvSpPr>'
    '<p:spPr><a:xfrm><a:off x="838200" y="365125"/><a:ext cx="10515600" cy="1325563"/></a:xfrm></p:spPr></p:sp>'
    '<p:sp><p:nvSpPr><p:cNvPr id="5" name="Footer"/><p:cNvSpPr/><p:nvPr><p:ph type="ftr" idx="11"/></p:nvPr></p:nvSpPr>'
    '<p:spPr/><p:txBody><a:p><a:r><a:t>Confidential</a:t></a:r></a:p></p:txBody></p:sp>'
    '<p:sp><p:nvSpPr><p:cNvPr id="6" name="Slide Number"/><p:cNvSpPr/><p:nvPr><p:ph type="sldNum" idx="12"/></p:nvPr></p:nvSpPr>'
    '<p:spPr/></p:sp>'
    '</p:spTree></p:cSld>'
    '<p:txStyles><p:titleStyle><a:lvl1pPr><a:defRPr sz="4400"/></a:lvl1pPr></p:titleStyle>'
    '<p:bodyStyle><a:lvl1pPr><a:defRPr sz="2800"/></a:lvl1pPr></p:bodyStyle></p:txStyles>'
    '</p:sldMaster>'
)


def make_png(width=40, height=20, color='red') -> bytes:
    buffer = io.BytesIO()
    Image.new('RGB', (width, height), color).save(buffer, format='PNG')
    return buffer.getvalue()


def run(text, size=None, bold=None):
    attrs = ' lang="zh-CN"'
    if size is not None:
        attrs += f' sz="{int(size * 100)}"'
    if bold is not None:
        attrs += ' b="1"' if bold else ' b="0"'
    return f'<a:r><a:rPr{attrs}/><a:t>{text}</a:t></a:r>'


def para(*runs):
    """Paragraph from runs; a plain string becomes one unformatted run"""
    body = ''.join(r if r.startswith('<a:r>') else run(r) for r in runs)
    return f'<a:p>{body}</a:p>'


def shape(*paragraphs, shape_id=2, ph_type=None, frame=(914400, 914400, 3657600, 1828800)):
    ph = f'<p:ph type="{ph_type}"/>' if ph_type else ''
    x, y, cx, cy = frame
    return (
        f'<p:sp><p:nvSpPr><p:cNvPr id="{shape_id}" name="Shape {shape_id}"/><p:cNvSpPr/><p:nvPr>{ph}</p:nvPr></p:nvSpPr>'
        f'<p:spPr><a:xfrm><a:off x="{x}" y="{y}"/><a:ext cx="{cx}" cy="{cy}"/></a:xfrm></p:spPr>'
        f'<p:txBody><a:bodyPr/>{"".join(paragraphs)}</p:txBody></p:sp>'
    )


def slide(*shapes):
    return (
        f'<?xml version="1.0" encoding="UTF-8" standalone="yes"?><p:sld {NS}><p:cSld><p:spTree>'
        '<p:nvGrpSpPr><p:cNvPr id="1" name=""/><p:cNvGrpSpPr/><p:nvPr/></p:nvGrpSpPr><p:grpSpPr/>'
        f'{"".join(shapes)}</p:spTree></p:cSld></p:sld>'
    )


def text_slide(*lines):
    """One shape holding one paragraph per line"""
    return slide(shape(*(para(line) for line in lines)))


def rels(*entries):
    body = ''.join(f'<Relationship Id="{rid}" Type="{REL_BASE}/{kind}" Target="{target}"/>'
                   for rid, kind, target in entries)
    return f'<?xml version="1.0" encoding="UTF-8" standalone="yes"?><Relationships xmlns="{REL_NS}">{body}</Relationships>'


def build_pptx(slides, notes=(), master=DEFAULT_MASTER, layout=DEFAULT_LAYOUT, theme=DEFAULT_THEME,
               master_media=None, zip_order=None, extra_parts=None) -> bytes:
    """
    Assemble a minimal but well-formed presentation.

    Args:
        slides: Slide XML strings, in presentation order
        notes: Indexes of slides that get a notes slide
        master_media: Optional (png bytes, picture XML) placed on the master as rId3
        zip_order: Optional list of slide indexes giving the archive entry order
        extra_parts: Additional part name -> bytes/str
    """
    parts = {}
    overrides = ['<Override PartName="/ppt/presentation.xml" '
                 'ContentType="application/vnd.openxmlformats-officedocument.presentationml.presentation.main+xml"/>']

    pres_rels = [('rId1', 'slideMaster', 'slideMasters/slideMaster1.xml')]
    sld_ids = []
    slide_parts = []
    for i, xml in enumerate(slides):
        number = i + 1
        rid = f'rId{number + 1}'
        pres_rels.append((rid, 'slide', f'slides/slide{number}.xml'))
        sld_ids.append(f'<p:sldId id="{256 + number}" r:id="{rid}"/>')
        slide_rels = [('rId1', 'slideLayout', '../slideLayouts/slideLayout1.xml')]
        if i in notes:
            slide_rels.append(('rId2', 'notesSlide', f'../notesSlides/notesSlide{number}.xml'))
            parts[f'ppt/notesSlides/notesSlide{number}.xml'] = f'<p:notes {NS}/>'
        slide_parts.append((f'ppt/slides/slide{number}.xml', xml))
        parts[f'ppt/slides/_rels/slide{number}.xml.rels'] = rels(*slide_rels)
        overrides.append(f'<Override PartName="/ppt/slides/slide{number}.xml" '
                         'ContentType="application/vnd.openxmlformats-officedocument.presentationml.slide+xml"/>')

    parts['ppt/presentation.xml'] = (
        f'<?xml version="1.0" encoding="UTF-8" standalone="yes"?><p:presentation {NS}>'
        '<p:sldMasterIdLst><p:sldMasterId id="2147483648" r:id="rId1"/></p:sldMasterIdLst>'
        f'<p:sldIdLst>{"".join(sld_ids)}</p:sldIdLst>'
        '<p:sldSz cx="12192000" cy="6858000"/></p:presentation>'
    )
    parts['ppt/_rels/presentation.xml.rels'] = rels(*pres_rels)

    master_rels = [('rId1', 'slideLayout', '../slideLayouts/slideLayout1.xml'),
                   ('rId2', 'theme', '../theme/theme1.xml')]
    if master_media:
        image, picture = master_media
        master_rels.append(('rId3', 'image', '../media/image1.png'))
        parts['ppt/media/image1.png'] = image
        master = master.replace('</p:spTree>', picture + '</p:spTree>', 1)
    parts['ppt/slideMasters/slideMaster1.xml'] = master
    parts['ppt/slideMasters/_rels/slideMaster1.xml.rels'] = rels(*master_rels)
    parts['ppt/slideLayouts/slideLayout1.xml'] = layout
    parts['ppt/slideLayouts/_rels/slideLayout1.xml.rels'] = rels(
        ('rId1', 'slideMaster', '../slideMasters/slideMaster1.xml'))
    parts['ppt/theme/theme1.xml'] = theme
    parts['[Content_Types].xml'] = (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
        '<Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
        '<Default Extension="xml" ContentType="application/xml"/>'
        f'{"".join(overrides)}</Types>'
    )
    parts.update(extra_parts or {})

    order = zip_order if zip_order is not None else range(len(slide_parts))
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as archive:
        for i in order:
            name, xml = slide_parts[i]
            archive.writestr(name, xml)
        for name, content in parts.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def read_parts(content: bytes):
    with zipfile.ZipFile(io.BytesIO(content)) as archive:
        return {name: archive.read(name) for name in archive.namelist()}


class FakeResponse:
    def __init__(self, content=b'', status_code=200, headers=None, reason='OK'):
        self.content = content
        self.status_code = status_code
        self.headers = headers or {}
        self.reason = reason


class FakeSession:
    """requests.Session stand-in: url -> FakeResponse or exception instance"""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def get(self, url, timeout=None, **kwargs):
        self.calls.append(url)
        target = self.routes.get(url)
        if target is None:
            return FakeResponse(b'not found', status_code=404, reason='Not Found')
        if isinstance(target, Exception):
            raise target
        return target


class PptxKit:
    """Builder helpers exposed to tests through the ``kit`` fixture"""

    NS = NS
    REL_NS = REL_NS
    REL_BASE = REL_BASE
    MASTER = DEFAULT_MASTER
    THEME = DEFAULT_THEME
    run = staticmethod(run)
    para = staticmethod(para)
    shape = staticmethod(shape)
    slide = staticmethod(slide)
    text_slide = staticmethod(text_slide)
    rels = staticmethod(rels)
    build = staticmethod(build_pptx)
    read_parts = staticmethod(read_parts)
    make_png = staticmethod(make_png)
    Response = FakeResponse
    Session = FakeSession


@pytest.fixture
def kit():
    return PptxKit


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def image_session(png_bytes):
    """Serves a PNG for every http://img/<name>.png URL used by the sample data"""
    routes = {
        f'http://img/{name}.png': FakeResponse(png_bytes, headers={'content-type': 'image/png'})
        for name in ('front', 'side', 'top', 'snapshot', 'schematic1', 'schematic2', 'schematic3')
    }
    routes['http://img/broken.png'] = requests.ConnectionError('connection refused')
    return FakeSession(routes)


@pytest.fixture
def sample_data():
    return {
        'project': {
            'id': 'p1',
            'code': 'VP-2024-001',
            'name': '电池外观检测',
            'customer': '宁德时代',
            'date': '2024-03-05',
            'responsible': '张三',
        },
        'workstations': [
            {
                'id': 'ws1', 'code': 'WS01', 'name': '上料工位', 'type': 'line',
                'cycle_time': 2.5,
                'product_dimensions': {'length': 120, 'width': 80, 'height': 10},
                'layout': {
                    'front_view_image_url': 'http://img/front.png',
                    'side_view_image_url': 'http://img/side.png',
                    'camera_count': 2,
                },
                'product_annotation': {'snapshot_url': 'http://img/snapshot.png'},
            },
            {'id': 'ws2', 'code': 'WS02', 'name': '检测工位', 'type': 'turntable'},
            {'id': 'ws3', 'code': 'WS03', 'name': '下料工位', 'type': 'robot'},
        ],
        'modules': [
            {'id': 'm1', 'name': '定位', 'type': 'positioning', 'workstation_id': 'ws1',
             'trigger_type': 'io', 'schematic_image_url': 'http://img/schematic1.png'},
            {'id': 'm2', 'name': '缺陷', 'type': 'defect', 'workstation_id': 'ws1',
             'schematic_image_url': 'http://img/schematic2.png'},
            {'id': 'm3', 'name': '测量', 'type': 'measurement', 'workstation_id': 'ws2',
             'schematic_image_url': 'http://img/schematic3.png'},
        ],
        'hardware': {
            'cameras': [
                {'brand': 'Hikrobot', 'model': 'MV-CA050', 'resolution': '2448x2048', 'interface': 'GigE'},
                {'brand': 'Basler', 'model': 'acA1300', 'resolution': '1.3MP', 'interface': 'USB3'},
            ],
            'lenses': [{'brand': 'Computar', 'model': 'M1614', 'focal_length': '16mm', 'mount': 'C'}],
            'lights': [],
            'controllers': [{'brand': 'Advantech', 'model': 'IPC-610', 'cpu': 'i7', 'memory': '16GB'}],
        },
        'language': 'zh',
    }
