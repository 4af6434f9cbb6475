"""
Tests for the in-memory presentation package
"""
import pytest

from pptx_engine.errors import ErrorKind, InvalidArchiveError
from pptx_engine.package import (
    CONTENT_TYPES_PATH, Package, PRESENTATION_PATH, REL_TYPE_IMAGE, rels_path_for, slide_number,
)


def _package(kit, count=3, **kwargs):
    return Package.from_bytes(kit.build([kit.text_slide(f'Slide {i + 1}') for i in range(count)], **kwargs))


def test_slide_paths_numeric_order(kit):
    """slide10 sorts after slide2 whatever the archive order"""
    slides = [kit.text_slide(f'Slide {i + 1}') for i in range(11)]
    package = Package.from_bytes(kit.build(slides, zip_order=[10, 1, 0, 9, 2, 3, 4, 5, 6, 7, 8]))
    paths = package.slide_paths()
    assert [slide_number(p) for p in paths] == list(range(1, 12))
    assert paths[1] == 'ppt/slides/slide2.xml'
    assert paths[-1] == 'ppt/slides/slide11.xml'


def test_from_bytes_rejects_non_zip():
    with pytest.raises(InvalidArchiveError) as exc:
        Package.from_bytes(b'<html>not a zip</html>')
    assert exc.value.kind == ErrorKind.INVALID_ARCHIVE


def test_from_bytes_rejects_truncated_zip(kit):
    content = kit.build([kit.text_slide('x')])
    with pytest.raises(InvalidArchiveError):
        Package.from_bytes(content[:len(content) // 2])


def test_rels_path_for():
    assert rels_path_for('ppt/slides/slide1.xml') == 'ppt/slides/_rels/slide1.xml.rels'
    assert rels_path_for('ppt/presentation.xml') == 'ppt/_rels/presentation.xml.rels'


def test_relationships_and_resolution(kit):
    package = _package(kit, 1)
    rels = package.relationships('ppt/slides/slide1.xml')
    assert [r.id for r in rels] == ['rId1']
    assert package.related_part('ppt/slides/slide1.xml', 'rId1') == 'ppt/slideLayouts/slideLayout1.xml'
    assert package.manifest_slide_paths() == ['ppt/slides/slide1.xml']


def test_relationship_ids_are_unique_per_part(kit):
    package = _package(kit, 1)
    part = 'ppt/slides/slide1.xml'
    first = package.add_relationship(part, REL_TYPE_IMAGE, '../media/image1.png')
    second = package.add_relationship(part, REL_TYPE_IMAGE, '../media/image2.png')
    assert first == 'rId2'
    assert second == 'rId3'
    ids = [r.id for r in package.relationships(part)]
    assert len(ids) == len(set(ids))


def test_add_relationship_creates_rels_file(kit):
    package = _package(kit, 1)
    package.remove('ppt/slides/_rels/slide1.xml.rels')
    rel_id = package.add_relationship('ppt/slides/slide1.xml', REL_TYPE_IMAGE, '../media/image9.png')
    assert rel_id == 'rId1'
    assert 'image9.png' in package.read_text('ppt/slides/_rels/slide1.xml.rels')


def test_allocators_are_monotonic(kit):
    package = _package(kit, 3)
    assert package.allocate_slide_number() == 4
    assert package.allocate_slide_number() == 5
    # Existing ids are 257..259
    assert package.allocate_slide_id() == 260
    assert package.allocate_slide_id() == 261
    assert package.allocate_media_path('PNG') == 'ppt/media/image1.png'
    assert package.allocate_media_path('jpeg') == 'ppt/media/image2.jpeg'


def test_media_allocator_skips_existing_images(kit, png_bytes):
    package = _package(kit, 1, extra_parts={'ppt/media/image7.png': png_bytes})
    assert package.allocate_media_path('png') == 'ppt/media/image8.png'


def test_register_slide_appends_to_manifest(kit):
    package = _package(kit, 2)
    package.write('ppt/slides/slide3.xml', kit.text_slide('new'))
    rel_id, slide_id = package.register_slide(3)

    assert rel_id == 'rId4'
    assert slide_id == 259
    assert package.manifest_slide_paths()[-1] == 'ppt/slides/slide3.xml'
    assert '/ppt/slides/slide3.xml' in package.read_text('[Content_Types].xml')
    assert package.read_text(PRESENTATION_PATH).count('<p:sldId ') == 3


def test_content_type_defaults_are_declared_once(kit):
    package = _package(kit, 1)
    assert package.ensure_default_content_type('png', 'image/png') is True
    assert package.ensure_default_content_type('PNG', 'image/png') is False
    assert package.declared_extensions().count('png') == 1


def test_to_bytes_round_trip(kit):
    package = _package(kit, 2)
    reopened = Package.from_bytes(package.to_bytes())
    assert sorted(reopened.names()) == sorted(package.names())
    assert reopened.read_bytes('ppt/slides/slide2.xml') == package.read_bytes('ppt/slides/slide2.xml')


def test_relationships_with_single_quoted_attributes(kit):
    package = _package(kit, 1)
    rels_path = 'ppt/slides/_rels/slide1.xml.rels'
    package.write(rels_path, (
        "<?xml version='1.0' encoding='UTF-8' standalone='yes'?>"
        f"<Relationships xmlns='{kit.REL_NS}'>"
        f"<Relationship Id='rId1' Type='{kit.REL_BASE}/slideLayout' Target='../slideLayouts/slideLayout1.xml'/>"
        "</Relationships>"
    ))
    assert [r.id for r in package.relationships('ppt/slides/slide1.xml')] == ['rId1']
    assert package.add_relationship('ppt/slides/slide1.xml', REL_TYPE_IMAGE, '../media/image1.png') == 'rId2'
    assert [r.id for r in package.relationships('ppt/slides/slide1.xml')] == ['rId1', 'rId2']


def test_add_relationship_to_empty_rels_root(kit):
    package = _package(kit, 1)
    package.write('ppt/slides/_rels/slide1.xml.rels', f'<Relationships xmlns="{kit.REL_NS}"/>')
    assert package.add_relationship('ppt/slides/slide1.xml', REL_TYPE_IMAGE, '../media/image1.png') == 'rId1'
    rels = package.relationships('ppt/slides/slide1.xml')
    assert [(r.id, r.target) for r in rels] == [('rId1', '../media/image1.png')]


def test_malformed_rels_part_is_an_archive_error(kit):
    package = _package(kit, 1)
    package.write('ppt/slides/_rels/slide1.xml.rels', '<Relationships><Relationship Id="rId1"')
    with pytest.raises(InvalidArchiveError):
        package.relationships('ppt/slides/slide1.xml')


def test_content_types_with_single_quotes(kit):
    package = _package(kit, 1)
    package.write(CONTENT_TYPES_PATH, (
        "<Types xmlns='http://schemas.openxmlformats.org/package/2006/content-types'>"
        "<Default Extension='PNG' ContentType='image/png'/></Types>"
    ))
    assert package.declared_extensions() == ['png']
    assert package.ensure_default_content_type('png', 'image/png') is False
    assert package.ensure_override('/ppt/slides/slide1.xml', 'application/xml') is True
    assert package.ensure_override('/ppt/slides/slide1.xml', 'application/xml') is False


def test_register_slide_creates_missing_slide_list(kit):
    package = _package(kit, 1)
    xml = package.read_text(PRESENTATION_PATH)
    start, end = xml.index('<p:sldIdLst>'), xml.index('</p:sldIdLst>') + len('</p:sldIdLst>')
    package.write(PRESENTATION_PATH, xml[:start] + xml[end:])
    package.write('ppt/slides/slide2.xml', kit.text_slide('new'))

    rel_id, slide_id = package.register_slide(2)

    assert package.slide_id_entries() == [(slide_id, rel_id)]
    xml = package.read_text(PRESENTATION_PATH)
    # Schema order: masters, slides, slide size
    assert xml.index('sldMasterIdLst') < xml.index('sldIdLst') < xml.index('sldSz')


def test_checkpoint_restore(kit, png_bytes):
    package = _package(kit, 1)
    checkpoint = package.checkpoint()
    package.write('ppt/media/image1.png', png_bytes)
    package.add_relationship(PRESENTATION_PATH, REL_TYPE_IMAGE, 'media/image1.png')

    package.restore(checkpoint)

    assert 'ppt/media/image1.png' not in package
    assert [r.id for r in package.relationships(PRESENTATION_PATH)] == ['rId1', 'rId2']
