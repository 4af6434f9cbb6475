"""
Tests for field maps, the data tree and output naming
"""
from datetime import datetime

import pytest

from config import COMPANY_NAMES
from pptx_engine.data import GenerationData
from pptx_engine.fields import (
    collect_image_urls, format_number, parse_date, prepare_hardware_fields, prepare_module_fields,
    prepare_project_fields, prepare_workstation_fields,
)
from utils.template_store import OutputStore, sanitize_file_name


@pytest.fixture
def data(sample_data):
    return GenerationData.model_validate(sample_data)


def test_project_fields(data):
    fields = prepare_project_fields(data, now=datetime(2024, 6, 1, 9, 30, 0))
    assert fields['project_name'] == '电池外观检测'
    assert fields['date_formatted'] == '2024/3/5'
    assert (fields['date_year'], fields['date_month'], fields['date_day']) == ('2024', '3', '5')
    assert fields['workstation_count'] == '3'
    assert fields['camera_count'] == '2'
    assert fields['light_count'] == '0'
    assert fields['total_hardware_count'] == '4'
    assert fields['generated_date'] == '2024/6/1'
    assert fields['generated_time'] == '09:30:00'
    assert fields['company_name'] == COMPANY_NAMES['zh']
    assert fields['vision_responsible'] == ''


def test_project_fields_without_date_and_in_english(sample_data):
    sample_data['project'].pop('date')
    sample_data['language'] = 'en'
    fields = prepare_project_fields(GenerationData.model_validate(sample_data))
    assert 'date_formatted' not in fields
    assert fields['company_name'] == COMPANY_NAMES['en']


def test_workstation_fields(data):
    ws = data.workstations[0]
    fields = prepare_workstation_fields(ws, 0, data)
    assert fields['ws_index'] == '1'
    assert fields['ws_type_label'] == '线体'
    assert fields['ws_cycle_time'] == '2.5'
    assert fields['ws_product_size'] == '120×80×10mm'
    assert fields['ws_module_count'] == '2'
    assert fields['ws_camera_count'] == '2'
    assert fields['ws_enclosed'] == '否'
    assert fields['ws_product_snapshot_url'] == 'http://img/snapshot.png'

    bare = prepare_workstation_fields(data.workstations[2], 2, data)
    assert bare['ws_index'] == '3'
    assert 'ws_product_size' not in bare
    assert bare['ws_module_count'] == '0'


def test_module_and_hardware_fields(data):
    mod = prepare_module_fields(data.modules[0], 0)
    assert mod['mod_type_label'] == '定位检测'
    assert mod['mod_trigger_label'] == 'IO触发'
    assert mod['mod_processing_time'] == ''

    camera = prepare_hardware_fields(data.hardware.cameras[0], 0, 'cameras')
    assert camera['index'] == '1'
    assert camera['brand'] == 'Hikrobot'
    assert (camera['resolution_width'], camera['resolution_height']) == ('2448', '2048')
    assert camera['megapixels'] == '5.0'

    lens = prepare_hardware_fields(data.hardware.lenses[0], 0, 'lenses')
    assert lens['focal_length'] == '16mm'
    assert 'resolution_width' not in lens


def test_image_urls_number_module_schematics(data):
    ws = data.workstations[0]
    urls = collect_image_urls(ws, data.modules_for(ws))
    assert urls == {
        'front_view': 'http://img/front.png',
        'side_view': 'http://img/side.png',
        'product_snapshot': 'http://img/snapshot.png',
        'module_schematic_1': 'http://img/schematic1.png',
        'module_schematic_2': 'http://img/schematic2.png',
        'module_schematic': 'http://img/schematic1.png',
    }
    assert collect_image_urls(None) == {}


def test_modules_nested_or_flat(sample_data):
    data = GenerationData.model_validate(sample_data)
    assert [m.id for m in data.modules_for(data.workstations[0])] == ['m1', 'm2']

    nested = dict(sample_data, modules=[])
    nested['workstations'] = [dict(sample_data['workstations'][0], modules=[{'id': 'n1', 'name': '内嵌'}])]
    data = GenerationData.model_validate(nested)
    assert [m.id for m in data.modules_for(data.workstations[0])] == ['n1']
    assert [m.id for m in data.all_modules()] == ['n1']
    assert prepare_project_fields(data)['total_module_count'] == '1'


def test_hardware_collections(data):
    assert data.hardware.total == 4
    assert data.hardware.collection('lights') == []
    assert data.hardware.collection('unknown') == []


def test_format_number_and_dates():
    assert format_number(12.0) == '12'
    assert format_number(12.5) == '12.5'
    assert format_number(None) == ''
    assert parse_date('2024-03-05T08:00:00Z').day == 5
    assert parse_date('2024/3/5').month == 3
    assert parse_date('not a date') is None
    assert parse_date(None) is None


@pytest.mark.parametrize('requested, expected', [
    ('my deck (final).pptx', 'my_deck_final_.pptx'),
    ('报告 v1.pptx', 'v1.pptx'),
    ('__a  b__', 'a_b'),
    ('', 'output.pptx'),
    (None, 'output.pptx'),
    ('项目', 'output.pptx'),
])
def test_sanitize_file_name(requested, expected):
    assert sanitize_file_name(requested) == expected


def test_output_store_writes_under_owner(tmp_path):
    store = OutputStore(str(tmp_path))
    path = store.save(b'PK\x03\x04', 'deck.pptx', owner='bob/../x')
    assert path.startswith(str(tmp_path / 'generated' / 'bob_.._x'))
    assert path.endswith('_deck.pptx')
    with open(path, 'rb') as f:
        assert f.read() == b'PK\x03\x04'
