"""
Field maps
Flattens the generation data into the string maps used for placeholder
substitution: one project-level map per request, one per workstation, module
and hardware item.
"""
import re
from datetime import date, datetime
from typing import Dict, List, Optional

from config import COMPANY_NAMES
from utils.imaging import parse_resolution
from .data import GenerationData, Module, Workstation

WS_TYPE_LABELS = {
    'line': '线体',
    'turntable': '转盘',
    'platform': '平台',
    'robot': '机器人',
    'manual': '手动',
}

MODULE_TYPE_LABELS = {
    'positioning': '定位检测',
    'defect': '缺陷检测',
    'measurement': '尺寸测量',
    'ocr': 'OCR识别',
    'deep_learning': '深度学习',
    'custom': '自定义',
}

TRIGGER_LABELS = {
    'io': 'IO触发',
    'software': '软触发',
    'continuous': '连续采集',
    'external': '外部触发',
}

PROCESS_STAGE_LABELS = {
    'incoming': '来料检测',
    'in_process': '过程检测',
    'final': '终检',
    'assembly': '装配检测',
    'packaging': '包装检测',
}

IMAGE_SLOTS = ('front_view', 'side_view', 'top_view', 'product_snapshot', 'module_schematic')

_DATE_RE = re.compile(r'^(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})')


def format_number(value) -> str:
    """12.0 -> '12', 12.5 -> '12.5'"""
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00')).date()
    except ValueError:
        pass
    match = _DATE_RE.match(value.strip())
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def format_date(value: date) -> str:
    """Short numeric date as in zh-CN: 2024/3/5"""
    return f"{value.year}/{value.month}/{value.day}"


def prepare_project_fields(data: GenerationData, now: Optional[datetime] = None) -> Dict[str, str]:
    """Project-level map: identifiers, people, counts, date parts and generation timestamp."""
    project = data.project
    hardware = data.hardware
    now = now or datetime.now()

    fields = {
        'project_name': project.name or '',
        'project_code': project.code or '',
        'customer': project.customer or '',
        'date': project.date or '',
        'responsible': project.responsible or '',
        'vision_responsible': project.vision_responsible or '',
        'sales_responsible': project.sales_responsible or '',
        'product_process': project.product_process or '',
        'quality_strategy': project.quality_strategy or '',
        'notes': project.notes or '',
    }

    parsed = parse_date(project.date)
    if parsed:
        fields['date_formatted'] = format_date(parsed)
        fields['date_year'] = str(parsed.year)
        fields['date_month'] = str(parsed.month)
        fields['date_day'] = str(parsed.day)

    fields['workstation_count'] = str(len(data.workstations))
    fields['total_module_count'] = str(len(data.all_modules()))
    fields['camera_count'] = str(len(hardware.cameras))
    fields['lens_count'] = str(len(hardware.lenses))
    fields['light_count'] = str(len(hardware.lights))
    fields['controller_count'] = str(len(hardware.controllers))
    fields['total_hardware_count'] = str(hardware.total)

    fields['generated_at'] = now.isoformat()
    fields['generated_date'] = format_date(now.date())
    fields['generated_time'] = now.strftime('%H:%M:%S')

    fields['company_name'] = COMPANY_NAMES['en'] if data.language == 'en' else COMPANY_NAMES['zh']
    return fields


def prepare_workstation_fields(ws: Workstation, index: int,
                               data: Optional[GenerationData] = None) -> Dict[str, str]:
    modules = data.modules_for(ws) if data is not None else list(ws.modules or [])

    fields = {
        'ws_name': ws.name or '',
        'ws_code': ws.code or '',
        'ws_index': str(index + 1),
        'ws_type': ws.type or '',
        'ws_type_label': WS_TYPE_LABELS.get(ws.type, ws.type or ''),
        'ws_cycle_time': format_number(ws.cycle_time) if ws.cycle_time else '',
        'ws_shot_count': str(ws.shot_count) if ws.shot_count else '',
        'ws_observation_target': ws.observation_target or '',
        'ws_motion_description': ws.motion_description or '',
        'ws_risk_notes': ws.risk_notes or '',
        'ws_process_stage': ws.process_stage or '',
        'ws_process_stage_label': PROCESS_STAGE_LABELS.get(ws.process_stage or '', ws.process_stage or ''),
        'ws_enclosed': '是' if ws.enclosed else '否',
        'ws_module_count': str(len(modules)),
    }

    dims = ws.product_dimensions
    if dims:
        length, width, height = (format_number(v or 0) for v in (dims.length, dims.width, dims.height))
        fields['ws_product_length'] = length
        fields['ws_product_width'] = width
        fields['ws_product_height'] = height
        fields['ws_product_size'] = f"{length}×{width}×{height}mm"

    criteria = ws.acceptance_criteria
    if criteria:
        fields['ws_accuracy'] = criteria.accuracy or ''
        fields['ws_cycle_time_target'] = criteria.cycle_time or ''
        fields['ws_compatible_sizes'] = criteria.compatible_sizes or ''

    layout = ws.layout
    if layout:
        width, height, depth = (format_number(v or 0) for v in (layout.width, layout.height, layout.depth))
        fields['ws_camera_count'] = str(layout.camera_count or 0)
        fields['ws_conveyor_type'] = layout.conveyor_type or ''
        fields['ws_layout_width'] = width
        fields['ws_layout_height'] = height
        fields['ws_layout_depth'] = depth
        fields['ws_layout_size'] = f"{width}×{depth}×{height}mm"
        fields['ws_front_view_url'] = layout.front_view_image_url or ''
        fields['ws_side_view_url'] = layout.side_view_image_url or ''
        fields['ws_top_view_url'] = layout.top_view_image_url or ''

    annotation = ws.product_annotation
    if annotation:
        fields['ws_product_snapshot_url'] = annotation.snapshot_url or ''
        fields['ws_product_remark'] = annotation.remark or ''

    asset = ws.product_asset
    if asset and asset.detection_method:
        fields['ws_detection_method'] = asset.detection_method
    return fields


def prepare_module_fields(mod: Module, index: int) -> Dict[str, str]:
    return {
        'mod_name': mod.name or '',
        'mod_index': str(index + 1),
        'mod_type': mod.type or '',
        'mod_type_label': MODULE_TYPE_LABELS.get(mod.type, mod.type or ''),
        'mod_description': mod.description or '',
        'mod_trigger_type': mod.trigger_type or '',
        'mod_trigger_label': TRIGGER_LABELS.get(mod.trigger_type or '', mod.trigger_type or ''),
        'mod_roi_strategy': mod.roi_strategy or '',
        'mod_processing_time': format_number(mod.processing_time_limit) if mod.processing_time_limit else '',
        'mod_schematic_url': mod.schematic_image_url or '',
    }


def prepare_hardware_fields(item, index: int, collection: str) -> Dict[str, str]:
    """Loop item map: ``index`` plus every string attribute of the item."""
    fields = {'index': str(index + 1)}
    for key, value in item.model_dump().items():
        if isinstance(value, str):
            fields[key] = value

    if collection == 'cameras':
        parsed = parse_resolution(fields.get('resolution'))
        if parsed:
            width, height = parsed
            fields['resolution_width'] = str(width)
            fields['resolution_height'] = str(height)
            fields['megapixels'] = f"{width * height / 1000000:.1f}"
    return fields


def collect_image_urls(ws: Optional[Workstation], modules: Optional[List[Module]] = None) -> Dict[str, str]:
    """Image slot -> URL for one workstation; module schematics are numbered module_schematic_N."""
    urls: Dict[str, str] = {}
    if ws is None:
        return urls

    layout = ws.layout
    if layout:
        if layout.front_view_image_url:
            urls['front_view'] = layout.front_view_image_url
        if layout.side_view_image_url:
            urls['side_view'] = layout.side_view_image_url
        if layout.top_view_image_url:
            urls['top_view'] = layout.top_view_image_url
    if ws.product_annotation and ws.product_annotation.snapshot_url:
        urls['product_snapshot'] = ws.product_annotation.snapshot_url

    for i, mod in enumerate(modules if modules is not None else (ws.modules or [])):
        if not mod.schematic_image_url:
            continue
        urls[f'module_schematic_{i + 1}'] = mod.schematic_image_url
        urls.setdefault('module_schematic', mod.schematic_image_url)
    return urls
