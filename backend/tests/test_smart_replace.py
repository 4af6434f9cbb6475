"""
Tests for heuristic replacement on slides without explicit placeholders
"""
import pytest

from pptx_engine.placeholders import logical_text
from pptx_engine.smart_replace import SmartReplacer

FIELDS = {
    'project_name': '电池外观检测',
    'project_code': 'VP-2024-001',
    'customer': '宁德时代',
    'date_formatted': '2024/3/5',
    'responsible': '张三',
    'workstation_count': '3',
    'camera_count': '2',
    'company_name': '苏州德星云智能装备有限公司',
}


@pytest.fixture
def replacer():
    return SmartReplacer(FIELDS, 'zh')


def _cover(kit, *runs):
    """Each run in its own shape, as cover text boxes usually are"""
    return kit.slide(*(kit.shape(kit.para(r), shape_id=i + 2) for i, r in enumerate(runs)))


def test_cover_title_keeps_suffix(kit, replacer):
    xml = _cover(kit, kit.run('某某视觉检测技术方案', 36, True))
    result, entries = replacer.replace(xml, is_cover=True)
    assert logical_text(result) == '电池外观检测技术方案'
    assert [(e.kind, e.replaced) for e in entries] == [('title', '电池外观检测技术方案')]


def test_cover_title_ascii_suffix_gets_space(kit):
    replacer = SmartReplacer({**FIELDS, 'project_name': 'Battery Inspection'}, 'en')
    xml = _cover(kit, kit.run('Old Vision Proposal', 32, False))
    result, _ = replacer.replace(xml, is_cover=True)
    assert logical_text(result) == 'Battery Inspection Proposal'


def test_cover_title_falls_back_to_code(kit):
    replacer = SmartReplacer({**FIELDS, 'project_name': ''}, 'zh')
    xml = _cover(kit, kit.run('项目名称占位', 28, True))
    result, _ = replacer.replace(xml, is_cover=True)
    assert logical_text(result) == 'VP-2024-001'


def test_cover_date_company_customer(kit, replacer):
    xml = _cover(
        kit,
        kit.run('2023年12月', 14, False),
        kit.run('某某科技有限公司', 24, True),
        kit.run('客户：某客户', 16, False),
        kit.run('内部资料', 12, False),
    )
    result, entries = replacer.replace(xml, is_cover=True)
    assert logical_text(result).split('\n') == ['2024/3/5', FIELDS['company_name'], '致：宁德时代', '内部资料']
    assert [e.kind for e in entries] == ['date', 'company', 'customer']
    assert entries[0].original == '2023年12月'


def test_customer_prefix_in_english(kit):
    replacer = SmartReplacer(FIELDS, 'en')
    xml = _cover(kit, kit.run('Customer: ACME', 18, False))
    result, _ = replacer.replace(xml, is_cover=True)
    assert logical_text(result) == 'To: 宁德时代'


def test_cover_leaves_unmatched_runs(kit, replacer):
    xml = _cover(kit, kit.run('欢迎', 40, True), kit.run('小字', 10, False))
    result, entries = replacer.replace(xml, is_cover=True)
    assert result == xml
    assert entries == []


def test_label_values_on_content_slides(kit, replacer):
    xml = kit.text_slide('项目名称：旧项目', '客户: 旧客户', '工位数量：5 个', '说明：不变')
    result, entries = replacer.replace(xml, is_cover=False)
    assert logical_text(result).split('\n') == ['项目名称：电池外观检测', '客户: 宁德时代', '工位数量：3 个', '说明：不变']
    assert [e.kind for e in entries] == ['项目名称', '客户', '工位数量']
    assert entries[0].original == '旧项目'


def test_label_value_split_across_runs(kit, replacer):
    xml = kit.slide(kit.shape(kit.para(
        kit.run('负责人', 14, True), kit.run('：', 14, False), kit.run('李', 14, False), kit.run('四', 14, False),
    )))
    result, entries = replacer.replace(xml, is_cover=False)
    assert logical_text(result) == '负责人：张三'
    # Label run and its bold formatting are untouched
    assert '<a:rPr lang="zh-CN" sz="1400" b="1"/><a:t>负责人</a:t>' in result
    assert len(entries) == 1


def test_label_already_current_is_not_logged(kit, replacer):
    xml = kit.text_slide('项目编号：VP-2024-001')
    result, entries = replacer.replace(xml, is_cover=False)
    assert result == xml
    assert entries == []


def test_values_are_escaped(kit):
    replacer = SmartReplacer({'customer': 'A&B'}, 'zh')
    xml = kit.text_slide('客户：X')
    result, _ = replacer.replace(xml, is_cover=False)
    assert '<a:t>客户：A&amp;B</a:t>' in result
