"""
嵌套模板生成

剥离模式渲染出的正文里，嵌套引用只是惰性触发器（data-nested="1"）。
这里扫描已渲染的片段，为每个触发器的目标预先生成 <template>，
并递归扫描模板内容，使客户端无需再次请求即可逐层展开。
"""

import logging

from lxml import etree, html as lxml_html

from core.display import TEMPLATE_CLASSES, attr
from core.node_ref import DisplayMode

log = logging.getLogger(__name__)

NESTED_MARKER_XPATH = "descendant-or-self::span[@data-nested='1']"
EXISTING_TEMPLATE_XPATH = "descendant-or-self::template/@data-for"

# 只有这三种模式有独立的模板 class，其余按弹出层处理
_OWN_TEMPLATE = (DisplayMode.INLINE, DisplayMode.STRETCH, DisplayMode.PANEL)


def _scan(fragment):
    """返回 ([(target_id, display), ...] 按文档顺序, 已存在模板的 id 集合)"""
    try:
        nodes = lxml_html.fragments_fromstring(fragment)
    except (etree.ParserError, etree.XMLSyntaxError, ValueError) as e:
        log.warning(f"嵌套模板扫描失败: {e}")
        return [], set()

    markers = []
    existing = set()
    for node in nodes:
        # 片段开头的纯文本以 str 形式返回
        if not isinstance(node, etree._Element):
            continue
        for span in node.xpath(NESTED_MARKER_XPATH):
            target_id = span.get("data-target")
            if target_id:
                markers.append((target_id, span.get("data-display") or ""))
        existing.update(node.xpath(EXISTING_TEMPLATE_XPATH))
    return markers, existing


def template_class_for(display_value) -> str:
    mode = DisplayMode.parse(display_value)
    if mode in _OWN_TEMPLATE:
        return TEMPLATE_CLASSES[mode]
    return TEMPLATE_CLASSES[DisplayMode.OVERLAY]


def generate_templates(fragment: str, depth: int, ctx) -> str:
    """
    为 fragment 中的嵌套触发器生成模板定义（拼接后的 HTML）。

    跳过：本次扫描已处理的目标、片段中已有模板的目标、
    正在展开的祖先目标（环路）、查找不到的目标；depth 超出 max_depth 时不再生成。
    """
    if not fragment or 'data-nested="1"' not in fragment:
        return ""

    markers, existing = _scan(fragment)
    processed = set()
    templates = []

    for target_id, display_value in markers:
        if target_id in processed or target_id in existing or ctx.is_active(target_id):
            continue
        processed.add(target_id)

        if depth > ctx.config.max_depth:
            continue

        section = ctx.resolve(target_id)
        if section is None:
            continue

        with ctx.expanding(target_id):
            content = ctx.render_body(section, depth, strip=True)
            deeper = generate_templates(content, depth + 1, ctx)

        templates.append(
            f'<template class="{template_class_for(display_value)}" '
            f'data-for="{attr(target_id)}">{content}</template>'
        )
        templates.append(deeper)

    return "".join(templates)
