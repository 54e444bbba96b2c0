"""
展示策略：七种展示模式各一个渲染函数

每个函数接收 (target_id, link_text, section, content, depth, ctx, anchor_id)，
返回自包含的 HTML 片段。所有交互元素都带 data-weave="1"（引擎标记）
和 data-target（目标 id），延迟到客户端的内容放在 <template> 中，
以 data-for 关联目标 id。

另含各类降级标记（缺失 / 环路 / 深度 / 预算 / 格式错误 / 内部错误）
与剥离模式下的嵌套触发器。
"""

from html import escape
from urllib.parse import quote

from core.node_ref import DisplayMode

# ─── 图标 ────────────────────────────────────────────────────
ICON_PLUS = (
    '<svg xmlns="http://www.w3.org/2000/svg" fill="none" viewBox="0 0 24 24" '
    'stroke-width="1.5" stroke="currentColor" class="weave-icon weave-icon-plus">'
    '<path stroke-linecap="round" stroke-linejoin="round" '
    'd="M12 9v6m3-3H9m12 0a9 9 0 1 1-18 0 9 9 0 0 1 18 0Z"></path></svg>'
)
ICON_MINUS = (
    '<svg xmlns="http://www.w3.org/2000/svg" fill="none" viewBox="0 0 24 24" '
    'stroke-width="1.5" stroke="currentColor" class="weave-icon weave-icon-minus">'
    '<path stroke-linecap="round" stroke-linejoin="round" '
    'd="M15 12H9m12 0a9 9 0 1 1-18 0 9 9 0 0 1 18 0Z"></path></svg>'
)
ICON_INFO = (
    '<svg xmlns="http://www.w3.org/2000/svg" fill="none" viewBox="0 0 24 24" '
    'stroke-width="1.5" stroke="currentColor" class="weave-icon">'
    '<path stroke-linecap="round" stroke-linejoin="round" '
    'd="m11.25 11.25.041-.02a.75.75 0 0 1 1.063.852l-.708 2.836a.75.75 0 0 0 '
    '1.063.853l.041-.021M21 12a9 9 0 1 1-18 0 9 9 0 0 1 18 0Zm-9-3.75h.008v.008H12V8.25Z">'
    '</path></svg>'
)

# 模板 class（嵌套模板生成器同样使用）
TEMPLATE_CLASSES = {
    DisplayMode.INLINE: "weave-inline-content-template",
    DisplayMode.STRETCH: "weave-stretch-content-template",
    DisplayMode.OVERLAY: "weave-overlay-content-template",
    DisplayMode.PANEL: "weave-panel-content-template",
    DisplayMode.SIDENOTE: "weave-sidenote-content-template",
}


def is_anchor_only(link_text) -> bool:
    """链接文字为空或全是空白"""
    return not link_text or not link_text.strip()


def attr(value) -> str:
    """属性值转义（双引号包裹）"""
    return escape(str(value), quote=True)


def section_href(target_id, config) -> str:
    return config.section_url.format(id=quote(target_id, safe=""))


def _template(display, target_id, content):
    return (
        f'<template class="{TEMPLATE_CLASSES[display]}" data-for="{attr(target_id)}">'
        f'{content}</template>'
    )


def _nested(content, depth, ctx):
    from core.nested_templates import generate_templates
    return generate_templates(content, depth + 1, ctx)


def _header(section, ctx, number=None):
    """旁注 / 边注标题栏：序号、标题、跳转链接"""
    parts = ['<span class="weave-header">']
    if number is not None:
        parts.append(f'<span class="weave-sidenote-number">{number}.</span>')
    if ctx.config.show_labels:
        parts.append(f'<span class="weave-title">{escape(section.display_title)}</span>')
    parts.append(
        f'<a class="weave-open-link" href="{attr(section_href(section.id, ctx.config))}" '
        f'title="打开章节">↗</a>'
    )
    parts.append('</span>')
    return "".join(parts)


# ============================================================
# 可展开模式：inline / stretch / overlay / panel
# ============================================================
def render_inline(target_id, link_text, section, content, depth, ctx, anchor_id):
    tid = attr(target_id)
    tail = _template(DisplayMode.INLINE, target_id, content) + _nested(content, depth, ctx)

    if is_anchor_only(link_text):
        return (
            f'<span class="weave-inline-anchor" id="{anchor_id}" data-weave="1" data-target="{tid}" '
            f'tabindex="0" role="button" title="展开 {attr(section.display_title)}">'
            f'{ICON_PLUS}{ICON_MINUS}</span>{tail}'
        )
    return (
        f'<span class="weave-inline-trigger" id="{anchor_id}" data-weave="1" data-target="{tid}" '
        f'tabindex="0" role="button" aria-expanded="false">{escape(link_text)}</span>{tail}'
    )


def render_stretch(target_id, link_text, section, content, depth, ctx, anchor_id):
    # 触发器用 span 而非 div：div 会提前闭合外层 <p>
    tid = attr(target_id)
    tail = _template(DisplayMode.STRETCH, target_id, content) + _nested(content, depth, ctx)

    if is_anchor_only(link_text):
        return (
            f'<span class="weave-stretch-anchor" id="{anchor_id}" data-weave="1" data-target="{tid}" '
            f'tabindex="0" role="button" title="展开 {attr(section.display_title)}">'
            f'{ICON_PLUS}{ICON_MINUS}</span>{tail}'
        )
    return (
        f'<span class="weave-stretch-trigger" id="{anchor_id}" data-weave="1" data-target="{tid}" '
        f'tabindex="0" role="button" aria-expanded="false">{escape(link_text)}</span>{tail}'
    )


def render_overlay(target_id, link_text, section, content, depth, ctx, anchor_id):
    """弹出层：位置由客户端计算，这里只输出触发器与模板"""
    tid = attr(target_id)
    tail = _template(DisplayMode.OVERLAY, target_id, content) + _nested(content, depth, ctx)

    if is_anchor_only(link_text):
        return (
            f'<span class="weave-overlay-anchor" id="{anchor_id}" data-weave="1" data-target="{tid}" '
            f'tabindex="0" role="button" data-display="overlay" '
            f'title="查看 {attr(section.display_title)}">{ICON_INFO}</span>{tail}'
        )
    return (
        f'<span class="weave-node-link" id="{anchor_id}" data-weave="1" data-target="{tid}" '
        f'tabindex="0" role="button" data-display="overlay">{escape(link_text)}</span>{tail}'
    )


def render_panel(target_id, link_text, section, content, depth, ctx, anchor_id):
    tid = attr(target_id)
    tail = _template(DisplayMode.PANEL, target_id, content) + _nested(content, depth, ctx)

    if is_anchor_only(link_text):
        return (
            f'<span class="weave-panel-anchor" id="{anchor_id}" data-weave="1" data-target="{tid}" '
            f'tabindex="0" role="button" title="打开侧栏 {attr(section.display_title)}">'
            f'{ICON_INFO}</span>{tail}'
        )
    return (
        f'<span class="weave-panel-trigger" id="{anchor_id}" data-weave="1" data-target="{tid}" '
        f'tabindex="0" role="button" aria-expanded="false">{escape(link_text)}</span>{tail}'
    )


# ============================================================
# 注释模式：footnote / sidenote / margin
# ============================================================
def render_footnote(target_id, link_text, section, content, depth, ctx, anchor_id):
    """上标引用；正文登记到脚注表，文末统一输出"""
    ref_id = ctx.footnotes.register(target_id, section.display_title, content)
    num = ctx.footnotes.number_of(target_id)
    tid = attr(target_id)

    if not is_anchor_only(link_text):
        return (
            f'<a href="#weave-fn-{num}" id="{ref_id}" class="weave-footnote-link" '
            f'data-weave="1" data-target="{tid}" data-anchor="{anchor_id}">'
            f'<span class="weave-footnote-link-text">{escape(link_text)}</span>'
            f'<sup>[{num}]</sup></a>'
        )
    return (
        f'<sup class="weave-footnote-ref" data-weave="1" data-target="{tid}" data-anchor="{anchor_id}">'
        f'<a href="#weave-fn-{num}" id="{ref_id}">[{num}]</a></sup>'
    )


def render_sidenote(target_id, link_text, section, content, depth, ctx, anchor_id):
    """
    旁注：桌面端正文浮动在页边，移动端由脚本把模板插到段落之后。
    序号独立于脚注，每次出现都递增。
    """
    num = ctx.next_sidenote_number()
    tid = attr(target_id)
    body = (
        f'<span class="weave-sidenote-content">{_header(section, ctx, num)}'
        f'{content}</span>'
    )
    return (
        f'<span class="weave-sidenote-container" data-weave="1" data-target="{tid}" data-num="{num}">'
        f'<span class="weave-sidenote-anchor" id="{anchor_id}" data-target="{tid}" tabindex="0" role="button">'
        f'{escape(link_text or "")}<sup class="weave-sidenote-number">[{num}]</sup></span>'
        f'<span class="weave-sidenote-body" data-target="{tid}">{body}</span>'
        f'</span>'
        f'{_template(DisplayMode.SIDENOTE, target_id, body)}'
    )


def render_margin(target_id, link_text, section, content, depth, ctx, anchor_id):
    """边注：不编号；链接文字为空时不输出锚点"""
    tid = attr(target_id)
    anchor = ""
    if not is_anchor_only(link_text):
        anchor = (
            f'<span class="weave-margin-note-anchor" id="{anchor_id}" data-target="{tid}" '
            f'tabindex="0" role="button">{escape(link_text)}</span>'
        )
    return (
        f'<span class="weave-margin-note-container" data-weave="1" data-target="{tid}">'
        f'{anchor}'
        f'<span class="weave-margin-note-body" data-target="{tid}">'
        f'<span class="weave-margin-note-content">{_header(section, ctx)}{content}</span>'
        f'</span></span>'
    )


def dispatch(display: DisplayMode, target_id, link_text, section, content, depth, ctx,
             anchor_id=None) -> str:
    """按展示模式分派（穷举所有枚举值）"""
    if display is DisplayMode.INLINE:
        return render_inline(target_id, link_text, section, content, depth, ctx, anchor_id)
    elif display is DisplayMode.STRETCH:
        return render_stretch(target_id, link_text, section, content, depth, ctx, anchor_id)
    elif display is DisplayMode.OVERLAY:
        return render_overlay(target_id, link_text, section, content, depth, ctx, anchor_id)
    elif display is DisplayMode.FOOTNOTE:
        return render_footnote(target_id, link_text, section, content, depth, ctx, anchor_id)
    elif display is DisplayMode.SIDENOTE:
        return render_sidenote(target_id, link_text, section, content, depth, ctx, anchor_id)
    elif display is DisplayMode.MARGIN:
        return render_margin(target_id, link_text, section, content, depth, ctx, anchor_id)
    elif display is DisplayMode.PANEL:
        return render_panel(target_id, link_text, section, content, depth, ctx, anchor_id)
    raise ValueError(f"未知的展示模式: {display!r}")


# ============================================================
# 降级标记
# ============================================================
# kind → (badge class, 徽标文字, 提示)
FALLBACK_BADGES = {
    "missing": ("weave-badge-missing", "?", "章节不存在"),
    "cycle": ("weave-badge-cycle", "↑", "已在上文展开"),
    "depth-limit": ("weave-badge-depth", "…", "已达最大展开深度"),
    "ref-limit": ("weave-badge-limit", "…", "已达单文档引用上限"),
    "malformed": ("weave-badge-malformed", "!", "引用格式错误"),
    "error": ("weave-badge-error", "!", "渲染失败"),
}


def render_fallback(kind, target_id, link_text, ctx, href=None) -> str:
    """未展开的引用：原链接文字 + 说明徽标，渲染继续"""
    badge_class, badge, hint = FALLBACK_BADGES[kind]
    if href is None:
        href = section_href(target_id, ctx.config) if target_id and kind != "missing" else "#"
    return (
        f'<span class="weave-link weave-{kind}" data-weave="1" data-target="{attr(target_id or "")}">'
        f'<a href="{attr(href)}">{escape(link_text or target_id or "")}</a>'
        f'<span class="weave-badge {badge_class}" title="{hint}">{badge}</span>'
        f'</span>'
    )


def render_nested_marker(target_id, link_text, display: DisplayMode) -> str:
    """
    剥离模式下的嵌套引用：不在服务端展开，只留一个惰性触发器，
    内容由嵌套模板提供，客户端点击时再实例化。
    """
    text = ICON_PLUS if is_anchor_only(link_text) else escape(link_text)
    return (
        f'<span class="weave-nested-link weave-nested-{display.value}" data-weave="1" data-nested="1" '
        f'data-target="{attr(target_id)}" data-display="{display.value}" '
        f'tabindex="0" role="button">{text}</span>'
    )
