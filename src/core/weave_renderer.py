"""
Weave 渲染引擎：node: 引用的递归展开

以 markdown-it 插件的形式工作：核心规则（core rule）在解析完成后
把每个 node: 链接（link_open … link_close）替换为一个 html_inline token，
其内容为按展示模式渲染、已嵌入目标正文的 HTML。

展开判定顺序（先命中者生效）：
    1. 目标不存在     → 缺失标记（不消耗预算）
    2. 目标正在展开中 → 环路标记，回链到祖先锚点（不消耗预算）
    3. depth > 最大深度 → 深度标记（不消耗预算）
    4. 已展开数达上限 → 预算标记
    5. 展开：计数 +1，压栈，以 depth + 1 渲染目标正文，出栈，按展示模式输出

inline / footnote / sidenote / margin 为剥离模式：正文中的嵌套引用只输出
惰性触发器，内容交给嵌套模板；stretch / overlay / panel 完整递归展开。

渲染上下文经 markdown-it 的 env 传给嵌套解析；env 中没有上下文的解析
即顶层渲染：新建上下文，结束时在文末追加脚注区。
"""

import logging
from html import escape

from markdown_it import MarkdownIt
from markdown_it.token import Token

from core.display import dispatch, render_fallback, render_nested_marker
from core.media_blocks import weave_format_plugin
from core.node_ref import DisplayMode, is_node_href, parse_node_ref
from core.render_context import (
    ENV_CTX, ENV_DEPTH, ENV_STRIP, ExpansionConfig, RenderContext, as_lookup,
)

log = logging.getLogger(__name__)

# 剥离嵌套展开的展示模式
STRIP_MODES = frozenset({
    DisplayMode.INLINE, DisplayMode.FOOTNOTE, DisplayMode.SIDENOTE, DisplayMode.MARGIN,
})

# 拼接链接文字时保留的子 token
_TEXT_TOKENS = ("text", "code_inline")
_BREAK_TOKENS = ("softbreak", "hardbreak")


def create_markdown():
    """Weave 使用的 markdown-it 实例（CommonMark + 格式插件）"""
    md = MarkdownIt("commonmark")
    weave_format_plugin(md)
    return md


class WeaveRenderer:
    """
    可复用的渲染器：持有内容查找、展开预算与 markdown-it 实例。
    每次 render() 都使用全新的 RenderContext，调用之间不共享可变状态。
    """

    def __init__(self, lookup, config: ExpansionConfig | None = None, md: MarkdownIt | None = None):
        self.lookup = as_lookup(lookup)
        self.config = config or ExpansionConfig()
        self.md = md if md is not None else create_markdown()
        self.md.core.ruler.push("weave_node_refs", self._core_rule)

    # ================================================================
    # 公开接口
    # ================================================================

    def render(self, source: str) -> str:
        """渲染整篇文档；永不抛异常"""
        html, _ = self.render_with_context(source)
        return html

    def render_with_context(self, source: str):
        """渲染并返回 (html, 本次渲染的 RenderContext)，用于诊断与测试"""
        env = {}
        try:
            html = self.md.render(source or "", env)
        except Exception as e:
            log.error(f"文档渲染失败: {e}")
            html = (
                f'<div class="weave-error" data-weave="1">文档渲染失败</div>'
                f'<pre>{escape(source or "")}</pre>'
            )
        ctx = env.get(ENV_CTX)
        if ctx is not None and ctx.active:
            log.warning(f"渲染结束时仍有未出栈的目标: {list(ctx.active)}")
        return html, ctx

    # ================================================================
    # markdown-it 核心规则
    # ================================================================

    def _core_rule(self, state):
        env = state.env
        ctx = env.get(ENV_CTX)
        top_level = ctx is None or ENV_DEPTH not in env

        if top_level:
            ctx = RenderContext(
                config=self.config,
                lookup=self.lookup,
                body_renderer=self.render_section_body,
            )
            env[ENV_CTX] = ctx
            env[ENV_DEPTH] = 0
            env[ENV_STRIP] = False

        depth = env[ENV_DEPTH]
        strip = env.get(ENV_STRIP, False)

        for token in state.tokens:
            if token.type == "inline" and token.children:
                token.children = self._transform_inline(token.children, depth, strip, ctx)

        if top_level:
            footnotes = ctx.footnotes.flush(ctx)
            if footnotes:
                block = Token("html_block", "", 0)
                block.content = footnotes + "\n"
                block.block = True
                state.tokens.append(block)

    def _transform_inline(self, children, depth, strip, ctx):
        """把 node: 链接的 token 段替换为单个 html_inline token"""
        result = []
        i = 0
        while i < len(children):
            token = children[i]
            href = token.attrGet("href") if token.type == "link_open" else None
            if not is_node_href(href) or token.attrGet("data-weave"):
                result.append(token)
                i += 1
                continue

            close = i + 1
            while close < len(children) and children[close].type != "link_close":
                close += 1

            link_text = self._link_text(children[i + 1:close])
            html_token = Token("html_inline", "", 0)
            html_token.content = self._render_reference(href, link_text, depth, strip, ctx)
            result.append(html_token)
            i = close + 1

        return result

    @staticmethod
    def _link_text(tokens):
        parts = []
        for token in tokens:
            if token.type in _TEXT_TOKENS:
                parts.append(token.content)
            elif token.type in _BREAK_TOKENS:
                parts.append(" ")
        return "".join(parts)

    # ================================================================
    # 单个引用
    # ================================================================

    def _render_reference(self, href, link_text, depth, strip, ctx):
        """单个引用的渲染；内部异常只影响这一个引用"""
        ref = parse_node_ref(href)
        if ref is None:
            log.debug(f"node: 引用格式错误: {href!r}")
            return render_fallback("malformed", "", link_text or href, ctx, href="#")

        for key, value in ref.unknown_params.items():
            log.debug(f"node:{ref.target_id} 忽略未知参数 {key}={value!r}")

        try:
            if strip:
                return self._nested_marker(ref, link_text, ctx)
            return self.expand(ref, link_text, depth, ctx)
        except Exception as e:
            log.error(f"引用渲染失败 [{ref.target_id}]: {e}")
            return render_fallback("error", ref.target_id, link_text, ctx)

    def _nested_marker(self, ref, link_text, ctx):
        """剥离模式：缺失与环路照常标记，其余输出惰性触发器"""
        if ctx.resolve(ref.target_id) is None:
            return render_fallback("missing", ref.target_id, link_text, ctx)
        if ctx.is_active(ref.target_id):
            return self._cycle(ref, link_text, ctx)
        return render_nested_marker(ref.target_id, link_text, ref.display)

    def _cycle(self, ref, link_text, ctx):
        anchor = ctx.anchor_of(ref.target_id)
        href = f"#{anchor}" if anchor else None
        return render_fallback("cycle", ref.target_id, link_text, ctx, href=href)

    def expand(self, ref, link_text, depth, ctx) -> str:
        """按判定顺序展开一个引用，返回 HTML 片段"""
        target_id = ref.target_id

        section = ctx.resolve(target_id)
        if section is None:
            log.debug(f"引用目标不存在: {target_id}")
            return render_fallback("missing", target_id, link_text, ctx)

        if ctx.is_active(target_id):
            return self._cycle(ref, link_text, ctx)

        if depth > ctx.config.max_depth:
            return render_fallback("depth-limit", target_id, link_text, ctx)

        if ctx.expanded_count >= ctx.config.max_references_per_document:
            log.debug(f"单文档引用数已达上限 {ctx.config.max_references_per_document}: {target_id}")
            return render_fallback("ref-limit", target_id, link_text, ctx)

        ctx.expanded_count += 1
        anchor_id = ctx.next_anchor_id()
        display = ref.display

        with ctx.expanding(target_id, anchor_id):
            content = ctx.render_body(section, depth + 1, strip=display in STRIP_MODES)

        return dispatch(display, target_id, link_text, section, content, depth, ctx,
                        anchor_id=anchor_id)

    # ================================================================
    # 章节正文
    # ================================================================

    def render_section_body(self, section, depth, ctx, strip=False) -> str:
        """
        渲染目标正文。原文超过单引用字数上限时先截断再渲染，
        结果后追加截断提示；正文内的引用以 depth 参与判定。
        """
        raw = section.raw_body or ""
        limit = ctx.config.max_chars_per_reference
        truncated = len(raw) > limit
        body = raw[:limit] if truncated else raw

        env = {ENV_CTX: ctx, ENV_DEPTH: depth, ENV_STRIP: strip}
        try:
            html = self.md.render(body, env)
        except Exception as e:
            log.error(f"章节正文渲染失败 [{section.id}]: {e}")
            html = f'<div class="weave-error" data-weave="1">章节 {escape(section.id)} 渲染失败</div>'

        if truncated:
            log.debug(f"章节正文已截断 [{section.id}]: {len(raw)} > {limit}")
            html += f'<div class="weave-truncated" data-weave="1">（内容已截断，共 {len(raw)} 字符）</div>'
        return html


# ============================================================
# 插件与便捷入口
# ============================================================
def weave_plugin(md: MarkdownIt, lookup, config: ExpansionConfig | None = None) -> MarkdownIt:
    """
    在已有的 markdown-it 实例上安装 node: 引用展开。
    每次 md.render() 需传入新的 env（或不传），以获得独立的渲染上下文。
    """
    WeaveRenderer(lookup, config, md=md)
    return md


def render(document_source: str, content_lookup, config: ExpansionConfig | None = None) -> str:
    """渲染入口：文档源文本 + 内容查找 → HTML"""
    return WeaveRenderer(content_lookup, config).render(document_source)
