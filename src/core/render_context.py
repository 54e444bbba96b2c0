"""
渲染上下文：每次顶层渲染独享的可变状态

  - ExpansionConfig   展开预算（深度 / 单引用字数 / 单文档引用数）
  - FootnoteRegistry  脚注登记表：按目标 id 去重，首次出现时编号，文末统一输出
  - RenderContext     展开计数、正在展开的 id 栈（环路保护）、各类序号

上下文在一次 render() 开始时创建，经 markdown-it 的 env 逐层传递，
渲染结束后即丢弃；绝不做成模块级单例。
"""

import logging
from collections.abc import Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field

log = logging.getLogger(__name__)

# markdown-it env 中传递上下文的键；没有 ENV_DEPTH 的解析即顶层渲染
ENV_CTX = "weave_ctx"
ENV_DEPTH = "weave_depth"
ENV_STRIP = "weave_strip"


class ExpansionConfig(BaseModel):
    """展开预算，创建后不可修改"""
    model_config = ConfigDict(frozen=True)

    max_depth: int = Field(3, ge=0)
    max_chars_per_reference: int = Field(12000, ge=1)
    max_references_per_document: int = Field(50, ge=0)
    show_labels: bool = True
    section_url: str = "/preview/{id}"


def as_lookup(content_lookup):
    """
    统一内容查找接口：接受可调用对象 id → Section | None，
    或 Mapping（按 .get 查询），以及带 get_section 方法的索引对象。
    """
    if content_lookup is None:
        return lambda _id: None
    if isinstance(content_lookup, Mapping):
        return content_lookup.get
    if hasattr(content_lookup, "get_section"):
        return content_lookup.get_section
    if callable(content_lookup):
        return content_lookup
    raise TypeError(f"不支持的内容查找对象: {type(content_lookup).__name__}")


# ============================================================
# 脚注登记表
# ============================================================
@dataclass
class FootnoteEntry:
    target_id: str
    number: int
    title: str
    content: str
    ref_ids: list[str] = field(default_factory=list)


class FootnoteRegistry:
    """
    同一目标的多次脚注引用共用一条脚注；每次引用都分配新的回链锚点，
    文末列表按编号排序，回链指向第一次引用。
    """

    def __init__(self):
        self._entries: dict[str, FootnoteEntry] = {}
        self._ref_count = 0
        self._flushed = False

    def __len__(self):
        return len(self._entries)

    def __contains__(self, target_id):
        return target_id in self._entries

    def __getitem__(self, target_id) -> FootnoteEntry:
        return self._entries[target_id]

    def entries(self) -> list[FootnoteEntry]:
        return sorted(self._entries.values(), key=lambda e: e.number)

    def register(self, target_id, title, content, ref_id=None) -> str:
        """登记一次脚注引用，返回本次引用的锚点 id"""
        if self._flushed:
            raise RuntimeError("脚注区已输出，不能再登记新的脚注")

        self._ref_count += 1
        ref_id = ref_id or f"weave-fnref-{self._ref_count}"

        entry = self._entries.get(target_id)
        if entry is None:
            entry = FootnoteEntry(
                target_id=target_id,
                number=len(self._entries) + 1,
                title=title,
                content=content,
            )
            self._entries[target_id] = entry

        entry.ref_ids.append(ref_id)
        return ref_id

    def number_of(self, target_id) -> int:
        return self._entries[target_id].number

    def flush(self, ctx) -> str:
        """
        输出文末脚注区（每次渲染只能调用一次）。
        每条脚注正文中的嵌套引用在此生成模板，深度从 1 开始。
        """
        if self._flushed:
            raise RuntimeError("脚注区只能输出一次")
        self._flushed = True

        if not self._entries:
            return ""

        from core.nested_templates import generate_templates

        items = []
        nested = []
        for entry in self.entries():
            backref = entry.ref_ids[0] if entry.ref_ids else ""
            items.append(
                f'<li id="weave-fn-{entry.number}" class="weave-footnote">'
                f'<span class="weave-footnote-marker">'
                f'<a href="#{backref}" class="weave-footnote-backref">[{entry.number}]</a>'
                f'</span>'
                f'<div class="weave-footnote-content">{entry.content}</div>'
                f'</li>'
            )
            nested.append(generate_templates(entry.content, 1, ctx))

        return (
            '<hr class="weave-footnotes-separator">'
            '<section class="weave-footnotes" data-weave="1">'
            f'<ol class="weave-footnotes-list">{"".join(items)}</ol>'
            '</section>'
            + "".join(nested)
        )


# ============================================================
# 渲染上下文
# ============================================================
@dataclass
class RenderContext:
    config: ExpansionConfig
    lookup: Callable
    # (section, depth, ctx, strip) → HTML，由渲染器注入
    body_renderer: Callable | None = None

    expanded_count: int = 0
    # 正在展开的目标 id → 其锚点 id（插入顺序即递归路径）
    active: dict = field(default_factory=dict)
    footnotes: FootnoteRegistry = field(default_factory=FootnoteRegistry)
    sidenote_count: int = 0
    anchor_count: int = 0
    sub_count: int = 0

    def next_anchor_id(self) -> str:
        self.anchor_count += 1
        return f"weave-ref-{self.anchor_count}"

    def next_sidenote_number(self) -> int:
        """旁注不去重，每次出现都取下一个序号"""
        self.sidenote_count += 1
        return self.sidenote_count

    def next_sub_id(self) -> str:
        self.sub_count += 1
        return f"weave-sub-{self.sub_count}"

    def is_active(self, target_id) -> bool:
        return target_id in self.active

    def anchor_of(self, target_id):
        return self.active.get(target_id)

    @contextmanager
    def expanding(self, target_id, anchor_id=None):
        """递归进入目标正文期间把 id 压栈，返回时无论成败都出栈"""
        self.active[target_id] = anchor_id
        try:
            yield
        finally:
            self.active.pop(target_id, None)

    def resolve(self, target_id):
        """查找目标章节；查找函数抛出的异常按缺失处理"""
        try:
            return self.lookup(target_id)
        except Exception as e:
            log.warning(f"内容查找失败 [{target_id}]: {e}")
            return None

    def render_body(self, section, depth, strip=False) -> str:
        if self.body_renderer is None:
            raise RuntimeError("RenderContext 未绑定正文渲染器")
        return self.body_renderer(section, depth, self, strip)
