"""
节点引用语法解析

文档中的交叉引用写作 Markdown 链接，目标为：
    node:<id>
    node:<id>?display=footnote&export=appendix&...

解析永不抛异常：缺少前缀或 id 为空 → None；
查询串损坏 → 参数集为空（id 仍然可用）。
未识别的参数原样保留在 unknown_params，仅供诊断，不影响渲染。
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import parse_qsl, unquote

log = logging.getLogger(__name__)

NODE_SCHEME = "node:"


class DisplayMode(str, Enum):
    """七种展示模式（封闭枚举）"""
    INLINE = "inline"
    STRETCH = "stretch"
    OVERLAY = "overlay"
    FOOTNOTE = "footnote"
    SIDENOTE = "sidenote"
    MARGIN = "margin"
    PANEL = "panel"

    @classmethod
    def parse(cls, value):
        """字符串 → DisplayMode；不认识的值返回 None"""
        try:
            return cls(value)
        except ValueError:
            return None


# 已知的导出提示（仅用于诊断，解析时原样保留）
EXPORT_HINTS = ("appendix", "inline", "omit")


@dataclass(frozen=True)
class NodeRef:
    target_id: str
    display_mode: DisplayMode | None = None
    export_hint: str | None = None
    unknown_params: dict = field(default_factory=dict, hash=False)

    @property
    def display(self) -> DisplayMode:
        """未指定展示模式时默认 inline"""
        return self.display_mode or DisplayMode.INLINE


def is_node_href(href) -> bool:
    return isinstance(href, str) and href.startswith(NODE_SCHEME)


def _parse_query(query: str) -> list[tuple[str, str]]:
    """解析查询串；损坏时退化为空参数集"""
    if not query:
        return []
    try:
        return parse_qsl(query, keep_blank_values=True)
    except ValueError as e:
        log.debug(f"node: 查询串无法解析，忽略参数: {query!r} ({e})")
        return []


def parse_node_ref(href) -> NodeRef | None:
    """
    解析 node: 引用。

    返回 NodeRef；前缀缺失或 id 为空时返回 None。
    display 只接受七种已知模式，其余取值移入 unknown_params；
    export 原样保留；其它键全部进入 unknown_params（重复键以最后一个为准）。
    合法 display 之外的非法 display 值同样保留在 unknown_params 中。
    """
    if not is_node_href(href):
        return None

    id_part, _, query = href[len(NODE_SCHEME):].partition("?")
    target_id = unquote(id_part).strip()
    if not target_id:
        return None

    display_mode = None
    export_hint = None
    unknown = {}

    for key, value in _parse_query(query):
        if key == "display":
            mode = DisplayMode.parse(value)
            if mode is not None:
                display_mode = mode
            else:
                unknown[key] = value
        elif key == "export":
            export_hint = value
        else:
            unknown[key] = value

    return NodeRef(
        target_id=target_id,
        display_mode=display_mode,
        export_hint=export_hint,
        unknown_params=unknown,
    )
