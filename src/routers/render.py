"""
渲染 API：POST /api/render

对任意 Markdown 源文本做一次顶层渲染，内容查找使用当前章节索引。
请求中可覆盖三项展开预算。
"""

import logging

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from core.weave_renderer import WeaveRenderer

log = logging.getLogger(__name__)

router = APIRouter(tags=["render"])


class RenderBody(BaseModel):
    source: str
    max_depth: int | None = Field(None, ge=0)
    max_chars_per_reference: int | None = Field(None, ge=1)
    max_references_per_document: int | None = Field(None, ge=0)


@router.post("/api/render")
async def render_source(request: Request, body: RenderBody):
    """渲染源文本，返回 {"html": ...}"""
    base = request.app.state.expansion_config
    overrides = body.model_dump(exclude={"source"}, exclude_none=True)
    expansion_config = base.model_copy(update=overrides) if overrides else base

    renderer = WeaveRenderer(request.app.state.index, expansion_config)
    html, ctx = renderer.render_with_context(body.source)
    log.debug(f"/api/render 完成: 展开 {ctx.expanded_count if ctx else 0} 个引用")
    return {"html": html}
