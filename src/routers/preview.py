"""
预览路由：首页 / 章节预览页 / HTML 片段 / 索引重载
"""

import logging
from html import escape

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse

import config
from core.weave_renderer import WeaveRenderer, create_markdown

log = logging.getLogger(__name__)

router = APIRouter(tags=["preview"])


def render_section_html(request: Request, section) -> str:
    """按当前配置渲染一个章节（作为顶层文档）"""
    if not config.ENABLE_PREVIEW_ENHANCEMENTS:
        return create_markdown().render(section.raw_body)
    renderer = WeaveRenderer(request.app.state.index, request.app.state.expansion_config)
    return renderer.render(section.raw_body)


@router.get("/", response_class=HTMLResponse)
async def index_page(request: Request):
    """首页：章节列表"""
    index = request.app.state.index
    templates = request.app.state.templates

    sections = sorted(index.all_sections(), key=lambda s: s.id)
    return templates.TemplateResponse(request, "index.html", {
        "content_dir": str(config.CONTENT_DIR),
        "root": index.root_section,
        "sections": sections,
        "duplicates": index.duplicates,
        "preview_enabled": config.ENABLE_PREVIEW_ENHANCEMENTS,
    })


@router.get("/preview/{section_id}", response_class=HTMLResponse)
async def preview_page(request: Request, section_id: str):
    """章节预览页"""
    index = request.app.state.index
    templates = request.app.state.templates

    section = index.get_section(section_id)
    if section is None:
        return HTMLResponse(f"<h1>章节不存在</h1><p>{escape(section_id)}</p>", status_code=404)

    return templates.TemplateResponse(request, "preview.html", {
        "section": section,
        "content": render_section_html(request, section),
    })


@router.get("/api/content/{section_id}", response_class=HTMLResponse)
async def get_content(request: Request, section_id: str):
    """获取章节渲染后的 HTML（片段）"""
    section = request.app.state.index.get_section(section_id)
    if section is None:
        return HTMLResponse(f"<div class='error'>未找到: {escape(section_id)}</div>", status_code=404)

    try:
        return HTMLResponse(render_section_html(request, section))
    except Exception as e:
        log.error(f"章节渲染失败 [{section_id}]: {e}")
        return HTMLResponse(f"<div class='error'>渲染错误: {escape(str(e))}</div>", status_code=500)


@router.post("/api/index/reload")
async def reload_index(request: Request):
    """重新扫描工作区"""
    index = request.app.state.index
    if index.content_dir is None:
        return JSONResponse({"error": "工作区未配置"}, status_code=503)

    count = index.reload()
    return {
        "sections": count,
        "duplicates": {k: [str(p) for p in v] for k, v in index.duplicates.items()},
    }
