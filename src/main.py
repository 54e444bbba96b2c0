"""
Weave 预览 · FastAPI 主程序

把工作区中的 Markdown 文档渲染为 HTML，node: 引用按展示模式就地展开。
"""

import logging

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
import uvicorn

import config
from core.section_index import SectionIndex
from routers import preview, render

# ─── 日志 ─────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
log = logging.getLogger(__name__)

# ─── 应用 ─────────────────────────────────────────────────────
app = FastAPI(title="Weave 预览", version="0.1.0")

# 静态文件（可选）
if config.STATIC_DIR.exists():
    app.mount("/static", StaticFiles(directory=str(config.STATIC_DIR)), name="static")

templates = Jinja2Templates(directory=str(config.TEMPLATES_DIR))

# 将 templates 存储到 app.state，供路由模块访问
app.state.templates = templates
app.state.expansion_config = config.expansion_config()
app.state.index = SectionIndex(None)

# ─── 注册路由 ─────────────────────────────────────────────────
app.include_router(preview.router)
app.include_router(render.router)


# ─── 初始化章节索引（渲染前必须就绪，渲染期间不读磁盘） ──────
@app.on_event("startup")
async def init_section_index():
    """启动时扫描工作区，建立章节索引"""
    if not config.CONTENT_DIR.exists():
        log.warning(f"工作区未找到 ({config.CONTENT_DIR})，只能使用 /api/render")
        return
    try:
        index = SectionIndex(
            config.CONTENT_DIR,
            root_file=config.ROOT_FILE,
            sections_glob=config.SECTIONS_GLOB,
        )
        app.state.index = index
        log.info(f"章节索引初始化成功，共 {len(index)} 个章节")
    except Exception as e:
        log.error(f"章节索引初始化失败: {e}")


# ─── 入口 ─────────────────────────────────────────────────────

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=config.DEV_HOST,
        port=config.DEV_PORT,
        reload=True,
    )
