"""
Weave 预览 · 跨平台路径与渲染配置

所有路径均使用 pathlib 动态拼接，零硬编码。
支持 .env 文件覆盖默认值。
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent / ".env")


def _env_bool(name, default):
    """读取布尔型环境变量（1/true/yes/on 视为真）"""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ─── 项目根目录（launcher.py 所在位置） ─────────────────────
# src/config.py → 上一级就是项目根
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# ─── src 目录（源代码所在位置） ───────────────────────────────
SRC_DIR = Path(__file__).resolve().parent

# ─── Weave 工作区（根文档 + 章节文件） ──────────────────────
# 默认位于 content/，可通过环境变量覆盖
CONTENT_DIR = Path(os.getenv(
    "WEAVE_CONTENT_DIR",
    str(PROJECT_ROOT / "content")
))
ROOT_FILE = os.getenv("WEAVE_ROOT_FILE", "main.md")
SECTIONS_GLOB = os.getenv("WEAVE_SECTIONS_GLOB", "sections/**/*.md")

# ─── 预览增强开关 ────────────────────────────────────────────
# 关闭后 node: 链接按普通 Markdown 链接输出
ENABLE_PREVIEW_ENHANCEMENTS = _env_bool("WEAVE_ENABLE_PREVIEW", True)

# ─── 展开预算 ────────────────────────────────────────────────
MAX_PREVIEW_DEPTH = int(os.getenv("WEAVE_MAX_PREVIEW_DEPTH", "3"))
MAX_EXPANDED_CHARS_PER_REF = int(os.getenv("WEAVE_MAX_CHARS_PER_REF", "12000"))
MAX_EXPANDED_REFS_PER_DOC = int(os.getenv("WEAVE_MAX_REFS_PER_DOC", "50"))

# ─── 展示细节 ────────────────────────────────────────────────
SHOW_PREVIEW_LABELS = _env_bool("WEAVE_SHOW_LABELS", True)
# 章节跳转链接模板，{id} 会被替换为 URL 编码后的章节 id
SECTION_URL = os.getenv("WEAVE_SECTION_URL", "/preview/{id}")

# ─── 静态资源与模板 ──────────────────────────────────────────
STATIC_DIR = SRC_DIR / "static"
TEMPLATES_DIR = SRC_DIR / "templates"

# ─── 运行时检测 ──────────────────────────────────────────────
content_available = CONTENT_DIR.exists() and (CONTENT_DIR / ROOT_FILE).exists()

# ─── 开发服务器 ──────────────────────────────────────────────
DEV_HOST = os.getenv("DEV_HOST", "0.0.0.0")
DEV_PORT = int(os.getenv("DEV_PORT", "8400"))


def expansion_config():
    """根据当前配置构造渲染引擎的 ExpansionConfig"""
    from core.render_context import ExpansionConfig

    return ExpansionConfig(
        max_depth=MAX_PREVIEW_DEPTH,
        max_chars_per_reference=MAX_EXPANDED_CHARS_PER_REF,
        max_references_per_document=MAX_EXPANDED_REFS_PER_DOC,
        show_labels=SHOW_PREVIEW_LABELS,
        section_url=SECTION_URL,
    )


# ─── 配置摘要（调试用） ──────────────────────────────────────
def print_config():
    """打印当前配置，用于调试"""
    print("=" * 50)
    print("Weave 预览 · 配置")
    print("=" * 50)
    print(f"  项目根目录:    {PROJECT_ROOT}")
    print(f"  源代码目录:    {SRC_DIR}")
    print(f"  工作区目录:    {CONTENT_DIR}  {'✓' if content_available else '✗'}")
    print(f"  根文档:        {ROOT_FILE}")
    print(f"  章节匹配:      {SECTIONS_GLOB}")
    print(f"  预览增强:      {'开启' if ENABLE_PREVIEW_ENHANCEMENTS else '关闭'}")
    print(f"  最大深度:      {MAX_PREVIEW_DEPTH}")
    print(f"  单引用字数:    {MAX_EXPANDED_CHARS_PER_REF}")
    print(f"  单文档引用数:  {MAX_EXPANDED_REFS_PER_DOC}")
    print(f"  服务地址:      http://{DEV_HOST}:{DEV_PORT}")
    print("=" * 50)


if __name__ == "__main__":
    print_config()
