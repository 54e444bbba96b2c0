#!/usr/bin/env python3
"""
Weave 预览 · 一键启动脚本

生命周期：
  Step 1  工作区自检：检查根文档与章节文件，报告重复 id
  Step 2  试渲染    ：逐个章节渲染一次，统计缺失引用与错误标记
  Step 3  服务启动  ：启动 FastAPI 预览服务，打印访问地址，自动打开浏览器

用法:
  python launcher.py              # 正常启动
  python launcher.py --check      # 仅运行自检与试渲染，不启动服务
  python launcher.py --port 8080  # 指定端口
"""

import sys
import time
import argparse
import socket
import webbrowser
import threading
import unicodedata
from pathlib import Path

# ─── 确保 src/ 在 Python 搜索路径中 ─────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent
SRC_DIR = PROJECT_ROOT / "src"
sys.path.insert(0, str(SRC_DIR))


# ============================================================
# 终端显示辅助函数（中英文混排自动对齐）
# ============================================================

def display_width(text):
    """终端显示宽度（全角=2, 半角=1, 零宽=0）"""
    width = 0
    for c in text:
        if unicodedata.category(c) in ('Mn', 'Me', 'Cf'):
            continue
        width += 2 if unicodedata.east_asian_width(c) in ('W', 'F') else 1
    return width


def box_line(content, inner_width, border="│", center=False):
    """打印一行带边框的文字"""
    pad = max(inner_width - display_width(content), 0)
    left = pad // 2 if center else 0
    print(f"  {border}{' ' * left}{content}{' ' * (pad - left)}{border}")


def print_banner():
    W = 38
    print()
    print(f"  ╔{'═' * W}╗")
    box_line("W e a v e · 预 览 服 务", W, "║", center=True)
    box_line("Weave Preview Server  v0.1", W, "║", center=True)
    print(f"  ╚{'═' * W}╝")
    print()


def print_step(step_num, title, status=""):
    icons = {1: "🔍", 2: "🧪", 3: "🚀"}
    status_str = f"  {status}" if status else ""
    print(f"  {icons.get(step_num, '•')} Step {step_num}: {title}{status_str}")


def check_port_available(host, port):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((host, port))
            return True
        except OSError:
            return False


def wait_for_server(host, port, timeout=15):
    """等待服务器启动（最多 timeout 秒）"""
    start = time.time()
    while time.time() - start < timeout:
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                s.settimeout(1)
                s.connect((host, port))
                return True
        except OSError:
            time.sleep(0.5)
    return False


# ============================================================
# Step 1: 工作区自检
# ============================================================

def check_workspace(config):
    """
    扫描工作区并建立索引。
    返回: SectionIndex；工作区不存在时返回 None
    """
    from core.section_index import SectionIndex

    if not config.CONTENT_DIR.exists():
        print_step(1, "工作区自检", f"❌ 目录不存在: {config.CONTENT_DIR}")
        return None

    index = SectionIndex(
        config.CONTENT_DIR,
        root_file=config.ROOT_FILE,
        sections_glob=config.SECTIONS_GLOB,
    )
    root = "✓" if index.root_section else f"✗ 未找到 {config.ROOT_FILE}"
    print_step(1, "工作区自检", f"✅ {len(index)} 个章节，根文档 {root}")
    for section_id, paths in index.duplicates.items():
        print(f"      ⚠️  重复 id {section_id}: {', '.join(str(p) for p in paths)}")
    return index


# ============================================================
# Step 2: 试渲染
# ============================================================

MARKERS = {
    "weave-missing": "缺失",
    "weave-cycle": "环路",
    "weave-depth-limit": "超深度",
    "weave-ref-limit": "超预算",
    "weave-malformed": "格式错误",
    "weave-error": "渲染错误",
}


def dry_render(index, config):
    """逐章节渲染一次，返回出现问题标记的章节数"""
    from core.weave_renderer import WeaveRenderer

    renderer = WeaveRenderer(index, config.expansion_config())
    problems = 0
    for section in index.all_sections():
        html = renderer.render(section.raw_body)
        found = [label for cls, label in MARKERS.items() if f'"weave-link {cls}"' in html
                 or f'class="{cls}"' in html]
        if found:
            problems += 1
            print(f"      ⚠️  {section.id}: {'、'.join(found)}")
    status = "✅ 全部正常" if not problems else f"⚠️  {problems} 个章节有问题标记"
    print_step(2, "试渲染", status)
    return problems


# ============================================================
# Step 3: 服务启动
# ============================================================

def print_tips(host, port):
    display_host = "localhost" if host in ("0.0.0.0", "::") else host
    url = f"http://{display_host}:{port}"

    W = 49
    print()
    print(f"  ┌{'─' * W}┐")
    box_line(f"  🌐 访问地址: {url}", W)
    print(f"  ├{'─' * W}┤")
    box_line("  📖 使用提示:", W)
    box_line("    • 首页列出全部章节，点击进入预览", W)
    box_line("    • 文档中写 [文字](node:id?display=...)", W)
    box_line("    • 修改章节后 POST /api/index/reload", W)
    print(f"  ├{'─' * W}┤")
    box_line("  ⌨️  Ctrl+C  停止服务", W)
    print(f"  └{'─' * W}┘")
    print()


def open_browser_delayed(host, port):
    """后台线程：服务就绪后打开浏览器"""
    display_host = "localhost" if host in ("0.0.0.0", "::") else host
    if wait_for_server(display_host, port, timeout=15):
        try:
            webbrowser.open(f"http://{display_host}:{port}")
        except webbrowser.Error:
            pass  # 无图形环境


def start_server(host, port, open_browser=True):
    """启动 FastAPI 服务（阻塞）"""
    print_step(3, "服务启动", f"⏳ 正在启动服务于 {host}:{port}...")

    if not check_port_available(host, port):
        print(f"  ⚠️  端口 {port} 已被占用，尝试端口 {port + 1}...")
        port += 1
        if not check_port_available(host, port):
            print(f"  ❌ 端口 {port} 也被占用，请手动指定: python launcher.py --port <端口号>")
            sys.exit(1)

    if open_browser:
        threading.Thread(target=open_browser_delayed, args=(host, port), daemon=True).start()

    print_tips(host, port)

    import uvicorn
    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=False,
        log_level="info",
        app_dir=str(SRC_DIR),
    )


# ============================================================
# 主流程
# ============================================================

def main():
    parser = argparse.ArgumentParser(
        description="Weave 预览 · 一键启动脚本",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--check", action="store_true", help="仅运行自检与试渲染，不启动服务")
    parser.add_argument("--port", type=int, default=None, help="指定服务端口（默认 8400）")
    parser.add_argument("--host", type=str, default=None, help="指定绑定地址（默认 0.0.0.0）")
    parser.add_argument("--no-browser", action="store_true", help="启动后不自动打开浏览器")
    args = parser.parse_args()

    print_banner()

    import config
    host = args.host or config.DEV_HOST
    port = args.port or config.DEV_PORT

    index = check_workspace(config)
    if index is not None:
        dry_render(index, config)

    if args.check:
        print()
        config.print_config()
        print("\n  ✅ 自检完成。使用 `python launcher.py` 启动服务。")
        sys.exit(0 if index is not None else 1)

    start_server(host, port, open_browser=not args.no_browser)


if __name__ == "__main__":
    main()
