"""
Weave 格式插件（markdown-it）

围栏块：
    ```math      TeX 公式（原样转义输出，由前端排版）
    ```image     YAML: file / alt / caption / width
    ```gallery   YAML: files[] / caption
    ```audio     YAML: file / caption
    ```video     YAML: file / caption / width
    ```embed     YAML: url / caption（YouTube 显示缩略图 + 播放按钮）
    ```pre       预格式文本
行内：
    :math[E = mc^2]
    :sub[初始文字]{替换文字}      替换文字中可再嵌套 :sub

每个块单独捕获异常，坏块只替换为 weave-error，不影响整篇文档。
"""

import logging
import re
from html import escape

import yaml
from markdown_it.common.utils import escapeHtml

from core.render_context import ENV_CTX

log = logging.getLogger(__name__)

YOUTUBE_PATTERN = re.compile(
    r"(?:youtube\.com/embed/|youtube\.com/watch\?v=|youtu\.be/)([a-zA-Z0-9_-]+)"
)
INLINE_MATH_PATTERN = re.compile(r":math\[([^\]]+)\]")

ENV_SUB_COUNT = "weave_sub_count"


def parse_yaml_block(content) -> dict:
    """围栏块 YAML；解析失败或不是映射时返回空 dict"""
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        log.debug(f"媒体块 YAML 解析失败: {e}")
        return {}
    return data if isinstance(data, dict) else {}


def _text(value) -> str:
    return "" if value is None else str(value)


def _caption(data):
    caption = _text(data.get("caption"))
    return f"<figcaption>{escape(caption)}</figcaption>" if caption else ""


def _error_block(kind, message):
    return (
        f'<div class="weave-media weave-{kind} weave-error" data-weave="1">'
        f'<span class="weave-error">{escape(message)}</span></div>\n'
    )


# ============================================================
# 围栏块
# ============================================================
def render_math_block(content):
    return (
        f'<div class="weave-math weave-math-block" data-weave="1">'
        f'\\[{escape(content.strip())}\\]</div>\n'
    )


def render_image_block(content):
    data = parse_yaml_block(content)
    file = _text(data.get("file"))
    if not file:
        return _error_block("image", "图片块缺少 file")
    width = f' width="{escape(_text(data["width"]))}"' if data.get("width") else ""
    return (
        f'<figure class="weave-media weave-image" data-weave="1">'
        f'<img src="{escape(file)}" alt="{escape(_text(data.get("alt")))}"{width} />'
        f'{_caption(data)}</figure>\n'
    )


def render_gallery_block(content):
    data = parse_yaml_block(content)
    files = data.get("files")
    if not isinstance(files, list) or not files:
        return _error_block("gallery", "图集块缺少 files")

    images = []
    for item in files:
        if isinstance(item, dict):
            file, alt = _text(item.get("file")), _text(item.get("alt"))
        else:
            file, alt = _text(item), ""
        images.append(f'<img src="{escape(file)}" alt="{escape(alt)}" />')

    return (
        f'<figure class="weave-media weave-gallery" data-weave="1">'
        f'<div class="weave-gallery-grid">{"".join(images)}</div>'
        f'{_caption(data)}</figure>\n'
    )


def render_audio_block(content):
    data = parse_yaml_block(content)
    file = _text(data.get("file"))
    if not file:
        return _error_block("audio", "音频块缺少 file")
    return (
        f'<figure class="weave-media weave-audio" data-weave="1">'
        f'<audio controls src="{escape(file)}"></audio>'
        f'{_caption(data)}</figure>\n'
    )


def render_video_block(content):
    data = parse_yaml_block(content)
    file = _text(data.get("file"))
    if not file:
        return _error_block("video", "视频块缺少 file")
    width = f' width="{escape(_text(data["width"]))}"' if data.get("width") else ""
    return (
        f'<figure class="weave-media weave-video" data-weave="1">'
        f'<video controls{width} src="{escape(file)}"></video>'
        f'{_caption(data)}</figure>\n'
    )


def render_embed_block(content):
    data = parse_yaml_block(content)
    url = _text(data.get("url"))
    if not url:
        return _error_block("embed", "嵌入块缺少 url")

    m = YOUTUBE_PATTERN.search(url)
    if m:
        video_id = m.group(1)
        thumbnail = f"https://img.youtube.com/vi/{video_id}/maxresdefault.jpg"
        embed_url = f"https://www.youtube.com/embed/{video_id}?autoplay=1"
        return (
            f'<figure class="weave-media weave-embed weave-embed-youtube" data-weave="1" '
            f'data-video-id="{escape(video_id)}">'
            f'<div class="weave-embed-container" data-embed-url="{escape(embed_url)}">'
            f'<img src="{escape(thumbnail)}" alt="YouTube 视频缩略图" class="weave-embed-thumbnail" />'
            f'<button class="weave-embed-play-button" type="button" aria-label="播放">▶</button>'
            f'</div>{_caption(data)}</figure>\n'
        )

    return (
        f'<figure class="weave-media weave-embed" data-weave="1">'
        f'<a href="{escape(url)}" class="weave-embed-link weave-embed-external" title="在浏览器中打开">'
        f'<span class="weave-embed-url">{escape(url)}</span></a>'
        f'{_caption(data)}</figure>\n'
    )


def render_pre_block(content):
    return f'<pre class="weave-pre" data-weave="1">{escape(content)}</pre>\n'


MEDIA_BLOCKS = {
    "math": render_math_block,
    "image": render_image_block,
    "gallery": render_gallery_block,
    "audio": render_audio_block,
    "video": render_video_block,
    "embed": render_embed_block,
    "pre": render_pre_block,
}


# ============================================================
# 行内语法
# ============================================================
def _parse_sub_at(text, start):
    """
    解析 start 处的 :sub[初始]{替换}。
    返回 (initial, replacement, end)；不匹配时返回 None。
    """
    if not text.startswith(":sub[", start):
        return None

    pos = start + 5
    depth = 0
    while pos < len(text):
        ch = text[pos]
        if ch == "]" and depth == 0:
            break
        if ch == "{":
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
        pos += 1
    if pos >= len(text):
        return None
    initial = text[start + 5:pos]

    pos += 1
    if pos >= len(text) or text[pos] != "{":
        return None
    pos += 1

    body_start = pos
    depth = 1
    while pos < len(text) and depth > 0:
        if text[pos] == "{":
            depth += 1
        elif text[pos] == "}":
            depth -= 1
        pos += 1
    if depth != 0:
        return None

    return initial, text[body_start:pos - 1], pos


def _next_sub_id(env):
    ctx = env.get(ENV_CTX) if env is not None else None
    if ctx is not None:
        return ctx.next_sub_id()
    if env is None:
        env = {}
    env[ENV_SUB_COUNT] = env.get(ENV_SUB_COUNT, 0) + 1
    return f"weave-sub-{env[ENV_SUB_COUNT]}"


def render_inline_math(tex):
    return f'<span class="weave-math weave-math-inline" data-weave="1">\\({escape(tex.strip())}\\)</span>'


def render_inline_sub(text, env) -> str:
    """处理 :sub 与 :math，其余文字按 markdown-it 默认规则转义"""
    out = []
    plain = []
    pos = 0

    def flush_plain():
        if plain:
            out.append(_render_math_in("".join(plain)))
            plain.clear()

    while pos < len(text):
        parsed = _parse_sub_at(text, pos)
        if parsed is None:
            plain.append(text[pos])
            pos += 1
            continue

        flush_plain()
        initial, replacement, pos = parsed
        sub_id = _next_sub_id(env)
        if ":sub[" in replacement or ":math[" in replacement:
            replacement_html = render_inline_sub(replacement, env)
        else:
            replacement_html = escapeHtml(replacement)
        out.append(
            f'<span class="weave-sub weave-sub-inline" data-weave="1" data-sub-id="{sub_id}" '
            f'data-initial="{escape(initial)}" data-replacement="{escape(replacement)}">'
            f'<span class="weave-sub-content weave-sub-initial">{escapeHtml(initial)}</span>'
            f'<span class="weave-sub-content weave-sub-replacement" hidden>{replacement_html}</span>'
            f'</span>'
        )

    flush_plain()
    return "".join(out)


def _render_math_in(text):
    """:math[...] 之外的文字按默认规则转义"""
    out = []
    last = 0
    for m in INLINE_MATH_PATTERN.finditer(text):
        out.append(escapeHtml(text[last:m.start()]))
        out.append(render_inline_math(m.group(1)))
        last = m.end()
    out.append(escapeHtml(text[last:]))
    return "".join(out)


# ============================================================
# 插件入口
# ============================================================
def weave_format_plugin(md):
    """为 markdown-it 安装媒体围栏块与行内语法"""
    default_fence = md.renderer.rules.get("fence")

    def fence(self, tokens, idx, options, env):
        token = tokens[idx]
        info = token.info.strip().split()[0].lower() if token.info.strip() else ""
        handler = MEDIA_BLOCKS.get(info)
        if handler is None:
            return default_fence(tokens, idx, options, env)
        try:
            return handler(token.content)
        except Exception as e:
            log.error(f"媒体块渲染失败 [{info}]: {e}")
            return _error_block(info, f"{info} 块渲染失败")

    def text(self, tokens, idx, options, env):
        content = tokens[idx].content
        if ":sub[" not in content and ":math[" not in content:
            return escapeHtml(content)
        try:
            return render_inline_sub(content, env)
        except Exception as e:
            log.error(f"行内语法渲染失败: {e}")
            return escapeHtml(content)

    md.add_render_rule("fence", fence)
    md.add_render_rule("text", text)
    return md
