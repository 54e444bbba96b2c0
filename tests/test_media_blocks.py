"""Tests for core.media_blocks (fenced media blocks and inline syntax)."""

from markdown_it import MarkdownIt

import pytest

from core.media_blocks import parse_yaml_block, render_inline_sub
from core.weave_renderer import create_markdown, render


def md_render(source):
    return create_markdown().render(source)


class TestFencedBlocks:
    """```math / image / gallery / audio / video / embed / pre."""

    def test_math_block_keeps_escaped_tex(self):
        html = md_render("```math\na < b\n```\n")
        assert '<div class="weave-math weave-math-block" data-weave="1">' in html
        assert "a &lt; b" in html

    def test_image_block(self):
        html = md_render("```image\nfile: pic.png\nalt: A pic\ncaption: Look\nwidth: 300\n```\n")
        assert '<figure class="weave-media weave-image" data-weave="1">' in html
        assert '<img src="pic.png" alt="A pic" width="300" />' in html
        assert "<figcaption>Look</figcaption>" in html

    def test_image_without_file_is_an_error_block(self):
        html = md_render("```image\nalt: nothing\n```\n")
        assert "weave-image weave-error" in html

    def test_invalid_yaml_degrades_to_error_block(self):
        html = md_render("```image\nfile: [unclosed\n```\n")
        assert "weave-image weave-error" in html

    def test_gallery_accepts_strings_and_mappings(self):
        html = md_render("```gallery\nfiles:\n  - a.png\n  - file: b.png\n    alt: Bee\n```\n")
        assert '<img src="a.png" alt="" />' in html
        assert '<img src="b.png" alt="Bee" />' in html

    def test_audio_and_video(self):
        assert '<audio controls src="a.mp3">' in md_render("```audio\nfile: a.mp3\n```\n")
        assert '<video controls width="640" src="v.mp4">' in md_render(
            "```video\nfile: v.mp4\nwidth: 640\n```\n"
        )

    def test_youtube_embed_renders_thumbnail(self):
        html = md_render("```embed\nurl: https://youtu.be/abc_123\n```\n")
        assert 'data-video-id="abc_123"' in html
        assert "https://img.youtube.com/vi/abc_123/maxresdefault.jpg" in html
        assert "weave-embed-play-button" in html

    def test_other_embed_renders_link(self):
        html = md_render("```embed\nurl: https://example.com/x\n```\n")
        assert 'class="weave-embed-link weave-embed-external"' in html

    def test_pre_block_is_escaped(self):
        html = md_render("```pre\n<tag>\n```\n")
        assert '<pre class="weave-pre" data-weave="1">&lt;tag&gt;\n</pre>' in html

    def test_regular_fences_are_untouched(self):
        source = "```python\nx = 1\n```\n"
        assert md_render(source) == MarkdownIt("commonmark").render(source)

    def test_broken_block_is_isolated(self, monkeypatch):
        from core import media_blocks

        def explode(content):
            raise RuntimeError("boom")

        monkeypatch.setitem(media_blocks.MEDIA_BLOCKS, "audio", explode)
        html = md_render("before\n\n```audio\nfile: a.mp3\n```\n\nafter\n")
        assert "weave-audio weave-error" in html
        assert "<p>before</p>" in html
        assert "<p>after</p>" in html


class TestInlineSyntax:
    """:math[...] and :sub[initial]{replacement}."""

    def test_inline_math(self):
        html = md_render("Energy :math[E = mc^2] here")
        assert '<span class="weave-math weave-math-inline" data-weave="1">\\(E = mc^2\\)</span>' in html
        assert html.startswith("<p>Energy ")

    def test_sub(self):
        html = md_render("click :sub[here]{there} now")
        assert 'data-sub-id="weave-sub-1"' in html
        assert '<span class="weave-sub-content weave-sub-initial">here</span>' in html
        assert "there" in html

    def test_nested_sub(self):
        html = render_inline_sub(":sub[a]{b :sub[c]{d}}", {})
        assert html.count('class="weave-sub weave-sub-inline"') == 2
        assert 'data-sub-id="weave-sub-1"' in html
        assert 'data-sub-id="weave-sub-2"' in html

    def test_unterminated_sub_is_plain_text(self):
        assert render_inline_sub(":sub[a]{b", {}) == ":sub[a]{b"

    def test_surrounding_text_is_escaped(self):
        html = render_inline_sub("x & y :sub[a]{b}", {})
        assert html.startswith("x &amp; y ")

    def test_sub_ids_are_numbered_per_render(self, make_lookup):
        lookup = make_lookup(a=":sub[p]{q}")
        source = ":sub[x]{y} [a](node:a?display=stretch)"
        first = render(source, lookup)
        assert 'data-sub-id="weave-sub-1"' in first
        assert 'data-sub-id="weave-sub-2"' in first
        assert render(source, lookup) == first


class TestYaml:
    """YAML bodies of media blocks."""

    @pytest.mark.parametrize("content, expected", [
        ("file: a.png", {"file": "a.png"}),
        ("- just\n- a list", {}),
        ("", {}),
        ("key: [broken", {}),
    ])
    def test_parse_yaml_block(self, content, expected):
        assert parse_yaml_block(content) == expected
