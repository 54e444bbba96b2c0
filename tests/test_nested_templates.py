"""Tests for core.nested_templates."""

from core.display import render_nested_marker
from core.nested_templates import generate_templates, template_class_for
from core.node_ref import DisplayMode


def marker(target, display=DisplayMode.INLINE):
    return render_nested_marker(target, target, display)


class TestGenerateTemplates:
    """Scanning rendered fragments for deferred nested triggers."""

    def test_fragment_without_markers(self, make_context, make_lookup):
        ctx = make_context(make_lookup(b="B"))
        assert generate_templates("<p>nothing here</p>", 1, ctx) == ""
        assert generate_templates("", 1, ctx) == ""

    def test_marker_gets_template_with_body(self, make_context, make_lookup):
        ctx = make_context(make_lookup(b="Bee body"))
        html = generate_templates(f"<p>see {marker('b')}</p>", 1, ctx)
        assert html == (
            '<template class="weave-inline-content-template" data-for="b">'
            "<p>Bee body</p>\n</template>"
        )

    def test_leading_text_fragment(self, make_context, make_lookup):
        ctx = make_context(make_lookup(b="Bee"))
        html = generate_templates(f"text first {marker('b')}", 1, ctx)
        assert 'data-for="b"' in html

    def test_duplicate_markers_produce_one_template(self, make_context, make_lookup):
        ctx = make_context(make_lookup(b="Bee"))
        html = generate_templates(f"<p>{marker('b')} {marker('b')}</p>", 1, ctx)
        assert html.count("<template") == 1

    def test_existing_template_is_not_duplicated(self, make_context, make_lookup):
        ctx = make_context(make_lookup(b="Bee"))
        fragment = (
            f"<p>{marker('b')}</p>"
            '<template class="weave-inline-content-template" data-for="b"><p>Bee</p></template>'
        )
        assert generate_templates(fragment, 1, ctx) == ""

    def test_active_and_missing_targets_are_skipped(self, make_context, make_lookup):
        ctx = make_context(make_lookup(a="A", b="B"))
        fragment = f"<p>{marker('a')} {marker('ghost')} {marker('b')}</p>"
        with ctx.expanding("a", "weave-ref-1"):
            html = generate_templates(fragment, 1, ctx)
        assert 'data-for="a"' not in html
        assert 'data-for="ghost"' not in html
        assert 'data-for="b"' in html

    def test_depth_beyond_limit_generates_nothing(self, make_context, make_lookup):
        ctx = make_context(make_lookup(b="B"), max_depth=2)
        assert generate_templates(marker("b"), 3, ctx) == ""
        assert generate_templates(marker("b"), 2, ctx) != ""

    def test_recurses_into_nested_content(self, make_context, make_lookup):
        ctx = make_context(make_lookup(b="to [c](node:c)", c="Sea body"))
        html = generate_templates(marker("b"), 1, ctx)
        assert 'data-for="b"' in html
        assert 'data-for="c"' in html
        assert html.index('data-for="b"') < html.index('data-for="c"')
        assert ctx.active == {}

    def test_recursion_stops_at_max_depth(self, make_context, make_lookup):
        ctx = make_context(make_lookup(b="to [c](node:c)", c="Sea"), max_depth=1)
        html = generate_templates(marker("b"), 1, ctx)
        assert 'data-for="b"' in html
        assert 'data-for="c"' not in html

    def test_does_not_consume_document_budget(self, make_context, make_lookup):
        ctx = make_context(make_lookup(b="B"))
        generate_templates(marker("b"), 1, ctx)
        assert ctx.expanded_count == 0


class TestTemplateClass:
    """Template class follows the marker's display mode."""

    def test_own_template_classes(self):
        assert template_class_for("inline") == "weave-inline-content-template"
        assert template_class_for("stretch") == "weave-stretch-content-template"
        assert template_class_for("panel") == "weave-panel-content-template"

    def test_everything_else_uses_overlay(self):
        for value in ("overlay", "footnote", "sidenote", "margin", "", "bogus"):
            assert template_class_for(value) == "weave-overlay-content-template"
