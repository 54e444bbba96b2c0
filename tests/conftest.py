"""Pytest fixtures shared by the Weave test suite."""

import pytest

from core.render_context import ExpansionConfig, RenderContext
from core.section_index import Section
from core.weave_renderer import WeaveRenderer


def _section(section_id, body, title=None):
    return Section(id=section_id, title=title, raw_body=body, full_source=body)


@pytest.fixture
def make_section():
    """Factory: make_section(id, body, title=None) -> Section."""
    return _section


@pytest.fixture
def make_lookup():
    """Factory: make_lookup(a="body of a", ...) -> {id: Section}."""
    def build(**bodies):
        return {sid: _section(sid, body, title=sid.upper()) for sid, body in bodies.items()}
    return build


@pytest.fixture
def make_context():
    """Factory for a RenderContext wired to a real WeaveRenderer body renderer."""
    def build(lookup, **config):
        expansion_config = ExpansionConfig(**config)
        renderer = WeaveRenderer(lookup, expansion_config)
        return RenderContext(
            config=expansion_config,
            lookup=renderer.lookup,
            body_renderer=renderer.render_section_body,
        )
    return build
