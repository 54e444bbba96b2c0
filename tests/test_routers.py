"""Tests for the preview HTTP surface (routers.preview, routers.render)."""

import pytest
from fastapi.testclient import TestClient

import config
from core.render_context import ExpansionConfig
from core.section_index import Section, SectionIndex
from main import app


@pytest.fixture
def client():
    """TestClient over an in-memory index; startup events are not run."""
    saved = (app.state.index, app.state.expansion_config)
    app.state.index = SectionIndex.from_sections([
        Section(id="main", title="Root", raw_body="Start [intro](node:intro)"),
        Section(id="intro", title="Intro", raw_body="Hello", peek="greeting"),
    ])
    app.state.expansion_config = ExpansionConfig()
    yield TestClient(app)
    app.state.index, app.state.expansion_config = saved


class TestPages:
    """HTML pages and fragments."""

    def test_index_lists_sections(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert "/preview/intro" in resp.text
        assert "greeting" in resp.text

    def test_preview_page_expands_references(self, client):
        resp = client.get("/preview/main")
        assert resp.status_code == 200
        assert 'class="weave-inline-trigger"' in resp.text
        assert 'data-target="intro"' in resp.text

    def test_preview_unknown_section(self, client):
        resp = client.get("/preview/nope")
        assert resp.status_code == 404

    def test_content_fragment(self, client):
        resp = client.get("/api/content/main")
        assert resp.status_code == 200
        assert "<html" not in resp.text
        assert '<template class="weave-inline-content-template" data-for="intro">' in resp.text

    def test_content_unknown_section(self, client):
        assert client.get("/api/content/nope").status_code == 404

    def test_preview_enhancements_can_be_disabled(self, client, monkeypatch):
        monkeypatch.setattr(config, "ENABLE_PREVIEW_ENHANCEMENTS", False)
        resp = client.get("/api/content/main")
        assert '<a href="node:intro">intro</a>' in resp.text
        assert "weave-inline-trigger" not in resp.text


class TestRenderApi:
    """POST /api/render."""

    def test_render_source(self, client):
        resp = client.post("/api/render", json={"source": "[i](node:intro?display=panel)"})
        assert resp.status_code == 200
        assert 'class="weave-panel-trigger"' in resp.json()["html"]

    def test_budget_override(self, client):
        resp = client.post("/api/render", json={
            "source": "[i](node:intro)",
            "max_references_per_document": 0,
        })
        assert "weave-ref-limit" in resp.json()["html"]

    def test_invalid_budget_is_rejected(self, client):
        resp = client.post("/api/render", json={"source": "x", "max_depth": -1})
        assert resp.status_code == 422

    def test_missing_source_is_rejected(self, client):
        assert client.post("/api/render", json={}).status_code == 422


class TestReload:
    """POST /api/index/reload."""

    def test_in_memory_index_cannot_reload(self, client):
        assert client.post("/api/index/reload").status_code == 503

    def test_reload_from_disk(self, client, tmp_path):
        (tmp_path / "main.md").write_text("Root", encoding="utf-8")
        app.state.index = SectionIndex(tmp_path)
        (tmp_path / "sections").mkdir()
        (tmp_path / "sections" / "x.md").write_text("---\nid: x\n---\nX", encoding="utf-8")

        resp = client.post("/api/index/reload")
        assert resp.status_code == 200
        assert resp.json() == {"sections": 2, "duplicates": {}}
