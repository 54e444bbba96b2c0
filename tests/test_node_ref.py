"""Tests for core.node_ref reference parsing."""

import dataclasses

import pytest

from core.node_ref import DisplayMode, NodeRef, is_node_href, parse_node_ref


class TestParseNodeRef:
    """Tests for parse_node_ref()."""

    def test_plain_id(self):
        ref = parse_node_ref("node:intro")
        assert ref == NodeRef(target_id="intro")
        assert ref.display_mode is None
        assert ref.display is DisplayMode.INLINE

    @pytest.mark.parametrize("mode", [m.value for m in DisplayMode])
    def test_every_known_display_mode(self, mode):
        ref = parse_node_ref(f"node:a?display={mode}")
        assert ref.display_mode is DisplayMode(mode)
        assert ref.unknown_params == {}

    def test_unknown_display_moves_to_unknown_params(self):
        ref = parse_node_ref("node:a?display=popup")
        assert ref.display_mode is None
        assert ref.display is DisplayMode.INLINE
        assert ref.unknown_params == {"display": "popup"}

    def test_export_hint_copied_verbatim(self):
        ref = parse_node_ref("node:a?export=Appendix-Later")
        assert ref.export_hint == "Appendix-Later"

    def test_other_keys_are_preserved(self):
        ref = parse_node_ref("node:a?display=footnote&export=omit&color=red&x=")
        assert ref.display_mode is DisplayMode.FOOTNOTE
        assert ref.export_hint == "omit"
        assert ref.unknown_params == {"color": "red", "x": ""}

    def test_duplicate_display_keeps_last_valid_value(self):
        ref = parse_node_ref("node:a?display=footnote&display=bogus&display=panel")
        assert ref.display_mode is DisplayMode.PANEL
        assert ref.unknown_params == {"display": "bogus"}

    def test_percent_encoded_id_is_decoded(self):
        ref = parse_node_ref("node:%E5%BC%95%E8%A8%80")
        assert ref.target_id == "引言"

    def test_id_is_stripped(self):
        assert parse_node_ref("node:  intro ").target_id == "intro"

    @pytest.mark.parametrize("href", [
        "intro",
        "http://example.com",
        "node:",
        "node:?display=inline",
        "node:%20",
        "",
        None,
    ])
    def test_missing_prefix_or_id_returns_none(self, href):
        assert parse_node_ref(href) is None

    def test_broken_query_never_raises(self):
        ref = parse_node_ref("node:a?%%&=&&display")
        assert ref is not None
        assert ref.target_id == "a"
        assert ref.display_mode is None

    def test_reference_is_immutable(self):
        ref = parse_node_ref("node:a")
        with pytest.raises(dataclasses.FrozenInstanceError):
            ref.target_id = "b"


class TestHelpers:
    """Tests for small helpers around the reference syntax."""

    def test_is_node_href(self):
        assert is_node_href("node:a")
        assert not is_node_href("nodes:a")
        assert not is_node_href(None)

    def test_display_mode_parse(self):
        assert DisplayMode.parse("stretch") is DisplayMode.STRETCH
        assert DisplayMode.parse("STRETCH") is None
        assert DisplayMode.parse("") is None
