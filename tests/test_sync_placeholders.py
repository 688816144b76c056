"""Tests for restricted block placeholders."""

from __future__ import annotations

import json

from lxml import html

from wiki_sync.sync.placeholders import (
    create_placeholders,
    has_placeholders,
    resolve_placeholders_for_save,
)

RESTRICTED = (
    "<p>Public intro</p>"
    "<div data-block-type=\"restricted\" data-usergroups='[\"gm\"]' "
    "data-editgroups='[\"gm\"]' data-title=\"GM notes\" "
    'class="restricted-block-html"><p>The butler did it.</p></div>'
    "<p>Outro</p>"
)


def _blocks(content, block_type):
    root = html.fragment_fromstring(content, create_parent="div")
    return root.xpath(f'//*[@data-block-type="{block_type}"]')


class TestCreatePlaceholders:
    def test_editor_in_group_sees_block(self):
        assert create_placeholders(RESTRICTED, ["gm"], "alice") == RESTRICTED

    def test_other_editor_gets_placeholder(self):
        content = create_placeholders(RESTRICTED, ["players"], "bob")

        placeholders = _blocks(content, "restricted-placeholder")
        assert len(placeholders) == 1
        ph = placeholders[0]
        assert ph.get("data-block-id").startswith("placeholder-")
        assert ph.get("data-original-title") == "GM notes"
        assert json.loads(ph.get("data-original-editgroups")) == ["gm"]
        assert json.loads(ph.get("data-allowed-groups")) == ["gm"]
        assert ph.get("data-original-content") == "<p>The butler did it.</p>"
        assert ph.text is None and len(ph) == 0
        assert "<p>Public intro</p>" in content
        assert "<p>Outro</p>" in content

    def test_empty_edit_groups_editable_by_any_named_editor(self):
        content = (
            '<div data-block-type="restricted" data-editgroups="[]">'
            "mine</div>"
        )
        assert create_placeholders(content, [], "alice") == content
        assert create_placeholders(content, [], "bob") == content

    def test_empty_edit_groups_hidden_from_anonymous_editor(self):
        content = (
            '<div data-block-type="restricted" data-editgroups="[]">'
            "mine</div>"
        )
        hidden = create_placeholders(content, [], None)
        ph = _blocks(hidden, "restricted-placeholder")[0]
        assert json.loads(ph.get("data-allowed-groups")) == []
        assert ph.get("data-original-content") == "mine"

    def test_username_matches_as_group(self):
        content = (
            '<div data-block-type="restricted" data-editgroups=\'["alice"]\'>'
            "x</div>"
        )
        assert create_placeholders(content, [], "alice") == content

    def test_content_without_blocks_unchanged(self):
        assert create_placeholders("<p>x</p>", [], "bob") == "<p>x</p>"
        assert create_placeholders("", [], "bob") == ""


class TestResolvePlaceholders:
    def test_round_trip_restores_block(self):
        hidden = create_placeholders(RESTRICTED, ["players"], "bob")
        restored = resolve_placeholders_for_save(hidden)

        assert not has_placeholders(restored)
        blocks = _blocks(restored, "restricted")
        assert len(blocks) == 1
        block = blocks[0]
        assert json.loads(block.get("data-usergroups")) == ["gm"]
        assert json.loads(block.get("data-editgroups")) == ["gm"]
        assert block.get("data-title") == "GM notes"
        assert block.get("class") == "restricted-block-html"
        assert html.tostring(block[0], encoding="unicode") == (
            "<p>The butler did it.</p>"
        )
        assert restored.startswith("<p>Public intro</p>")
        assert restored.endswith("<p>Outro</p>")

    def test_missing_attributes_get_defaults(self):
        restored = resolve_placeholders_for_save(
            '<div data-block-type="restricted-placeholder"></div>'
        )
        block = _blocks(restored, "restricted")[0]
        assert block.get("data-title") == "Restricted Block"
        assert block.get("data-usergroups") == "[]"
        assert block.get("data-editgroups") == "[]"

    def test_tail_text_kept(self):
        restored = resolve_placeholders_for_save(
            'before <div data-block-type="restricted-placeholder" '
            'data-original-content="x"></div> after'
        )
        assert restored.startswith("before ")
        assert restored.endswith(" after")

    def test_content_without_placeholders_is_byte_identical(self):
        content = "<p>a &amp; b</p>\r\n<img src='x.png'>"
        assert resolve_placeholders_for_save(content) is content

    def test_has_placeholders(self):
        assert has_placeholders(
            "<div data-block-type='restricted-placeholder'></div>"
        )
        assert not has_placeholders(RESTRICTED)
        assert not has_placeholders("")
