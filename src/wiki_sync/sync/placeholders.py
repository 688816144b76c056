"""Restricted blocks and their placeholders.

A restricted block is an element inside page HTML::

    <div data-block-type="restricted" data-usergroups='["gm"]'
         data-editgroups='["gm"]' data-title="Secret"
         class="restricted-block-html">...</div>

Editors without edit access receive a placeholder instead, carrying the
block's attributes and its serialized inner HTML in
``data-original-*`` attributes. ``resolve_placeholders_for_save`` turns
every placeholder back into the original block and must run on all
content before it reaches the store, whoever is saving.
"""

from __future__ import annotations

import html as html_text
import json
import logging
import re
import uuid

from lxml import html
from lxml.html import HtmlElement

logger = logging.getLogger(__name__)

_PLACEHOLDER_MARKER = re.compile(
    r"""data-block-type\s*=\s*["']restricted-placeholder["']"""
)
_RESTRICTED_MARKER = re.compile(
    r"""data-block-type\s*=\s*["']restricted["']"""
)

DEFAULT_TITLE = "Restricted Block"


def _parse_fragment(content: str) -> HtmlElement:
    """Parse an HTML fragment into a wrapper ``<div>``."""
    return html.fragment_fromstring(content, create_parent="div")


def _inner_html(element: HtmlElement) -> str:
    parts = [html_text.escape(element.text or "", quote=False)]
    for child in element:
        parts.append(html.tostring(child, encoding="unicode"))
    return "".join(parts)


def _set_inner_html(element: HtmlElement, content: str) -> None:
    if not content:
        return
    fragment = _parse_fragment(content)
    element.text = fragment.text
    for child in list(fragment):
        element.append(child)


def _replace(old: HtmlElement, new: HtmlElement) -> None:
    new.tail = old.tail
    old.getparent().replace(old, new)


def has_placeholders(content: str) -> bool:
    return bool(content) and bool(_PLACEHOLDER_MARKER.search(content))


def resolve_placeholders_for_save(content: str) -> str:
    """Restore every placeholder in *content* to its restricted block.

    Content without placeholders is returned unchanged (byte-identical).
    """
    if not has_placeholders(content):
        return content

    root = _parse_fragment(content)
    placeholders = root.xpath(
        '//*[@data-block-type="restricted-placeholder"]'
    )

    for placeholder in placeholders:
        block = html.Element("div")
        block.set("data-block-type", "restricted")
        block.set(
            "data-usergroups",
            placeholder.get("data-original-usergroups") or "[]",
        )
        block.set(
            "data-editgroups",
            placeholder.get("data-original-editgroups") or "[]",
        )
        block.set(
            "data-title",
            placeholder.get("data-original-title") or DEFAULT_TITLE,
        )
        block.set("class", "restricted-block-html")
        _set_inner_html(block, placeholder.get("data-original-content") or "")
        _replace(placeholder, block)

    logger.debug("Restored %d restricted block placeholder(s)", len(placeholders))
    return _inner_html(root)


def _parse_groups(raw: str | None) -> list[str]:
    try:
        groups = json.loads(raw or "[]")
    except json.JSONDecodeError:
        logger.warning("Invalid group list in restricted block: %r", raw)
        return []
    if not isinstance(groups, list):
        return []
    return [str(g) for g in groups]


def create_placeholders(
    content: str, groups: list[str], username: str | None = None
) -> str:
    """Replace blocks the editor may not edit with placeholders.

    A block with an empty edit-group list is editable by any named
    editor; only an anonymous editor gets a placeholder for it.

    Args:
        content: Stored page HTML.
        groups: Groups of the editing user.
        username: Username of the editing user.

    Returns:
        Content safe to hand to the editor.
    """
    if not content or not _RESTRICTED_MARKER.search(content):
        return content

    root = _parse_fragment(content)
    blocks = root.xpath('//*[@data-block-type="restricted"]')
    replaced = 0

    for block in blocks:
        edit_groups = _parse_groups(block.get("data-editgroups"))
        if not edit_groups and username:
            edit_groups = [username]
        allowed = set(groups)
        if username:
            allowed.add(username)
        if allowed.intersection(edit_groups):
            continue

        placeholder = html.Element("div")
        placeholder.set("data-block-type", "restricted-placeholder")
        placeholder.set("data-block-id", f"placeholder-{uuid.uuid4().hex}")
        placeholder.set(
            "data-original-usergroups", block.get("data-usergroups") or "[]"
        )
        placeholder.set(
            "data-original-editgroups", block.get("data-editgroups") or "[]"
        )
        placeholder.set(
            "data-original-title", block.get("data-title") or DEFAULT_TITLE
        )
        placeholder.set("data-original-content", _inner_html(block))
        placeholder.set("data-allowed-groups", json.dumps(edit_groups))
        placeholder.set("class", "restricted-block-placeholder-html")
        _replace(block, placeholder)
        replaced += 1

    if not replaced:
        return content
    return _inner_html(root)
