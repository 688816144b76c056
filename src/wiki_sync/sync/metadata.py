"""Metadata header codec for exported page and version files.

File layout::

    <!--
    title: Getting Started
    path: /guides/intro
    published: true
    date: 2026-03-01T10:00:00+00:00
    edit_groups: admin, editors
    -->

    <p>HTML content...</p>

Keys are written in a fixed order; keys whose value is absent (``None``,
empty list, ``False`` for ``is_draft``) are omitted. Decoding is lenient:
unknown keys are ignored and missing keys take their defaults. Free-text
values (title, editor, change summary) keep their edge whitespace; all
others are trimmed. A document without a header decodes to
``(None, document)``.
"""

from __future__ import annotations

import logging
import re

from .models import PageMetadata

logger = logging.getLogger(__name__)

KEY_ORDER = (
    "title",
    "path",
    "published",
    "date",
    "created",
    "edit_groups",
    "view_groups",
    "version",
    "edited_by",
    "change_summary",
    "is_draft",
)

_LIST_KEYS = {"edit_groups", "view_groups"}
_BOOL_KEYS = {"published", "is_draft"}
_TEXT_KEYS = {"title", "edited_by", "change_summary"}

_HEADER_PATTERN = re.compile(
    r"\A<!--[ \t]*\r?\n(.*?)\r?\n-->[ \t]*\r?\n\r?\n(.*)\Z",
    re.DOTALL,
)


def _single_line(value: str) -> str:
    """Header values live on one line."""
    return " ".join(value.splitlines())


def encode_metadata(metadata: PageMetadata) -> str:
    """Render *metadata* as a header block (including the blank line)."""
    lines: list[str] = []
    for key in KEY_ORDER:
        value = getattr(metadata, key)
        if key in _LIST_KEYS:
            if not value:
                continue
            text = ", ".join(value)
        elif key == "is_draft":
            if not value:
                continue
            text = "true"
        elif key == "published":
            text = "true" if value else "false"
        elif value is None:
            continue
        else:
            text = str(value)
        lines.append(f"{key}: {_single_line(text)}")

    body = "\n".join(lines)
    return f"<!--\n{body}\n-->\n\n"


def encode_document(metadata: PageMetadata, content: str) -> str:
    """Prefix *content* with the encoded header."""
    return encode_metadata(metadata) + content


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def decode_document(text: str) -> tuple[PageMetadata | None, str]:
    """Split a document into its metadata header and HTML content.

    Returns:
        ``(metadata, content)``; ``metadata`` is ``None`` when the document
        has no header, in which case ``content`` is the whole input.
    """
    match = _HEADER_PATTERN.match(text.lstrip("\ufeff"))
    if not match:
        return None, text

    header, content = match.group(1), match.group(2)
    fields: dict = {}

    for line in header.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key = key.strip()
        if key in _TEXT_KEYS:
            value = value.removeprefix(" ")
        else:
            value = value.strip()

        if key in _LIST_KEYS:
            fields[key] = _split_list(value)
        elif key in _BOOL_KEYS:
            fields[key] = value.lower() == "true"
        elif key == "version":
            try:
                fields[key] = int(value)
            except ValueError:
                logger.warning("Ignoring non-numeric version: %r", value)
        elif key in KEY_ORDER:
            fields[key] = value
        # Unknown keys are ignored

    return PageMetadata(**fields), content
