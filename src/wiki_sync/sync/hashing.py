"""Content hashing used by smart sync to detect real changes.

The hash covers everything that makes a version distinct for a reader:
title, content, path and both group lists (order-insensitive). Content is
normalised first so that files which passed through git (line-ending
conversion, editors trimming whitespace) hash identically.
"""

from __future__ import annotations

import hashlib
import json
from typing import Iterable


def normalise_content(content: str) -> str:
    """Normalise *content* before hashing.

    Normalisation steps (applied in order):

    1. Strip BOM (``\\ufeff``).
    2. Replace ``\\r\\n`` with ``\\n``.
    3. Right-strip each line.
    4. Strip trailing empty lines.
    """
    text = content.lstrip("\ufeff")
    text = text.replace("\r\n", "\n")
    lines = [line.rstrip() for line in text.split("\n")]
    while lines and lines[-1] == "":
        lines.pop()
    return "\n".join(lines)


def page_hash(
    title: str,
    content: str,
    path: str,
    edit_groups: Iterable[str] = (),
    view_groups: Iterable[str] = (),
) -> str:
    """SHA-256 hex digest of a page/version snapshot."""
    payload = json.dumps(
        {
            "title": title,
            "content": normalise_content(content),
            "path": path,
            "edit_groups": sorted(edit_groups),
            "view_groups": sorted(view_groups),
        },
        sort_keys=True,
        ensure_ascii=False,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def record_hash(record) -> str:
    """Hash a ``Page`` or ``PageVersion`` record."""
    return page_hash(
        record.title,
        record.content,
        record.path,
        record.edit_groups,
        record.view_groups,
    )
