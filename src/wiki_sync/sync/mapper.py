"""Path mapper between logical page paths and the export tree.

Export layout::

    <root>/guides/Getting-Started.html              page /guides/intro
    <root>/guides/versions/Getting-Started-v3.html  version 3 of it
    <root>/images/logo.png                          image payload
    <root>/images/logo.png.meta                     image sidecar

Mapping rules:

1. **Directory chain** -- all path segments but the last become
   directories.
2. **Filename** -- the last segment is replaced by the sanitized page
   title plus ``.html``.
3. **Versions** -- stored in a ``versions/`` subdirectory with a ``-vN``
   suffix.
4. **Reverse** -- ``derive_page_path`` rebuilds a path from a file's
   position. It is lossy (titles replaced the last segment); metadata
   paths always win when present.
"""

from __future__ import annotations

import fnmatch
import re
from pathlib import Path, PurePosixPath

PAGE_EXTENSION = ".html"
VERSIONS_DIR = "versions"
IMAGES_DIR = "images"
META_SUFFIX = ".meta"
MANIFEST_NAME = "export-manifest.json"

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_WHITESPACE = re.compile(r"\s+")
_DASH_RUNS = re.compile(r"-+")
_VERSION_SUFFIX = re.compile(r"-v\d+$")


def sanitize_filename(title: str) -> str:
    """Turn a page title into a filename that is valid on every platform.

    Unsafe characters and whitespace runs become a single dash; repeated
    dashes collapse and leading/trailing dashes are dropped. An empty
    result falls back to ``untitled``.
    """
    name = _UNSAFE_CHARS.sub("-", title.strip())
    name = _WHITESPACE.sub("-", name)
    name = _DASH_RUNS.sub("-", name)
    # Trailing dots/spaces are not allowed on Windows
    name = name.strip("-").rstrip(". ")
    return name or "untitled"


def split_page_path(page_path: str) -> list[str]:
    """Return the non-empty segments of a logical page path."""
    return [segment for segment in page_path.split("/") if segment]


class PathMapper:
    """Map pages and versions to files below an export root, and back.

    Args:
        root: Root directory of the export tree.
        exclude: Glob patterns matched against logical page paths.
    """

    def __init__(self, root: Path, exclude: list[str] | None = None) -> None:
        self.root = root
        self.exclude = list(exclude or [])

    # ------------------------------------------------------------------
    # Page -> file
    # ------------------------------------------------------------------

    def page_dir(self, page_path: str) -> Path:
        """Directory holding the file for *page_path*."""
        segments = split_page_path(page_path)
        return self.root.joinpath(*segments[:-1])

    def page_file(self, page_path: str, title: str) -> Path:
        """File that holds the latest content of a page."""
        return self.page_dir(page_path) / (
            sanitize_filename(title) + PAGE_EXTENSION
        )

    def version_file(self, page_path: str, title: str, version: int) -> Path:
        """File that holds one version of a page."""
        name = f"{sanitize_filename(title)}-v{version}{PAGE_EXTENSION}"
        return self.page_dir(page_path) / VERSIONS_DIR / name

    def image_file(self, filename: str) -> Path:
        return self.root / IMAGES_DIR / filename

    def image_meta_file(self, filename: str) -> Path:
        return self.root / IMAGES_DIR / (filename + META_SUFFIX)

    def manifest_file(self) -> Path:
        return self.root / MANIFEST_NAME

    # ------------------------------------------------------------------
    # File -> page (best-effort reverse)
    # ------------------------------------------------------------------

    def derive_page_path(self, file_path: Path) -> str:
        """Rebuild a logical path from a file's position in the tree.

        The ``versions`` segment and any ``-vN`` suffix are dropped. The
        last segment is the sanitized title, not the original segment, so
        this is only a fallback for files without a ``path`` header.
        """
        rel = PurePosixPath(file_path.relative_to(self.root).as_posix())
        parts = [p for p in rel.parts if p != VERSIONS_DIR]
        last = parts[-1]
        if last.endswith(PAGE_EXTENSION):
            last = last[: -len(PAGE_EXTENSION)]
            last = _VERSION_SUFFIX.sub("", last)
        parts[-1] = last
        return "/" + "/".join(parts)

    def is_version_file(self, file_path: Path) -> bool:
        """True when *file_path* sits inside a ``versions`` directory."""
        rel = file_path.relative_to(self.root)
        return VERSIONS_DIR in rel.parts[:-1]

    def is_excluded(self, page_path: str) -> bool:
        return any(
            fnmatch.fnmatch(page_path, pattern) for pattern in self.exclude
        )

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def discover_content_files(self) -> tuple[list[Path], list[Path]]:
        """Find all page and version files below the root.

        Files inside the top-level ``images`` directory are ignored.

        Returns:
            ``(page_files, version_files)``, each sorted.
        """
        if not self.root.is_dir():
            return [], []

        page_files: list[Path] = []
        version_files: list[Path] = []
        for path in sorted(self.root.rglob("*" + PAGE_EXTENSION)):
            if not path.is_file():
                continue
            rel = path.relative_to(self.root)
            if rel.parts[0] == IMAGES_DIR:
                continue
            if self.is_version_file(path):
                version_files.append(path)
            else:
                page_files.append(path)
        return page_files, version_files

    def discover_image_files(self) -> list[Path]:
        """Image payloads in ``images/`` (sidecars excluded), sorted."""
        images_dir = self.root / IMAGES_DIR
        if not images_dir.is_dir():
            return []
        return sorted(
            p
            for p in images_dir.iterdir()
            if p.is_file() and not p.name.endswith(META_SUFFIX)
        )
