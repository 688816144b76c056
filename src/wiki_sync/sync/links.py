"""Image link resolver: rewrite image references to ``/api/images/<id>``.

Image identifiers are assigned by the target store, so references in
imported content (bare filenames, ``<img src>`` paths, bracketed links,
``/api/images/<filename>``) only become valid once the images exist.
One run moves through these phases::

    IDLE -> BUILDING_MAPPING -> SCANNING_PAGES -> REWRITING -> REPORTING -> DONE

Key design choices:

* **Union, not precedence** -- every pattern family runs over the same
  content and the results are merged into one deduplicated candidate set.
* **Canonical ids first** -- ``/api/images/<n>`` is never looked up by
  filename. A known id is already correct; an unknown id is reported as
  invalid and left alone, never guessed.
* **Scoped replacement** -- a reference is replaced only where it appears
  as an ``<img src>`` value, a bracketed link target or a delimited bare
  token, so neighbouring text is never touched.
* **Idempotent** -- a second run over rewritten content finds only
  canonical references and changes nothing.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from wiki_sync.core.errors import ApiError, ApiUnreachableError
from wiki_sync.sync.models import (
    Image,
    ImageMapping,
    InvalidReference,
    LinkFixReport,
    Page,
    PageLinkChange,
)
from wiki_sync.sync.placeholders import resolve_placeholders_for_save

if TYPE_CHECKING:
    from wiki_sync.config import Config

logger = logging.getLogger(__name__)

CANONICAL_PREFIX = "/api/images/"
CHANGE_SUMMARY = "Fixed image links to use correct database IDs"

_EXTENSIONS = r"(?:jpg|jpeg|png|gif|webp|svg)"
# Characters that end a bare token
_DELIMS = r"""\"'\s<>()\[\]"""


class LinkTarget(Protocol):
    """The link-bearing API the resolver reads from and writes to."""

    def list_images(self) -> list[Image]: ...

    def list_pages(self) -> list[Page]: ...

    def fetch_page_content(self, page_id: int) -> Page | None: ...

    def update_page(
        self,
        page_id: int,
        title: str,
        content: str,
        path: str,
        change_summary: str,
    ) -> object: ...


class ResolverPhase(str, Enum):
    IDLE = "idle"
    BUILDING_MAPPING = "building-mapping"
    SCANNING_PAGES = "scanning-pages"
    REWRITING = "rewriting"
    REPORTING = "reporting"
    DONE = "done"


# ---------------------------------------------------------------------------
# Reference extraction
# ---------------------------------------------------------------------------


class PatternKind(str, Enum):
    """Syntactic context an image reference was found in."""

    HTML_ATTRIBUTE = "html-attribute"
    BRACKETED_LINK = "bracketed-link"
    BARE_EXTENSION = "bare-extension"
    CANONICAL_PATH = "canonical-path"
    CANONICAL_ID = "canonical-id"


_PATTERNS: dict[PatternKind, re.Pattern[str]] = {
    PatternKind.HTML_ATTRIBUTE: re.compile(
        r"""<img[^>]+src=["']([^"']+)["'][^>]*>""", re.IGNORECASE
    ),
    PatternKind.BRACKETED_LINK: re.compile(r"!\[[^\]]*\]\(([^)]+)\)"),
    PatternKind.BARE_EXTENSION: re.compile(
        rf"[^{_DELIMS}]+\.{_EXTENSIONS}(?:\?[^{_DELIMS}]*)?(?!\w)",
        re.IGNORECASE,
    ),
    PatternKind.CANONICAL_PATH: re.compile(
        rf"/api/images/[^{_DELIMS}]+\.{_EXTENSIONS}(?!\w)", re.IGNORECASE
    ),
    PatternKind.CANONICAL_ID: re.compile(r"/api/images/\d+(?![\w.\-/%])"),
}

_CANONICAL_ID = re.compile(r"/api/images/(\d+)")


def extract_references(content: str) -> dict[str, set[PatternKind]]:
    """Find candidate image references in *content*.

    Returns:
        Mapping of each distinct reference to the pattern families that
        found it.
    """
    candidates: dict[str, set[PatternKind]] = {}
    for kind, pattern in _PATTERNS.items():
        for match in pattern.finditer(content):
            ref = match.group(1) if pattern.groups else match.group(0)
            ref = ref.strip()
            if ref:
                candidates.setdefault(ref, set()).add(kind)
    return candidates


def replace_reference(
    content: str, old: str, new: str, kinds: set[PatternKind]
) -> tuple[str, int]:
    """Replace *old* with *new* in the contexts listed in *kinds*.

    Returns:
        ``(content, replacements)``.
    """
    escaped = re.escape(old)
    total = 0

    def _keep_context(match: re.Match[str]) -> str:
        return match.group(1) + new + match.group(2)

    if PatternKind.HTML_ATTRIBUTE in kinds:
        content, count = re.subn(
            rf"""((?i:<img)[^>]+(?i:src)=["']){escaped}(["'][^>]*>)""",
            _keep_context,
            content,
        )
        total += count
    if PatternKind.BRACKETED_LINK in kinds:
        content, count = re.subn(
            rf"(!\[[^\]]*\]\(){escaped}(\))", _keep_context, content
        )
        total += count
    if kinds & {PatternKind.BARE_EXTENSION, PatternKind.CANONICAL_PATH}:
        content, count = re.subn(
            rf"(?<![^{_DELIMS}]){escaped}(?![^{_DELIMS}])",
            lambda _m: new,
            content,
        )
        total += count
    return content, total


# ---------------------------------------------------------------------------
# Mapping
# ---------------------------------------------------------------------------


def _basename(reference: str) -> str:
    """Last path segment of *reference*, without query or fragment."""
    name = re.split(r"[?#]", reference, maxsplit=1)[0]
    return re.split(r"[/\\]", name)[-1]


class Resolution(str, Enum):
    REWRITE = "rewrite"
    ALREADY_CORRECT = "already-correct"
    INVALID = "invalid"
    UNRESOLVED = "unresolved"


class ImageIndex:
    """Filename-to-identifier lookup built from one image listing.

    Every image is reachable by its bare filename, its full stored
    filename, ``/api/images/<filename>`` and its id. When two images share
    a filename the first one listed wins and the key is recorded in
    ``ambiguous``.
    """

    def __init__(self, images: list[Image]) -> None:
        self.by_name: dict[str, ImageMapping] = {}
        self.by_id: dict[int, ImageMapping] = {}
        self.ambiguous: dict[str, list[int]] = {}
        self.entries: list[ImageMapping] = []

        for image in images:
            url = f"{CANONICAL_PREFIX}{image.id}"
            name = _basename(image.filename) or image.filename
            keys = [name]
            if name != image.filename:
                keys.append(image.filename)
            keys.append(f"{CANONICAL_PREFIX}{image.filename}")

            for key in keys:
                self._add_name(key, image, url)

            id_entry = ImageMapping(
                key=str(image.id),
                original_path=image.filename,
                image_id=image.id,
                url=url,
            )
            self.by_id[image.id] = id_entry
            self.entries.append(id_entry)

    def _add_name(self, key: str, image: Image, url: str) -> None:
        current = self.by_name.get(key)
        if current is not None:
            if current.image_id != image.id:
                ids = self.ambiguous.setdefault(key, [current.image_id])
                ids.append(image.id)
                logger.warning(
                    "Ambiguous image filename %s (ids %s); using %d",
                    key,
                    ids,
                    current.image_id,
                )
            return
        entry = ImageMapping(
            key=key, original_path=image.filename, image_id=image.id, url=url
        )
        self.by_name[key] = entry
        self.entries.append(entry)

    def __len__(self) -> int:
        return len(self.entries)

    def resolve(
        self, reference: str
    ) -> tuple[Resolution, ImageMapping | None]:
        """Classify *reference* and find its canonical mapping."""
        canonical = _CANONICAL_ID.fullmatch(reference)
        if canonical:
            mapping = self.by_id.get(int(canonical.group(1)))
            if mapping is None:
                return Resolution.INVALID, None
            return Resolution.ALREADY_CORRECT, mapping

        mapping = self.by_name.get(reference)
        if mapping is None:
            mapping = self.by_name.get(_basename(reference))
        if mapping is None:
            return Resolution.UNRESOLVED, None
        if reference == mapping.url:
            return Resolution.ALREADY_CORRECT, mapping
        return Resolution.REWRITE, mapping


@dataclass
class RewriteResult:
    """Outcome of rewriting one content string."""

    content: str
    before: list[str] = field(default_factory=list)
    changes: list[str] = field(default_factory=list)
    invalid: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.changes)


def rewrite_content(content: str, index: ImageIndex) -> RewriteResult:
    """Rewrite every resolvable image reference in *content*."""
    candidates = extract_references(content)
    result = RewriteResult(content=content, before=sorted(candidates))

    # Longest first so a short reference never splits a longer one
    for ref in sorted(candidates, key=lambda r: (-len(r), r)):
        resolution, mapping = index.resolve(ref)
        if resolution is Resolution.INVALID:
            logger.warning("Invalid image reference (unknown id): %s", ref)
            result.invalid.append(ref)
            continue
        if resolution is Resolution.UNRESOLVED:
            logger.debug("No mapping found for: %s", ref)
            continue
        if resolution is Resolution.ALREADY_CORRECT:
            logger.debug("Already correct: %s", ref)
            continue

        new_content, count = replace_reference(
            result.content, ref, mapping.url, candidates[ref]
        )
        if count:
            logger.info("Replacing: %s -> %s", ref, mapping.url)
            result.content = new_content
            result.changes.append(f"{ref} -> {mapping.url}")
    return result


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class ImageLinkResolver:
    """Rewrite image references in every page of a ``LinkTarget``.

    Args:
        target: API client (or fake) exposing images and pages.
        config: Supplies ``retry_delay`` for the single update retry.
    """

    def __init__(self, target: LinkTarget, config: Config) -> None:
        self.target = target
        self.config = config
        self.phase = ResolverPhase.IDLE
        self.index: ImageIndex | None = None

    def _enter(self, phase: ResolverPhase) -> None:
        logger.debug("Resolver phase: %s -> %s", self.phase.value, phase.value)
        self.phase = phase

    def build_index(self) -> ImageIndex:
        """Fetch the image listing and build the lookup."""
        self._enter(ResolverPhase.BUILDING_MAPPING)
        images = self.target.list_images()
        logger.info("Found %d images", len(images))
        self.index = ImageIndex(images)
        logger.info("Built %d image mappings", len(self.index))
        return self.index

    def run(self, dry_run: bool = False) -> LinkFixReport:
        """Fix image links in all pages.

        Listing failures propagate; per-page failures are recorded in the
        report and the run continues.
        """
        started_at = datetime.now(timezone.utc).isoformat()
        index = self.build_index()

        self._enter(ResolverPhase.SCANNING_PAGES)
        pages = self.target.list_pages()
        logger.info("Processing %d pages...", len(pages))

        changes: list[PageLinkChange] = []
        invalid: list[InvalidReference] = []
        for listing in pages:
            change = self._process_page(listing, index, dry_run, invalid)
            changes.append(change)

        self._enter(ResolverPhase.REPORTING)
        report = LinkFixReport(
            dry_run=dry_run,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
            total_pages=len(pages),
            mappings=index.entries,
            ambiguous=index.ambiguous,
            invalid_references=invalid,
            pages=changes,
        )
        self._enter(ResolverPhase.DONE)
        return report

    def _process_page(
        self,
        listing: Page,
        index: ImageIndex,
        dry_run: bool,
        invalid: list[InvalidReference],
    ) -> PageLinkChange:
        try:
            page = self.target.fetch_page_content(listing.id)
        except Exception as exc:
            logger.error("Error fetching page %d: %s", listing.id, exc)
            return PageLinkChange(
                page_id=listing.id,
                title=listing.title,
                path=listing.path,
                success=False,
                error=str(exc),
            )
        if page is None:
            logger.warning(
                "Page %r (ID: %d) not found or inaccessible",
                listing.title,
                listing.id,
            )
            return PageLinkChange(
                page_id=listing.id,
                title=listing.title,
                path=listing.path,
                success=False,
                error="page not found",
            )

        logger.debug("Analyzing page %r (ID: %d)", page.title, page.id)
        self._enter(ResolverPhase.REWRITING)
        result = rewrite_content(page.content, index)
        invalid.extend(
            InvalidReference(page_id=page.id, reference=ref)
            for ref in result.invalid
        )
        after = sorted(extract_references(result.content))
        change = PageLinkChange(
            page_id=page.id,
            title=page.title,
            path=page.path,
            before=result.before,
            after=after,
            changes=result.changes,
            updated=result.changed,
        )
        self._enter(ResolverPhase.SCANNING_PAGES)

        if not result.changed:
            logger.debug("No changes needed for %r", page.title)
            return change
        if dry_run:
            logger.info("Would update page %r", page.title)
            return change

        try:
            self._push(page, resolve_placeholders_for_save(result.content))
        except Exception as exc:
            logger.error("Failed to update page %r: %s", page.title, exc)
            return change.model_copy(
                update={"success": False, "error": str(exc)}
            )
        logger.info("Updated page %r", page.title)
        return change

    def _push(self, page: Page, content: str) -> None:
        """Update a page, retrying once on a server or network error."""
        try:
            self.target.update_page(
                page.id, page.title, content, page.path, CHANGE_SUMMARY
            )
        except (ApiError, ApiUnreachableError) as exc:
            if isinstance(exc, ApiError) and not exc.is_server_error:
                raise
            logger.warning(
                "Error updating page %d, retrying in %.1fs: %s",
                page.id,
                self.config.retry_delay,
                exc,
            )
            time.sleep(self.config.retry_delay)
            self.target.update_page(
                page.id,
                page.title,
                content,
                page.path,
                f"{CHANGE_SUMMARY} (retry)",
            )
            logger.info("Retry successful for page %d", page.id)

    def list_images(self) -> list[Image]:
        return self.target.list_images()
