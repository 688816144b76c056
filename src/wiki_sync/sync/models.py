"""Pydantic models for the content synchronization engine.

Defines the data contracts shared by all sync modules:

- ``User``, ``Page``, ``PageVersion``, ``Image``: records exchanged with
  the store and the wiki API.
- ``PageMetadata``: the header embedded in exported page/version files.
- ``ImageSidecar``: the JSON ``.meta`` file written next to each image.
- ``ExportOptions``, ``ImportOptions``, ``ImportMode``: run options.
- ``ItemKind``, ``SyncAction``, ``ItemResult``: per-item outcomes.
- ``ExportReport``, ``ImportReport``, ``LinkFixReport``: aggregate results.

All models are frozen (immutable); stores hand out updated copies.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class User(BaseModel):
    """A wiki user, referenced as the owner of images."""

    id: str
    username: str
    name: str | None = None

    model_config = {"frozen": True}

    @property
    def display_name(self) -> str:
        return self.name or self.username


class Page(BaseModel):
    """Live page record.

    Attributes:
        id: Store-assigned identifier.
        path: Hierarchical path, unique across live pages.
        title: Human title (also drives the exported filename).
        content: Current HTML content.
        view_groups: Groups allowed to view the page.
        edit_groups: Groups allowed to edit the page.
    """

    id: int
    path: str
    title: str
    content: str = ""
    view_groups: list[str] = []
    edit_groups: list[str] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"frozen": True}


class PageVersion(BaseModel):
    """Immutable snapshot of a page at one edit.

    ``(page_id, version)`` is unique; numbering starts at 1.
    """

    id: int
    page_id: int
    version: int
    title: str
    content: str = ""
    path: str
    view_groups: list[str] = []
    edit_groups: list[str] = []
    edited_by: str = "import"
    change_summary: str | None = None
    is_draft: bool = False
    edited_at: datetime | None = None

    model_config = {"frozen": True}


class Image(BaseModel):
    """Media record. ``id`` is assigned by the target store."""

    id: int
    filename: str
    mimetype: str = "application/octet-stream"
    data: bytes = b""
    user_id: str | None = None
    created_at: datetime | None = None

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# File formats
# ---------------------------------------------------------------------------


class PageMetadata(BaseModel):
    """Header carried by every exported page or version file.

    Timestamps are kept as the strings found in the header so that
    ``decode(encode(m)) == m`` holds exactly.
    """

    title: str = ""
    path: str | None = None
    published: bool = False
    date: str | None = None
    created: str | None = None
    edit_groups: list[str] = []
    view_groups: list[str] = []
    version: int | None = None
    edited_by: str | None = None
    change_summary: str | None = None
    is_draft: bool = False

    model_config = {"frozen": True}


class ImageSidecar(BaseModel):
    """Contents of ``images/<filename>.meta``."""

    id: int | None = None
    filename: str
    mimetype: str = "application/octet-stream"
    created_at: str | None = Field(default=None, alias="createdAt")
    user_id: str | None = Field(default=None, alias="userId")
    user_name: str | None = Field(default=None, alias="userName")

    model_config = ConfigDict(
        frozen=True, populate_by_name=True, coerce_numbers_to_str=True
    )


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


class ExportOptions(BaseModel):
    """Options for one export run.

    ``all_versions`` adds one file per retained version next to the
    latest-content page file; without it only the latest content is
    written.
    """

    include_drafts: bool = False
    all_versions: bool = False
    dry_run: bool = False
    exclude: list[str] = []

    model_config = {"frozen": True}

    @property
    def latest_only(self) -> bool:
        return not self.all_versions


class ImportMode(str, Enum):
    """How the importer treats items that already exist in the store."""

    SKIP_EXISTING = "skip-existing"
    UPDATE_EXISTING = "update-existing"
    SMART = "smart"


class ImportOptions(BaseModel):
    """Options for one import run."""

    mode: ImportMode = ImportMode.SKIP_EXISTING
    import_versions: bool = False
    dry_run: bool = False
    exclude: list[str] = []

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Per-item results
# ---------------------------------------------------------------------------


class ItemKind(str, Enum):
    PAGE = "page"
    VERSION = "version"
    IMAGE = "image"


class SyncAction(str, Enum):
    """Outcome of processing one item."""

    EXPORT = "export"
    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"


class ItemResult(BaseModel):
    """Result of processing one page, version or image.

    Attributes:
        kind: Item category.
        ref: Page path, ``path vN`` for versions, or image filename.
        action: Action performed (or that would be performed in a dry run).
        success: False when the item failed with an error.
        error: Error message for failed items.
        detail: Human note, e.g. the reason for a skip.
        file: Filesystem path written or read, when applicable.
    """

    kind: ItemKind
    ref: str
    action: SyncAction
    success: bool = True
    error: str | None = None
    detail: str | None = None
    file: str | None = None

    model_config = {"frozen": True}


class _RunReport(BaseModel):
    dry_run: bool = False
    results: list[ItemResult] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def count(
        self, kind: ItemKind, action: SyncAction | None = None
    ) -> int:
        """Count successful results of *kind* (optionally per *action*)."""
        return sum(
            1
            for r in self.results
            if r.kind == kind
            and r.success
            and (action is None or r.action == action)
        )

    @property
    def errors(self) -> list[ItemResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    def error_count(self, kind: ItemKind) -> int:
        return sum(1 for r in self.errors if r.kind == kind)


class ExportReport(_RunReport):
    """Aggregate report for an export run."""

    destination: str

    @property
    def pages_exported(self) -> int:
        return self.count(ItemKind.PAGE, SyncAction.EXPORT)

    @property
    def versions_exported(self) -> int:
        return self.count(ItemKind.VERSION, SyncAction.EXPORT)

    @property
    def images_exported(self) -> int:
        return self.count(ItemKind.IMAGE, SyncAction.EXPORT)


class ImportReport(_RunReport):
    """Aggregate report for an import or smart-sync run."""

    source: str
    mode: ImportMode = ImportMode.SKIP_EXISTING

    def counts(self, kind: ItemKind) -> dict[str, int]:
        """Imported / updated / skipped / errors counts for one category."""
        return {
            "imported": self.count(kind, SyncAction.CREATE),
            "updated": self.count(kind, SyncAction.UPDATE),
            "skipped": self.count(kind, SyncAction.SKIP),
            "errors": self.error_count(kind),
        }

    @property
    def mutations(self) -> int:
        """Number of results that changed (or would change) the store."""
        return sum(
            1
            for r in self.results
            if r.success
            and r.action in (SyncAction.CREATE, SyncAction.UPDATE)
        )


# ---------------------------------------------------------------------------
# Image link resolution
# ---------------------------------------------------------------------------


class ImageMapping(BaseModel):
    """One lookup key of the filename-to-identifier mapping."""

    key: str
    original_path: str
    image_id: int
    url: str

    model_config = {"frozen": True}


class InvalidReference(BaseModel):
    """A canonical ``/api/images/<id>`` reference to an unknown image."""

    page_id: int
    reference: str

    model_config = {"frozen": True}


class PageLinkChange(BaseModel):
    """Audit entry for one page processed by the link resolver.

    Attributes:
        before: Candidate references found in the original content.
        after: Candidate references found in the rewritten content.
        changes: ``"old -> new"`` lines for every substitution.
        updated: Whether new content was (or would be) pushed.
        success: False when fetching or pushing the page failed.
    """

    page_id: int
    title: str
    path: str = ""
    before: list[str] = []
    after: list[str] = []
    changes: list[str] = []
    updated: bool = False
    success: bool = True
    error: str | None = None

    model_config = {"frozen": True}


class LinkFixReport(BaseModel):
    """Aggregate report for one image link resolver run."""

    dry_run: bool = False
    started_at: str
    completed_at: str | None = None
    total_pages: int = 0
    mappings: list[ImageMapping] = []
    ambiguous: dict[str, list[int]] = {}
    invalid_references: list[InvalidReference] = []
    pages: list[PageLinkChange] = []

    model_config = {"frozen": True}

    @property
    def pages_updated(self) -> int:
        return sum(1 for p in self.pages if p.updated and p.success)

    @property
    def pages_failed(self) -> int:
        return sum(1 for p in self.pages if not p.success)

    @property
    def total_changes(self) -> int:
        return sum(len(p.changes) for p in self.pages if p.success)
