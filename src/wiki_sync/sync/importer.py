"""Importer and smart-sync engine: load an export tree into a store.

Files are processed in a fixed order:

1. Page files (latest content).
2. Version files, when ``import_versions`` is set.
3. Images below ``images/`` with their ``.meta`` sidecars.

Each item is decided independently as create / update / skip according to
the ``ImportMode``:

- ``skip-existing`` -- existing items are left untouched.
- ``update-existing`` -- existing items are overwritten.
- ``smart`` -- a content hash is compared against the live page and its
  head version; a new version is created only when it matches neither.

Placeholders left behind by the editor are resolved before any content
reaches the store. Errors are isolated to the item that raised them.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from wiki_sync.core.errors import MetadataError, PathValidationError
from wiki_sync.file_handler import read_file_with_encoding
from wiki_sync.sync.hashing import page_hash, record_hash
from wiki_sync.sync.mapper import PathMapper
from wiki_sync.sync.metadata import decode_document
from wiki_sync.sync.models import (
    ImageSidecar,
    ImportMode,
    ImportOptions,
    ImportReport,
    ItemKind,
    ItemResult,
    Page,
    PageMetadata,
    SyncAction,
)
from wiki_sync.sync.placeholders import resolve_placeholders_for_save
from wiki_sync.validators import validate_filename, validate_page_path

if TYPE_CHECKING:
    from wiki_sync.store.base import WikiStore

logger = logging.getLogger(__name__)

DEFAULT_EDITED_BY = "import"
DEFAULT_CHANGE_SUMMARY = "Imported from filesystem"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 header timestamp; ``None`` when absent or invalid."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Ignoring invalid timestamp: %r", value)
        return None


def _parent(page_path: str) -> str:
    return page_path.rstrip("/").rsplit("/", 1)[0]


class _Skip(Exception):
    """Raised inside an item handler to record a skip with a reason."""


class Importer:
    """Import an export tree into a ``WikiStore``.

    Args:
        store: Target store.
        options: Import options (mode, versions, dry run, exclusions).
    """

    def __init__(self, store: WikiStore, options: ImportOptions) -> None:
        self.store = store
        self.options = options
        # Paths a dry run would have created, so version files can attach
        self._planned_paths: set[str] = set()

    @property
    def dry_run(self) -> bool:
        return self.options.dry_run

    @property
    def mode(self) -> ImportMode:
        return self.options.mode

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self, source: Path) -> ImportReport:
        """Import everything below *source*.

        Returns:
            An ``ImportReport`` with one result per processed file.
        """
        started_at = _now().isoformat()
        mapper = PathMapper(source, self.options.exclude)
        results: list[ItemResult] = []
        self._planned_paths = set()

        if self.dry_run:
            logger.info("DRY RUN MODE - no changes will be made")

        page_files, version_files = mapper.discover_content_files()

        logger.info("Importing pages...")
        for file_path in page_files:
            results.append(
                self._guarded(
                    ItemKind.PAGE, file_path, self._import_page, mapper
                )
            )

        if self.options.import_versions:
            logger.info("Importing versions...")
            for file_path in version_files:
                results.append(
                    self._guarded(
                        ItemKind.VERSION,
                        file_path,
                        self._import_version,
                        mapper,
                    )
                )
        elif version_files:
            logger.debug(
                "Ignoring %d version file(s) without --import-versions",
                len(version_files),
            )

        image_files = mapper.discover_image_files()
        if image_files:
            logger.info("Importing images...")
        for file_path in image_files:
            results.append(
                self._guarded(
                    ItemKind.IMAGE, file_path, self._import_image, mapper
                )
            )

        return ImportReport(
            source=str(source),
            mode=self.mode,
            dry_run=self.dry_run,
            results=results,
            started_at=started_at,
            completed_at=_now().isoformat(),
        )

    def _guarded(
        self, kind: ItemKind, file_path: Path, handler, mapper: PathMapper
    ) -> ItemResult:
        """Run one item handler, turning skips and errors into results."""
        try:
            return handler(mapper, file_path)
        except _Skip as skip:
            return ItemResult(
                kind=kind,
                ref=str(file_path),
                action=SyncAction.SKIP,
                detail=str(skip),
                file=str(file_path),
            )
        except Exception as exc:
            logger.error(
                "Error importing %s %s: %s", kind.value, file_path, exc
            )
            return ItemResult(
                kind=kind,
                ref=str(file_path),
                action=SyncAction.SKIP,
                success=False,
                error=str(exc),
                file=str(file_path),
            )

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _read_document(
        self, file_path: Path
    ) -> tuple[PageMetadata, str]:
        text, encoding = read_file_with_encoding(file_path)
        if encoding != "utf-8":
            logger.debug("Read %s as %s", file_path, encoding)
        metadata, content = decode_document(text)
        if metadata is None:
            logger.warning("No metadata found in %s, skipping", file_path)
            raise _Skip("no metadata")
        return metadata, resolve_placeholders_for_save(content)

    def _resolve_path(
        self, mapper: PathMapper, file_path: Path, metadata: PageMetadata
    ) -> str:
        """Logical path for a page file; the metadata path wins."""
        derived = mapper.derive_page_path(file_path)
        if metadata.path:
            page_path = metadata.path
            if _parent(page_path) != _parent(derived):
                logger.warning(
                    "%s is stored under %s but its metadata path is %s; "
                    "using the metadata path",
                    file_path,
                    _parent(derived) or "/",
                    page_path,
                )
        else:
            page_path = derived
            logger.warning(
                "No path in metadata of %s, using derived path %s",
                file_path,
                page_path,
            )

        valid, reason = validate_page_path(page_path)
        if not valid:
            raise PathValidationError(f"{reason}: {page_path!r}")
        return page_path

    def _result(
        self,
        kind: ItemKind,
        ref: str,
        action: SyncAction,
        file_path: Path,
        detail: str | None = None,
    ) -> ItemResult:
        return ItemResult(
            kind=kind,
            ref=ref,
            action=action,
            detail=detail,
            file=str(file_path),
        )

    def _page_exists(self, page_path: str) -> Page | None:
        return self.store.find_page_by_path(page_path)

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def _import_page(self, mapper: PathMapper, file_path: Path) -> ItemResult:
        metadata, content = self._read_document(file_path)
        page_path = self._resolve_path(mapper, file_path, metadata)
        if mapper.is_excluded(page_path):
            raise _Skip(f"excluded: {page_path}")

        existing = self._page_exists(page_path)
        if self.mode is ImportMode.SMART:
            return self._smart_page(
                file_path, page_path, metadata, content, existing
            )

        if existing is not None and self.mode is ImportMode.SKIP_EXISTING:
            logger.info("Skipping existing page: %s", page_path)
            return self._result(
                ItemKind.PAGE, page_path, SyncAction.SKIP, file_path, "exists"
            )

        updated_at = parse_timestamp(metadata.date) or _now()
        if existing is not None:
            if self.dry_run:
                logger.info("Would update page: %s", page_path)
            else:
                changes = {
                    "title": metadata.title,
                    "content": content,
                    "edit_groups": list(metadata.edit_groups),
                    "view_groups": list(metadata.view_groups),
                    "updated_at": updated_at,
                }
                created_at = parse_timestamp(metadata.created)
                if created_at is not None:
                    changes["created_at"] = created_at
                self.store.update_page(existing.id, changes)
                logger.info("Updated page: %s", page_path)
            return self._result(
                ItemKind.PAGE, page_path, SyncAction.UPDATE, file_path
            )

        if self.dry_run:
            logger.info(
                "Would import page: %s -> %s", metadata.title, page_path
            )
            self._planned_paths.add(page_path)
        else:
            self.store.create_page(
                self._page_data(page_path, metadata, content, updated_at)
            )
            logger.info("Imported page: %s", page_path)
        return self._result(
            ItemKind.PAGE, page_path, SyncAction.CREATE, file_path
        )

    def _page_data(
        self,
        page_path: str,
        metadata: PageMetadata,
        content: str,
        updated_at: datetime,
    ) -> dict[str, Any]:
        return {
            "title": metadata.title,
            "content": content,
            "path": page_path,
            "edit_groups": list(metadata.edit_groups),
            "view_groups": list(metadata.view_groups),
            "created_at": parse_timestamp(metadata.created) or _now(),
            "updated_at": updated_at,
        }

    def _smart_page(
        self,
        file_path: Path,
        page_path: str,
        metadata: PageMetadata,
        content: str,
        existing: Page | None,
    ) -> ItemResult:
        updated_at = parse_timestamp(metadata.date) or _now()

        if existing is None:
            if self.dry_run:
                logger.info(
                    "Would import page: %s -> %s", metadata.title, page_path
                )
                self._planned_paths.add(page_path)
            else:
                page = self.store.create_page(
                    self._page_data(page_path, metadata, content, updated_at)
                )
                self.store.create_version(
                    self._version_data(page, 1, metadata, content)
                )
                logger.info("Imported page: %s (v1)", page_path)
            return self._result(
                ItemKind.PAGE, page_path, SyncAction.CREATE, file_path
            )

        incoming = page_hash(
            metadata.title,
            content,
            page_path,
            metadata.edit_groups,
            metadata.view_groups,
        )
        head = self.store.latest_version(existing.id)
        current = {record_hash(existing)}
        if head is not None:
            current.add(record_hash(head))
        if incoming in current:
            logger.debug("Unchanged page: %s", page_path)
            return self._result(
                ItemKind.PAGE,
                page_path,
                SyncAction.SKIP,
                file_path,
                "unchanged",
            )

        next_version = head.version + 1 if head is not None else 1
        if self.dry_run:
            logger.info(
                "Would update page: %s (new version v%d)",
                page_path,
                next_version,
            )
        else:
            self.store.update_page(
                existing.id,
                {
                    "title": metadata.title,
                    "content": content,
                    "edit_groups": list(metadata.edit_groups),
                    "view_groups": list(metadata.view_groups),
                    "updated_at": updated_at,
                },
            )
            self.store.create_version(
                self._version_data(existing, next_version, metadata, content)
            )
            logger.info("Updated page: %s (v%d)", page_path, next_version)
        return self._result(
            ItemKind.PAGE,
            page_path,
            SyncAction.UPDATE,
            file_path,
            f"v{next_version}",
        )

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    def _version_data(
        self,
        page: Page,
        number: int,
        metadata: PageMetadata,
        content: str,
        page_path: str | None = None,
    ) -> dict[str, Any]:
        return {
            "page_id": page.id,
            "version": number,
            "title": metadata.title,
            "content": content,
            "path": page_path or metadata.path or page.path,
            "edit_groups": list(metadata.edit_groups),
            "view_groups": list(metadata.view_groups),
            "edited_by": metadata.edited_by or DEFAULT_EDITED_BY,
            "change_summary": metadata.change_summary
            or DEFAULT_CHANGE_SUMMARY,
            "is_draft": metadata.is_draft,
            "edited_at": parse_timestamp(metadata.date) or _now(),
        }

    def _import_version(
        self, mapper: PathMapper, file_path: Path
    ) -> ItemResult:
        metadata, content = self._read_document(file_path)
        if metadata.version is None:
            logger.warning(
                "No version metadata found in %s, skipping", file_path
            )
            raise _Skip("no version number")
        if not metadata.path:
            logger.warning("No path in version file %s, skipping", file_path)
            raise _Skip("no path")

        page_path = metadata.path
        valid, reason = validate_page_path(page_path)
        if not valid:
            raise PathValidationError(f"{reason}: {page_path!r}")

        ref = f"{page_path} v{metadata.version}"
        if mapper.is_excluded(page_path):
            raise _Skip(f"excluded: {page_path}")

        page = self._page_exists(page_path)
        if page is None:
            if self.dry_run and page_path in self._planned_paths:
                logger.info("Would import version: %s", ref)
                return self._result(
                    ItemKind.VERSION, ref, SyncAction.CREATE, file_path
                )
            logger.warning(
                "Page not found for version %s, skipping", file_path
            )
            return self._result(
                ItemKind.VERSION,
                ref,
                SyncAction.SKIP,
                file_path,
                "page not found",
            )

        existing = self.store.find_version(page.id, metadata.version)
        data = self._version_data(
            page, metadata.version, metadata, content, page_path
        )

        if existing is not None:
            if self.mode is ImportMode.SKIP_EXISTING:
                logger.info("Skipping existing version: %s", ref)
                return self._result(
                    ItemKind.VERSION, ref, SyncAction.SKIP, file_path, "exists"
                )
            if self.mode is ImportMode.SMART and record_hash(
                existing
            ) == page_hash(
                data["title"],
                data["content"],
                data["path"],
                data["edit_groups"],
                data["view_groups"],
            ):
                logger.debug("Unchanged version: %s", ref)
                return self._result(
                    ItemKind.VERSION,
                    ref,
                    SyncAction.SKIP,
                    file_path,
                    "unchanged",
                )
            if self.dry_run:
                logger.info("Would update version: %s", ref)
            else:
                update = {k: v for k, v in data.items() if k != "page_id"}
                self.store.update_version(existing.id, update)
                logger.info("Updated version: %s", ref)
            return self._result(
                ItemKind.VERSION, ref, SyncAction.UPDATE, file_path
            )

        if self.dry_run:
            logger.info("Would import version: %s", ref)
        else:
            self.store.create_version(data)
            logger.info("Imported version: %s", ref)
        return self._result(
            ItemKind.VERSION, ref, SyncAction.CREATE, file_path
        )

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def _read_sidecar(self, meta_path: Path) -> ImageSidecar:
        text, _ = read_file_with_encoding(meta_path)
        try:
            return ImageSidecar.model_validate_json(text)
        except ValueError as exc:
            raise MetadataError(
                f"Malformed image metadata {meta_path}: {exc}"
            ) from exc

    def _resolve_owner(self, sidecar: ImageSidecar) -> str | None:
        """Owning user id, falling back to any existing user."""
        if sidecar.user_id and self.store.find_user(sidecar.user_id):
            return sidecar.user_id
        fallback = self.store.first_user()
        if fallback is None:
            return None
        logger.info(
            "User %s not found for image %s, using %s",
            sidecar.user_id,
            sidecar.filename,
            fallback.username,
        )
        return fallback.id

    def _import_image(self, mapper: PathMapper, file_path: Path) -> ItemResult:
        meta_path = file_path.with_name(file_path.name + ".meta")
        if not meta_path.is_file():
            logger.warning("No metadata file found for %s, skipping", file_path)
            raise _Skip("no .meta sidecar")

        sidecar = self._read_sidecar(meta_path)
        filename = sidecar.filename
        valid, reason = validate_filename(filename)
        if not valid:
            raise MetadataError(f"{reason}: {filename!r}")

        existing = self.store.find_image_by_filename(filename)
        if existing is not None and self.mode is ImportMode.SKIP_EXISTING:
            logger.info("Skipping existing image: %s", filename)
            return self._result(
                ItemKind.IMAGE, filename, SyncAction.SKIP, file_path, "exists"
            )

        data = file_path.read_bytes()
        if (
            existing is not None
            and self.mode is ImportMode.SMART
            and existing.data == data
            and existing.mimetype == sidecar.mimetype
        ):
            logger.debug("Unchanged image: %s", filename)
            return self._result(
                ItemKind.IMAGE,
                filename,
                SyncAction.SKIP,
                file_path,
                "unchanged",
            )

        owner = self._resolve_owner(sidecar)
        if owner is None:
            logger.warning("No user found for image %s, skipping", filename)
            return self._result(
                ItemKind.IMAGE,
                filename,
                SyncAction.SKIP,
                file_path,
                "no owner",
            )

        if existing is not None:
            if self.dry_run:
                logger.info("Would update image: %s", filename)
            else:
                self.store.update_image(
                    existing.id, {"data": data, "mimetype": sidecar.mimetype}
                )
                logger.info("Updated image: %s", filename)
            return self._result(
                ItemKind.IMAGE, filename, SyncAction.UPDATE, file_path
            )

        if self.dry_run:
            logger.info("Would import image: %s", filename)
        else:
            self.store.create_image(
                {
                    "filename": filename,
                    "mimetype": sidecar.mimetype,
                    "data": data,
                    "user_id": owner,
                    "created_at": parse_timestamp(sidecar.created_at)
                    or _now(),
                }
            )
            logger.info("Imported image: %s", filename)
        return self._result(
            ItemKind.IMAGE, filename, SyncAction.CREATE, file_path
        )
