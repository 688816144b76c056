"""Exporter: write the store's pages, versions and images to disk.

Produces the tree described in ``mapper``:

1. One file per page holding its latest content.
2. With ``all_versions``, one file per retained version (drafts only with
   ``include_drafts``).
3. One payload file per image plus a JSON ``.meta`` sidecar.
4. ``export-manifest.json``, written last.

Per-item failures are logged and counted; they never abort the run. A dry
run performs every read and log step but writes nothing.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from wiki_sync.file_handler import write_bytes, write_file
from wiki_sync.sync.mapper import PathMapper
from wiki_sync.sync.metadata import encode_document
from wiki_sync.sync.models import (
    ExportOptions,
    ExportReport,
    Image,
    ImageSidecar,
    ItemKind,
    ItemResult,
    Page,
    PageMetadata,
    PageVersion,
    SyncAction,
)
from wiki_sync.sync.reporter import manifest_dict
from wiki_sync.validators import validate_filename

if TYPE_CHECKING:
    from wiki_sync.store.base import WikiStore

logger = logging.getLogger(__name__)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def page_metadata(page: Page) -> PageMetadata:
    """Header for the latest-content file of *page*."""
    return PageMetadata(
        title=page.title,
        path=page.path,
        published=True,
        date=_iso(page.updated_at),
        created=_iso(page.created_at),
        edit_groups=list(page.edit_groups),
        view_groups=list(page.view_groups),
    )


def version_metadata(page: Page, version: PageVersion) -> PageMetadata:
    """Header for one version file; ``created`` comes from the page."""
    return PageMetadata(
        title=version.title,
        path=version.path,
        published=True,
        date=_iso(version.edited_at),
        created=_iso(page.created_at),
        edit_groups=list(version.edit_groups),
        view_groups=list(version.view_groups),
        version=version.version,
        edited_by=version.edited_by,
        change_summary=version.change_summary or None,
        is_draft=version.is_draft,
    )


class Exporter:
    """Export a ``WikiStore`` into a directory tree.

    Args:
        store: Source of pages, versions, images and users.
        options: Export options.
    """

    def __init__(self, store: WikiStore, options: ExportOptions) -> None:
        self.store = store
        self.options = options
        self._written: dict[Path, str] = {}

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self, destination: Path) -> ExportReport:
        """Export everything below *destination*.

        Returns:
            An ``ExportReport`` with one result per page, version and image.
        """
        started_at = datetime.now(timezone.utc).isoformat()
        mapper = PathMapper(destination, self.options.exclude)
        results: list[ItemResult] = []
        self._written = {}

        if self.options.dry_run:
            logger.info("DRY RUN MODE - no files will be created")

        logger.info("Exporting pages...")
        for page in self.store.list_pages():
            if mapper.is_excluded(page.path):
                logger.debug("Excluded page: %s", page.path)
                continue
            results.extend(self._export_page(mapper, page))

        logger.info("Exporting images...")
        for image in self.store.list_images():
            results.append(self._export_image(mapper, image))

        report = ExportReport(
            destination=str(destination),
            dry_run=self.options.dry_run,
            results=results,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )

        if not self.options.dry_run:
            self._write_manifest(mapper, report)

        return report

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def _export_page(
        self, mapper: PathMapper, page: Page
    ) -> list[ItemResult]:
        results: list[ItemResult] = []
        try:
            file_path = mapper.page_file(page.path, page.title)
            if self.options.dry_run:
                logger.info("Would export: %s", file_path)
            else:
                self._claim(file_path, page.path)
                write_file(
                    file_path,
                    encode_document(page_metadata(page), page.content),
                )
                logger.info("Exported: %s -> %s", page.path, file_path)
            results.append(
                ItemResult(
                    kind=ItemKind.PAGE,
                    ref=page.path,
                    action=SyncAction.EXPORT,
                    file=str(file_path),
                )
            )
        except Exception as exc:
            logger.error("Error exporting page %s: %s", page.path, exc)
            results.append(
                ItemResult(
                    kind=ItemKind.PAGE,
                    ref=page.path,
                    action=SyncAction.EXPORT,
                    success=False,
                    error=str(exc),
                )
            )
            return results

        if self.options.all_versions:
            results.extend(self._export_versions(mapper, page))
        return results

    def _export_versions(
        self, mapper: PathMapper, page: Page
    ) -> list[ItemResult]:
        results: list[ItemResult] = []
        try:
            versions = self.store.list_versions(page.id)
        except Exception as exc:
            logger.error(
                "Error listing versions of %s: %s", page.path, exc
            )
            return [
                ItemResult(
                    kind=ItemKind.VERSION,
                    ref=page.path,
                    action=SyncAction.EXPORT,
                    success=False,
                    error=str(exc),
                )
            ]

        for version in versions:
            if version.is_draft and not self.options.include_drafts:
                continue
            ref = f"{page.path} v{version.version}"
            try:
                # Versions are filed under the page's current title
                file_path = mapper.version_file(
                    page.path, page.title, version.version
                )
                if self.options.dry_run:
                    logger.info("Would export version: %s", file_path)
                else:
                    self._claim(file_path, ref)
                    write_file(
                        file_path,
                        encode_document(
                            version_metadata(page, version), version.content
                        ),
                    )
                    logger.info(
                        "Exported version: %s v%d -> %s",
                        page.path,
                        version.version,
                        file_path,
                    )
                results.append(
                    ItemResult(
                        kind=ItemKind.VERSION,
                        ref=ref,
                        action=SyncAction.EXPORT,
                        file=str(file_path),
                    )
                )
            except Exception as exc:
                logger.error("Error exporting version %s: %s", ref, exc)
                results.append(
                    ItemResult(
                        kind=ItemKind.VERSION,
                        ref=ref,
                        action=SyncAction.EXPORT,
                        success=False,
                        error=str(exc),
                    )
                )
        return results

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def _sidecar(self, image: Image) -> ImageSidecar:
        user = self.store.find_user(image.user_id) if image.user_id else None
        return ImageSidecar(
            id=image.id,
            filename=image.filename,
            mimetype=image.mimetype,
            created_at=_iso(image.created_at),
            user_id=image.user_id,
            user_name=user.display_name if user else None,
        )

    def _export_image(self, mapper: PathMapper, image: Image) -> ItemResult:
        try:
            valid, reason = validate_filename(image.filename)
            if not valid:
                raise ValueError(reason)

            file_path = mapper.image_file(image.filename)
            if self.options.dry_run:
                logger.info("Would export image: %s", file_path)
            else:
                self._claim(file_path, image.filename)
                write_bytes(file_path, image.data)
                sidecar = self._sidecar(image)
                write_file(
                    mapper.image_meta_file(image.filename),
                    json.dumps(
                        sidecar.model_dump(by_alias=True), indent=2
                    ),
                )
                logger.info("Exported image: %s", image.filename)
            return ItemResult(
                kind=ItemKind.IMAGE,
                ref=image.filename,
                action=SyncAction.EXPORT,
                file=str(file_path),
            )
        except Exception as exc:
            logger.error("Error exporting image %s: %s", image.filename, exc)
            return ItemResult(
                kind=ItemKind.IMAGE,
                ref=image.filename,
                action=SyncAction.EXPORT,
                success=False,
                error=str(exc),
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _claim(self, file_path: Path, ref: str) -> None:
        """Record that *ref* writes *file_path*; warn when overwritten."""
        previous = self._written.get(file_path)
        if previous is not None:
            logger.warning(
                "%s overwrites %s written for %s in this run",
                ref,
                file_path,
                previous,
            )
        self._written[file_path] = ref

    def _write_manifest(
        self, mapper: PathMapper, report: ExportReport
    ) -> None:
        manifest_path = mapper.manifest_file()
        try:
            write_file(
                manifest_path, json.dumps(manifest_dict(report), indent=2)
            )
            logger.info("Export manifest created: %s", manifest_path)
        except OSError as exc:
            logger.error("Cannot write export manifest: %s", exc)
