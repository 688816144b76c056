"""Report formatting for export, import and link-fix runs.

Provides human-readable and machine-readable output:

- ``format_export_report`` / ``format_import_report`` /
  ``format_link_report`` -- end-of-run summaries printed by the CLI.
- ``format_image_list`` -- ``--list-images`` output.
- ``manifest_dict`` -- contents of ``export-manifest.json``.
- ``report_to_json`` -- structured audit report of a link-fix run.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from .models import ItemKind

if TYPE_CHECKING:
    from .models import ExportReport, Image, ImportReport, LinkFixReport

MANIFEST_VERSION = "1.0"

_RULE = "=" * 50

# ------------------------------------------------------------------
# Export
# ------------------------------------------------------------------


def manifest_dict(report: ExportReport) -> dict:
    """Build the export manifest for a completed run."""
    return {
        "exportedAt": report.completed_at
        or datetime.now(timezone.utc).isoformat(),
        "version": MANIFEST_VERSION,
        "stats": {
            "pagesExported": report.pages_exported,
            "imagesExported": report.images_exported,
            "versionsExported": report.versions_exported,
            "errors": len(report.errors),
        },
        "structure": {
            "pages": "Organized by path hierarchy",
            "images": "All images in /images directory with .meta files",
            "versions": (
                "Page versions in /versions subdirectories "
                "(if --all-versions used)"
            ),
        },
    }


def format_export_report(report: ExportReport) -> str:
    """Format an export run as human-readable text.

    Args:
        report: The completed export report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    header = f"Export to {report.destination}"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(_RULE)
    lines.append(f"Pages exported: {report.pages_exported}")
    if report.versions_exported:
        lines.append(f"Versions exported: {report.versions_exported}")
    lines.append(f"Images exported: {report.images_exported}")
    lines.append(f"Errors: {len(report.errors)}")

    if report.errors:
        lines.append("")
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  [{r.kind.value}] {r.ref}: {r.error}")

    if report.dry_run:
        lines.append("")
        lines.append("This was a DRY RUN. No files were written.")

    return "\n".join(lines)


# ------------------------------------------------------------------
# Import
# ------------------------------------------------------------------


def format_import_report(report: ImportReport) -> str:
    """Format an import run with per-category counts."""
    lines: list[str] = []
    header = f"Import from {report.source} ({report.mode.value})"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(_RULE)

    for kind, label in (
        (ItemKind.PAGE, "Pages"),
        (ItemKind.VERSION, "Versions"),
        (ItemKind.IMAGE, "Images"),
    ):
        counts = report.counts(kind)
        lines.append(
            f"{label}: {counts['imported']} imported, "
            f"{counts['updated']} updated, "
            f"{counts['skipped']} skipped, "
            f"{counts['errors']} errors"
        )

    if report.errors:
        lines.append("")
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  [{r.kind.value}] {r.ref}: {r.error}")

    if report.dry_run:
        lines.append("")
        lines.append("This was a DRY RUN. No changes were made.")

    return "\n".join(lines)


# ------------------------------------------------------------------
# Image links
# ------------------------------------------------------------------


def format_image_list(images: list[Image]) -> str:
    lines = [f"Images from API ({len(images)} total):", "=" * 60]
    for image in images:
        lines.append(f"ID: {image.id:>3} | {image.filename}")
    return "\n".join(lines)


def format_link_report(
    report: LinkFixReport, report_path: str | None = None
) -> str:
    """Format the summary of a link-fix run."""
    lines: list[str] = []
    lines.append(_RULE)
    lines.append("Image Link Fix Summary")
    lines.append(_RULE)
    lines.append(f"Total pages: {report.total_pages}")
    lines.append(f"Pages updated: {report.pages_updated}")
    lines.append(f"Pages failed: {report.pages_failed}")
    lines.append(f"Links changed: {report.total_changes}")
    lines.append(f"Available image mappings: {len(report.mappings)}")

    if report.ambiguous:
        lines.append("")
        lines.append("Ambiguous filenames (first image used):")
        for key, ids in sorted(report.ambiguous.items()):
            lines.append(f"  {key}: {', '.join(str(i) for i in ids)}")

    if report.invalid_references:
        lines.append("")
        lines.append("Invalid references (left unchanged):")
        for ref in report.invalid_references:
            lines.append(f"  page {ref.page_id}: {ref.reference}")

    failed = [p for p in report.pages if not p.success]
    if failed:
        lines.append("")
        lines.append("Failed pages:")
        for p in failed:
            lines.append(f"  {p.title} (ID: {p.page_id}): {p.error}")

    if report_path:
        lines.append(f"Report saved: {report_path}")

    if report.dry_run:
        lines.append("")
        lines.append("This was a DRY RUN. No actual changes were made.")
        lines.append("Run again without --dry-run to apply changes.")

    return "\n".join(lines)


def report_to_json(report: LinkFixReport) -> dict:
    """Convert a link-fix report to a structured dict for the audit file.

    Only pages with changes or failures are listed individually.
    """
    pages = []
    for p in report.pages:
        if not p.changes and p.success:
            continue
        entry: dict = {
            "page_id": p.page_id,
            "title": p.title,
            "path": p.path,
            "updated": p.updated and p.success,
            "before": p.before,
            "after": p.after,
            "changes": p.changes,
        }
        if p.error:
            entry["error"] = p.error
        pages.append(entry)

    return {
        "timestamp": report.completed_at or report.started_at,
        "dry_run": report.dry_run,
        "total_pages": report.total_pages,
        "pages_updated": report.pages_updated,
        "pages_failed": report.pages_failed,
        "image_mappings": [
            {
                "key": m.key,
                "original_path": m.original_path,
                "image_id": m.image_id,
                "url": m.url,
            }
            for m in report.mappings
        ],
        "ambiguous": report.ambiguous,
        "invalid_references": [
            {"page_id": r.page_id, "reference": r.reference}
            for r in report.invalid_references
        ],
        "changes": pages,
    }
