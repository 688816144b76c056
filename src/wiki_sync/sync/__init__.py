"""Content synchronization engine.

Public API for moving wiki content between a ``WikiStore`` and a
git-friendly directory tree, and for repairing image links afterwards.

Architecture
------------
Exported files carry their metadata in a comment header, so a tree can
be re-imported without any side database.  Re-importing is idempotent:
``skip-existing`` never touches existing items, and ``smart`` mode
compares content hashes with each page's head version so that only real
changes produce a new version.  Image identifiers differ per
environment, so links are fixed in a separate pass once the images
exist in the target store.

Modules:

- ``metadata``     -- header codec for page and version files.
- ``mapper``       -- ``PathMapper``: page paths to files and back.
- ``hashing``      -- content hashes for smart-sync change detection.
- ``placeholders`` -- restricted-block placeholder resolution.
- ``exporter``     -- ``Exporter``: store to directory tree.
- ``importer``     -- ``Importer``: directory tree to store.
- ``links``        -- ``ImageLinkResolver``: canonical image links.
- ``models``       -- records, options, results and reports.
- ``reporter``     -- human-readable summaries and JSON reports.

Usage example
-------------
::

    from pathlib import Path
    from wiki_sync.store import SnapshotStore
    from wiki_sync.sync import (
        Exporter,
        ExportOptions,
        Importer,
        ImportMode,
        ImportOptions,
        format_import_report,
    )

    store = SnapshotStore.open(Path("wiki.json"), must_exist=True)
    Exporter(store, ExportOptions(all_versions=True)).run(Path("backup"))

    target = SnapshotStore.open(Path("restored.json"))
    report = Importer(
        target,
        ImportOptions(mode=ImportMode.SMART, import_versions=True),
    ).run(Path("backup"))
    print(format_import_report(report))
"""

from .exporter import Exporter
from .importer import Importer
from .links import ImageIndex, ImageLinkResolver, rewrite_content
from .mapper import PathMapper, sanitize_filename
from .metadata import decode_document, encode_document
from .models import (
    ExportOptions,
    ExportReport,
    ImportMode,
    ImportOptions,
    ImportReport,
    ItemKind,
    ItemResult,
    LinkFixReport,
    PageMetadata,
    SyncAction,
)
from .placeholders import create_placeholders, resolve_placeholders_for_save
from .reporter import (
    format_export_report,
    format_import_report,
    format_link_report,
    report_to_json,
)

__all__ = [
    "ExportOptions",
    "ExportReport",
    "Exporter",
    "ImageIndex",
    "ImageLinkResolver",
    "ImportMode",
    "ImportOptions",
    "ImportReport",
    "Importer",
    "ItemKind",
    "ItemResult",
    "LinkFixReport",
    "PageMetadata",
    "PathMapper",
    "SyncAction",
    "create_placeholders",
    "decode_document",
    "encode_document",
    "format_export_report",
    "format_import_report",
    "format_link_report",
    "report_to_json",
    "resolve_placeholders_for_save",
    "rewrite_content",
    "sanitize_filename",
]
