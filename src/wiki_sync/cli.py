"""Command line entry points: ``wiki-export``, ``wiki-import`` and
``wiki-fix-image-links``.

Each tool loads configuration with the usual precedence (CLI args > env
vars and .env > YAML config > defaults), configures logging to stderr,
runs its engine and prints a summary to stdout.

Exit codes:
    0 -- the run completed (per-item errors are only counted)
    1 -- fatal precondition failure (missing store or source, bad
         configuration, unreachable API)
    2 -- invalid command line arguments (argparse)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import NoReturn

import yaml
from dotenv import load_dotenv

from . import __version__
from .config import Config, load_config
from .config_loader import load_hierarchical_config
from .config_schema import UnifiedConfig, build_config, to_yaml_fallbacks
from .core.client import WikiApiClient
from .core.errors import WikiSyncError
from .file_handler import write_file
from .logger import setup_logging
from .store.snapshot import SnapshotStore
from .sync.exporter import Exporter
from .sync.importer import Importer
from .sync.links import ImageLinkResolver
from .sync.models import ExportOptions, ImportMode, ImportOptions
from .sync.reporter import (
    format_export_report,
    format_image_list,
    format_import_report,
    format_link_report,
    report_to_json,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shared plumbing
# ---------------------------------------------------------------------------


def _fail(message: str) -> NoReturn:
    """Print a fatal error to stderr and exit with status 1."""
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        help="Also append log records to this file",
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        help="Log record format (default: text, or logging.format from config)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )


def _split_globs(values: list[str] | None) -> list[str]:
    globs: list[str] = []
    for value in values or []:
        globs.extend(v.strip() for v in value.split(",") if v.strip())
    return globs


def _bootstrap(
    args: argparse.Namespace,
    base_url: str | None = None,
    api_key: str | None = None,
    store_path: str | None = None,
    insecure: bool = False,
) -> tuple[Config, UnifiedConfig]:
    """Load .env, YAML config and env vars; configure logging.

    Returns:
        The validated ``Config`` and the full ``UnifiedConfig``.
    """
    load_dotenv()
    try:
        unified = build_config(load_hierarchical_config())
    except (OSError, yaml.YAMLError, ValueError) as exc:
        _fail(f"Invalid configuration file: {exc}")

    setup_logging(
        debug=args.debug,
        log_file=args.log_file or unified.logging.file,
        log_format=args.log_format or unified.logging.format,
        default_level=unified.logging.level,
    )

    try:
        config = load_config(
            base_url=base_url,
            api_key=api_key,
            store_path=store_path,
            insecure=insecure,
            yaml_fallbacks=to_yaml_fallbacks(unified),
        )
    except ValueError as exc:
        _fail(str(exc))
    return config, unified


def _open_store(config: Config, must_exist: bool) -> SnapshotStore:
    if not config.store_path:
        _fail("No store configured: pass --store=<file> or set WIKI_STORE")
    try:
        return SnapshotStore.open(
            Path(config.store_path).expanduser(), must_exist=must_exist
        )
    except WikiSyncError as exc:
        _fail(str(exc))


# ---------------------------------------------------------------------------
# wiki-export
# ---------------------------------------------------------------------------


def export_main(argv: list[str] | None = None) -> None:
    """Export pages, versions and images to a directory tree."""
    parser = argparse.ArgumentParser(
        prog="wiki-export",
        description="Export wiki pages and images to a git-friendly directory tree",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Latest content of every page plus images
  wiki-export ./backup --store=wiki.json

  # Full history including drafts, preview only
  wiki-export ./backup --all-versions --include-drafts --dry-run
        """,
    )
    parser.add_argument("destination", help="Export directory")
    parser.add_argument(
        "--include-drafts",
        action="store_true",
        help="Include draft versions (with --all-versions)",
    )
    versions = parser.add_mutually_exclusive_group()
    versions.add_argument(
        "--latest-only",
        action="store_true",
        help="Export only the latest content of each page (default)",
    )
    versions.add_argument(
        "--all-versions",
        action="store_true",
        help="Also export every version into versions/ subdirectories",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be exported without writing files",
    )
    parser.add_argument("--store", help="Store snapshot file (or WIKI_STORE)")
    parser.add_argument(
        "--exclude",
        action="append",
        metavar="GLOB[,GLOB]",
        help="Skip pages whose path matches a glob (repeatable)",
    )
    _add_common_arguments(parser)
    args = parser.parse_args(argv)

    config, unified = _bootstrap(args, store_path=args.store)
    store = _open_store(config, must_exist=True)

    options = ExportOptions(
        include_drafts=args.include_drafts,
        all_versions=args.all_versions,
        dry_run=args.dry_run,
        exclude=_split_globs(args.exclude) + list(unified.export.exclude),
    )
    logger.info("Export path: %s", args.destination)

    try:
        report = Exporter(store, options).run(Path(args.destination))
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(1)

    print(format_export_report(report))


# ---------------------------------------------------------------------------
# wiki-import
# ---------------------------------------------------------------------------


def import_main(argv: list[str] | None = None) -> None:
    """Import an export tree into the store."""
    parser = argparse.ArgumentParser(
        prog="wiki-import",
        description="Import wiki pages and images from an export tree",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Add pages that do not exist yet
  wiki-import ./backup --store=wiki.json

  # Re-sync from a backup without creating redundant versions
  wiki-import ./backup --smart --import-versions
        """,
    )
    parser.add_argument("source", help="Directory produced by wiki-export")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--skip-existing",
        dest="mode",
        action="store_const",
        const=ImportMode.SKIP_EXISTING,
        help="Leave existing pages, versions and images untouched (default)",
    )
    mode.add_argument(
        "--update-existing",
        dest="mode",
        action="store_const",
        const=ImportMode.UPDATE_EXISTING,
        help="Overwrite existing pages, versions and images",
    )
    mode.add_argument(
        "--smart",
        dest="mode",
        action="store_const",
        const=ImportMode.SMART,
        help="Create a new version only when content actually changed",
    )
    parser.set_defaults(mode=ImportMode.SKIP_EXISTING)
    parser.add_argument(
        "--import-versions",
        action="store_true",
        help="Also import version files from versions/ subdirectories",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be imported without making changes",
    )
    parser.add_argument("--store", help="Store snapshot file (or WIKI_STORE)")
    parser.add_argument(
        "--exclude",
        action="append",
        metavar="GLOB[,GLOB]",
        help="Skip pages whose path matches a glob (repeatable)",
    )
    _add_common_arguments(parser)
    args = parser.parse_args(argv)

    config, unified = _bootstrap(args, store_path=args.store)

    source = Path(args.source)
    if not source.is_dir():
        _fail(f"Import path does not exist: {source}")

    store = _open_store(config, must_exist=False)
    options = ImportOptions(
        mode=args.mode,
        import_versions=args.import_versions,
        dry_run=args.dry_run,
        exclude=_split_globs(args.exclude) + list(unified.export.exclude),
    )
    logger.info("Import path: %s", source)

    try:
        report = Importer(store, options).run(source)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(1)

    print(format_import_report(report))


# ---------------------------------------------------------------------------
# wiki-fix-image-links
# ---------------------------------------------------------------------------


def fix_links_main(argv: list[str] | None = None) -> None:
    """Rewrite image references to ``/api/images/<id>`` through the API."""
    parser = argparse.ArgumentParser(
        prog="wiki-fix-image-links",
        description="Update image links in all pages to /api/images/<id>",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Preview against a local instance
  wiki-fix-image-links --dry-run

  # Fix links on a remote instance
  wiki-fix-image-links --base-url=https://wiki.example.com --api-key=KEY

  # Show the image listing only
  wiki-fix-image-links --list-images
        """,
    )
    parser.add_argument(
        "--base-url",
        help="Wiki base URL (takes precedence over WIKI_BASE_URL and config files)",
    )
    parser.add_argument(
        "--api-key",
        help="API key (or WIKI_API_KEY / IMPORT_API_KEY env var)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be changed without updating pages",
    )
    parser.add_argument(
        "--list-images",
        action="store_true",
        help="List all images known to the API and exit",
    )
    parser.add_argument(
        "--report",
        help="Audit report path (default: image-link-fix-report-<timestamp>.json)",
    )
    _add_common_arguments(parser)
    args = parser.parse_args(argv)

    config, _ = _bootstrap(
        args,
        base_url=args.base_url,
        api_key=args.api_key,
        insecure=args.insecure,
    )
    client = WikiApiClient(config)
    resolver = ImageLinkResolver(client, config)

    try:
        client.check_health()
        if args.list_images:
            print(format_image_list(resolver.list_images()))
            return
        if args.dry_run:
            logger.info("DRY RUN MODE - no changes will be made")
        report = resolver.run(dry_run=args.dry_run)
    except WikiSyncError as exc:
        _fail(str(exc))
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(1)

    report_path = Path(
        args.report or f"image-link-fix-report-{int(time.time() * 1000)}.json"
    )
    try:
        write_file(report_path, json.dumps(report_to_json(report), indent=2))
    except OSError as exc:
        logger.error("Cannot write report %s: %s", report_path, exc)
        report_path = None

    print(format_link_report(report, str(report_path) if report_path else None))
