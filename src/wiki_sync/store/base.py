"""Persistence interface consumed by the exporter and importer.

The relational persistence layer lives outside this package; the sync
engine only talks to it through ``WikiStore``. Each mutating call must be
atomic as seen by readers -- the engine does no locking of its own.
"""

from __future__ import annotations

from typing import Any, Protocol

from ..sync.models import Image, Page, PageVersion, User


class WikiStore(Protocol):
    """Protocol that every store implementation must satisfy."""

    # Pages -------------------------------------------------------------

    def list_pages(self) -> list[Page]: ...

    def find_page_by_path(self, path: str) -> Page | None: ...

    def create_page(self, data: dict[str, Any]) -> Page: ...

    def update_page(self, page_id: int, data: dict[str, Any]) -> Page: ...

    def fetch_page_content(self, page_id: int) -> Page | None: ...

    # Versions ----------------------------------------------------------

    def list_versions(self, page_id: int) -> list[PageVersion]:
        """Versions of a page in ascending version order."""
        ...

    def latest_version(self, page_id: int) -> PageVersion | None: ...

    def find_version(
        self, page_id: int, version: int
    ) -> PageVersion | None: ...

    def create_version(self, data: dict[str, Any]) -> PageVersion: ...

    def update_version(
        self, version_id: int, data: dict[str, Any]
    ) -> PageVersion: ...

    # Images ------------------------------------------------------------

    def list_images(self) -> list[Image]: ...

    def find_image_by_filename(self, filename: str) -> Image | None: ...

    def create_image(self, data: dict[str, Any]) -> Image: ...

    def update_image(self, image_id: int, data: dict[str, Any]) -> Image: ...

    # Users -------------------------------------------------------------

    def find_user(self, user_id: str) -> User | None: ...

    def first_user(self) -> User | None: ...
