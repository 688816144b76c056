"""Dict-backed ``WikiStore`` implementation.

Used directly by tests as an injectable fake and as the base of
``SnapshotStore``. Identifiers are assigned from per-table counters.
Every mutating call bumps ``mutation_count`` and runs ``_after_mutation``
so subclasses can persist.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..core.errors import StoreError
from ..sync.models import Image, Page, PageVersion, User


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryStore:
    """In-memory store with unique page paths and unique version numbers.

    Args:
        users: Users known to the store (image owners).
    """

    def __init__(self, users: list[User] | None = None) -> None:
        self.users: dict[str, User] = {u.id: u for u in users or []}
        self.pages: dict[int, Page] = {}
        self.versions: dict[int, PageVersion] = {}
        self.images: dict[int, Image] = {}
        self._next_ids = {"page": 1, "version": 1, "image": 1}
        self.mutation_count = 0

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _allocate(self, table: str) -> int:
        new_id = self._next_ids[table]
        self._next_ids[table] = new_id + 1
        return new_id

    def _mutated(self) -> None:
        self.mutation_count += 1
        self._after_mutation()

    def _after_mutation(self) -> None:
        """Hook for subclasses; called after every mutation."""

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def list_pages(self) -> list[Page]:
        return sorted(self.pages.values(), key=lambda p: p.id)

    def find_page_by_path(self, path: str) -> Page | None:
        for page in self.pages.values():
            if page.path == path:
                return page
        return None

    def fetch_page_content(self, page_id: int) -> Page | None:
        return self.pages.get(page_id)

    def create_page(self, data: dict[str, Any]) -> Page:
        if self.find_page_by_path(data["path"]) is not None:
            raise StoreError(f"Page path already exists: {data['path']}")
        now = _now()
        fields = {"created_at": now, "updated_at": now, **data}
        page = Page(id=self._allocate("page"), **fields)
        self.pages[page.id] = page
        self._mutated()
        return page

    def update_page(self, page_id: int, data: dict[str, Any]) -> Page:
        page = self.pages.get(page_id)
        if page is None:
            raise StoreError(f"Page {page_id} not found")
        new_path = data.get("path")
        if new_path and new_path != page.path:
            other = self.find_page_by_path(new_path)
            if other is not None:
                raise StoreError(f"Page path already exists: {new_path}")
        updated = page.model_copy(update=data)
        self.pages[page_id] = updated
        self._mutated()
        return updated

    # ------------------------------------------------------------------
    # Versions
    # ------------------------------------------------------------------

    def list_versions(self, page_id: int) -> list[PageVersion]:
        return sorted(
            (v for v in self.versions.values() if v.page_id == page_id),
            key=lambda v: v.version,
        )

    def latest_version(self, page_id: int) -> PageVersion | None:
        versions = self.list_versions(page_id)
        return versions[-1] if versions else None

    def find_version(
        self, page_id: int, version: int
    ) -> PageVersion | None:
        for v in self.versions.values():
            if v.page_id == page_id and v.version == version:
                return v
        return None

    def create_version(self, data: dict[str, Any]) -> PageVersion:
        if data["page_id"] not in self.pages:
            raise StoreError(f"Page {data['page_id']} not found")
        if self.find_version(data["page_id"], data["version"]):
            raise StoreError(
                f"Version {data['version']} of page {data['page_id']} "
                "already exists"
            )
        fields = {"edited_at": _now(), **data}
        version = PageVersion(id=self._allocate("version"), **fields)
        self.versions[version.id] = version
        self._mutated()
        return version

    def update_version(
        self, version_id: int, data: dict[str, Any]
    ) -> PageVersion:
        version = self.versions.get(version_id)
        if version is None:
            raise StoreError(f"Version {version_id} not found")
        updated = version.model_copy(update=data)
        self.versions[version_id] = updated
        self._mutated()
        return updated

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def list_images(self) -> list[Image]:
        return sorted(self.images.values(), key=lambda i: i.id)

    def find_image_by_filename(self, filename: str) -> Image | None:
        for image in self.list_images():
            if image.filename == filename:
                return image
        return None

    def create_image(self, data: dict[str, Any]) -> Image:
        fields = {"created_at": _now(), **data}
        image = Image(id=self._allocate("image"), **fields)
        self.images[image.id] = image
        self._mutated()
        return image

    def update_image(self, image_id: int, data: dict[str, Any]) -> Image:
        image = self.images.get(image_id)
        if image is None:
            raise StoreError(f"Image {image_id} not found")
        updated = image.model_copy(update=data)
        self.images[image_id] = updated
        self._mutated()
        return updated

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def add_user(self, user: User) -> None:
        self.users[user.id] = user

    def find_user(self, user_id: str) -> User | None:
        return self.users.get(user_id)

    def first_user(self) -> User | None:
        return next(iter(self.users.values()), None)
