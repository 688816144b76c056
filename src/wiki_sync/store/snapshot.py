"""JSON snapshot persistence for ``MemoryStore``.

The command line tools open the wiki database through a snapshot file::

    {
      "version": 1,
      "saved_at": "...",
      "next_ids": {"page": 4, "version": 9, "image": 3},
      "users": [...], "pages": [...], "versions": [...], "images": [...]
    }

Key design choices:

* **Atomic writes** -- the snapshot is rewritten after every mutation via
  a temp file and ``os.replace()`` so readers never see partial data and
  each logical mutation is atomic.
* **Binary data** -- image payloads are base64-encoded.
"""

from __future__ import annotations

import base64
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from ..core.errors import StoreError
from ..sync.models import Image, Page, PageVersion, User
from .memory import MemoryStore

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class SnapshotStore(MemoryStore):
    """A ``MemoryStore`` backed by a JSON snapshot file.

    Args:
        path: Snapshot file. It need not exist yet; the first mutation
            creates it.
    """

    def __init__(self, path: Path) -> None:
        super().__init__()
        self.path = path

    @classmethod
    def open(cls, path: Path, must_exist: bool = False) -> SnapshotStore:
        """Open a snapshot, loading it when present.

        Raises:
            StoreError: If the file is missing while *must_exist* is set,
                its directory does not exist, or it cannot be parsed.
        """
        store = cls(path)
        if path.exists():
            store.load()
        elif must_exist:
            raise StoreError(f"Store snapshot not found: {path}")
        elif not path.parent.is_dir():
            raise StoreError(
                f"Store directory does not exist: {path.parent}"
            )
        return store

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        try:
            with open(self.path, encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(
                f"Cannot read store snapshot {self.path}: {exc}"
            ) from exc

        self.users = {
            u.id: u
            for u in (User.model_validate(item) for item in raw.get("users", []))
        }
        self.pages = {
            p.id: p
            for p in (Page.model_validate(item) for item in raw.get("pages", []))
        }
        self.versions = {
            v.id: v
            for v in (
                PageVersion.model_validate(item)
                for item in raw.get("versions", [])
            )
        }
        self.images = {}
        for item in raw.get("images", []):
            item = dict(item)
            item["data"] = base64.b64decode(item.get("data", ""))
            image = Image.model_validate(item)
            self.images[image.id] = image

        self._next_ids = {
            "page": max(self.pages, default=0) + 1,
            "version": max(self.versions, default=0) + 1,
            "image": max(self.images, default=0) + 1,
        }
        self._next_ids.update(raw.get("next_ids", {}))
        logger.debug(
            "Loaded store snapshot %s: %d pages, %d versions, %d images",
            self.path,
            len(self.pages),
            len(self.versions),
            len(self.images),
        )

    def to_dict(self) -> dict:
        images = []
        for image in self.list_images():
            item = image.model_dump(mode="json", exclude={"data"})
            item["data"] = base64.b64encode(image.data).decode("ascii")
            images.append(item)
        return {
            "version": SNAPSHOT_VERSION,
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "next_ids": dict(self._next_ids),
            "users": [u.model_dump(mode="json") for u in self.users.values()],
            "pages": [p.model_dump(mode="json") for p in self.list_pages()],
            "versions": [
                v.model_dump(mode="json")
                for v in sorted(self.versions.values(), key=lambda v: v.id)
            ],
            "images": images,
        }

    def save(self) -> None:
        """Persist the snapshot atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self.to_dict(), fh, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            # Clean up temp file on any failure.
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    def _after_mutation(self) -> None:
        self.save()

    def add_user(self, user: User) -> None:
        super().add_user(user)
        self.save()
