"""Tests for the JSON snapshot store."""

from __future__ import annotations

import json

import pytest

from wiki_sync.core.errors import StoreError
from wiki_sync.store.snapshot import SnapshotStore
from wiki_sync.sync.models import User


def _seed(store: SnapshotStore) -> None:
    store.add_user(User(id="u-alice", username="alice"))
    page = store.create_page(
        {"path": "/home", "title": "Home", "content": "<h1>Home</h1>"}
    )
    store.create_version(
        {
            "page_id": page.id,
            "version": 1,
            "title": "Home",
            "content": "<h1>Home</h1>",
            "path": "/home",
        }
    )
    store.create_image(
        {"filename": "sun.png", "data": b"\x89PNG\x00\xff", "user_id": "u-alice"}
    )


class TestOpen:
    def test_missing_file_allowed(self, tmp_path):
        store = SnapshotStore.open(tmp_path / "store.json")
        assert store.pages == {}
        assert not (tmp_path / "store.json").exists()

    def test_missing_file_required(self, tmp_path):
        with pytest.raises(StoreError, match="not found"):
            SnapshotStore.open(tmp_path / "store.json", must_exist=True)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(StoreError, match="directory does not exist"):
            SnapshotStore.open(tmp_path / "nope" / "store.json")

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{broken", encoding="utf-8")
        with pytest.raises(StoreError, match="Cannot read"):
            SnapshotStore.open(path)


class TestPersistence:
    def test_every_mutation_is_saved(self, tmp_path):
        path = tmp_path / "store.json"
        store = SnapshotStore.open(path)
        store.create_page({"path": "/a", "title": "A"})

        raw = json.loads(path.read_text(encoding="utf-8"))
        assert [p["path"] for p in raw["pages"]] == ["/a"]
        assert raw["version"] == 1

    def test_reload_round_trip(self, tmp_path):
        path = tmp_path / "store.json"
        store = SnapshotStore.open(path)
        _seed(store)

        reloaded = SnapshotStore.open(path, must_exist=True)

        assert reloaded.list_pages() == store.list_pages()
        assert reloaded.versions == store.versions
        assert reloaded.find_image_by_filename("sun.png").data == (
            b"\x89PNG\x00\xff"
        )
        assert reloaded.find_user("u-alice").username == "alice"

    def test_ids_continue_after_reload(self, tmp_path):
        path = tmp_path / "store.json"
        _seed(SnapshotStore.open(path))

        reloaded = SnapshotStore.open(path)
        page = reloaded.create_page({"path": "/b", "title": "B"})
        image = reloaded.create_image({"filename": "b.png"})

        assert page.id == 2
        assert image.id == 2

    def test_image_data_base64_encoded(self, tmp_path):
        path = tmp_path / "store.json"
        _seed(SnapshotStore.open(path))

        raw = json.loads(path.read_text(encoding="utf-8"))
        assert raw["images"][0]["data"] == "iVBORwD/"

    def test_no_temp_files_left(self, tmp_path):
        path = tmp_path / "store.json"
        _seed(SnapshotStore.open(path))
        assert sorted(p.name for p in tmp_path.iterdir()) == ["store.json"]

    def test_failed_write_keeps_previous_snapshot(self, tmp_path, monkeypatch):
        path = tmp_path / "store.json"
        store = SnapshotStore.open(path)
        store.create_page({"path": "/a", "title": "A"})
        before = path.read_text(encoding="utf-8")

        def broken(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr("wiki_sync.store.snapshot.json.dump", broken)
        with pytest.raises(OSError):
            store.create_page({"path": "/b", "title": "B"})

        assert path.read_text(encoding="utf-8") == before
        assert sorted(p.name for p in tmp_path.iterdir()) == ["store.json"]


class TestUniqueness:
    def test_duplicate_path_rejected(self, tmp_path):
        store = SnapshotStore.open(tmp_path / "store.json")
        store.create_page({"path": "/a", "title": "A"})
        with pytest.raises(StoreError, match="already exists"):
            store.create_page({"path": "/a", "title": "Again"})

    def test_duplicate_version_rejected(self, tmp_path):
        store = SnapshotStore.open(tmp_path / "store.json")
        _seed(store)
        with pytest.raises(StoreError, match="already exists"):
            store.create_version(
                {"page_id": 1, "version": 1, "title": "x", "path": "/home"}
            )
