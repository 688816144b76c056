"""Tests for the path/filename mapper."""

from __future__ import annotations

from pathlib import Path

import pytest

from wiki_sync.sync.mapper import PathMapper, sanitize_filename, split_page_path

# ---------------------------------------------------------------------------
# sanitize_filename
# ---------------------------------------------------------------------------


class TestSanitizeFilename:
    @pytest.mark.parametrize(
        "title, expected",
        [
            ("Getting Started", "Getting-Started"),
            ("The Sun: God of Light?", "The-Sun-God-of-Light"),
            ('a<b>c"d|e*f', "a-b-c-d-e-f"),
            ("back\\slash/fwd", "back-slash-fwd"),
            ("many   spaces\tand\ttabs", "many-spaces-and-tabs"),
            ("dash -- run", "dash-run"),
            ("trailing dot.", "trailing-dot"),
        ],
    )
    def test_unsafe_characters_replaced(self, title, expected):
        assert sanitize_filename(title) == expected

    def test_empty_title_falls_back(self):
        assert sanitize_filename("   ") == "untitled"
        assert sanitize_filename("???") == "untitled"

    def test_unicode_kept(self):
        assert sanitize_filename("Überblick Ära") == "Überblick-Ära"


class TestSplitPagePath:
    def test_empty_segments_dropped(self):
        assert split_page_path("//guides//intro/") == ["guides", "intro"]


# ---------------------------------------------------------------------------
# Page -> file
# ---------------------------------------------------------------------------


class TestPageToFile:
    def test_nested_page(self, tmp_path):
        mapper = PathMapper(tmp_path)
        assert mapper.page_file("/guides/intro", "Getting Started") == (
            tmp_path / "guides" / "Getting-Started.html"
        )

    def test_top_level_page(self, tmp_path):
        mapper = PathMapper(tmp_path)
        assert mapper.page_file("/home", "Home") == tmp_path / "Home.html"

    def test_version_file(self, tmp_path):
        mapper = PathMapper(tmp_path)
        assert mapper.version_file("/guides/intro", "Getting Started", 3) == (
            tmp_path / "guides" / "versions" / "Getting-Started-v3.html"
        )

    def test_image_paths(self, tmp_path):
        mapper = PathMapper(tmp_path)
        assert mapper.image_file("sun.png") == tmp_path / "images" / "sun.png"
        assert mapper.image_meta_file("sun.png") == (
            tmp_path / "images" / "sun.png.meta"
        )
        assert mapper.manifest_file() == tmp_path / "export-manifest.json"


# ---------------------------------------------------------------------------
# File -> page
# ---------------------------------------------------------------------------


class TestDerivePagePath:
    def test_page_file(self, tmp_path):
        mapper = PathMapper(tmp_path)
        file = tmp_path / "guides" / "Getting-Started.html"
        assert mapper.derive_page_path(file) == "/guides/Getting-Started"

    def test_version_file_drops_versions_and_suffix(self, tmp_path):
        mapper = PathMapper(tmp_path)
        file = tmp_path / "guides" / "versions" / "Getting-Started-v12.html"
        assert mapper.derive_page_path(file) == "/guides/Getting-Started"

    def test_is_version_file(self, tmp_path):
        mapper = PathMapper(tmp_path)
        assert mapper.is_version_file(tmp_path / "a" / "versions" / "x-v1.html")
        assert not mapper.is_version_file(tmp_path / "a" / "x.html")
        # A page whose file is literally named versions.html is not a version
        assert not mapper.is_version_file(tmp_path / "versions.html")


class TestExclude:
    def test_glob_matching(self, tmp_path):
        mapper = PathMapper(tmp_path, exclude=["/drafts/*", "/secret"])
        assert mapper.is_excluded("/drafts/plan")
        assert mapper.is_excluded("/secret")
        assert not mapper.is_excluded("/guides/intro")

    def test_no_patterns(self, tmp_path):
        assert not PathMapper(tmp_path).is_excluded("/anything")


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _touch(path: Path, text: str = "x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class TestDiscovery:
    def test_classifies_pages_and_versions(self, tmp_path):
        page = _touch(tmp_path / "guides" / "Intro.html")
        home = _touch(tmp_path / "Home.html")
        version = _touch(tmp_path / "guides" / "versions" / "Intro-v1.html")
        _touch(tmp_path / "guides" / "notes.txt")
        _touch(tmp_path / "images" / "embedded.html")

        pages, versions = PathMapper(tmp_path).discover_content_files()
        assert pages == sorted([page, home])
        assert versions == [version]

    def test_missing_root(self, tmp_path):
        mapper = PathMapper(tmp_path / "nope")
        assert mapper.discover_content_files() == ([], [])
        assert mapper.discover_image_files() == []

    def test_images_exclude_sidecars(self, tmp_path):
        img = _touch(tmp_path / "images" / "sun.png")
        _touch(tmp_path / "images" / "sun.png.meta", "{}")
        assert PathMapper(tmp_path).discover_image_files() == [img]
