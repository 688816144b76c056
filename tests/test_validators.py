"""Tests for page path and filename validation."""

import pytest

from wiki_sync.validators import validate_filename, validate_page_path


class TestValidatePagePath:
    @pytest.mark.parametrize(
        "path", ["/home", "/guides/intro", "/lore/gods/sun", "/a-b_c/ü"]
    )
    def test_valid(self, path):
        assert validate_page_path(path) == (True, "")

    @pytest.mark.parametrize(
        "path, reason",
        [
            ("", "cannot be empty"),
            ("   ", "cannot be empty"),
            ("guides/intro", "must start with '/'"),
            ("/guides/../etc", "'..'"),
            ("/./x", "'..'"),
            ("/a\\b", "backslashes"),
            ("/a\x00b", "NUL"),
        ],
    )
    def test_invalid(self, path, reason):
        valid, message = validate_page_path(path)
        assert not valid
        assert reason in message


class TestValidateFilename:
    def test_valid(self):
        assert validate_filename("sun.png") == (True, "")

    @pytest.mark.parametrize(
        "filename", ["", "  ", "../evil.png", "a/b.png", "a\\b.png", ".."]
    )
    def test_invalid(self, filename):
        valid, message = validate_filename(filename)
        assert not valid
        assert message.startswith("Filename")
