"""Shared pytest fixtures for wiki-content-sync tests."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from wiki_sync.config import Config
from wiki_sync.store.memory import MemoryStore
from wiki_sync.sync.models import User

WHEN = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_config():
    """Config pointing at a fake wiki, with no retry delay."""
    return Config(
        base_url="https://wiki.example.com",
        api_key="test-key",
        insecure=False,
        timeout=5.0,
        retry_delay=0.0,
    )


@pytest.fixture
def users():
    return [
        User(id="u-alice", username="alice", name="Alice Liddell"),
        User(id="u-bob", username="bob"),
    ]


@pytest.fixture
def memory_store(users):
    """Empty store that knows two users."""
    return MemoryStore(users=users)


@pytest.fixture
def seeded_store(memory_store):
    """Store with 3 pages (one with two versions, one a draft) and 2 images."""
    store = memory_store
    intro = store.create_page(
        {
            "path": "/guides/intro",
            "title": "Getting Started",
            "content": "<p>Welcome</p>",
            "edit_groups": ["admin", "editors"],
            "view_groups": ["players"],
            "created_at": WHEN,
            "updated_at": WHEN,
        }
    )
    store.create_page(
        {
            "path": "/home",
            "title": "Home",
            "content": "<h1>Home</h1>",
            "created_at": WHEN,
            "updated_at": WHEN,
        }
    )
    store.create_page(
        {
            "path": "/lore/gods/sun",
            "title": "The Sun: God of Light?",
            "content": '<p><img src="sun.png"></p>',
            "created_at": WHEN,
            "updated_at": WHEN,
        }
    )
    store.create_version(
        {
            "page_id": intro.id,
            "version": 1,
            "title": "Intro",
            "content": "<p>Draft one</p>",
            "path": "/guides/intro",
            "edited_by": "alice",
            "change_summary": "First",
            "edited_at": WHEN,
        }
    )
    store.create_version(
        {
            "page_id": intro.id,
            "version": 2,
            "title": "Getting Started",
            "content": "<p>Welcome</p>",
            "path": "/guides/intro",
            "edit_groups": ["admin", "editors"],
            "view_groups": ["players"],
            "edited_by": "bob",
            "is_draft": True,
            "edited_at": WHEN,
        }
    )
    store.create_image(
        {
            "filename": "sun.png",
            "mimetype": "image/png",
            "data": b"\x89PNG-sun",
            "user_id": "u-alice",
            "created_at": WHEN,
        }
    )
    store.create_image(
        {
            "filename": "map.jpg",
            "mimetype": "image/jpeg",
            "data": b"\xff\xd8map",
            "user_id": "u-gone",
            "created_at": WHEN,
        }
    )
    return store


@pytest.fixture
def mock_api_client(mock_config):
    """MagicMock standing in for WikiApiClient."""
    from wiki_sync.core.client import WikiApiClient

    client = MagicMock(spec=WikiApiClient)
    client.config = mock_config
    return client
