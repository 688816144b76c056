from unittest.mock import Mock, patch

import pytest
import requests

from wiki_sync.config import Config
from wiki_sync.core.client import WikiApiClient
from wiki_sync.core.errors import ApiError, ApiUnreachableError
from wiki_sync.sync.models import Image, Page


def _response(status_code=200, payload=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.text = text
    response.content = b"" if payload is None else b"{...}"
    response.json.return_value = payload
    return response


# Session setup
def test_api_url_construction(mock_config):
    client = WikiApiClient(mock_config)
    assert client.api_url == "https://wiki.example.com/api"


def test_api_url_trailing_slash():
    client = WikiApiClient(Config(base_url="http://localhost:3000/"))
    assert client.api_url == "http://localhost:3000/api"


def test_session_sends_api_key(mock_config):
    """API key is sent as X-API-Key and SSL verification is on."""
    client = WikiApiClient(mock_config)
    assert client.session.headers["X-API-Key"] == "test-key"
    assert client.session.headers["Content-Type"] == "application/json"
    assert client.session.verify


def test_session_without_key_insecure():
    client = WikiApiClient(Config(base_url="http://localhost", insecure=True))
    assert "X-API-Key" not in client.session.headers
    assert not client.session.verify


def test_session_is_reused(mock_config):
    client = WikiApiClient(mock_config)
    assert client.session is client.session


# Listings
@patch("wiki_sync.core.client.requests.Session.request")
def test_list_images(mock_request, mock_config):
    mock_request.return_value = _response(
        payload=[
            {"id": 1, "filename": "sun.png", "mimetype": "image/png"},
            {"id": 2, "filename": "map.jpg"},
        ]
    )

    client = WikiApiClient(mock_config)
    images = client.list_images()

    assert images == [
        Image(id=1, filename="sun.png", mimetype="image/png"),
        Image(id=2, filename="map.jpg"),
    ]
    method, url = mock_request.call_args[0]
    assert (method, url) == ("GET", "https://wiki.example.com/api/images")
    assert mock_request.call_args[1]["timeout"] == 5.0


@patch("wiki_sync.core.client.requests.Session.request")
def test_list_pages_empty_body(mock_request, mock_config):
    mock_request.return_value = _response(payload=None)

    client = WikiApiClient(mock_config)
    assert client.list_pages() == []


# Single page
@patch("wiki_sync.core.client.requests.Session.request")
def test_fetch_page_content(mock_request, mock_config):
    mock_request.return_value = _response(
        payload={
            "id": 7,
            "path": "/guides/intro",
            "title": "Intro",
            "content": "<p>x</p>",
        }
    )

    client = WikiApiClient(mock_config)
    page = client.fetch_page_content(7)

    assert isinstance(page, Page)
    assert page.content == "<p>x</p>"
    assert mock_request.call_args[0][1].endswith("/api/pages/7")


@patch("wiki_sync.core.client.requests.Session.request")
def test_fetch_page_not_found_returns_none(mock_request, mock_config):
    mock_request.return_value = _response(404, text="Not Found")

    client = WikiApiClient(mock_config)
    assert client.fetch_page_content(99) is None


@patch("wiki_sync.core.client.requests.Session.request")
def test_fetch_page_server_error_raises(mock_request, mock_config):
    mock_request.return_value = _response(500, text="boom")

    client = WikiApiClient(mock_config)
    with pytest.raises(ApiError) as exc_info:
        client.fetch_page_content(1)

    assert exc_info.value.status_code == 500
    assert exc_info.value.is_server_error
    assert "boom" in str(exc_info.value)


# Updates
@patch("wiki_sync.core.client.requests.Session.request")
def test_update_page_sends_put(mock_request, mock_config):
    mock_request.return_value = _response(payload={"success": True})

    client = WikiApiClient(mock_config)
    result = client.update_page(
        3, "Intro", "<p>new</p>", "/guides/intro", "Fixed links"
    )

    assert result == {"success": True}
    method, url = mock_request.call_args[0]
    assert method == "PUT"
    assert url == "https://wiki.example.com/api/pages/3"
    assert mock_request.call_args[1]["json"] == {
        "title": "Intro",
        "content": "<p>new</p>",
        "path": "/guides/intro",
        "change_summary": "Fixed links",
    }


@patch("wiki_sync.core.client.requests.Session.request")
def test_update_page_client_error(mock_request, mock_config):
    mock_request.return_value = _response(403, text="Forbidden")

    client = WikiApiClient(mock_config)
    with pytest.raises(ApiError) as exc_info:
        client.update_page(3, "T", "c", "/t", "s")

    assert exc_info.value.status_code == 403
    assert not exc_info.value.is_server_error


# Connectivity
@patch("wiki_sync.core.client.requests.Session.request")
def test_connection_error_is_unreachable(mock_request, mock_config):
    mock_request.side_effect = requests.ConnectionError("refused")

    client = WikiApiClient(mock_config)
    with pytest.raises(ApiUnreachableError, match="refused"):
        client.list_images()


@patch("wiki_sync.core.client.requests.Session.request")
def test_timeout_is_unreachable(mock_request, mock_config):
    mock_request.side_effect = requests.Timeout("slow")

    client = WikiApiClient(mock_config)
    with pytest.raises(ApiUnreachableError):
        client.list_pages()


@patch("wiki_sync.core.client.requests.Session.request")
def test_check_health_ok(mock_request, mock_config):
    mock_request.return_value = _response(payload={"status": "ok"})

    WikiApiClient(mock_config).check_health()

    assert mock_request.call_args[0][1].endswith("/api/health")


@patch("wiki_sync.core.client.requests.Session.request")
def test_check_health_bad_status(mock_request, mock_config):
    mock_request.return_value = _response(503, text="down")

    with pytest.raises(ApiUnreachableError, match="health check returned 503"):
        WikiApiClient(mock_config).check_health()
