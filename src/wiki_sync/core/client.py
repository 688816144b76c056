import logging
from typing import Any

import requests

from ..config import Config
from ..sync.models import Image, Page
from .errors import ApiError, ApiUnreachableError

logger = logging.getLogger(__name__)


class WikiApiClient:
    """HTTP client for the wiki's JSON API.

    Only the endpoints the link resolver needs are wrapped: image and page
    listings, single-page reads, page updates (which create a new version
    server-side), and the health probe.
    """

    def __init__(self, config: Config):
        self.config = config
        self.api_url = f"{config.base_url.rstrip('/')}/api"
        self._session: requests.Session | None = None

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = self._create_session()
        return self._session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers["Content-Type"] = "application/json"
        if self.config.api_key:
            session.headers["X-API-Key"] = self.config.api_key
        session.verify = not self.config.insecure
        return session

    def _request(
        self, method: str, endpoint: str, json: Any = None
    ) -> Any:
        """
        Send a request to ``/api/<endpoint>`` and decode the JSON body.

        Raises:
            ApiUnreachableError: On connection failures and timeouts.
            ApiError: On any non-2xx response.
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        try:
            response = self.session.request(
                method,
                url,
                json=json,
                timeout=self.config.timeout,
            )
        except (
            requests.ConnectionError,
            requests.Timeout,
        ) as exc:
            raise ApiUnreachableError(url, str(exc)) from exc

        if not response.ok:
            raise ApiError(response.status_code, url, response.text)

        if not response.content:
            return None
        return response.json()

    def check_health(self) -> None:
        """
        Probe ``/api/health``.

        Raises:
            ApiUnreachableError: If the server cannot be reached or does not
                report itself healthy.
        """
        try:
            self._request("GET", "health")
        except ApiError as exc:
            raise ApiUnreachableError(
                self.api_url, f"health check returned {exc.status_code}"
            ) from exc

    def list_images(self) -> list[Image]:
        """
        List every image known to the target store.

        Returns:
            Images with at least ``id`` and ``filename`` populated.
        """
        data = self._request("GET", "images") or []
        return [Image.model_validate(item) for item in data]

    def list_pages(self) -> list[Page]:
        """
        List all pages. Listing entries may carry no content; use
        ``fetch_page_content`` for the full body.
        """
        data = self._request("GET", "pages") or []
        return [Page.model_validate(item) for item in data]

    def fetch_page_content(self, page_id: int) -> Page | None:
        """
        Fetch one page including content.

        Returns:
            The page, or ``None`` if the server answers 404.
        """
        try:
            data = self._request("GET", f"pages/{page_id}")
        except ApiError as exc:
            if exc.is_not_found:
                return None
            raise
        return Page.model_validate(data)

    def update_page(
        self,
        page_id: int,
        title: str,
        content: str,
        path: str,
        change_summary: str,
    ) -> dict[str, Any]:
        """
        Update a page through the API. The server records a new version.

        Raises:
            ApiError: With the HTTP status of a failed update.
        """
        payload = {
            "title": title,
            "content": content,
            "path": path,
            "change_summary": change_summary,
        }
        return self._request("PUT", f"pages/{page_id}", json=payload) or {}
