"""Typed exception hierarchy for the sync tools.

All exceptions inherit from ``WikiSyncError`` so that the command line
entry points can catch any application-level failure in one place.
"""


class WikiSyncError(Exception):
    """Base exception for all wiki_sync errors."""


class ApiError(WikiSyncError):
    """Raised when the wiki API answers with a non-success status."""

    def __init__(self, status_code: int, url: str, message: str = ""):
        detail = f": {message}" if message else ""
        super().__init__(f"HTTP {status_code} from {url}{detail}")
        self.status_code = status_code
        self.url = url
        self.message = message

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500


class ApiUnreachableError(WikiSyncError):
    """Raised when the wiki API cannot be reached at all."""

    def __init__(self, url: str, reason: str = ""):
        detail = f" ({reason})" if reason else ""
        super().__init__(f"Wiki API is not reachable at {url}{detail}")
        self.url = url


class StoreError(WikiSyncError):
    """Raised when the persistence store cannot be opened or written."""


class MetadataError(WikiSyncError):
    """Raised when an image sidecar or metadata header is malformed."""


class PathValidationError(WikiSyncError):
    """Raised when a page path or filename fails validation."""
