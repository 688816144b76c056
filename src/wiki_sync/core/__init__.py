"""HTTP access to the wiki API shared by the command line tools."""

from .client import WikiApiClient
from .errors import ApiError, ApiUnreachableError, WikiSyncError

__all__ = [
    "ApiError",
    "ApiUnreachableError",
    "WikiApiClient",
    "WikiSyncError",
]
