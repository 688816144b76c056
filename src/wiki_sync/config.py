"""Runtime configuration for the sync tools.

Reads wiki API and store settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    WIKI_BASE_URL: Base URL of the wiki API (optional, default: http://localhost:3000)
    WIKI_API_KEY: API key sent as X-API-Key (optional; IMPORT_API_KEY is accepted too)
    WIKI_INSECURE: Skip SSL verification (optional, default: false)
    WIKI_TIMEOUT: Request timeout in seconds (optional, default: 30)
    WIKI_RETRY_DELAY: Delay before retrying a failed page update (optional, default: 1.0)
    WIKI_STORE: Path to the JSON store snapshot used by export/import (optional)
"""

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:3000"


@dataclass
class Config:
    base_url: str = DEFAULT_BASE_URL
    api_key: str | None = None
    insecure: bool = False
    timeout: float = 30.0
    retry_delay: float = 1.0
    store_path: str | None = None


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the URL format is invalid or a numeric value is out
            of range.
    """
    config.base_url = config.base_url.strip()

    if not config.base_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid base URL '{config.base_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.base_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid base URL '{config.base_url}': URL must include a hostname"
        )

    config.base_url = config.base_url.removesuffix("/")

    if config.timeout <= 0:
        raise ValueError(
            f"Invalid timeout {config.timeout}: must be greater than 0"
        )
    if config.retry_delay < 0:
        raise ValueError(
            f"Invalid retry delay {config.retry_delay}: must not be negative"
        )

    if config.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _get_float(
    env_key: str, fallbacks: dict, fb_key: str, default: float
) -> float:
    raw = os.getenv(env_key)
    if raw is not None:
        try:
            return float(raw)
        except ValueError:
            raise ValueError(
                f"Invalid {env_key} '{raw}': must be a number"
            ) from None
    if fb_key in fallbacks:
        return float(fallbacks[fb_key])
    return default


def load_config(
    base_url: str | None = None,
    api_key: str | None = None,
    store_path: str | None = None,
    insecure: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        base_url: Override API base URL.
        api_key: Override API key.
        store_path: Override store snapshot path.
        insecure: Skip SSL verification (CLI flag).
        yaml_fallbacks: Flat dict of values taken from the YAML config
            (keys: base_url, api_key, insecure, timeout, retry_delay,
            store_path). Used when CLI arg and env var are both unset.

    Returns:
        Validated Config instance.
    """
    fb = yaml_fallbacks or {}

    final_url = (
        base_url
        or os.getenv("WIKI_BASE_URL")
        or fb.get("base_url")
        or DEFAULT_BASE_URL
    )

    final_key = (
        api_key
        or os.getenv("WIKI_API_KEY")
        or os.getenv("IMPORT_API_KEY")
        or fb.get("api_key")
    )

    final_store = (
        store_path or os.getenv("WIKI_STORE") or fb.get("store_path")
    )

    if insecure:
        final_insecure = True
    else:
        env_insecure = _get_bool_env("WIKI_INSECURE")
        if env_insecure is not None:
            final_insecure = env_insecure
        else:
            final_insecure = bool(fb.get("insecure", False))

    config = Config(
        base_url=final_url,
        api_key=final_key or None,
        insecure=final_insecure,
        timeout=_get_float("WIKI_TIMEOUT", fb, "timeout", 30.0),
        retry_delay=_get_float(
            "WIKI_RETRY_DELAY", fb, "retry_delay", 1.0
        ),
        store_path=final_store or None,
    )

    validate_config(config)

    return config
