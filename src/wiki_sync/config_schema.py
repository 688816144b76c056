"""Unified configuration schema for wiki_sync.

Defines Pydantic models for the YAML config structure with dedicated
sections for the wiki API, the store snapshot, export filtering and
logging, plus an adapter that flattens it into the fallback dict
consumed by ``load_config()``.

Usage:
    from wiki_sync.config_schema import build_config, to_yaml_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=to_yaml_fallbacks(unified))
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ApiConfig(BaseModel):
    """Wiki API connection settings.

    All fields are optional so that env vars and CLI args can supply
    them at runtime instead.
    """

    base_url: str | None = Field(
        default=None, description="Wiki base URL"
    )
    api_key: str | None = Field(
        default=None, description="API key sent as X-API-Key"
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    timeout: float = Field(
        default=30.0, gt=0, le=600, description="Request timeout in seconds"
    )
    retry_delay: float = Field(
        default=1.0,
        ge=0,
        le=60,
        description="Delay before the single retry of a failed page update",
    )

    model_config = {"frozen": True}


class StoreConfig(BaseModel):
    """Location of the JSON store snapshot."""

    path: str | None = Field(
        default=None, description="Path to the store snapshot file"
    )

    model_config = {"frozen": True}


class ExportConfig(BaseModel):
    """Filtering applied to export and import runs.

    Attributes:
        exclude: Glob patterns matched against page paths
            (e.g. ``"/drafts/*"``).
    """

    exclude: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: ``"text"`` or ``"json"``.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: str = Field(default="text", pattern="^(text|json)$")

    model_config = {"frozen": True}


class UnifiedConfig(BaseModel):
    """Top-level configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    api: ApiConfig = Field(default_factory=ApiConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def to_yaml_fallbacks(unified: UnifiedConfig) -> dict:
    """Flatten the API and store sections into ``load_config()`` fallbacks.

    ``None`` values are dropped so they never shadow built-in defaults.
    """
    flat = dict(unified.api.model_dump())
    flat["store_path"] = unified.store.path
    return {k: v for k, v in flat.items() if v is not None}
