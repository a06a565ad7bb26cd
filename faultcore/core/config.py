"""Configuration management for faultcore.

This module provides centralized configuration loading from environment
variables with validation and type safety. Cache settings additionally
follow a 3-tier fallback chain:

    1. YAML config (faultcore.yaml ``cache:`` section)
    2. Environment variables (via Settings class)
    3. Hardcoded defaults
"""

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Tier selection
    caching_type: Literal["none", "in_memory", "file_system"] = Field(
        default="file_system", description="Cache tier backing the cache service"
    )

    # File cache (cold tier)
    cache_enabled: bool = Field(default=True, description="Enable the file cache")
    cache_location: str | None = Field(
        default=None,
        description="Cache directory (relative paths resolve under the temp dir)",
    )
    cache_sweep_interval: float = Field(
        default=60.0, description="Seconds between expiration sweeps", gt=0
    )
    cache_default_expiration: int = Field(
        default=86400, description="Default entry lifetime in seconds (24 hours)", ge=1
    )
    cache_seed_expiration_from_mtime: bool = Field(
        default=True,
        description="Seed expiration of existing files from their mtime instead of scan time",
    )

    # Memory cache (hot tier)
    memory_cache_enabled: bool = Field(
        default=True, description="Enable the in-memory cache"
    )
    memory_cache_use_loader: bool = Field(
        default=False, description="Seed and flush the memory cache via blob storage"
    )
    memory_cache_size_limit: int = Field(
        default=100_000_000, description="Total size units held in memory", ge=1
    )
    memory_cache_flush_interval_minutes: float = Field(
        default=10.0, description="Minutes between warm-cache flushes", gt=0
    )
    memory_cache_flush_due_minutes: float = Field(
        default=5.0, description="Minutes before the first warm-cache flush", ge=0
    )

    # Blob storage (warm tier)
    blob_account_url: str | None = Field(
        default=None, description="Blob storage account URL"
    )
    blob_connection_string: str | None = Field(
        default=None, description="Blob storage connection string"
    )
    blob_container: str = Field(default="faultcore", description="Blob container")
    blob_name: str = Field(
        default="memory-cache.json", description="Blob holding the cache snapshot"
    )
    blob_cache_key: str = Field(
        default="", description="Explicit blob key (overrides blob_name)"
    )
    blob_prefix: str = Field(default="", description="Blob path prefix")
    blob_delete_after_load: bool = Field(
        default=True, description="Delete the snapshot blob once it has been loaded"
    )

    # Embeddings
    openai_api_key: str = Field(default="", description="OpenAI API key")
    embedding_model: str = Field(
        default="text-embedding-3-small", description="Embedding model identifier"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str | None = Field(
        default=None, description="Log format (json, console)"
    )
    environment: str = Field(
        default="development", description="Environment (development, production)"
    )

    # OpenTelemetry
    otel_enabled: bool = Field(default=False, description="Enable OpenTelemetry")
    otel_service_name: str = Field(
        default="faultcore", description="Service name for telemetry"
    )
    otel_exporter_otlp_endpoint: str = Field(
        default="http://localhost:4317", description="OTLP exporter endpoint"
    )
    otel_metrics_enabled: bool = Field(
        default=True, description="Enable metrics collection"
    )

    @model_validator(mode="after")
    def validate_loader_storage(self) -> "Settings":
        """Validate blob storage is configured when the cache loader is on."""
        if (
            self.memory_cache_use_loader
            and not self.blob_account_url
            and not self.blob_connection_string
        ):
            raise ValueError(
                "memory_cache_use_loader requires blob_account_url or "
                "blob_connection_string"
            )
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"


def _load_cache_section(name: str) -> dict[str, Any]:
    """Read one subsection of the ``cache:`` block in faultcore.yaml.

    Returns:
        The subsection as a dict, or an empty dict when the file or the
        section is missing or malformed.
    """
    config_path = Path("faultcore.yaml")
    if not config_path.exists():
        return {}

    try:
        with open(config_path) as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError):
        return {}

    if not isinstance(config, dict):
        return {}
    cache_config = config.get("cache", {})
    if not isinstance(cache_config, dict):
        return {}
    if name == "":
        return cache_config
    section = cache_config.get(name, {})
    return section if isinstance(section, dict) else {}


def load_caching_type() -> str:
    """Load the configured cache tier (none, in_memory, file_system)."""
    caching_type = _load_cache_section("").get("type")
    if isinstance(caching_type, str) and caching_type:
        return caching_type
    return settings.caching_type


def load_file_cache_config() -> dict[str, Any]:
    """Load file cache configuration.

    Example:
        >>> config = load_file_cache_config()
        >>> config["sweep_interval"]
        60.0
    """
    defaults = {
        "enabled": settings.cache_enabled,
        "cache_location": settings.cache_location,
        "sweep_interval": settings.cache_sweep_interval,
        "default_expiration": settings.cache_default_expiration,
        "seed_expiration_from_mtime": settings.cache_seed_expiration_from_mtime,
    }
    return {**defaults, **_load_cache_section("file")}


def load_memory_cache_config() -> dict[str, Any]:
    """Load in-memory cache configuration."""
    defaults = {
        "enabled": settings.memory_cache_enabled,
        "use_cache_loader": settings.memory_cache_use_loader,
        "size_limit": settings.memory_cache_size_limit,
        "flush_interval_minutes": settings.memory_cache_flush_interval_minutes,
        "flush_due_minutes": settings.memory_cache_flush_due_minutes,
    }
    return {**defaults, **_load_cache_section("memory")}


def load_blob_storage_config() -> dict[str, Any]:
    """Load blob storage configuration for the warm cache tier."""
    defaults = {
        "account_url": settings.blob_account_url,
        "connection_string": settings.blob_connection_string,
        "container": settings.blob_container,
        "blob_name": settings.blob_name,
        "cache_key": settings.blob_cache_key,
        "prefix": settings.blob_prefix,
        "delete_after_load": settings.blob_delete_after_load,
    }
    return {**defaults, **_load_cache_section("blob")}


# Global settings instance
settings = Settings()
