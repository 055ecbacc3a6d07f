"""Application settings using pydantic-settings."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tagcache_core.constants import (
    DEFAULT_ADD_TTL_SECONDS,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_PRUNE_PAUSE_MS,
    DEFAULT_SCAN_COUNT,
    DEFAULT_TAGGED_KEYS_THRESHOLD,
)


class Settings(BaseSettings):
    """Central configuration for the tagged cache engine."""

    model_config = SettingsConfigDict(env_prefix="TAGCACHE_", env_file=".env")

    # --- Redis ---
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )
    redis_cluster: bool = Field(
        default=False,
        description="Connect with a RedisCluster client and use sequential cluster mode",
    )
    cache_prefix: str = Field(
        default="tagcache:",
        description="Prefix prepended to every cache, reverse index, tag hash and registry key",
    )

    # --- Batching ---
    put_many_chunk_size: int = Field(
        default=DEFAULT_CHUNK_SIZE,
        description="Keys written per chunk by put_many",
    )
    tagged_keys_threshold: int = Field(
        default=DEFAULT_TAGGED_KEYS_THRESHOLD,
        description="Tag hash size at or below which all keys are fetched in one call",
    )
    tagged_keys_scan_count: int = Field(
        default=DEFAULT_SCAN_COUNT,
        description="HSCAN COUNT hint when enumerating large tags",
    )
    tag_items_batch_size: int = Field(
        default=DEFAULT_CHUNK_SIZE,
        description="Keys fetched per MGET when reading tag items",
    )
    flush_chunk_size: int = Field(
        default=DEFAULT_CHUNK_SIZE,
        description="Keys deleted per batch during a tag flush",
    )

    # --- Prune ---
    prune_scan_count: int = Field(
        default=DEFAULT_SCAN_COUNT,
        description="HSCAN COUNT hint when pruning orphaned tag hash fields",
    )
    prune_pause_ms: int = Field(
        default=DEFAULT_PRUNE_PAUSE_MS,
        description="Pause between tag hashes while pruning, in milliseconds",
    )

    # --- Facade defaults ---
    add_default_ttl_seconds: int = Field(
        default=DEFAULT_ADD_TTL_SECONDS,
        description="TTL applied by add() when the caller passes no TTL (one year)",
    )

    # --- Logging ---
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Root log level",
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
        description="Log renderer: human-readable console or JSON lines",
    )

    # --- Tracing ---
    otel_exporter: Literal["none", "console", "otlp"] = Field(
        default="none",
        description="OpenTelemetry span exporter",
    )
    otel_endpoint: str = Field(
        default="http://localhost:4317",
        description="OTLP gRPC endpoint",
    )
    otel_service_name: str = Field(
        default="tagcache",
        description="Service name reported on spans",
    )

    @field_validator(
        "put_many_chunk_size",
        "tagged_keys_threshold",
        "tagged_keys_scan_count",
        "tag_items_batch_size",
        "flush_chunk_size",
        "prune_scan_count",
        "add_default_ttl_seconds",
    )
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Batch sizes, thresholds and TTLs must be at least 1."""
        if value < 1:
            msg = "must be at least 1"
            raise ValueError(msg)
        return value

    @field_validator("prune_pause_ms")
    @classmethod
    def validate_pause(cls, value: int) -> int:
        """Pause may be zero but not negative."""
        if value < 0:
            msg = "prune_pause_ms cannot be negative"
            raise ValueError(msg)
        return value
