"""Tests for Settings configuration."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from tagcache_core.config.settings import Settings
from tagcache_core.constants import (
    DEFAULT_ADD_TTL_SECONDS,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_PRUNE_PAUSE_MS,
    DEFAULT_SCAN_COUNT,
)


@pytest.mark.unit
class TestSettings:
    """Test Settings validation and defaults."""

    def test_default_settings(self) -> None:
        """Defaults match the documented wire-compatible values."""
        with patch.dict(os.environ, {}, clear=True):
            s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.redis_url == "redis://localhost:6379/0"
        assert s.redis_cluster is False
        assert s.cache_prefix == "tagcache:"
        assert s.put_many_chunk_size == 1000
        assert s.tagged_keys_threshold == 1000
        assert s.prune_pause_ms == 5
        assert s.add_default_ttl_seconds == 31536000
        assert s.otel_exporter == "none"

    def test_defaults_follow_constants(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.flush_chunk_size == s.tag_items_batch_size == DEFAULT_CHUNK_SIZE
        assert s.tagged_keys_scan_count == s.prune_scan_count == DEFAULT_SCAN_COUNT
        assert s.prune_pause_ms == DEFAULT_PRUNE_PAUSE_MS
        assert s.add_default_ttl_seconds == DEFAULT_ADD_TTL_SECONDS

    def test_env_prefix(self) -> None:
        """TAGCACHE_ environment variables override defaults."""
        env = {"TAGCACHE_CACHE_PREFIX": "app:", "TAGCACHE_REDIS_CLUSTER": "true"}
        with patch.dict(os.environ, env, clear=True):
            s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.cache_prefix == "app:"
        assert s.redis_cluster is True

    def test_empty_prefix_allowed(self) -> None:
        """An empty prefix is valid."""
        assert Settings(cache_prefix="").cache_prefix == ""

    @pytest.mark.parametrize(
        "field",
        ["put_many_chunk_size", "tagged_keys_threshold", "flush_chunk_size", "prune_scan_count"],
    )
    def test_sizes_must_be_positive(self, field: str) -> None:
        """Batch sizes below 1 are rejected."""
        with pytest.raises(ValidationError, match="must be at least 1"):
            Settings(**{field: 0})  # type: ignore[arg-type]

    def test_negative_pause_rejected(self) -> None:
        """Pause may be zero but not negative."""
        assert Settings(prune_pause_ms=0).prune_pause_ms == 0
        with pytest.raises(ValidationError, match="cannot be negative"):
            Settings(prune_pause_ms=-1)

    def test_invalid_exporter_rejected(self) -> None:
        """Only known exporters are accepted."""
        with pytest.raises(ValidationError):
            Settings(otel_exporter="zipkin")  # type: ignore[arg-type]
