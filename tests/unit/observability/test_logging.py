"""Tests for observability/logging.py."""

from __future__ import annotations

import io
import json
import logging
from collections.abc import Iterator
from types import SimpleNamespace

import pytest
import structlog

from tagcache_ops.observability.logging import (
    _resolve_level,
    bind_cache_context,
    clear_cache_context,
    configure_logging,
    decode_redis_bytes,
)


def _make_settings(**overrides: object) -> SimpleNamespace:
    """Create a minimal mock settings object."""
    defaults: dict[str, object] = {"log_format": "console", "log_level": "INFO"}
    defaults.update(overrides)
    return SimpleNamespace(**defaults)


@pytest.fixture(autouse=True)
def _restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    clear_cache_context()
    structlog.reset_defaults()


def _json_lines(stream: io.StringIO) -> list[dict[str, object]]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


@pytest.mark.unit
class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_single_root_handler(self) -> None:
        configure_logging(_make_settings())  # type: ignore[arg-type]
        configure_logging(_make_settings())  # type: ignore[arg-type]
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.INFO

    def test_json_lines_carry_bound_context(self) -> None:
        stream = io.StringIO()
        configure_logging(_make_settings(log_format="json"), stream=stream)  # type: ignore[arg-type]

        bind_cache_context(prefix="app:", mode="cluster")
        structlog.get_logger("tagcache.test").info("tags_flushed", tags=["users"], keys=3)

        record = _json_lines(stream)[-1]
        assert record["event"] == "tags_flushed"
        assert record["keys"] == 3
        assert record["prefix"] == "app:"
        assert record["mode"] == "cluster"
        assert record["level"] == "info"

    def test_stdlib_records_use_same_renderer(self) -> None:
        stream = io.StringIO()
        configure_logging(_make_settings(log_format="json", log_level="DEBUG"), stream=stream)  # type: ignore[arg-type]

        logging.getLogger("tagcache.plain").warning("reconnecting")

        record = _json_lines(stream)[-1]
        assert record["event"] == "reconnecting"
        assert record["logger"] == "tagcache.plain"

    def test_redis_logger_quieted(self) -> None:
        configure_logging(_make_settings(log_level="DEBUG"))  # type: ignore[arg-type]
        assert logging.getLogger("redis").level == logging.WARNING

    def test_redis_logger_follows_stricter_level(self) -> None:
        configure_logging(_make_settings(log_level="ERROR"))  # type: ignore[arg-type]
        assert logging.getLogger("redis").level == logging.ERROR


@pytest.mark.unit
class TestProcessors:
    """Custom processors."""

    def test_bytes_values_decoded(self) -> None:
        event = {"event": "x", "key": b"user:1", "count": 2}
        assert decode_redis_bytes(None, "info", event) == {"event": "x", "key": "user:1", "count": 2}


@pytest.mark.unit
class TestResolveLevel:
    """Level name mapping."""

    def test_known(self) -> None:
        assert _resolve_level("debug") == logging.DEBUG
        assert _resolve_level("ERROR") == logging.ERROR

    def test_unknown_defaults_to_info(self) -> None:
        assert _resolve_level("chatty") == logging.INFO
