"""CLI entrypoint using typer."""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from typing import Any

import structlog
import typer
from rich.console import Console
from rich.table import Table

from tagcache_cli.doctor import CheckResult, run_doctor, summarize
from tagcache_core.config.settings import Settings
from tagcache_core.models.results import PruneStats
from tagcache_ops.observability import (
    bind_cache_context,
    configure_logging,
    configure_tracing,
    trace_command,
)
from tagcache_ops.store import RedisTagStore

app = typer.Typer(
    name="tagcache",
    help="Maintenance commands for the Redis any-tag cache",
)
console = Console()
logger = structlog.get_logger()


def _settings(verbose: bool, prefix: str | None) -> Settings:
    """Load settings, apply command-line overrides and configure observability."""
    settings = Settings()
    if verbose:
        settings.log_level = "DEBUG"
    if prefix is not None:
        settings.cache_prefix = prefix
    configure_logging(settings)
    configure_tracing(settings)
    bind_cache_context(prefix=settings.cache_prefix)
    return settings


def open_store(settings: Settings) -> RedisTagStore:
    """Connect to Redis as configured."""
    return RedisTagStore.from_settings(settings)


PREFIX_OPTION = typer.Option(None, "--prefix", help="Override TAGCACHE_CACHE_PREFIX")
VERBOSE_OPTION = typer.Option(False, "-v", "--verbose", help="Enable debug logging")


@app.command()
def prune(
    scan_count: int | None = typer.Option(
        None, "--scan-count", min=1, help="HSCAN COUNT hint per batch"
    ),
    prefix: str | None = PREFIX_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Remove orphaned tag fields, empty tag hashes and expired tags."""
    settings = _settings(verbose, prefix)
    stats = asyncio.run(_prune(settings, scan_count))

    table = Table(title="Prune results")
    table.add_column("Metric")
    table.add_column("Count", justify="right")
    for name, value in stats.model_dump().items():
        table.add_row(name.replace("_", " "), str(value))
    console.print(table)


@app.command()
def flush(
    tags: list[str] = typer.Argument(..., help="Tags to flush"),
    prefix: str | None = PREFIX_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Delete every entry stored under any of the given tags."""
    settings = _settings(verbose, prefix)
    asyncio.run(_flush(settings, tags))
    console.print(f"[green]Flushed[/green] {', '.join(tags)}")


@app.command()
def keys(
    tag: str = typer.Argument(..., help="Tag to list"),
    prefix: str | None = PREFIX_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """List the keys stored under one tag."""
    settings = _settings(verbose, prefix)
    found = asyncio.run(_keys(settings, tag))
    for key in found:
        console.print(key)
    console.print(f"[dim]{len(found)} key(s)[/dim]")


@app.command()
def items(
    tags: list[str] = typer.Argument(..., help="Tags to read"),
    limit: int | None = typer.Option(None, "--limit", min=1, help="Stop after N items"),
    prefix: str | None = PREFIX_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Print the live key/value pairs under any of the given tags."""
    settings = _settings(verbose, prefix)
    rows = asyncio.run(_items(settings, tags, limit))

    table = Table(title=f"Items tagged {', '.join(tags)}")
    table.add_column("Key")
    table.add_column("Value")
    for key, value in rows:
        table.add_row(key, repr(value))
    console.print(table)


@app.command()
def doctor(
    prefix: str | None = PREFIX_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Check the server, exercise every tagged operation and verify cleanup."""
    settings = _settings(verbose, prefix)
    results = asyncio.run(_doctor(settings))

    table = Table(title="tagcache doctor")
    table.add_column("Check")
    table.add_column("Result")
    table.add_column("Detail")
    for result in results:
        status = "[green]ok[/green]" if result.passed else "[red]failed[/red]"
        table.add_row(result.name, status, result.detail)
    console.print(table)

    summary = summarize(results)
    if summary["failed"]:
        console.print(
            f"[red]{len(summary['failed'])} check(s) failed:[/red] {', '.join(summary['failed'])}"
        )
        raise typer.Exit(code=1)
    console.print(f"[green]All {summary['passed']} checks passed[/green]")


@app.command()
def version() -> None:
    """Show version."""
    console.print("tagcache v0.1.0")


async def _prune(settings: Settings, scan_count: int | None) -> PruneStats:
    store = open_store(settings)
    try:
        async with trace_command("prune", mode=store.mode.value):
            return await store.prune(scan_count)
    finally:
        await store.aclose()


async def _flush(settings: Settings, tags: list[str]) -> None:
    store = open_store(settings)
    try:
        async with trace_command("flush", tags=tags):
            await store.tags(tags).flush()
    finally:
        await store.aclose()


async def _keys(settings: Settings, tag: str) -> list[str]:
    store = open_store(settings)
    try:
        async with trace_command("keys", tag=tag):
            return [key async for key in store.any_tag_ops.get_tagged_keys.execute(tag)]
    finally:
        await store.aclose()


async def _items(settings: Settings, tags: list[str], limit: int | None) -> list[tuple[str, Any]]:
    store = open_store(settings)
    rows: list[tuple[str, Any]] = []
    try:
        async with trace_command("items", tags=tags):
            async with aclosing(store.tags(tags).items()) as found:
                async for row in found:
                    rows.append(row)
                    if limit is not None and len(rows) >= limit:
                        break
    finally:
        await store.aclose()
    return rows


async def _doctor(settings: Settings) -> list[CheckResult]:
    store = open_store(settings)
    try:
        async with trace_command("doctor", mode=store.mode.value):
            return await run_doctor(store, settings.redis_url)
    finally:
        await store.aclose()


if __name__ == "__main__":
    app()
