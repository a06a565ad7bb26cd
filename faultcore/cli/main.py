"""Command-line interface for faultcore."""

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import click

from faultcore import __version__
from faultcore.cache.file_store import FileCacheService
from faultcore.cache.keys import file_path_for_key
from faultcore.cache.models import FileCacheConfig
from faultcore.core.config import load_file_cache_config
from faultcore.core.exceptions import FaultCoreError
from faultcore.observability.logging import configure_logging

logger = logging.getLogger(__name__)

T = TypeVar("T")

location_option = click.option(
    "--location",
    "-l",
    default=None,
    help="Cache directory (defaults to the configured cache location)",
)


def _file_cache(location: str | None) -> FileCacheService:
    config = load_file_cache_config()
    config["enabled"] = True
    if location:
        config["cache_location"] = location
    return FileCacheService(FileCacheConfig(**config))


def _run(location: str | None, action: Callable[[FileCacheService], Awaitable[T]]) -> T:
    async def execute() -> T:
        cache = _file_cache(location)
        try:
            return await action(cache)
        finally:
            await cache.close()

    try:
        return asyncio.run(execute())
    except FaultCoreError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level for cache diagnostics",
)
def cli(log_level: str) -> None:
    """faultcore - caching infrastructure for fault analysis."""
    configure_logging(level=log_level.upper())


@cli.group()
def cache() -> None:
    """Inspect and maintain a file cache directory."""
    pass


@cache.command()
@location_option
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def info(location: str | None, output_json: bool) -> None:
    """Show the cache directory and its entries."""

    async def collect(cache: FileCacheService) -> dict[str, Any]:
        expired = sum(1 for entry in cache.index.values() if entry.is_expired())
        size = sum(
            entry.path.stat().st_size
            for entry in cache.index.values()
            if entry.path.exists()
        )
        return {
            "directory": str(cache.cache_directory),
            "entries": cache.entry_count(),
            "expired": expired,
            "bytes": size,
        }

    summary = _run(location, collect)
    if output_json:
        click.echo(json.dumps(summary, indent=2))
        return

    click.echo(f"Directory: {summary['directory']}")
    click.echo(f"Entries:   {summary['entries']}")
    click.echo(f"Expired:   {summary['expired']}")
    click.echo(f"Size:      {summary['bytes']} bytes")


@cache.command()
@location_option
@click.argument("key")
def get(location: str | None, key: str) -> None:
    """Print the value cached under KEY as JSON."""

    async def lookup(cache: FileCacheService) -> tuple[str, Any]:
        path = file_path_for_key(key, cache.cache_directory)
        return path.name, await cache.try_get(key)

    file_name, value = _run(location, lookup)
    if value is None:
        click.echo(f"No entry for {key!r} ({file_name})", err=True)
        sys.exit(1)
    click.echo(json.dumps(value, indent=2))


@cache.command()
@location_option
@click.argument("key")
def remove(location: str | None, key: str) -> None:
    """Remove the entry cached under KEY."""

    async def delete(cache: FileCacheService) -> None:
        await cache.remove(key)

    _run(location, delete)
    click.echo(f"Removed {key!r}")


@cache.command()
@location_option
def sweep(location: str | None) -> None:
    """Delete expired entries now."""

    async def run_sweep(cache: FileCacheService) -> int:
        return await cache.sweep_expired()

    removed = _run(location, run_sweep)
    click.echo(f"Removed {removed} expired entries")


@cache.command()
@location_option
@click.confirmation_option(prompt="Delete every cached entry?")
def clear(location: str | None) -> None:
    """Delete every entry in the cache directory."""

    async def run_clear(cache: FileCacheService) -> int:
        return await cache.clear()

    removed = _run(location, run_clear)
    click.echo(f"Cleared {removed} entries")


@cli.command()
def version() -> None:
    """Show version information."""
    click.echo(f"faultcore v{__version__}")


if __name__ == "__main__":
    cli()
