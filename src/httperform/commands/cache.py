"""Cache commands -- inspect and clear the response cache."""

from __future__ import annotations

import typer

from httperform.output import format_response, info, success


cache_app = typer.Typer(no_args_is_help=True)


def _open_cache():
    from httperform.cache import ResponseCache
    from httperform.config import get_cache_dir, load_global_config

    return ResponseCache(get_cache_dir(), load_global_config().cache)


@cache_app.command("stats")
def cache_stats() -> None:
    """Show the number of cached responses and where they live.

    Example::

        httperform cache stats
    """
    cache = _open_cache()
    try:
        stats = cache.stats()
    finally:
        cache.close()
    if not stats["enabled"]:
        info("Response cache is disabled (cache.enabled = false).")
    format_response(stats)


@cache_app.command("clear")
def cache_clear() -> None:
    """Remove every cached response."""
    cache = _open_cache()
    try:
        cache.clear()
    finally:
        cache.close()
    success("Response cache cleared.")
