"""The ``httperform request`` command -- perform one HTTP request.

Builds a :class:`~httperform.request.Request` from the active profile (or
from a bare URL when no profile is configured), applies command-line
overrides, and runs it through :func:`~httperform.client.performer.perform`.
The response body goes to stdout; status and trace lines go to stderr.
"""

from __future__ import annotations

import json
from typing import Optional

import typer

from httperform.exceptions import HttperformError, ValidationError
from httperform.output import error


def _parse_header(raw: str) -> tuple[str, str]:
    name, sep, value = raw.partition(":")
    if not sep or not name.strip():
        raise ValidationError(f"Invalid header {raw!r}: expected 'Name: value'")
    return name.strip(), value.strip()


def request_command(
    ctx: typer.Context,
    url: str = typer.Argument(
        help="Absolute URL, or a path resolved against the profile's base_url."
    ),
    method: Optional[str] = typer.Option(
        None, "--method", "-X", help="HTTP method (default GET, or POST with a body)."
    ),
    header: list[str] = typer.Option(
        [], "--header", "-H", help="Request header 'Name: value'. Repeatable."
    ),
    data: Optional[str] = typer.Option(
        None, "--data", "-d", help="Raw request body."
    ),
    json_body: Optional[str] = typer.Option(
        None, "--json", help="JSON request body."
    ),
    path: Optional[str] = typer.Option(
        None, "--path", help="Stream the response body to this file."
    ),
    verbosity: Optional[int] = typer.Option(
        None, "--verbosity", "-V", help="0 silent, 1 headers, 2 bodies, 3 diagnostics."
    ),
    max_tries: Optional[int] = typer.Option(
        None, "--max-tries", help="Maximum number of attempts."
    ),
    max_seconds: Optional[float] = typer.Option(
        None, "--max-seconds", help="Wall-clock budget for all attempts."
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", "-p", help="Profile name (overrides the global --profile)."
    ),
    no_cache: bool = typer.Option(
        False, "--no-cache", help="Bypass the response cache."
    ),
) -> None:
    """Perform an HTTP request.

    Example::

        httperform request https://httpbin.org/get
        httperform -p myapi request /users -H "Accept: application/json" -V 1
        httperform request https://httpbin.org/post --json '{"a": 1}' --max-tries 3
    """
    from httperform.auth import create_default_manager
    from httperform.cache import ResponseCache
    from httperform.client.performer import perform
    from httperform.client.response import format_api_response
    from httperform.config import get_cache_dir, resolve_config
    from httperform.models import CacheMode
    from httperform.request import new_request, request_from_profile

    if profile is None and ctx.obj:
        profile = ctx.obj.get("profile")

    cache = None
    try:
        config, active = resolve_config(cli_profile=profile, cli_verbosity=verbosity)

        if config.cache.enabled and not no_cache:
            cache = ResponseCache(get_cache_dir(), config.cache)
        mode = CacheMode.OFF if no_cache else None

        if active is not None:
            req = request_from_profile(
                active,
                url,
                method=method,
                auth_manager=create_default_manager(),
                cache=cache,
                cache_mode=mode,
            )
        else:
            req = new_request(url, method=method)
            if cache is not None:
                req = req.with_cache(cache, mode)

        if header:
            req = req.with_headers(dict(_parse_header(h) for h in header))
        if data is not None and json_body is not None:
            raise ValidationError("Use either --data or --json, not both.")
        if json_body is not None:
            try:
                req = req.with_body_json(json.loads(json_body))
            except json.JSONDecodeError as exc:
                raise ValidationError(f"Invalid JSON body: {exc}") from exc
        elif data is not None:
            req = req.with_body_raw(data)
        req = req.with_retry(max_tries=max_tries, max_seconds=max_seconds)

        response = perform(req, path=path, verbosity=config.output.verbosity)
        format_api_response(response)
    except HttperformError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    finally:
        if cache is not None:
            cache.close()
