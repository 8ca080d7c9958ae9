"""Disk-based HTTP response cache for GET requests.

Uses :mod:`diskcache` to persist responses on the filesystem. Freshness
follows the server where it says something (``Cache-Control: max-age``,
``Expires``) and falls back to the configured TTL. Entries that carry an
``ETag`` or ``Last-Modified`` validator outlive their freshness so that a
stale entry can be revalidated with a conditional request; a ``304 Not
Modified`` answer then serves the stored body.

Cache keys are SHA-256 hashes of ``METHOD|URL|sorted_params`` so that
identical requests always resolve to the same entry regardless of
parameter ordering.

See Also:
    :class:`~httperform.models.CacheConfig` -- ``enabled``, ``ttl_seconds``,
    ``mode`` and ``use_on_error``.
"""

from __future__ import annotations

import email.utils
import hashlib
import json
import time
from pathlib import Path
from typing import Any, Callable, Optional, Union

import diskcache
import httpx

from httperform.cache.base import CacheInterceptor, PathLike
from httperform.client.response import BodyPath, Response
from httperform.exceptions import TransportFailure
from httperform.models import CacheConfig, CacheMode
from httperform.output import debug
from httperform.policy.errors import error_is_error
from httperform.request import Request

AttemptResult = Union[Response, TransportFailure]


def _cache_control(headers: httpx.Headers) -> dict[str, Optional[str]]:
    directives: dict[str, Optional[str]] = {}
    for value in headers.get_list("cache-control", split_commas=True):
        name, sep, arg = value.strip().partition("=")
        if name:
            directives[name.lower()] = arg.strip('"') if sep else None
    return directives


def _parse_http_date(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return email.utils.parsedate_to_datetime(value).timestamp()
    except (TypeError, ValueError):
        return None


class ResponseCache(CacheInterceptor):
    """Disk-backed cache interceptor for HTTP GET responses.

    Args:
        cache_dir: Root directory for the cache. A ``responses/``
            subdirectory is created inside it.
        config: Cache configuration.
        clock: Returns the current POSIX time.

    Example::

        from httperform.cache import ResponseCache
        from httperform.models import CacheConfig

        cache = ResponseCache("/tmp/api-cache", CacheConfig(ttl_seconds=300))
        response = perform(new_request(url).with_cache(cache))
    """

    def __init__(
        self,
        cache_dir: Union[str, Path],
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or CacheConfig()
        self._clock = clock
        self._cache: Optional[diskcache.Cache] = None
        self._cache_dir = Path(cache_dir)
        if self._config.enabled:
            self._cache = diskcache.Cache(str(self._cache_dir / "responses"))

    # ------------------------------------------------------------------ #
    # Interceptor
    # ------------------------------------------------------------------ #

    def pre_fetch(self, request: Request, path: PathLike = None) -> Optional[Response]:
        if self._mode(request) != CacheMode.USE:
            return None
        entry = self._lookup(request)
        if entry is None or entry["expires_at"] <= self._clock():
            return None
        debug(f"Cache hit for {request.url}")
        return self._to_response(entry, request, path)

    def revalidation_headers(self, request: Request) -> dict[str, str]:
        if self._mode(request) != CacheMode.USE:
            return {}
        entry = self._lookup(request)
        if entry is None:
            return {}
        headers = httpx.Headers(entry["headers"])
        conditional: dict[str, str] = {}
        if "etag" in headers:
            conditional["If-None-Match"] = headers["etag"]
        if "last-modified" in headers:
            conditional["If-Modified-Since"] = headers["last-modified"]
        return conditional

    def post_fetch(
        self, request: Request, result: AttemptResult, path: PathLike = None
    ) -> AttemptResult:
        mode = self._mode(request)
        if mode is None or mode == CacheMode.OFF:
            return result

        if isinstance(result, TransportFailure) or error_is_error(request, result):
            if self._config.use_on_error and mode == CacheMode.USE:
                entry = self._lookup(request)
                if entry is not None:
                    debug(f"Request failed, serving cached response for {request.url}")
                    return self._to_response(entry, request, path)
            return result

        if result.status_code == 304:
            entry = self._lookup(request)
            if entry is None:
                return result
            headers = httpx.Headers(entry["headers"])
            for name, value in result.headers.multi_items():
                headers[name] = value
            entry["headers"] = headers.multi_items()
            entry["expires_at"] = self._expiry(headers)
            self._store(request, entry)
            debug(f"Revalidated cached response for {request.url}")
            return self._to_response(entry, request, path)

        if 200 <= result.status_code < 300:
            self._save(request, result)
        return result

    # ------------------------------------------------------------------ #
    # Maintenance
    # ------------------------------------------------------------------ #

    def invalidate(self, method: str, url: str, params: Optional[dict] = None) -> None:
        """Remove a specific cache entry by its key components."""
        if self._cache is None:
            return
        self._cache.delete(self._make_key(method, url, params))

    def clear(self) -> None:
        """Remove all entries from the cache."""
        if self._cache is not None:
            self._cache.clear()

    def stats(self) -> dict[str, Any]:
        """Return ``enabled`` and, when enabled, ``size``, ``directory``, ``ttl_seconds`` and ``mode``."""
        if self._cache is None:
            return {"enabled": False}
        return {
            "enabled": True,
            "size": len(self._cache),
            "directory": str(self._cache_dir / "responses"),
            "ttl_seconds": self._config.ttl_seconds,
            "mode": self._config.mode.value,
        }

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        if self._cache is not None:
            self._cache.close()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _mode(self, request: Request) -> Optional[CacheMode]:
        """The effective mode, or ``None`` when the request is not cacheable."""
        if self._cache is None or request.effective_method != "GET":
            return None
        return request.policies.cache_mode or self._config.mode

    def _lookup(self, request: Request) -> Optional[dict[str, Any]]:
        assert self._cache is not None
        return self._cache.get(self._key_for(request))

    def _store(self, request: Request, entry: dict[str, Any]) -> None:
        assert self._cache is not None
        headers = httpx.Headers(entry["headers"])
        if "etag" in headers or "last-modified" in headers:
            expire = None
        else:
            expire = entry["expires_at"] - self._clock()
            if expire <= 0:
                return
        self._cache.set(self._key_for(request), entry, expire=expire)

    def _save(self, request: Request, response: Response) -> None:
        directives = _cache_control(response.headers)
        if "no-store" in directives:
            return
        entry = {
            "status_code": response.status_code,
            "headers": response.headers.multi_items(),
            "body": response.content,
            "url": response.url,
            "stored_at": self._clock(),
            "expires_at": self._expiry(response.headers),
        }
        self._store(request, entry)

    def _expiry(self, headers: httpx.Headers) -> float:
        now = self._clock()
        directives = _cache_control(headers)
        if "no-cache" in directives:
            return now
        max_age = directives.get("max-age")
        if max_age is not None:
            try:
                return now + max(0, int(max_age))
            except ValueError:
                pass
        expires = _parse_http_date(headers.get("expires"))
        if expires is not None:
            return expires
        return now + self._config.ttl_seconds

    def _to_response(
        self, entry: dict[str, Any], request: Request, path: PathLike
    ) -> Response:
        body: Union[bytes, BodyPath] = entry["body"]
        if path is not None:
            target = Path(path)
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as f:
                f.write(entry["body"])
            body = BodyPath(target)
        return Response(
            status_code=entry["status_code"],
            headers=httpx.Headers(entry["headers"]),
            body=body,
            url=entry["url"],
            method="GET",
            request=request,
        )

    def _key_for(self, request: Request) -> str:
        return self._make_key(request.effective_method, request.url, dict(request.params))

    def _make_key(self, method: str, url: str, params: Optional[dict]) -> str:
        """Generate a cache key from method, URL, and sorted params."""
        parts = [method.upper(), url]
        if params:
            parts.append(json.dumps(params, sort_keys=True, default=str))
        raw = "|".join(parts)
        return hashlib.sha256(raw.encode()).hexdigest()
