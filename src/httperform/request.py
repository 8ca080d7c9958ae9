"""The immutable request description consumed by the perform loop.

A :class:`Request` bundles everything one logical perform call needs: the
target URL, method, headers, query parameters, an optional :class:`Body`,
transport options, and a :class:`Policies` bundle that says how to retry,
classify errors, authenticate and cache.

Requests are never mutated. Every ``with_*`` helper returns a modified copy
via :func:`dataclasses.replace`, which is also how the perform loop produces
a re-signed request after an invalid-token response.

Example::

    req = (
        new_request("https://api.example.com/users")
        .with_headers({"Accept": "application/json"})
        .with_retry(max_tries=5, breaker_threshold=3)
    )
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping, Optional

if TYPE_CHECKING:
    from httperform.auth.base import AuthSigner
    from httperform.auth.manager import AuthManager
    from httperform.cache.base import CacheInterceptor
    from httperform.client.response import Response
    from httperform.models import CacheMode, Profile, RetryConfig


class BodyKind(str, enum.Enum):
    """How a :class:`Body` is serialised when the request is prepared."""

    RAW = "raw"
    JSON = "json"
    FORM = "form"
    MULTIPART = "multipart"
    STREAM = "stream"


@dataclass(frozen=True)
class Body:
    """A request body waiting to be serialised.

    Attributes:
        kind: Serialisation strategy.
        data: ``bytes``/``str`` for RAW, any JSON-serialisable value for
            JSON, a mapping for FORM and MULTIPART, an iterable of ``bytes``
            for STREAM.
        content_type: Explicit ``Content-Type``; JSON and FORM bodies fill
            in their own when ``None``.
    """

    kind: BodyKind
    data: Any
    content_type: Optional[str] = None


@dataclass(frozen=True)
class Policies:
    """Named, immutable policy bundle attached to every request.

    Attributes:
        max_tries: Maximum attempts. ``None`` means 1, or unbounded when
            ``max_seconds`` is set.
        max_seconds: Wall-clock budget across all attempts.
        transient_statuses: Statuses retried by default.
        is_transient: Custom predicate replacing ``transient_statuses``.
        retry_on_failure: Whether transport failures are transient.
        retry_after: Custom ``response -> seconds`` extractor consulted
            before the ``Retry-After`` header.
        backoff: Custom ``attempt -> seconds`` function.
        backoff_base: Base of the default exponential backoff.
        backoff_cap: Upper bound of the default exponential backoff.
        breaker_threshold: Consecutive transient attempts after which the
            circuit breaker refuses further attempts.
        is_error: Custom ``response -> bool``; default is status >= 400.
        error_body: Custom ``response -> message`` used in
            :class:`~httperform.exceptions.HttpError`.
        is_invalid_token: Custom ``response -> bool`` that triggers the
            one-shot re-authentication.
        auth: Signer attaching credentials.
        cache: Cache interceptor.
        cache_mode: How *cache* participates.
        on_done: Called after every attempt, whatever its outcome.
        verbosity: Trace level, 0 to 3.
    """

    max_tries: Optional[int] = None
    max_seconds: Optional[float] = None
    transient_statuses: frozenset[int] = frozenset({429, 503})
    is_transient: Optional[Callable[[Response], bool]] = None
    retry_on_failure: bool = True
    retry_after: Optional[Callable[[Response], Optional[float]]] = None
    backoff: Optional[Callable[[int], float]] = None
    backoff_base: float = 1.0
    backoff_cap: float = 60.0
    breaker_threshold: Optional[int] = None
    is_error: Optional[Callable[[Response], bool]] = None
    error_body: Optional[Callable[[Response], Optional[str]]] = None
    is_invalid_token: Optional[Callable[[Response], bool]] = None
    auth: Optional[AuthSigner] = None
    cache: Optional[CacheInterceptor] = None
    cache_mode: Optional[CacheMode] = None
    on_done: Optional[Callable[[], None]] = None
    verbosity: int = 0

    @classmethod
    def from_retry_config(cls, config: RetryConfig, **overrides: Any) -> Policies:
        """Build policies from a persisted :class:`~httperform.models.RetryConfig`."""
        values: dict[str, Any] = {
            "max_tries": config.max_tries,
            "max_seconds": config.max_seconds,
            "transient_statuses": frozenset(config.transient_statuses),
            "retry_on_failure": config.retry_on_failure,
            "backoff_base": config.backoff_base,
            "backoff_cap": config.backoff_cap,
            "breaker_threshold": config.breaker_threshold,
        }
        values.update(overrides)
        return cls(**values)


@dataclass(frozen=True)
class Request:
    """An immutable-by-convention HTTP request description.

    Attributes:
        url: Absolute target URL.
        method: Explicit method, or ``None`` for GET (POST with a body).
        headers: Header names to values.
        params: Query parameters appended to *url*.
        body: Optional :class:`Body`.
        options: Transport options: ``timeout``, ``verify``,
            ``follow_redirects``, ``useragent``.
        policies: The :class:`Policies` bundle.
    """

    url: str
    method: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    params: Mapping[str, Any] = field(default_factory=dict)
    body: Optional[Body] = None
    options: Mapping[str, Any] = field(default_factory=dict)
    policies: Policies = field(default_factory=Policies)

    @property
    def effective_method(self) -> str:
        """The method the transport will use."""
        if self.method:
            return self.method.upper()
        return "POST" if self.body is not None else "GET"

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    # ------------------------------------------------------------------ #
    # Copy helpers
    # ------------------------------------------------------------------ #

    def with_method(self, method: str) -> Request:
        return replace(self, method=method.upper())

    def with_headers(self, headers: Mapping[str, Optional[str]]) -> Request:
        """Return a copy with *headers* merged in.

        Names match case-insensitively; a ``None`` value removes the header.
        """
        merged = dict(self.headers)
        for name, value in headers.items():
            for existing in [k for k in merged if k.lower() == name.lower()]:
                del merged[existing]
            if value is not None:
                merged[name] = value
        return replace(self, headers=merged)

    def with_params(self, params: Mapping[str, Any]) -> Request:
        return replace(self, params={**self.params, **params})

    def with_options(self, **options: Any) -> Request:
        return replace(self, options={**self.options, **options})

    def with_timeout(self, seconds: float) -> Request:
        return self.with_options(timeout=seconds)

    def with_body_raw(
        self, data: bytes | str, content_type: Optional[str] = None
    ) -> Request:
        return replace(self, body=Body(BodyKind.RAW, data, content_type))

    def with_body_json(self, data: Any) -> Request:
        return replace(self, body=Body(BodyKind.JSON, data, "application/json"))

    def with_body_form(self, data: Mapping[str, Any]) -> Request:
        return replace(
            self,
            body=Body(BodyKind.FORM, dict(data), "application/x-www-form-urlencoded"),
        )

    def with_body_multipart(self, data: Mapping[str, Any]) -> Request:
        return replace(self, body=Body(BodyKind.MULTIPART, dict(data)))

    def with_body_stream(
        self, chunks: Iterable[bytes], content_type: Optional[str] = None
    ) -> Request:
        return replace(self, body=Body(BodyKind.STREAM, chunks, content_type))

    def with_policies(self, **changes: Any) -> Request:
        return replace(self, policies=replace(self.policies, **changes))

    def with_retry(
        self,
        max_tries: Optional[int] = None,
        max_seconds: Optional[float] = None,
        is_transient: Optional[Callable[[Response], bool]] = None,
        transient_statuses: Optional[Iterable[int]] = None,
        retry_on_failure: Optional[bool] = None,
        after: Optional[Callable[[Response], Optional[float]]] = None,
        backoff: Optional[Callable[[int], float]] = None,
        breaker_threshold: Optional[int] = None,
    ) -> Request:
        """Return a copy with the given retry settings; ``None`` keeps the current value."""
        changes: dict[str, Any] = {
            "max_tries": max_tries,
            "max_seconds": max_seconds,
            "is_transient": is_transient,
            "retry_on_failure": retry_on_failure,
            "retry_after": after,
            "backoff": backoff,
            "breaker_threshold": breaker_threshold,
        }
        if transient_statuses is not None:
            changes["transient_statuses"] = frozenset(transient_statuses)
        return self.with_policies(**{k: v for k, v in changes.items() if v is not None})

    def with_error(
        self,
        is_error: Optional[Callable[[Response], bool]] = None,
        body: Optional[Callable[[Response], Optional[str]]] = None,
    ) -> Request:
        changes: dict[str, Any] = {"is_error": is_error, "error_body": body}
        return self.with_policies(**{k: v for k, v in changes.items() if v is not None})

    def with_auth(
        self,
        signer: AuthSigner,
        is_invalid_token: Optional[Callable[[Response], bool]] = None,
    ) -> Request:
        changes: dict[str, Any] = {"auth": signer}
        if is_invalid_token is not None:
            changes["is_invalid_token"] = is_invalid_token
        return self.with_policies(**changes)

    def with_cache(
        self, cache: CacheInterceptor, mode: Optional[CacheMode] = None
    ) -> Request:
        return self.with_policies(cache=cache, cache_mode=mode)

    def with_on_done(self, callback: Callable[[], None]) -> Request:
        return self.with_policies(on_done=callback)


def new_request(
    url: str,
    method: Optional[str] = None,
    headers: Optional[Mapping[str, str]] = None,
    params: Optional[Mapping[str, Any]] = None,
    **options: Any,
) -> Request:
    """Create a :class:`Request` with default policies.

    Extra keyword arguments become transport options (e.g. ``timeout=5``).
    """
    return Request(
        url=url,
        method=method.upper() if method else None,
        headers=dict(headers or {}),
        params=dict(params or {}),
        options=dict(options),
    )


def request_from_profile(
    profile: Profile,
    path: str,
    method: Optional[str] = None,
    auth_manager: Optional[AuthManager] = None,
    cache: Optional[CacheInterceptor] = None,
    cache_mode: Optional[CacheMode] = None,
) -> Request:
    """Build a request for *path* using a profile's base URL, options and policies.

    *path* may be an absolute URL, in which case ``base_url`` is ignored.
    When the profile has an auth section and *auth_manager* is given, the
    matching signer is attached.
    """
    if "://" in path or not profile.base_url:
        url = path
    else:
        url = profile.base_url.rstrip("/") + "/" + path.lstrip("/")

    options: dict[str, Any] = {
        "timeout": profile.request.timeout,
        "verify": profile.request.verify_ssl,
        "follow_redirects": profile.request.follow_redirects,
    }
    if profile.request.user_agent:
        options["useragent"] = profile.request.user_agent

    signer = None
    if auth_manager is not None and profile.auth is not None:
        signer = auth_manager.signer_for(profile)

    policies = Policies.from_retry_config(
        profile.retry, auth=signer, cache=cache, cache_mode=cache_mode
    )
    return Request(
        url=url,
        method=method.upper() if method else None,
        options=options,
        policies=policies,
    )
