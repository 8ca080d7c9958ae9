"""Canonical Pydantic configuration models shared across httperform.

These models are serialised as JSON in the user's config directory and
turned into the immutable :class:`~httperform.request.Policies` bundle that
travels with every :class:`~httperform.request.Request`:

* :class:`AuthConfig` -- which auth plugin signs requests, and its inputs.
* :class:`RetryConfig` -- attempt budget, transient statuses, backoff and
  circuit-breaker threshold.
* :class:`CacheConfig` -- response cache mode, TTL and error fallback.
* :class:`RequestConfig` -- transport options (timeout, TLS, redirects).
* :class:`OutputConfig` -- output format and default verbosity.
* :class:`GlobalConfig` and :class:`Profile` -- the persisted documents.

Models that accept plugin-defined extensions use ``extra="allow"`` so that
unknown keys are preserved in ``model_extra``.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Auth Config ---


class AuthConfig(BaseModel):
    """Authentication configuration embedded in a :class:`Profile`.

    The ``type`` field selects the auth plugin (``api_key``, ``bearer``,
    ``basic``, ``oauth2_client_credentials``, ``oauth2_refresh``); the
    remaining fields supply plugin-specific inputs.

    Example::

        AuthConfig(
            type="oauth2_client_credentials",
            token_url="https://auth.example.com/token",
            client_id_source="env:CLIENT_ID",
            client_secret_source="env:CLIENT_SECRET",
        )
    """

    model_config = ConfigDict(extra="allow")

    type: str = Field(
        description="Auth type: api_key, bearer, basic, oauth2_client_credentials, oauth2_refresh"
    )
    header: Optional[str] = Field(
        default=None, description="Header name for api_key auth"
    )
    param_name: Optional[str] = Field(
        default=None, description="Query parameter name for api_key auth"
    )
    location: str = Field(
        default="header", description="Where to send: header, query, cookie"
    )
    source: str = Field(
        default="prompt",
        description="Credential source: env:VAR, file:/path, prompt, store:NAME",
    )
    # OAuth2 fields
    token_url: Optional[str] = None
    scopes: list[str] = Field(default_factory=list)
    client_id_source: Optional[str] = None
    client_secret_source: Optional[str] = None
    refresh_token_source: Optional[str] = Field(
        default=None, description="Credential source for a long-lived refresh token"
    )
    # Persistence
    credential_name: Optional[str] = Field(
        default=None, description="Name under which tokens are stored on disk"
    )
    persist: bool = Field(
        default=False, description="Mirror fetched OAuth tokens to the token store"
    )


# --- Retry / Cache / Request Config ---


class RetryConfig(BaseModel):
    """Retry budget, backoff and circuit-breaker settings for a profile.

    When neither ``max_tries`` nor ``max_seconds`` is set, each request is
    attempted exactly once.
    """

    max_tries: Optional[int] = Field(
        default=None, ge=0, description="Maximum number of attempts"
    )
    max_seconds: Optional[float] = Field(
        default=None, ge=0, description="Wall-clock budget for all attempts"
    )
    transient_statuses: list[int] = Field(
        default_factory=lambda: [429, 503],
        description="Status codes that are retried",
    )
    retry_on_failure: bool = Field(
        default=True, description="Retry transport-level failures"
    )
    backoff_base: float = Field(default=1.0, gt=0)
    backoff_cap: float = Field(default=60.0, gt=0)
    breaker_threshold: Optional[int] = Field(
        default=None,
        ge=1,
        description="Consecutive transient failures after which attempts are refused",
    )


class CacheMode(str, enum.Enum):
    """How the response cache participates in a request.

    ``USE`` serves fresh entries and revalidates stale ones, ``REFRESH``
    skips lookups but still stores responses, ``OFF`` bypasses the cache.
    """

    USE = "use"
    REFRESH = "refresh"
    OFF = "off"


class CacheConfig(BaseModel):
    """HTTP response cache settings stored in :class:`GlobalConfig`."""

    enabled: bool = Field(default=True, description="Enable response caching")
    ttl_seconds: int = Field(
        default=300, ge=0, description="TTL when the server gives no freshness info"
    )
    mode: CacheMode = Field(default=CacheMode.USE)
    use_on_error: bool = Field(
        default=False,
        description="Serve a stale cached response when the network attempt fails",
    )


class RequestConfig(BaseModel):
    """Transport options applied to every request built from a profile."""

    timeout: float = Field(default=30, gt=0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    follow_redirects: bool = Field(default=True)
    user_agent: Optional[str] = Field(
        default=None, description="Override the default User-Agent"
    )


class OutputConfig(BaseModel):
    """Default output preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )
    verbosity: int = Field(
        default=0, description="0 silent, 1 headers, 2 bodies, 3 transport info"
    )

    @field_validator("verbosity")
    @classmethod
    def _check_verbosity(cls, value: int) -> int:
        if value < 0 or value > 3:
            raise ValueError("verbosity must be 0, 1, 2, or 3")
        return value


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/httperform/config.json``.

    Fields here have the lowest precedence and can be overridden by project
    config, environment variables, or CLI flags. See
    :func:`~httperform.config.resolve_config` for the full precedence chain.
    """

    default_profile: Optional[str] = None
    auto_select_single_profile: bool = True
    output: OutputConfig = Field(default_factory=OutputConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)


class Profile(BaseModel):
    """Per-API profile stored as JSON under the ``profiles/`` config directory.

    A profile bundles the base URL, authentication, transport options and
    retry policy for one API. Request paths given to
    :func:`~httperform.request.request_from_profile` are resolved against
    ``base_url``.

    See Also:
        :func:`~httperform.config.load_profile`: Deserialise a profile by name.
        :func:`~httperform.config.save_profile`: Persist a profile to disk.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    base_url: Optional[str] = Field(
        default=None, description="Prefix for relative request paths"
    )
    auth: Optional[AuthConfig] = None
    request: RequestConfig = Field(default_factory=RequestConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
