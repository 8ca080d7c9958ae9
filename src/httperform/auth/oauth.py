"""Shared machinery for OAuth2 token plugins.

:class:`OAuthPlugin` implements the token life cycle once, and subclasses
only say how to run their grant:

1. A cached, non-expired token is reused.
2. An expired token with a refresh token is refreshed; if the token
   endpoint rejects the refresh, the full grant runs instead.
3. Otherwise the full grant runs.
4. A forced call (after the server answered ``invalid_token``) always
   obtains a new token, through the refresh token when one is cached and
   through the full grant otherwise, and replaces the cached token.

Tokens live in the process-wide :class:`~httperform.auth.token_store.TokenCache`
and, with ``persist: true`` in the auth config, are mirrored to the
:class:`~httperform.auth.token_store.DiskTokenCache`.
"""

from __future__ import annotations

import time
from abc import abstractmethod
from typing import Any, Callable, Optional

import httpx

from httperform.auth.base import AuthPlugin, AuthResult
from httperform.auth.token import OAuthToken
from httperform.auth.token_store import (
    DiskTokenCache,
    TokenCache,
    default_token_cache,
    token_key,
)
from httperform.config import resolve_credential
from httperform.exceptions import AuthError
from httperform.models import AuthConfig
from httperform.output import debug


class OAuthPlugin(AuthPlugin):
    """Base class for OAuth2 grants that produce bearer tokens.

    Args:
        token_cache: In-memory cache; defaults to the process-wide one.
        disk_cache: Used for configs with ``persist: true``.
        client: ``httpx.Client`` for token requests. Module-level
            ``httpx.post`` is used when omitted.
        clock: Returns the current POSIX time.
    """

    supports_reauth = True

    def __init__(
        self,
        token_cache: Optional[TokenCache] = None,
        disk_cache: Optional[DiskTokenCache] = None,
        client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._token_cache = token_cache
        self._disk_cache = disk_cache
        self._client = client
        self._clock = clock

    @property
    def token_cache(self) -> TokenCache:
        return self._token_cache if self._token_cache is not None else default_token_cache()

    # ------------------------------------------------------------------ #
    # Subclass hooks
    # ------------------------------------------------------------------ #

    @abstractmethod
    def cache_key(self, auth_config: AuthConfig) -> str:
        """Identity of the credential the token belongs to."""
        ...

    @abstractmethod
    def fetch_token(self, auth_config: AuthConfig) -> OAuthToken:
        """Run the full grant and return a new token."""
        ...

    # ------------------------------------------------------------------ #
    # AuthPlugin
    # ------------------------------------------------------------------ #

    def authenticate(self, auth_config: AuthConfig) -> AuthResult:
        key = self.cache_key(auth_config)
        token = self._load(key, auth_config)
        if token is not None and not token.has_expired(self._clock()):
            return AuthResult(headers=token.authorization_header())
        return self._renew(key, auth_config, token)

    def refresh(self, auth_config: AuthConfig) -> AuthResult:
        """Obtain a new token even if the cached one has not expired."""
        key = self.cache_key(auth_config)
        return self._renew(key, auth_config, self._load(key, auth_config))

    def _renew(
        self, key: str, auth_config: AuthConfig, token: Optional[OAuthToken]
    ) -> AuthResult:
        if token is not None and token.refresh_token:
            try:
                new_token = self.refresh_token(auth_config, token.refresh_token)
            except AuthError as exc:
                debug(f"Token refresh rejected, running full grant: {exc}")
                new_token = self.fetch_token(auth_config)
        else:
            new_token = self.fetch_token(auth_config)

        self._store(key, auth_config, new_token)
        return AuthResult(headers=new_token.authorization_header())

    # ------------------------------------------------------------------ #
    # Token endpoint
    # ------------------------------------------------------------------ #

    def refresh_token(self, auth_config: AuthConfig, refresh_token: str) -> OAuthToken:
        """Exchange *refresh_token* for a new access token (:rfc:`6749` section 6)."""
        data = {"grant_type": "refresh_token", "refresh_token": refresh_token}
        data.update(self.client_fields(auth_config))
        if auth_config.scopes:
            data["scope"] = " ".join(auth_config.scopes)
        token = self.request_token(auth_config, data)
        return token.with_refresh_token(refresh_token)

    def client_fields(self, auth_config: AuthConfig) -> dict[str, str]:
        """Client authentication fields sent in the token request body."""
        fields: dict[str, str] = {}
        if auth_config.client_id_source:
            fields["client_id"] = resolve_credential(auth_config.client_id_source)
        if auth_config.client_secret_source:
            fields["client_secret"] = resolve_credential(auth_config.client_secret_source)
        return fields

    def request_token(self, auth_config: AuthConfig, data: dict[str, str]) -> OAuthToken:
        """POST *data* to the token endpoint and parse the token response.

        Raises:
            AuthError: If the request fails, the endpoint returns an error
                status, or the response carries no ``access_token``.
        """
        if not auth_config.token_url:
            raise AuthError(f"token_url is required for {self.auth_type}")
        post = self._client.post if self._client is not None else httpx.post
        try:
            response = post(
                auth_config.token_url,
                data=data,
                headers={"Accept": "application/json"},
                timeout=30.0,
            )
            response.raise_for_status()
            token_data: dict[str, Any] = response.json()
        except httpx.HTTPStatusError as exc:
            raise AuthError(
                f"Token request failed with status {exc.response.status_code}: "
                f"{exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AuthError(f"Token request failed: {exc}") from exc
        except ValueError as exc:
            raise AuthError(f"Token response is not valid JSON: {exc}") from exc
        return OAuthToken.from_response(token_data, now=self._clock())

    # ------------------------------------------------------------------ #
    # Cache plumbing
    # ------------------------------------------------------------------ #

    def _disk(self) -> DiskTokenCache:
        if self._disk_cache is None:
            self._disk_cache = DiskTokenCache()
        return self._disk_cache

    def _disk_name(self, auth_config: AuthConfig, key: str) -> str:
        return auth_config.credential_name or key

    def _load(self, key: str, auth_config: AuthConfig) -> Optional[OAuthToken]:
        token = self.token_cache.get(key)
        if token is None and auth_config.persist:
            token = self._disk().get(self._disk_name(auth_config, key))
            if token is not None:
                self.token_cache.set(key, token)
        return token

    def _store(self, key: str, auth_config: AuthConfig, token: OAuthToken) -> None:
        self.token_cache.set(key, token)
        if auth_config.persist:
            self._disk().set(self._disk_name(auth_config, key), token)


def default_cache_key(auth_type: str, auth_config: AuthConfig, *extra: Optional[str]) -> str:
    return token_key(
        auth_type,
        auth_config.token_url,
        auth_config.client_id_source,
        *extra,
        scopes=auth_config.scopes,
    )
