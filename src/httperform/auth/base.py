"""Auth plugin and signer interfaces.

This module defines the foundational types of the auth subsystem:

- :class:`AuthResult` -- a plain container for the HTTP headers, query
  parameters, and cookies that an auth plugin produces.
- :class:`AuthPlugin` -- the abstract base class that every authentication
  strategy must extend.
- :class:`AuthSigner` -- what the perform loop consumes: something that
  turns an unsigned :class:`~httperform.request.Request` into a signed one.
- :class:`PluginSigner` -- binds an :class:`AuthPlugin` to the
  :class:`~httperform.models.AuthConfig` of a profile.

To implement a new auth strategy, subclass :class:`AuthPlugin`, set the
:attr:`~AuthPlugin.auth_type` property, and implement
:meth:`~AuthPlugin.authenticate`. Override :meth:`~AuthPlugin.refresh` for
forced re-authentication and :meth:`~AuthPlugin.validate_config` for
upfront config validation.

See Also:
    :mod:`httperform.auth.manager` for plugin registration and dispatch.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from httperform.models import AuthConfig

if TYPE_CHECKING:
    from httperform.request import Request


class AuthResult:
    """Container for authentication artifacts to inject into HTTP requests.

    Args:
        headers: HTTP headers to add (e.g. ``{"Authorization": "Bearer ..."}``).
        params: Query-string parameters to add (e.g. ``{"api_key": "..."}``).
        cookies: Cookies to add (serialised into a ``Cookie`` header by the signer).

    Example::

        result = AuthResult(headers={"Authorization": "Bearer tok123"})
        assert result.headers["Authorization"] == "Bearer tok123"
    """

    def __init__(
        self,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        cookies: dict[str, str] | None = None,
    ):
        self.headers = headers or {}
        self.params = params or {}
        self.cookies = cookies or {}

    def __repr__(self) -> str:
        return (
            f"AuthResult(headers={sorted(self.headers)}, "
            f"params={sorted(self.params)}, cookies={sorted(self.cookies)})"
        )


class AuthPlugin(ABC):
    """Abstract base class for authentication plugins.

    Every concrete auth strategy (API key, bearer token, OAuth2, etc.) must
    subclass this and provide:

    1. An :attr:`auth_type` property returning a unique string identifier
       (e.g. ``"api_key"``, ``"bearer"``, ``"oauth2_refresh"``).
    2. An :meth:`authenticate` implementation that resolves credentials from
       the supplied :class:`~httperform.models.AuthConfig` and returns an
       :class:`AuthResult`.

    Plugins whose credentials can go stale server-side (OAuth access tokens)
    set :attr:`supports_reauth` so that the perform loop recognises an
    ``invalid_token`` challenge and calls :meth:`refresh` once.
    """

    supports_reauth: bool = False

    @property
    @abstractmethod
    def auth_type(self) -> str:
        """Return the unique auth type identifier this plugin handles."""
        ...

    @abstractmethod
    def authenticate(self, auth_config: AuthConfig) -> AuthResult:
        """Resolve credentials and return auth artifacts for HTTP requests.

        Args:
            auth_config: The authentication section of the active profile.

        Returns:
            An :class:`AuthResult` containing headers, params, and/or cookies
            to inject into outgoing requests.

        Raises:
            AuthError: If credentials cannot be obtained.
            ConfigError: If a credential source cannot be resolved.
        """
        ...

    def refresh(self, auth_config: AuthConfig) -> AuthResult:
        """Obtain new credentials, ignoring any cached ones.

        The default implementation simply re-authenticates. OAuth plugins
        override this to discard the cached token first.
        """
        return self.authenticate(auth_config)

    def validate_config(self, auth_config: AuthConfig) -> list[str]:
        """Validate the auth configuration before use.

        Returns:
            A list of error message strings. An empty list means the
            configuration is valid.
        """
        return []


class AuthSigner(ABC):
    """Attaches credentials to a request.

    ``sign(request)`` may return a cached credential; ``sign(request,
    force=True)`` must obtain a new one. Exceptions raised here propagate
    out of the perform loop without any retry.
    """

    supports_reauth: bool = False

    @abstractmethod
    def sign(self, request: Request, force: bool = False) -> Request:
        ...


class PluginSigner(AuthSigner):
    """An :class:`AuthSigner` backed by an :class:`AuthPlugin`.

    Non-forced signing calls :meth:`AuthPlugin.authenticate`, forced signing
    calls :meth:`AuthPlugin.refresh`. The resulting headers and params
    replace any same-named values already on the request; cookies are
    appended to the ``Cookie`` header.
    """

    def __init__(self, plugin: AuthPlugin, auth_config: AuthConfig) -> None:
        self.plugin = plugin
        self.auth_config = auth_config

    @property
    def supports_reauth(self) -> bool:  # type: ignore[override]
        return self.plugin.supports_reauth

    def sign(self, request: Request, force: bool = False) -> Request:
        if force:
            result = self.plugin.refresh(self.auth_config)
        else:
            result = self.plugin.authenticate(self.auth_config)
        return apply_auth_result(request, result)

    def __repr__(self) -> str:
        return f"PluginSigner({self.plugin.auth_type!r})"


def apply_auth_result(request: Request, result: AuthResult) -> Request:
    """Return a copy of *request* carrying the artifacts in *result*."""
    signed = request
    if result.headers:
        signed = signed.with_headers(result.headers)
    if result.params:
        signed = signed.with_params(result.params)
    if result.cookies:
        cookie = "; ".join(f"{k}={v}" for k, v in result.cookies.items())
        existing = signed.header("Cookie")
        if existing:
            cookie = f"{existing}; {cookie}"
        signed = signed.with_headers({"Cookie": cookie})
    return signed
