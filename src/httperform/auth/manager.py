"""Auth manager -- registry and dispatcher for auth plugins.

The :class:`AuthManager` maintains a mapping from auth-type strings
(``"api_key"``, ``"bearer"``, ``"oauth2_client_credentials"``, etc.) to
concrete :class:`~httperform.auth.base.AuthPlugin` instances. For a given
:class:`~httperform.models.Profile` it hands out a
:class:`~httperform.auth.base.PluginSigner` that the perform loop calls.

For most use cases, call :func:`create_default_manager` to get a manager
pre-loaded with every built-in plugin.
"""

from __future__ import annotations

from typing import Optional

from httperform.auth.base import AuthPlugin, AuthResult, PluginSigner
from httperform.exceptions import AuthError
from httperform.models import Profile


class AuthManager:
    """Registry and dispatcher for authentication plugins.

    Example::

        from httperform.auth import AuthManager
        from httperform.plugins.bearer import BearerAuthPlugin

        manager = AuthManager()
        manager.register(BearerAuthPlugin())
        request = request.with_auth(manager.signer_for(profile))
    """

    def __init__(self) -> None:
        self._plugins: dict[str, AuthPlugin] = {}

    def register(self, plugin: AuthPlugin) -> None:
        """Register an auth plugin, keyed by its :attr:`~AuthPlugin.auth_type`.

        A plugin already registered for the same type is replaced.
        """
        self._plugins[plugin.auth_type] = plugin

    def get_plugin(self, auth_type: str) -> AuthPlugin:
        """Retrieve a registered plugin by its auth type identifier.

        Raises:
            AuthError: If no plugin is registered for *auth_type*.
        """
        plugin = self._plugins.get(auth_type)
        if plugin is None:
            available = ", ".join(sorted(self._plugins)) or "(none)"
            raise AuthError(
                f"No auth plugin registered for type '{auth_type}'. "
                f"Available types: {available}"
            )
        return plugin

    def signer_for(self, profile: Profile) -> Optional[PluginSigner]:
        """Return a signer for the profile's auth section, or ``None`` without one.

        Raises:
            AuthError: If the auth type is unknown or its configuration is
                invalid.
        """
        if profile.auth is None:
            return None
        plugin = self.get_plugin(profile.auth.type)
        errors = plugin.validate_config(profile.auth)
        if errors:
            raise AuthError(
                f"Invalid auth configuration for profile '{profile.name}': "
                + "; ".join(errors)
            )
        return PluginSigner(plugin, profile.auth)

    def authenticate(self, profile: Profile) -> AuthResult:
        """Resolve the profile's credentials without attaching them to a request."""
        if profile.auth is None:
            return AuthResult()
        return self.get_plugin(profile.auth.type).authenticate(profile.auth)

    def list_types(self) -> list[str]:
        return sorted(self._plugins.keys())


def create_default_manager() -> AuthManager:
    """Create an :class:`AuthManager` pre-loaded with all built-in plugins.

    - ``api_key`` -- static API key in header, query param or cookie.
    - ``basic`` -- HTTP Basic authentication.
    - ``bearer`` -- static bearer token.
    - ``oauth2_client_credentials`` -- OAuth2 client-credentials grant.
    - ``oauth2_refresh`` -- OAuth2 refresh-token grant.
    """
    from httperform.plugins.api_key import APIKeyAuthPlugin
    from httperform.plugins.basic import BasicAuthPlugin
    from httperform.plugins.bearer import BearerAuthPlugin
    from httperform.plugins.oauth2_client_credentials import (
        OAuth2ClientCredentialsPlugin,
    )
    from httperform.plugins.oauth2_refresh import OAuth2RefreshPlugin

    manager = AuthManager()
    manager.register(APIKeyAuthPlugin())
    manager.register(BearerAuthPlugin())
    manager.register(BasicAuthPlugin())
    manager.register(OAuth2ClientCredentialsPlugin())
    manager.register(OAuth2RefreshPlugin())
    return manager
