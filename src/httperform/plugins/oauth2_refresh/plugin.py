"""OAuth2 refresh-token auth plugin.

For APIs where a long-lived refresh token was obtained out of band (for
example by an interactive login on another machine). Every full grant is a
``grant_type=refresh_token`` exchange using the configured
``refresh_token_source``; when the server rotates refresh tokens, the
newest one is used for later exchanges.
"""

from __future__ import annotations

from httperform.auth.oauth import OAuthPlugin, default_cache_key
from httperform.auth.token import OAuthToken
from httperform.config import resolve_credential
from httperform.exceptions import AuthError
from httperform.models import AuthConfig


class OAuth2RefreshPlugin(OAuthPlugin):
    @property
    def auth_type(self) -> str:
        return "oauth2_refresh"

    def cache_key(self, auth_config: AuthConfig) -> str:
        return default_cache_key(
            self.auth_type, auth_config, auth_config.refresh_token_source
        )

    def fetch_token(self, auth_config: AuthConfig) -> OAuthToken:
        if not auth_config.refresh_token_source:
            raise AuthError("refresh_token_source is required for OAuth2 refresh")
        cached = self.token_cache.get(self.cache_key(auth_config))
        if cached is not None and cached.refresh_token:
            refresh_token = cached.refresh_token
        else:
            refresh_token = resolve_credential(auth_config.refresh_token_source)
        return self.refresh_token(auth_config, refresh_token)

    def validate_config(self, auth_config: AuthConfig) -> list[str]:
        errors: list[str] = []
        if not auth_config.token_url:
            errors.append("OAuth2 refresh requires 'token_url'")
        if not auth_config.refresh_token_source:
            errors.append("OAuth2 refresh requires 'refresh_token_source'")
        return errors
