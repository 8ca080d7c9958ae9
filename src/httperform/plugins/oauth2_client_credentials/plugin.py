"""OAuth2 Client Credentials flow auth plugin.

Performs the non-interactive Client Credentials grant (:rfc:`6749`
section 4.4), exchanging a ``client_id`` and ``client_secret`` for an
access token at the configured ``token_url``. Designed for
server-to-server authentication where no user interaction is required.
"""

from __future__ import annotations

from httperform.auth.oauth import OAuthPlugin, default_cache_key
from httperform.auth.token import OAuthToken
from httperform.exceptions import AuthError
from httperform.models import AuthConfig


class OAuth2ClientCredentialsPlugin(OAuthPlugin):
    """Authenticate via the OAuth2 Client Credentials grant.

    Requires ``token_url``, ``client_id_source`` and
    ``client_secret_source``; ``scopes`` is optional.
    """

    @property
    def auth_type(self) -> str:
        return "oauth2_client_credentials"

    def cache_key(self, auth_config: AuthConfig) -> str:
        return default_cache_key(self.auth_type, auth_config)

    def fetch_token(self, auth_config: AuthConfig) -> OAuthToken:
        """POST ``grant_type=client_credentials`` to the token endpoint.

        Raises:
            AuthError: If required fields are missing or the token request
                fails.
        """
        if not auth_config.client_id_source or not auth_config.client_secret_source:
            raise AuthError(
                "client_id_source and client_secret_source are required "
                "for OAuth2 client_credentials"
            )
        data = {"grant_type": "client_credentials"}
        data.update(self.client_fields(auth_config))
        if auth_config.scopes:
            data["scope"] = " ".join(auth_config.scopes)
        return self.request_token(auth_config, data)

    def validate_config(self, auth_config: AuthConfig) -> list[str]:
        errors: list[str] = []
        if not auth_config.token_url:
            errors.append("OAuth2 client_credentials requires 'token_url'")
        if not auth_config.client_id_source:
            errors.append("OAuth2 client_credentials requires 'client_id_source'")
        if not auth_config.client_secret_source:
            errors.append("OAuth2 client_credentials requires 'client_secret_source'")
        return errors
