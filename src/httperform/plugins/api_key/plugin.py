"""API key auth plugin.

Resolves a credential from the configured ``source`` (e.g.
``env:MY_API_KEY``) and places it in a header, query parameter, or cookie
according to ``location``. An optional second secret can be sent alongside
the key for APIs that use key + secret pairs.
"""

from __future__ import annotations

from typing import Optional

from httperform.auth.base import AuthPlugin, AuthResult
from httperform.config import resolve_credential
from httperform.models import AuthConfig

_DEFAULT_NAMES = {
    "header": ("X-API-Key", "X-API-Secret"),
    "query": ("api_key", "api_secret"),
    "cookie": ("api_key", "api_secret"),
}


class APIKeyAuthPlugin(AuthPlugin):
    """Authenticate with a static API key.

    Plugin-specific extra fields:
        - ``secret_source``: credential source for the secret.
        - ``secret_header``: name for the secret (header, param or cookie).
    """

    @property
    def auth_type(self) -> str:
        return "api_key"

    @staticmethod
    def _extra(auth_config: AuthConfig, key: str) -> Optional[str]:
        return (auth_config.model_extra or {}).get(key)

    def authenticate(self, auth_config: AuthConfig) -> AuthResult:
        location = auth_config.location
        if location not in _DEFAULT_NAMES:
            location = "header"
        default_key, default_secret = _DEFAULT_NAMES[location]

        if location == "query":
            key_name = auth_config.param_name or auth_config.header or default_key
        else:
            key_name = auth_config.header or auth_config.param_name or default_key

        values = {key_name: resolve_credential(auth_config.source)}
        secret_source = self._extra(auth_config, "secret_source")
        if secret_source:
            secret_name = self._extra(auth_config, "secret_header") or default_secret
            values[secret_name] = resolve_credential(secret_source)

        if location == "query":
            return AuthResult(params=values)
        if location == "cookie":
            return AuthResult(cookies=values)
        return AuthResult(headers=values)

    def validate_config(self, auth_config: AuthConfig) -> list[str]:
        errors: list[str] = []
        if not auth_config.source:
            errors.append("API key auth requires a 'source' for the credential")
        if auth_config.location not in _DEFAULT_NAMES:
            errors.append(
                f"Invalid location '{auth_config.location}': "
                "must be 'header', 'query', or 'cookie'"
            )
        return errors
