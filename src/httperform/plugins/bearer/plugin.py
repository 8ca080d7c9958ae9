"""Bearer token authentication plugin.

A pre-existing token is resolved from ``source`` (``env:MY_TOKEN``,
``file:~/.token``, ``store:my-api``) and sent as
``Authorization: Bearer <token>``. No exchange or refresh happens here; a
rejected static token is a terminal 401.
"""

from __future__ import annotations

from httperform.auth.base import AuthPlugin, AuthResult
from httperform.config import resolve_credential
from httperform.models import AuthConfig


class BearerAuthPlugin(AuthPlugin):
    @property
    def auth_type(self) -> str:
        return "bearer"

    def authenticate(self, auth_config: AuthConfig) -> AuthResult:
        token = resolve_credential(auth_config.source)
        return AuthResult(headers={"Authorization": f"Bearer {token}"})

    def validate_config(self, auth_config: AuthConfig) -> list[str]:
        if not auth_config.source:
            return ["Bearer auth requires a 'source' for the token"]
        return []
