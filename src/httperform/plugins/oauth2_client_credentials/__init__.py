"""OAuth2 Client Credentials authentication plugin.

Implements the ``oauth2_client_credentials`` auth type: a non-interactive,
machine-to-machine grant that exchanges a ``client_id`` and
``client_secret`` for an access token. Tokens are shared through the
process-wide token cache and replaced when they expire or are rejected.
"""

from httperform.plugins.oauth2_client_credentials.plugin import (
    OAuth2ClientCredentialsPlugin,
)

__all__ = ["OAuth2ClientCredentialsPlugin"]
