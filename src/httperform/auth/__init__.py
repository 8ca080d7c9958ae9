"""Authentication for the perform loop.

The perform loop only knows :class:`AuthSigner`: something that turns an
unsigned request into a signed one, and can be forced to fetch fresh
credentials once after an ``invalid_token`` response. The concrete
strategies are :class:`AuthPlugin` subclasses in :mod:`httperform.plugins`,
bound to a profile's auth section by :class:`PluginSigner`.

Typical usage::

    from httperform.auth import create_default_manager

    manager = create_default_manager()
    request = request.with_auth(manager.signer_for(profile))
"""

from httperform.auth.base import AuthPlugin, AuthResult, AuthSigner, PluginSigner
from httperform.auth.manager import AuthManager, create_default_manager
from httperform.auth.token import OAuthToken
from httperform.auth.token_store import DiskTokenCache, TokenCache, default_token_cache

__all__ = [
    "AuthManager",
    "AuthPlugin",
    "AuthResult",
    "AuthSigner",
    "DiskTokenCache",
    "OAuthToken",
    "PluginSigner",
    "TokenCache",
    "create_default_manager",
    "default_token_cache",
]
