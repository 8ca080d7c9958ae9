"""OAuth2 refresh-token authentication plugin."""

from httperform.plugins.oauth2_refresh.plugin import OAuth2RefreshPlugin

__all__ = ["OAuth2RefreshPlugin"]
