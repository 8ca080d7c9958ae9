"""Static bearer token authentication plugin."""

from httperform.plugins.bearer.plugin import BearerAuthPlugin

__all__ = ["BearerAuthPlugin"]
