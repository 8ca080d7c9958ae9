"""API key authentication plugin (header, query parameter or cookie)."""

from httperform.plugins.api_key.plugin import APIKeyAuthPlugin

__all__ = ["APIKeyAuthPlugin"]
