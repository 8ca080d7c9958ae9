"""HTTP Basic authentication plugin."""

from httperform.plugins.basic.plugin import BasicAuthPlugin

__all__ = ["BasicAuthPlugin"]
