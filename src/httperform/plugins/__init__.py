"""Built-in authentication plugins.

Each subpackage implements one :class:`~httperform.auth.base.AuthPlugin`
and is registered by :func:`~httperform.auth.manager.create_default_manager`.
"""
