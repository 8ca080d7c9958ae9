"""Response caching for the perform loop.

:class:`CacheInterceptor` is the contract the perform loop consumes;
:class:`ResponseCache` implements it on :mod:`diskcache`. The cache is
attached to a request with :meth:`~httperform.request.Request.with_cache`
and controlled by the ``cache`` section of the global configuration
(:class:`~httperform.models.CacheConfig`).
"""

from httperform.cache.base import CacheInterceptor
from httperform.cache.cache import ResponseCache

__all__ = ["CacheInterceptor", "ResponseCache"]
