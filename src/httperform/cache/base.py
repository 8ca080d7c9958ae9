"""The cache interceptor contract consumed by the perform loop.

The perform loop calls an interceptor at three points:

1. :meth:`CacheInterceptor.pre_fetch` after signing. A returned response is
   used as-is and no network attempt happens.
2. :meth:`CacheInterceptor.revalidation_headers` when ``pre_fetch`` had
   nothing fresh. The headers (``If-None-Match``, ``If-Modified-Since``)
   are added to the prepared request.
3. :meth:`CacheInterceptor.post_fetch` once the attempt loop is over,
   with the final attempt result. Whatever it returns is what result
   assembly sees.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:
    from httperform.client.response import Response
    from httperform.exceptions import TransportFailure
    from httperform.request import Request

PathLike = Optional[Union[str, Path]]


class CacheInterceptor(ABC):
    @abstractmethod
    def pre_fetch(self, request: Request, path: PathLike = None) -> Optional[Response]:
        """Return a fresh cached response for *request*, or ``None``.

        When *path* is given the cached body is copied there and the
        returned response references it.
        """
        ...

    def revalidation_headers(self, request: Request) -> dict[str, str]:
        """Conditional-request headers for a stale entry; empty by default."""
        return {}

    @abstractmethod
    def post_fetch(
        self,
        request: Request,
        result: Union[Response, TransportFailure],
        path: PathLike = None,
    ) -> Union[Response, TransportFailure]:
        """Store *result* if cacheable and return the result to use."""
        ...
