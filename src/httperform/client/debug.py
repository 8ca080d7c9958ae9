"""Last request / last response, for interactive debugging.

The perform loop records every attempt into a :class:`LastExchange`. The
module-level :func:`~httperform.client.performer.perform` uses the
process-wide instance returned by :func:`default_sink`, so after a failed
call::

    >>> from httperform.client import last_request, last_response
    >>> last_response().status_code
    503

Recording a request clears the response, so ``last_response()`` never
pairs with an older request. The sink is last-writer-wins across threads.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from httperform.client.response import Response
    from httperform.request import Request


class LastExchange:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._request: Optional[Request] = None
        self._response: Optional[Response] = None

    def record_request(self, request: Request) -> None:
        with self._lock:
            self._request = request
            self._response = None

    def record_response(self, response: Response) -> None:
        with self._lock:
            self._response = response

    @property
    def request(self) -> Optional[Request]:
        return self._request

    @property
    def response(self) -> Optional[Response]:
        return self._response

    def clear(self) -> None:
        with self._lock:
            self._request = None
            self._response = None


_default_sink = LastExchange()


def default_sink() -> LastExchange:
    return _default_sink


def last_request() -> Optional[Request]:
    """The most recent request sent by the module-level ``perform()``."""
    return _default_sink.request


def last_response() -> Optional[Response]:
    """The response to :func:`last_request`, or ``None`` if it failed or is pending."""
    return _default_sink.response
