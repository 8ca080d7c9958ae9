"""HTTP execution: the perform loop and the values it works with.

- :class:`Performer` / :func:`perform` -- attempt, classify, retry,
  re-authenticate, cache, assemble.
- :class:`Response` / :func:`new_response` -- the result value.
- :class:`HttpxTransport` -- the default transport on :mod:`httpx`.
- :class:`MockHandler` / :func:`mocked_responses` -- answer requests
  without a network.
- :func:`last_request` / :func:`last_response` -- what the module-level
  :func:`perform` last did.
"""

from httperform.client.debug import LastExchange, last_request, last_response
from httperform.client.mock import CallableMock, MockHandler, mocked_responses
from httperform.client.performer import Performer, perform, prepare_request
from httperform.client.response import BodyPath, Response, new_response
from httperform.client.transport import HttpxTransport, Transport, TransportHandle

__all__ = [
    "BodyPath",
    "CallableMock",
    "HttpxTransport",
    "LastExchange",
    "MockHandler",
    "Performer",
    "Response",
    "Transport",
    "TransportHandle",
    "last_request",
    "last_response",
    "mocked_responses",
    "new_response",
    "perform",
    "prepare_request",
]
