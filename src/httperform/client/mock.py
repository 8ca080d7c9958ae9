"""Mock hook: answer requests without touching the network.

A :class:`MockHandler` sees every request before verbosity, signing,
caching, retry and transport. Returning a response short-circuits straight
to result assembly, so error classification still applies; returning
``None`` lets the request proceed normally.

Handlers are passed to :class:`~httperform.client.performer.Performer`
explicitly, or installed for the module-level ``perform()`` with
:func:`mocked_responses`::

    with mocked_responses(lambda req: new_response(200, body="{}")):
        perform(new_request("https://api.example.com"))
"""

from __future__ import annotations

import contextlib
import dataclasses
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Iterator, Optional, Union

if TYPE_CHECKING:
    from httperform.client.response import Response
    from httperform.request import Request

MockFunction = Callable[["Request"], Optional["Response"]]


class MockHandler(ABC):
    @abstractmethod
    def try_handle(self, request: Request) -> Optional[Response]:
        ...


class CallableMock(MockHandler):
    """Adapt a plain ``request -> response | None`` function."""

    def __init__(self, func: MockFunction) -> None:
        self._func = func

    def try_handle(self, request: Request) -> Optional[Response]:
        response = self._func(request)
        if response is not None and response.request is None:
            response = dataclasses.replace(response, request=request)
        return response


def as_mock(handler: Union[MockHandler, MockFunction, None]) -> Optional[MockHandler]:
    if handler is None or isinstance(handler, MockHandler):
        return handler
    if callable(handler):
        return CallableMock(handler)
    raise TypeError(f"Expected a MockHandler or callable, got {type(handler).__name__}")


_active: Optional[MockHandler] = None


def active_mock() -> Optional[MockHandler]:
    """The handler installed by :func:`mocked_responses`, if any."""
    return _active


@contextlib.contextmanager
def mocked_responses(handler: Union[MockHandler, MockFunction]) -> Iterator[MockHandler]:
    """Install *handler* for the module-level ``perform()`` within a ``with`` block."""
    global _active
    previous = _active
    _active = as_mock(handler)
    try:
        yield _active
    finally:
        _active = previous
