"""Transport: the only place that talks to the network.

A :class:`Transport` opens one :class:`TransportHandle` per perform call
from the prepared request. The handle is fetched once per attempt and
closed when the perform loop exits, however it exits. A forced
re-authentication changes the request headers, so the loop closes the
handle and opens a new one from the re-signed request.

:class:`HttpxTransport` is the default and builds on :class:`httpx.Client`.
Pass an ``httpx.MockTransport`` to exercise the whole stack without a
network::

    transport = HttpxTransport(httpx.MockTransport(lambda r: httpx.Response(204)))
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Union

import httpx

from httperform.client.response import BodyPath, Response
from httperform.request import BodyKind, Request

PathLike = Optional[Union[str, Path]]


class TransportHandle(ABC):
    @abstractmethod
    def fetch(self, path: PathLike = None) -> Response:
        """Run one exchange. Raises :class:`httpx.HTTPError` on transport failure."""
        ...

    @abstractmethod
    def close(self) -> None:
        ...


class Transport(ABC):
    @abstractmethod
    def open(self, request: Request) -> TransportHandle:
        ...


class HttpxHandle(TransportHandle):
    """A built :class:`httpx.Request` bound to the client that sends it."""

    def __init__(self, client: httpx.Client, http_request: httpx.Request, request: Request) -> None:
        self._client = client
        self.http_request = http_request
        self.request = request

    def fetch(self, path: PathLike = None) -> Response:
        response = self._client.send(self.http_request, stream=True)
        try:
            if path is None:
                response.read()
                return Response.from_httpx(response, request=self.request)
            target = Path(path)
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as f:
                for chunk in response.iter_bytes():
                    f.write(chunk)
            return Response.from_httpx(response, request=self.request, body=BodyPath(target))
        finally:
            response.close()

    def close(self) -> None:
        self._client.close()


class HttpxTransport(Transport):
    """Transport backed by :class:`httpx.Client`.

    Args:
        transport: Optional low-level ``httpx`` transport, e.g.
            :class:`httpx.MockTransport` in tests.
    """

    def __init__(self, transport: Optional[httpx.BaseTransport] = None) -> None:
        self._transport = transport

    def open(self, request: Request) -> TransportHandle:
        options = request.options
        client = httpx.Client(
            timeout=options.get("timeout", 30.0),
            verify=options.get("verify", True),
            follow_redirects=options.get("follow_redirects", True),
            transport=self._transport,
        )
        try:
            http_request = client.build_request(
                request.effective_method,
                request.url,
                params=dict(request.params) or None,
                headers=dict(request.headers),
                **_body_arguments(request),
            )
        except BaseException:
            client.close()
            raise
        return HttpxHandle(client, http_request, request)


def _body_arguments(request: Request) -> dict[str, Any]:
    """Translate a prepared :class:`~httperform.request.Body` into ``httpx`` arguments."""
    body = request.body
    if body is None:
        return {}
    if body.kind == BodyKind.MULTIPART:
        data = {k: v for k, v in body.data.items() if isinstance(v, (str, int, float))}
        files = {k: v for k, v in body.data.items() if k not in data}
        return {"data": data or None, "files": files or None}
    if body.kind == BodyKind.RAW and isinstance(body.data, str):
        return {"content": body.data.encode("utf-8")}
    return {"content": body.data}
