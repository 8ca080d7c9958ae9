"""The immutable :class:`Response` value and its bridge to the output system.

A response records the outcome of one transport attempt: status, headers,
a body held in memory or streamed to a file, the effective URL after
redirects, a timestamp, and a back-reference to the request that produced
it. Headers are an :class:`httpx.Headers` instance, which preserves
insertion order and looks names up case-insensitively.

:func:`format_api_response` routes a response through
:meth:`~httperform.output.OutputManager.format_response` for the CLI.
"""

from __future__ import annotations

import email.utils
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional, Union

import httpx

from httperform.output import get_output

if TYPE_CHECKING:
    from httperform.request import Request

HeaderInput = Union[httpx.Headers, Mapping[str, str], Iterable[tuple[str, str]], str, None]


@dataclass(frozen=True)
class BodyPath:
    """Reference to a response body written to disk instead of memory."""

    path: Path

    def __fspath__(self) -> str:
        return str(self.path)

    def read_bytes(self) -> bytes:
        """Return the file content, or ``b""`` if the file is missing."""
        if not self.path.is_file():
            return b""
        return self.path.read_bytes()


def parse_headers(headers: HeaderInput) -> httpx.Headers:
    """Normalise *headers* into :class:`httpx.Headers`.

    Accepts an existing ``Headers`` object, a mapping, a list of pairs, or a
    raw block of ``Name: value`` lines (lines without a colon, such as an
    HTTP status line, are skipped).
    """
    if headers is None:
        return httpx.Headers()
    if isinstance(headers, httpx.Headers):
        return httpx.Headers(headers)
    if isinstance(headers, str):
        pairs = []
        for line in headers.splitlines():
            name, sep, value = line.partition(":")
            if sep and name.strip():
                pairs.append((name.strip(), value.strip()))
        return httpx.Headers(pairs)
    if isinstance(headers, Mapping):
        return httpx.Headers(dict(headers))
    return httpx.Headers(list(headers))


def _ensure_date(headers: httpx.Headers) -> httpx.Headers:
    if "date" not in headers:
        headers["Date"] = email.utils.formatdate(usegmt=True)
    return headers


@dataclass(frozen=True)
class Response:
    """The result of one transport attempt.

    Attributes:
        status_code: Numeric HTTP status.
        headers: Response headers.
        body: ``bytes`` in memory, a :class:`BodyPath`, or ``None``.
        url: Effective URL after redirects.
        method: HTTP method of the request.
        request: The request that produced this response.
        timestamp: When the response was constructed (UTC).
    """

    status_code: int
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: Optional[Union[bytes, BodyPath]] = None
    url: str = ""
    method: str = "GET"
    request: Optional[Request] = field(default=None, repr=False, compare=False)
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False
    )

    @property
    def reason_phrase(self) -> str:
        return httpx.codes.get_reason_phrase(self.status_code)

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("content-type")

    @property
    def content(self) -> bytes:
        """The body as bytes, reading it from disk when it was streamed there."""
        if self.body is None:
            return b""
        if isinstance(self.body, BodyPath):
            return self.body.read_bytes()
        return self.body

    @property
    def text(self) -> str:
        charset = "utf-8"
        content_type = self.content_type or ""
        for part in content_type.split(";")[1:]:
            key, _, value = part.strip().partition("=")
            if key.lower() == "charset" and value:
                charset = value.strip('"')
        try:
            return self.content.decode(charset, errors="replace")
        except LookupError:
            return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the body as JSON.

        Raises:
            ValueError: If the body is not valid JSON.
        """
        return json.loads(self.content)

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name)

    @property
    def is_path(self) -> bool:
        return isinstance(self.body, BodyPath)

    @classmethod
    def from_httpx(
        cls,
        response: httpx.Response,
        request: Optional[Request] = None,
        body: Optional[Union[bytes, BodyPath]] = None,
    ) -> Response:
        """Wrap an :class:`httpx.Response`.

        *body* replaces ``response.content`` when the body was streamed to
        disk.
        """
        return cls(
            status_code=response.status_code,
            headers=_ensure_date(httpx.Headers(response.headers)),
            body=response.content if body is None else body,
            url=str(response.url),
            method=response.request.method,
            request=request,
        )


def new_response(
    status_code: int = 200,
    url: str = "https://example.com",
    method: str = "GET",
    headers: HeaderInput = None,
    body: Optional[Union[bytes, str, BodyPath, Path]] = None,
    request: Optional[Request] = None,
) -> Response:
    """Construct a :class:`Response` directly, e.g. from a mock.

    A ``Date`` header is added when *headers* does not provide one. ``str``
    bodies are UTF-8 encoded and :class:`~pathlib.Path` bodies become a
    :class:`BodyPath`.
    """
    if isinstance(body, str):
        body = body.encode("utf-8")
    elif isinstance(body, Path):
        body = BodyPath(body)
    return Response(
        status_code=status_code,
        headers=_ensure_date(parse_headers(headers)),
        body=body,
        url=url,
        method=method.upper(),
        request=request,
    )


def extract_response_data(response: Response) -> Any:
    """Extract the body from a response for display.

    Tries JSON first, then falls back to text. Returns ``None`` for an empty
    body.
    """
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def format_api_response(response: Response) -> None:
    """Format and print a response using the global output system.

    Writes the status line to stderr and the body to stdout. A body that was
    saved to disk is reported by path instead of being printed.
    """
    output = get_output()
    output.info(f"HTTP {response.status_code} {response.reason_phrase}")

    if isinstance(response.body, BodyPath):
        output.info(f"Body saved to {response.body.path}")
        return

    data = extract_response_data(response)
    if data is not None:
        output.format_response(data, response.content_type or "application/json")
