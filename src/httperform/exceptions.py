"""Exception hierarchy for httperform.

All exceptions inherit from :class:`HttperformError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`httperform.exit_codes`
and a ``kind`` tag that callers can match on without importing every
subclass. The CLI entry point in :func:`httperform.app.main` catches
``HttperformError`` and exits with the appropriate code.

Subclass hierarchy::

    HttperformError (exit 1)
    +-- ValidationError     (exit 2)
    +-- ConfigError         (exit 1)
    +-- AuthError           (exit 3)
    +-- HttpError           (exit 5, or 3 for 401/403, 4 for 404)
    +-- TransportFailure    (exit 6)
    +-- BreakerOpen         (exit 7)
    +-- NoAttemptsMade      (exit 8)

Every error raised by the perform loop keeps a reference to the request
that produced it, and to the response where one exists.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from httperform.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_BREAKER_OPEN,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_HTTP_ERROR,
    EXIT_INVALID_USAGE,
    EXIT_NO_ATTEMPTS,
    EXIT_NOT_FOUND,
)

if TYPE_CHECKING:
    from pathlib import Path

    from httperform.client.response import Response
    from httperform.request import Request


class HttperformError(Exception):
    """Base exception for all httperform errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE
    kind: str = "error"

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ValidationError(HttperformError):
    """Raised for invalid input (e.g. a bad verbosity) before any I/O happens."""

    exit_code = EXIT_INVALID_USAGE
    kind = "validation"


class ConfigError(HttperformError):
    """Raised for configuration problems (missing profiles, invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE
    kind = "config"


class AuthError(HttperformError):
    """Raised when an auth signer cannot obtain or refresh credentials.

    Never retried by the perform loop.
    """

    exit_code = EXIT_AUTH_FAILURE
    kind = "auth"


class TransportFailure(HttperformError):
    """The transport could not complete the exchange (timeout, DNS, refused connection).

    The perform loop builds this error as an attempt *result* and only
    raises it once the retry policy gives up. The underlying transport
    exception is chained as ``__cause__``.

    Attributes:
        request: The request whose attempt failed.
        path: The on-disk destination requested for the body, if any. A
            partially written file may exist there.
    """

    exit_code = EXIT_CONNECTION_ERROR
    kind = "transport-failure"

    def __init__(
        self,
        message: str,
        request: Optional[Request] = None,
        path: Optional[str | Path] = None,
    ):
        super().__init__(message)
        self.request = request
        self.path = path


class HttpError(HttperformError):
    """The exchange succeeded but the status was classified as an error.

    Attributes:
        response: The final :class:`~httperform.client.response.Response`.
        status_code: Shortcut for ``response.status_code``.
        body: Message extracted from the error body, or ``None``.
        request: The request that produced the response.
    """

    exit_code = EXIT_HTTP_ERROR
    kind = "http-error"

    def __init__(
        self,
        response: Response,
        body: Optional[str] = None,
        request: Optional[Request] = None,
    ):
        status = response.status_code
        message = f"HTTP {status} {response.reason_phrase}".rstrip() + "."
        if body:
            message = f"{message} {body}"
        if status in (401, 403):
            exit_code = EXIT_AUTH_FAILURE
        elif status == 404:
            exit_code = EXIT_NOT_FOUND
        else:
            exit_code = EXIT_HTTP_ERROR
        super().__init__(message, exit_code=exit_code)
        self.response = response
        self.status_code = status
        self.body = body
        self.request = request if request is not None else response.request


class BreakerOpen(HttperformError):
    """The circuit breaker refused another attempt after consecutive transient failures.

    Attributes:
        request: The request being performed.
        tries: Number of consecutive transient attempts seen so far.
        last_result: The outcome of the last attempt (a response or a
            :class:`TransportFailure`), if any.
    """

    exit_code = EXIT_BREAKER_OPEN
    kind = "breaker-open"

    def __init__(
        self,
        message: str,
        request: Optional[Request] = None,
        tries: int = 0,
        last_result: Any = None,
    ):
        super().__init__(message)
        self.request = request
        self.tries = tries
        self.last_result = last_result


class NoAttemptsMade(HttperformError):
    """The retry budget (``max_tries`` or deadline) allowed no attempt at all."""

    exit_code = EXIT_NO_ATTEMPTS
    kind = "no-attempts"

    def __init__(self, message: str, request: Optional[Request] = None):
        super().__init__(message)
        self.request = request
