"""The perform loop: one logical request, many possible attempts.

:class:`Performer` turns a :class:`~httperform.request.Request` into a
:class:`~httperform.client.response.Response` or a typed error:

1. Validate verbosity. Nothing else happens if it is invalid.
2. Offer the request to the mock handler. A mocked response goes straight
   to result assembly.
3. Sign the request, then consult the cache interceptor. A fresh cached
   response also goes straight to result assembly.
4. Prepare the request (method, serialised body, ``User-Agent``) and open
   one transport handle.
5. Attempt until the outcome is final or the budget (``max_tries`` and
   the ``max_seconds`` deadline) is spent:

   - transient outcomes count against the budget and wait before the next
     attempt (``Retry-After`` or backoff);
   - the first invalid-token outcome re-signs with ``force=True`` and
     retries immediately without counting;
   - anything else ends the loop.

6. Hand the final result to the cache interceptor, then assemble: raise
   transport failures, raise :class:`~httperform.exceptions.HttpError`
   for error statuses, return everything else.

Attempt state (tries, delay, the re-auth flag) is local to one call, so a
single :class:`Performer` can be shared between threads as long as its
collaborators can.
"""

from __future__ import annotations

import json
import time
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Optional, Union
from urllib.parse import urlencode

import httpx

from httperform import __version__
from httperform.client.debug import LastExchange, default_sink
from httperform.client.mock import MockFunction, MockHandler, active_mock, as_mock
from httperform.client.response import Response
from httperform.client.transport import HttpxTransport, Transport, TransportHandle
from httperform.config import default_verbosity
from httperform.exceptions import HttpError, NoAttemptsMade, TransportFailure
from httperform.output import OutputManager, get_output
from httperform.policy.classify import Outcome, classify
from httperform.policy.errors import error_body, error_is_error
from httperform.policy.retry import breaker_check, max_seconds, max_tries, next_delay
from httperform.request import Body, BodyKind, Request
from httperform.verbosity import BODIES, DIAGNOSTICS, HEADERS, apply_verbosity, check_verbosity

PathLike = Optional[Union[str, Path]]
AttemptResult = Union[Response, TransportFailure]

_REDACTED_HEADERS = {"authorization", "proxy-authorization"}


def default_user_agent() -> str:
    return f"httperform/{__version__} httpx/{httpx.__version__}"


def prepare_request(request: Request) -> Request:
    """Resolve everything the transport needs to send *request* verbatim.

    The method is made explicit, JSON and form bodies are serialised to
    bytes with their ``Content-Type``, and a ``User-Agent`` is added from
    the ``useragent`` option or the library default when the request has
    none.
    """
    prepared = request.with_method(request.effective_method)

    body = request.body
    if body is not None:
        if body.kind == BodyKind.JSON:
            data = json.dumps(body.data, ensure_ascii=False).encode("utf-8")
            prepared = replace(prepared, body=Body(BodyKind.RAW, data, body.content_type))
        elif body.kind == BodyKind.FORM:
            data = urlencode(body.data, doseq=True).encode("ascii")
            prepared = replace(prepared, body=Body(BodyKind.RAW, data, body.content_type))
        if body.content_type and prepared.header("Content-Type") is None:
            prepared = prepared.with_headers({"Content-Type": body.content_type})

    if prepared.header("User-Agent") is None:
        agent = request.options.get("useragent") or default_user_agent()
        prepared = prepared.with_headers({"User-Agent": agent})
    return prepared


class Performer:
    """Executes requests with retry, re-authentication and caching.

    Args:
        transport: Opens transport handles. Defaults to
            :class:`~httperform.client.transport.HttpxTransport`.
        mock: Optional mock handler (or plain function) consulted first.
        debug_sink: Receives every attempted request and response. A
            private :class:`~httperform.client.debug.LastExchange` is used
            when omitted.
        sleep: Called with the delay before a retry.
        clock: Monotonic clock used for the ``max_seconds`` deadline.
        output: Where traces go. Defaults to the global output manager.

    Example::

        performer = Performer(transport=HttpxTransport(mock_transport))
        response = performer.perform(
            new_request("https://api.example.com/items").with_retry(max_tries=3)
        )
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        mock: Union[MockHandler, MockFunction, None] = None,
        debug_sink: Optional[LastExchange] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        output: Optional[OutputManager] = None,
    ) -> None:
        self.transport = transport or HttpxTransport()
        self.mock = as_mock(mock)
        self.debug_sink = debug_sink if debug_sink is not None else LastExchange()
        self._sleep = sleep
        self._clock = clock
        self._output = output

    @property
    def output(self) -> OutputManager:
        return self._output or get_output()

    def perform(
        self,
        request: Request,
        path: PathLike = None,
        verbosity: Optional[int] = None,
    ) -> Response:
        """Perform *request* and return its final response.

        Args:
            request: What to send.
            path: Stream the response body to this file instead of memory.
            verbosity: Trace level 0-3. Defaults to ``HTTPERFORM_VERBOSITY``,
                then the request's own ``verbosity`` policy.

        Raises:
            ValidationError: *verbosity* is not 0, 1, 2 or 3.
            AuthError: The signer could not obtain credentials.
            TransportFailure: The last attempt failed at the transport level.
            HttpError: The final response has an error status.
            BreakerOpen: The circuit breaker refused another attempt.
            NoAttemptsMade: The budget allowed no attempt at all.
        """
        if verbosity is None:
            verbosity = default_verbosity(request.policies.verbosity)
        level = check_verbosity(verbosity)

        if self.mock is not None:
            mocked = self.mock.try_handle(request)
            if mocked is not None:
                self.debug_sink.record_request(request)
                self.debug_sink.record_response(mocked)
                return self._handle_result(request, mocked)

        request = apply_verbosity(request, level)

        signer = request.policies.auth
        if signer is not None:
            request = signer.sign(request)

        cache = request.policies.cache
        if cache is not None:
            cached = cache.pre_fetch(request, path)
            if cached is not None:
                self._diagnose(request, f"Using cached response for {request.url}")
                return self._handle_result(request, cached)
            conditional = cache.revalidation_headers(request)
            if conditional:
                request = request.with_headers(conditional)

        prepared = prepare_request(request)
        tries_allowed = max_tries(request)
        deadline = self._clock() + max_seconds(request)

        tries = 0
        reauth = False
        delay = 0.0
        result: Optional[AttemptResult] = None

        handle = self.transport.open(prepared)
        try:
            while tries < tries_allowed and self._clock() < deadline:
                breaker_check(request, tries, last_result=result)
                if delay > 0:
                    self._diagnose(request, f"Waiting {delay:.2f}s before retrying")
                    self._sleep(delay)

                result = self._attempt(handle, prepared, path)
                if request.policies.on_done is not None:
                    request.policies.on_done()

                outcome = classify(request, result)
                if outcome == Outcome.TRANSIENT:
                    tries += 1
                    if tries < tries_allowed:
                        delay = next_delay(request, result, tries)
                    self._diagnose(request, f"Transient outcome ({_describe(result)}), attempt {tries}")
                elif outcome == Outcome.INVALID_TOKEN and not reauth and signer is not None:
                    reauth = True
                    self._diagnose(request, "Access token rejected, re-authenticating")
                    request = signer.sign(request, force=True)
                    prepared = prepare_request(request)
                    handle.close()
                    handle = self.transport.open(prepared)
                    delay = 0.0
                else:
                    break
        finally:
            handle.close()

        if result is None:
            raise NoAttemptsMade(
                f"No attempts were made for {request.effective_method} {request.url}: "
                "the retry budget allows none.",
                request=request,
            )

        if cache is not None:
            result = cache.post_fetch(request, result, path)
        return self._handle_result(request, result)

    # ------------------------------------------------------------------ #
    # Attempts
    # ------------------------------------------------------------------ #

    def _attempt(
        self, handle: TransportHandle, prepared: Request, path: PathLike
    ) -> AttemptResult:
        self.debug_sink.record_request(prepared)
        self._trace_request(prepared)
        try:
            response = handle.fetch(path)
        except httpx.HTTPError as exc:
            failure = TransportFailure(
                f"Failed to perform HTTP request to {prepared.url}: {exc}",
                request=prepared,
                path=path,
            )
            failure.__cause__ = exc
            self._diagnose(prepared, f"Transport failure: {exc}")
            return failure
        self.debug_sink.record_response(response)
        self._trace_response(prepared, response)
        return response

    def _handle_result(self, request: Request, result: AttemptResult) -> Response:
        if isinstance(result, TransportFailure):
            raise result
        if request.policies.verbosity >= BODIES:
            self.output.show_body(result.content, result.content_type, "<<")
        if error_is_error(request, result):
            raise HttpError(result, body=error_body(request, result), request=request)
        return result

    # ------------------------------------------------------------------ #
    # Tracing
    # ------------------------------------------------------------------ #

    def _trace_request(self, prepared: Request) -> None:
        level = prepared.policies.verbosity
        if level < HEADERS:
            return
        url = httpx.URL(prepared.url)
        if prepared.params:
            url = url.copy_merge_params(dict(prepared.params))
        out = self.output
        out.traffic("->", f"{prepared.effective_method} {url.raw_path.decode('ascii')} HTTP/1.1")
        out.traffic("->", f"Host: {url.netloc.decode('ascii')}")
        for name, value in prepared.headers.items():
            if name.lower() in _REDACTED_HEADERS:
                value = "<REDACTED>"
            out.traffic("->", f"{name}: {value}")
        if level >= BODIES and prepared.body is not None:
            data = prepared.body.data
            if isinstance(data, str):
                data = data.encode("utf-8")
            if isinstance(data, bytes):
                out.show_body(data, prepared.header("Content-Type"), ">>")
            else:
                out.traffic(">>", f"<{prepared.body.kind.value} body>")

    def _trace_response(self, prepared: Request, response: Response) -> None:
        if prepared.policies.verbosity < HEADERS:
            return
        out = self.output
        out.traffic("<-", f"HTTP/1.1 {response.status_code} {response.reason_phrase}")
        for name, value in response.headers.items():
            out.traffic("<-", f"{name}: {value}")

    def _diagnose(self, request: Request, message: str) -> None:
        self.output.debug(message)
        if request.policies.verbosity >= DIAGNOSTICS:
            self.output.traffic("*", message)


def _describe(result: Any) -> str:
    if isinstance(result, TransportFailure):
        return "transport failure"
    return f"HTTP {result.status_code}"


def perform(
    request: Request,
    path: PathLike = None,
    verbosity: Optional[int] = None,
    mock: Union[MockHandler, MockFunction, None] = None,
    transport: Optional[Transport] = None,
) -> Response:
    """Perform *request* with the process-wide debug sink.

    Uses the mock installed by
    :func:`~httperform.client.mock.mocked_responses` when *mock* is not
    given. See :meth:`Performer.perform` for arguments and errors.
    """
    performer = Performer(
        transport=transport,
        mock=mock if mock is not None else active_mock(),
        debug_sink=default_sink(),
    )
    return performer.perform(request, path=path, verbosity=verbosity)
