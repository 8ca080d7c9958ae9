"""Retry budget, backoff, and circuit breaker.

The perform loop asks this module four questions:

* :func:`max_tries` -- how many attempts are allowed at most?
* :func:`max_seconds` -- how long may all attempts take together?
* :func:`next_delay` -- how long to wait before the next attempt?
* :func:`breaker_check` -- may another attempt run at all?

Delays honour a ``Retry-After`` header (delta-seconds or HTTP-date) before
falling back to full-jitter exponential backoff, which spreads retries from
many clients instead of synchronising them.
"""

from __future__ import annotations

import email.utils
import math
import random
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Optional

from httperform.exceptions import BreakerOpen, TransportFailure

if TYPE_CHECKING:
    from httperform.request import Request

UNBOUNDED_TRIES = sys.maxsize


def max_tries(request: Request) -> int:
    """Maximum number of attempts for *request*.

    An explicit ``max_tries`` wins. Without one, a request with a
    ``max_seconds`` budget may retry until the deadline; a request with
    neither is attempted once.
    """
    policies = request.policies
    if policies.max_tries is not None:
        return policies.max_tries
    if policies.max_seconds is not None:
        return UNBOUNDED_TRIES
    return 1


def max_seconds(request: Request) -> float:
    """Wall-clock budget for all attempts, ``math.inf`` when unset."""
    value = request.policies.max_seconds
    return math.inf if value is None else float(value)


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """Convert a ``Retry-After`` header value into a delay in seconds.

    Returns ``None`` for a missing or unparseable value. Dates in the past
    yield ``0.0``.
    """
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(int(value)))
    except ValueError:
        pass
    try:
        when = email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (when - now).total_seconds())


def retry_after(request: Request, result: Any) -> Optional[float]:
    """Server- or policy-supplied delay for *result*, if any.

    The custom ``retry_after`` extractor is asked first; when it has no
    answer the ``Retry-After`` header is used.
    """
    if isinstance(result, TransportFailure) or result is None:
        return None
    custom = request.policies.retry_after
    if custom is not None:
        delay = custom(result)
        if delay is not None:
            return delay
    return parse_retry_after(result.headers.get("retry-after"))


def exponential_backoff(
    attempt: int,
    base: float = 1.0,
    cap: float = 60.0,
    rng: Callable[[], float] = random.random,
) -> float:
    """Full-jitter exponential backoff: uniform in ``[0, base * 2**attempt]``, capped."""
    # 2.0 ** 1024 overflows a float; 2 ** 64 seconds is beyond any cap
    if attempt >= 64:
        ceiling = cap
    else:
        ceiling = min(cap, base * 2.0 ** attempt)
    return min(cap, rng() * ceiling)


def next_delay(request: Request, result: Any, attempt: int) -> float:
    """Seconds to wait before attempt number ``attempt + 1``.

    Args:
        request: The request being performed.
        result: The outcome of the attempt that just failed transiently.
        attempt: Number of transient attempts so far (1 after the first).
    """
    delay = retry_after(request, result)
    if delay is not None:
        return delay
    policies = request.policies
    if policies.backoff is not None:
        return float(policies.backoff(attempt))
    return exponential_backoff(attempt, policies.backoff_base, policies.backoff_cap)


def breaker_allows(request: Request, tries: int) -> bool:
    """Return False once ``tries`` consecutive transient attempts reach the threshold."""
    threshold = request.policies.breaker_threshold
    return threshold is None or tries < threshold


def breaker_check(request: Request, tries: int, last_result: Any = None) -> None:
    """Raise :class:`~httperform.exceptions.BreakerOpen` if the breaker denies another attempt."""
    if breaker_allows(request, tries):
        return
    raise BreakerOpen(
        f"Circuit breaker open after {tries} consecutive transient failures "
        f"for {request.effective_method} {request.url}.",
        request=request,
        tries=tries,
        last_result=last_result,
    )
