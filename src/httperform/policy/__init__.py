"""Request policies consulted by the perform loop.

- :mod:`httperform.policy.classify` -- maps an attempt result to an
  :class:`~httperform.policy.classify.Outcome`.
- :mod:`httperform.policy.retry` -- attempt budget, backoff and circuit
  breaker.
- :mod:`httperform.policy.errors` -- which statuses are errors and how the
  error body is summarised.
"""

from httperform.policy.classify import Outcome, classify
from httperform.policy.errors import error_body, error_is_error
from httperform.policy.retry import (
    breaker_check,
    exponential_backoff,
    max_seconds,
    max_tries,
    next_delay,
    parse_retry_after,
)

__all__ = [
    "Outcome",
    "breaker_check",
    "classify",
    "error_body",
    "error_is_error",
    "exponential_backoff",
    "max_seconds",
    "max_tries",
    "next_delay",
    "parse_retry_after",
]
