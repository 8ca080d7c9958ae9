"""Outcome classification for a single attempt.

:func:`classify` maps the result of one attempt -- a
:class:`~httperform.client.response.Response` or a
:class:`~httperform.exceptions.TransportFailure` -- to an :class:`Outcome`
that the perform loop acts on.

The transient check runs before the invalid-token check. A response that
matches both predicates is therefore retried as transient and never
triggers re-authentication, which keeps the re-auth path reachable at most
once per perform call.
"""

from __future__ import annotations

import enum
import re
from typing import TYPE_CHECKING, Union

from httperform.exceptions import TransportFailure
from httperform.policy.errors import error_is_error

if TYPE_CHECKING:
    from httperform.client.response import Response
    from httperform.request import Request

AttemptResult = Union["Response", TransportFailure]

_AUTH_PARAM = re.compile(r'([A-Za-z0-9_\-]+)\s*=\s*(?:"((?:[^"\\]|\\.)*)"|([^,\s]*))')


class Outcome(str, enum.Enum):
    """What the perform loop should do after an attempt."""

    SUCCESS = "success"
    TRANSIENT = "transient"
    INVALID_TOKEN = "invalid-token"
    TERMINAL = "terminal"


def parse_www_authenticate(value: str) -> tuple[str, dict[str, str]]:
    """Split a ``WWW-Authenticate`` challenge into its scheme and parameters.

    Example::

        >>> parse_www_authenticate('Bearer realm="api", error="invalid_token"')
        ('Bearer', {'realm': 'api', 'error': 'invalid_token'})
    """
    scheme, _, rest = value.strip().partition(" ")
    params: dict[str, str] = {}
    for match in _AUTH_PARAM.finditer(rest):
        name, quoted, bare = match.groups()
        params[name.lower()] = quoted if quoted is not None else bare
    return scheme, params


def is_transient(request: Request, result: AttemptResult) -> bool:
    """Return True if *result* should be retried.

    Transport failures are transient when ``retry_on_failure`` is set.
    Responses use the custom ``is_transient`` predicate when present, else
    membership of ``transient_statuses``.
    """
    policies = request.policies
    if isinstance(result, TransportFailure):
        return policies.retry_on_failure
    if policies.is_transient is not None:
        return bool(policies.is_transient(result))
    return result.status_code in policies.transient_statuses


def is_invalid_token(request: Request, result: AttemptResult) -> bool:
    """Return True if *result* says the OAuth access token was rejected.

    Never true without a signer, since nothing could re-authenticate. A
    custom ``is_invalid_token`` policy wins next. Otherwise the check only
    applies when the signer supports re-authentication, and looks for a 401
    carrying a ``Bearer`` challenge with ``error="invalid_token"``
    (:rfc:`6750` section 3.1).
    """
    if isinstance(result, TransportFailure):
        return False
    policies = request.policies
    if policies.auth is None:
        return False
    if policies.is_invalid_token is not None:
        return bool(policies.is_invalid_token(result))
    if not policies.auth.supports_reauth:
        return False
    if result.status_code != 401:
        return False
    challenge = result.headers.get("www-authenticate")
    if not challenge:
        return False
    scheme, params = parse_www_authenticate(challenge)
    return scheme.lower() == "bearer" and params.get("error") == "invalid_token"


def classify(request: Request, result: AttemptResult) -> Outcome:
    """Classify the result of one attempt."""
    if is_transient(request, result):
        return Outcome.TRANSIENT
    if is_invalid_token(request, result):
        return Outcome.INVALID_TOKEN
    if isinstance(result, TransportFailure) or error_is_error(request, result):
        return Outcome.TERMINAL
    return Outcome.SUCCESS
