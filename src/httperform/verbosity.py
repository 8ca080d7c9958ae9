"""Verbosity levels for request tracing.

Verbosity is an integer from 0 to 3:

* ``0`` -- no output
* ``1`` -- request and response headers
* ``2`` -- headers and bodies
* ``3`` -- headers, bodies, and transport diagnostics (attempts, delays,
  re-authentication)

The level is validated before any network activity and stored on the
request's :class:`~httperform.request.Policies`, so that the perform loop
and result assembly read it from the request they are handling.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from httperform.exceptions import ValidationError

if TYPE_CHECKING:
    from httperform.request import Request

SILENT = 0
HEADERS = 1
BODIES = 2
DIAGNOSTICS = 3


def check_verbosity(verbosity: Any) -> int:
    """Validate *verbosity* and return it as an ``int``.

    Raises:
        ValidationError: If *verbosity* is not an integer in ``0..3``.
            Booleans are rejected; integral floats such as ``2.0`` are
            accepted.
    """
    if isinstance(verbosity, bool):
        raise ValidationError("verbosity must be 0, 1, 2, or 3.")
    if isinstance(verbosity, float) and verbosity.is_integer():
        verbosity = int(verbosity)
    if not isinstance(verbosity, int) or not SILENT <= verbosity <= DIAGNOSTICS:
        raise ValidationError("verbosity must be 0, 1, 2, or 3.")
    return verbosity


def apply_verbosity(request: Request, verbosity: Any) -> Request:
    """Return a copy of *request* that traces at the given level."""
    level = check_verbosity(verbosity)
    if level == request.policies.verbosity:
        return request
    return request.with_policies(verbosity=level)
