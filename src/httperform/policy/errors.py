"""Error policy: which statuses are errors, and what the error body says."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from httperform.client.response import Response
    from httperform.request import Request


def error_is_error(request: Request, response: Response) -> bool:
    """Return True if *response* should surface as an :class:`~httperform.exceptions.HttpError`.

    Uses the request's ``is_error`` policy when set; otherwise any 4xx or
    5xx status is an error.
    """
    predicate = request.policies.is_error
    if predicate is not None:
        return bool(predicate(response))
    return response.status_code >= 400


def error_body(request: Request, response: Response) -> Optional[str]:
    """Extract a human-readable message from an error response.

    The request's ``error_body`` policy wins when set. The default looks for
    ``message``, ``error``, or ``detail`` in a JSON object body and falls
    back to the first 200 characters of the text.
    """
    extractor = request.policies.error_body
    if extractor is not None:
        return extractor(response)

    if not response.content:
        return None
    try:
        detail = response.json()
    except ValueError:
        return response.text[:200] or None

    if isinstance(detail, dict):
        msg = detail.get("message") or detail.get("error") or detail.get("detail")
        if isinstance(msg, dict):
            msg = msg.get("message")
        return str(msg) if msg else None
    return str(detail)
