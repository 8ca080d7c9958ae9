"""httperform -- perform HTTP requests with retries, re-auth, and caching.

This package executes a fully-described HTTP request and normalises the
outcome into either a :class:`~httperform.client.response.Response` or a
typed error. One call to :func:`~httperform.client.performer.perform` may
issue several HTTP exchanges: transient failures are retried with backoff,
an expired OAuth token is refreshed once, and a configured cache can answer
the request without touching the network.

Typical usage::

    from httperform.client import perform
    from httperform.request import new_request

    req = new_request("https://api.example.com/users").with_retry(max_tries=3)
    resp = perform(req)

Modules:
    app: Typer application and CLI entry point.
    request: The immutable :class:`~httperform.request.Request` value.
    models: Pydantic configuration models.
    config: XDG-aware configuration and profile management.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.3.0"
