"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~httperform.exceptions.HttperformError` subclass.
Shell wrappers can inspect the exit code to tell a rejected credential from
a dead server without parsing stderr.

Example::

    $ httperform request https://api.example.com/users
    $ echo $?
    7   # EXIT_BREAKER_OPEN -- too many consecutive transient failures
"""

EXIT_SUCCESS = 0
"""The request completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments or settings were rejected before any network activity."""

EXIT_AUTH_FAILURE = 3
"""Authentication failed, or the server answered 401/403."""

EXIT_NOT_FOUND = 4
"""The server answered HTTP 404."""

EXIT_HTTP_ERROR = 5
"""The server answered with a status classified as an error."""

EXIT_CONNECTION_ERROR = 6
"""A transport-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_BREAKER_OPEN = 7
"""The circuit breaker refused further attempts."""

EXIT_NO_ATTEMPTS = 8
"""The retry budget allowed no attempt at all."""
