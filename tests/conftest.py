"""Shared test fixtures for httperform.

Provides isolated config environments, output state management, a fake
clock for retry timing, and scripted transports that let the perform loop
run without a network.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Union

import httpx
import pytest

from httperform.auth.token_store import default_token_cache
from httperform.client.debug import default_sink
from httperform.client.response import Response, new_response
from httperform.client.transport import HttpxTransport, Transport, TransportHandle
from httperform.output import OutputFormat, OutputManager, reset_output, set_output
from httperform.request import Request


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_globals_between_tests() -> None:
    """Reset the global OutputManager, debug sink and token cache after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    """
    yield
    reset_output()
    default_sink().clear()
    default_token_cache().clear()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path, clears all HTTPERFORM_* environment
    variables and changes the working directory to tmp_path.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("HOME", str(tmp_path / "home"))

    for var in ["HTTPERFORM_PROFILE", "HTTPERFORM_BASE_URL", "HTTPERFORM_VERBOSITY"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture(autouse=True)
def _no_env_verbosity(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("HTTPERFORM_VERBOSITY", raising=False)


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True, no_color=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def plain_output() -> OutputManager:
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    from typer.testing import CliRunner

    return CliRunner()


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------


class FakeClock:
    """A clock whose ``sleep`` advances time instantly and records the delay."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Transports
# ---------------------------------------------------------------------------


Step = Union[Response, Exception, Callable[[Request], Response]]


class _ScriptedHandle(TransportHandle):
    def __init__(self, owner: ScriptedTransport, request: Request) -> None:
        self._owner = owner
        self.request = request
        self.closed = False

    def fetch(self, path=None) -> Response:
        self._owner.fetched.append(self.request)
        if not self._owner.steps:
            raise AssertionError("transport called more times than scripted")
        step = self._owner.steps.pop(0)
        if isinstance(step, Exception):
            raise step
        if callable(step) and not isinstance(step, Response):
            return step(self.request)
        return step

    def close(self) -> None:
        self.closed = True


class ScriptedTransport(Transport):
    """A transport that replays a fixed list of responses and exceptions.

    Records every opened handle and every fetched request so that tests can
    assert on call counts, signing and handle lifetimes.
    """

    def __init__(self, steps: Iterable[Step]) -> None:
        self.steps: list[Step] = list(steps)
        self.handles: list[_ScriptedHandle] = []
        self.fetched: list[Request] = []

    def open(self, request: Request) -> TransportHandle:
        handle = _ScriptedHandle(self, request)
        self.handles.append(handle)
        return handle

    @property
    def calls(self) -> int:
        return len(self.fetched)


def respond(
    status_code: int = 200,
    headers: Optional[Any] = None,
    body: Optional[Union[str, bytes]] = None,
) -> Response:
    return new_response(status_code=status_code, headers=headers, body=body)


def mock_transport(handler: Callable[[httpx.Request], httpx.Response]) -> HttpxTransport:
    """An :class:`HttpxTransport` answering from *handler* via ``httpx.MockTransport``."""
    return HttpxTransport(httpx.MockTransport(handler))


@pytest.fixture
def scripted() -> type[ScriptedTransport]:
    """The :class:`ScriptedTransport` class, e.g. ``scripted([respond(503), respond(200)])``."""
    return ScriptedTransport


@pytest.fixture(name="respond")
def respond_fixture() -> Callable[..., Response]:
    return respond


@pytest.fixture(name="mock_transport")
def mock_transport_fixture() -> Callable[..., HttpxTransport]:
    return mock_transport
