"""Tests for the perform loop."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional
from unittest.mock import MagicMock

import httpx
import pytest

from httperform.auth.base import AuthSigner
from httperform.cache.base import CacheInterceptor
from httperform.client.debug import LastExchange, last_request, last_response
from httperform.client.mock import CallableMock, mocked_responses
from httperform.client.performer import Performer, perform, prepare_request
from httperform.client.response import BodyPath, Response, new_response
from httperform.exceptions import (
    AuthError,
    BreakerOpen,
    HttpError,
    NoAttemptsMade,
    TransportFailure,
    ValidationError,
)
from httperform.request import Request, new_request

URL = "https://api.example.com/items"
INVALID_TOKEN = {"WWW-Authenticate": 'Bearer realm="api", error="invalid_token"'}


class CountingSigner(AuthSigner):
    """Signs with ``token-<n>``; a forced sign moves to the next token."""

    def __init__(self, supports_reauth: bool = True) -> None:
        self.supports_reauth = supports_reauth
        self.calls: list[bool] = []
        self.generation = 1

    def sign(self, request: Request, force: bool = False) -> Request:
        self.calls.append(force)
        if force:
            self.generation += 1
        return request.with_headers({"Authorization": f"Bearer token-{self.generation}"})


class RecordingCache(CacheInterceptor):
    def __init__(self, cached: Optional[Response] = None) -> None:
        self.cached = cached
        self.post_fetch_results: list[object] = []

    def pre_fetch(self, request, path=None):
        return self.cached

    def post_fetch(self, request, result, path=None):
        self.post_fetch_results.append(result)
        return result


@pytest.fixture
def performer_factory(clock, quiet_output):
    def _make(transport, **kwargs) -> Performer:
        return Performer(transport=transport, sleep=clock.sleep, clock=clock, **kwargs)

    return _make


# ---------------------------------------------------------------------------
# Basic results
# ---------------------------------------------------------------------------


class TestResults:
    def test_success_returns_response(self, performer_factory, scripted, respond) -> None:
        transport = scripted([respond(200, {"Content-Type": "application/json"}, '{"id": 1}')])
        resp = performer_factory(transport).perform(new_request(URL))
        assert resp.status_code == 200
        assert resp.json() == {"id": 1}
        assert transport.calls == 1

    def test_error_status_raises_http_error(self, performer_factory, scripted, respond) -> None:
        transport = scripted([respond(404, {"Content-Type": "application/json"}, '{"message": "gone"}')])
        with pytest.raises(HttpError) as exc_info:
            performer_factory(transport).perform(new_request(URL))
        err = exc_info.value
        assert err.status_code == 404
        assert err.body == "gone"
        assert err.exit_code == 4
        assert err.request is not None

    def test_custom_is_error_accepts_error_status(self, performer_factory, scripted, respond) -> None:
        transport = scripted([respond(404)])
        req = new_request(URL).with_error(is_error=lambda r: False)
        assert performer_factory(transport).perform(req).status_code == 404

    def test_custom_error_body(self, performer_factory, scripted, respond) -> None:
        transport = scripted([respond(500, body="x")])
        req = new_request(URL).with_error(body=lambda r: "custom detail")
        with pytest.raises(HttpError, match="custom detail"):
            performer_factory(transport).perform(req)

    def test_transport_failure_raised_after_budget(self, performer_factory, scripted) -> None:
        transport = scripted([httpx.ConnectError("refused")])
        with pytest.raises(TransportFailure) as exc_info:
            performer_factory(transport).perform(new_request(URL))
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert exc_info.value.kind == "transport-failure"

    def test_transport_failure_retried_then_success(self, performer_factory, scripted, respond, clock) -> None:
        transport = scripted([httpx.ReadTimeout("slow"), respond(200)])
        req = new_request(URL).with_retry(max_tries=2, backoff=lambda attempt: 0.5)
        assert performer_factory(transport).perform(req).status_code == 200
        assert clock.sleeps == [0.5]

    def test_failures_not_retried_when_disabled(self, performer_factory, scripted, respond) -> None:
        transport = scripted([httpx.ConnectError("refused"), respond(200)])
        req = new_request(URL).with_retry(max_tries=3, retry_on_failure=False)
        with pytest.raises(TransportFailure):
            performer_factory(transport).perform(req)
        assert transport.calls == 1


# ---------------------------------------------------------------------------
# Retry budget
# ---------------------------------------------------------------------------


class TestRetry:
    def test_single_try_computes_no_delay(self, performer_factory, scripted, respond, clock) -> None:
        backoff = MagicMock(return_value=1.0)
        after = MagicMock(return_value=1.0)
        transport = scripted([respond(503), respond(200)])
        req = new_request(URL).with_retry(max_tries=1, backoff=backoff, after=after)

        with pytest.raises(HttpError) as exc_info:
            performer_factory(transport).perform(req)

        assert exc_info.value.status_code == 503
        assert transport.calls == 1
        backoff.assert_not_called()
        after.assert_not_called()
        assert clock.sleeps == []

    def test_default_budget_is_one_try(self, performer_factory, scripted, respond) -> None:
        transport = scripted([respond(503), respond(200)])
        with pytest.raises(HttpError):
            performer_factory(transport).perform(new_request(URL))
        assert transport.calls == 1

    def test_always_503_fails_with_final_response(self, performer_factory, mock_transport, clock) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503, json={"error": "unavailable"})

        req = new_request(URL).with_retry(max_tries=3, transient_statuses={503})
        with pytest.raises(HttpError) as exc_info:
            performer_factory(mock_transport(handler)).perform(req)

        assert len(calls) == 3
        assert exc_info.value.status_code == 503
        assert exc_info.value.response.json() == {"error": "unavailable"}
        assert len(clock.sleeps) == 2

    def test_retry_after_header_sets_delay(self, performer_factory, scripted, respond, clock) -> None:
        transport = scripted([respond(429, {"Retry-After": "7"}), respond(200)])
        req = new_request(URL).with_retry(max_tries=2)
        performer_factory(transport).perform(req)
        assert clock.sleeps == [7.0]

    def test_custom_transient_predicate(self, performer_factory, scripted, respond) -> None:
        transport = scripted([respond(500), respond(500), respond(200)])
        req = new_request(URL).with_retry(
            max_tries=5, is_transient=lambda r: r.status_code == 500, backoff=lambda n: 0
        )
        assert performer_factory(transport).perform(req).status_code == 200
        assert transport.calls == 3

    def test_max_seconds_without_max_tries_retries_until_deadline(
        self, performer_factory, scripted, respond, clock
    ) -> None:
        transport = scripted([respond(503)] * 10)
        req = new_request(URL).with_retry(max_seconds=5, backoff=lambda n: 2.0)
        with pytest.raises(HttpError):
            performer_factory(transport).perform(req)
        # attempts at t=0, 2, 4 and 6; the deadline is only checked before each wait
        assert transport.calls == 4

    def test_long_deadline_ends_with_last_response(self, performer_factory, mock_transport, clock) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            clock.advance(3.0)
            return httpx.Response(503)

        req = new_request(URL).with_retry(max_seconds=3600).with_policies(backoff_cap=0.001)
        with pytest.raises(HttpError) as exc_info:
            performer_factory(mock_transport(handler)).perform(req)

        assert exc_info.value.status_code == 503
        assert len(calls) > 1100
        assert max(clock.sleeps) <= 0.001

    def test_past_deadline_makes_no_attempt(self, performer_factory, scripted, respond) -> None:
        transport = scripted([respond(200)])
        req = new_request(URL).with_retry(max_seconds=0)
        with pytest.raises(NoAttemptsMade) as exc_info:
            performer_factory(transport).perform(req)
        assert transport.calls == 0
        assert exc_info.value.exit_code == 8
        assert all(h.closed for h in transport.handles)

    def test_zero_max_tries_makes_no_attempt(self, performer_factory, scripted, respond) -> None:
        transport = scripted([respond(200)])
        with pytest.raises(NoAttemptsMade):
            performer_factory(transport).perform(new_request(URL).with_retry(max_tries=0))
        assert transport.calls == 0


# ---------------------------------------------------------------------------
# Circuit breaker
# ---------------------------------------------------------------------------


class TestBreaker:
    def test_breaker_denies_fourth_transient_attempt(self, performer_factory, scripted, respond) -> None:
        transport = scripted([respond(503)] * 10)
        req = new_request(URL).with_retry(
            max_tries=10, max_seconds=3600, breaker_threshold=3, backoff=lambda n: 0.1
        )
        with pytest.raises(BreakerOpen) as exc_info:
            performer_factory(transport).perform(req)
        assert transport.calls == 3
        assert exc_info.value.tries == 3
        assert exc_info.value.last_result.status_code == 503
        assert exc_info.value.exit_code == 7

    def test_breaker_not_tripped_by_success(self, performer_factory, scripted, respond) -> None:
        transport = scripted([respond(503), respond(503), respond(200)])
        req = new_request(URL).with_retry(max_tries=10, breaker_threshold=3, backoff=lambda n: 0)
        assert performer_factory(transport).perform(req).status_code == 200

    def test_handle_closed_when_breaker_opens(self, performer_factory, scripted, respond) -> None:
        transport = scripted([respond(503)] * 3)
        req = new_request(URL).with_retry(max_tries=10, breaker_threshold=2, backoff=lambda n: 0)
        with pytest.raises(BreakerOpen):
            performer_factory(transport).perform(req)
        assert len(transport.handles) == 1
        assert transport.handles[0].closed


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class TestReauth:
    def test_signs_before_first_attempt(self, performer_factory, scripted, respond) -> None:
        signer = CountingSigner()
        transport = scripted([respond(200)])
        performer_factory(transport).perform(new_request(URL).with_auth(signer))
        assert signer.calls == [False]
        assert transport.fetched[0].header("authorization") == "Bearer token-1"

    def test_invalid_token_triggers_one_forced_sign(self, performer_factory, scripted, respond, clock) -> None:
        signer = CountingSigner()
        transport = scripted([respond(401, INVALID_TOKEN), respond(200)])
        resp = performer_factory(transport).perform(new_request(URL).with_auth(signer))

        assert resp.status_code == 200
        assert signer.calls == [False, True]
        assert transport.fetched[1].header("authorization") == "Bearer token-2"
        assert clock.sleeps == []
        assert len(transport.handles) == 2
        assert all(h.closed for h in transport.handles)

    def test_reauth_happens_at_most_once(self, performer_factory, scripted, respond) -> None:
        signer = CountingSigner()
        transport = scripted([respond(401, INVALID_TOKEN), respond(401, INVALID_TOKEN), respond(200)])
        with pytest.raises(HttpError) as exc_info:
            performer_factory(transport).perform(
                new_request(URL).with_auth(signer).with_retry(max_tries=5)
            )
        assert exc_info.value.status_code == 401
        assert exc_info.value.exit_code == 3
        assert signer.calls == [False, True]
        assert transport.calls == 2

    def test_reauth_does_not_consume_a_try(self, performer_factory, scripted, respond) -> None:
        signer = CountingSigner()
        transport = scripted([respond(401, INVALID_TOKEN), respond(200)])
        req = new_request(URL).with_auth(signer).with_retry(max_tries=1)
        assert performer_factory(transport).perform(req).status_code == 200

    def test_plain_401_is_terminal(self, performer_factory, scripted, respond) -> None:
        signer = CountingSigner()
        transport = scripted([respond(401, {"WWW-Authenticate": 'Bearer realm="api"'})])
        with pytest.raises(HttpError):
            performer_factory(transport).perform(new_request(URL).with_auth(signer))
        assert signer.calls == [False]

    def test_non_oauth_signer_never_reauths(self, performer_factory, scripted, respond) -> None:
        signer = CountingSigner(supports_reauth=False)
        transport = scripted([respond(401, INVALID_TOKEN)])
        with pytest.raises(HttpError):
            performer_factory(transport).perform(new_request(URL).with_auth(signer))
        assert signer.calls == [False]

    def test_transient_takes_precedence_over_invalid_token(
        self, performer_factory, scripted, respond
    ) -> None:
        signer = CountingSigner()
        transport = scripted([respond(401, INVALID_TOKEN), respond(200)])
        req = (
            new_request(URL)
            .with_auth(signer)
            .with_retry(max_tries=2, transient_statuses={401}, backoff=lambda n: 0)
        )
        performer_factory(transport).perform(req)
        assert signer.calls == [False]

    def test_custom_invalid_token_predicate(self, performer_factory, scripted, respond) -> None:
        signer = CountingSigner(supports_reauth=False)
        transport = scripted([respond(403), respond(200)])
        req = new_request(URL).with_auth(signer, is_invalid_token=lambda r: r.status_code == 403)
        assert performer_factory(transport).perform(req).status_code == 200
        assert signer.calls == [False, True]

    def test_invalid_token_predicate_without_signer_is_terminal(
        self, performer_factory, scripted, respond
    ) -> None:
        transport = scripted([respond(401), respond(200)])
        req = new_request(URL).with_policies(is_invalid_token=lambda r: r.status_code == 401)
        with pytest.raises(HttpError) as exc_info:
            performer_factory(transport).perform(req)
        assert exc_info.value.status_code == 401
        assert transport.calls == 1
        assert len(transport.handles) == 1

    def test_signer_error_propagates_without_attempt(self, performer_factory, scripted, respond) -> None:
        signer = MagicMock(spec=AuthSigner)
        signer.sign.side_effect = AuthError("no credentials")
        transport = scripted([respond(200)])
        with pytest.raises(AuthError):
            performer_factory(transport).perform(new_request(URL).with_auth(signer))
        assert transport.calls == 0
        assert transport.handles == []


# ---------------------------------------------------------------------------
# Cache interception
# ---------------------------------------------------------------------------


class TestCacheInterception:
    def test_pre_fetch_hit_skips_transport_and_post_fetch(
        self, performer_factory, scripted, respond
    ) -> None:
        cache = RecordingCache(cached=respond(200, body="cached"))
        transport = scripted([respond(200, body="network")])
        resp = performer_factory(transport).perform(new_request(URL).with_cache(cache))
        assert resp.text == "cached"
        assert transport.calls == 0
        assert transport.handles == []
        assert cache.post_fetch_results == []

    def test_post_fetch_sees_final_result(self, performer_factory, scripted, respond) -> None:
        cache = RecordingCache()
        transport = scripted([respond(200, body="network")])
        performer_factory(transport).perform(new_request(URL).with_cache(cache))
        assert len(cache.post_fetch_results) == 1
        assert cache.post_fetch_results[0].text == "network"

    def test_post_fetch_can_replace_failure(self, performer_factory, scripted, respond) -> None:
        class FallbackCache(RecordingCache):
            def post_fetch(self, request, result, path=None):
                return respond(200, body="stale")

        transport = scripted([httpx.ConnectError("down")])
        resp = performer_factory(transport).perform(new_request(URL).with_cache(FallbackCache()))
        assert resp.text == "stale"

    def test_revalidation_headers_added(self, performer_factory, scripted, respond) -> None:
        class ConditionalCache(RecordingCache):
            def revalidation_headers(self, request):
                return {"If-None-Match": '"v1"'}

        transport = scripted([respond(200)])
        performer_factory(transport).perform(new_request(URL).with_cache(ConditionalCache()))
        assert transport.fetched[0].header("if-none-match") == '"v1"'


# ---------------------------------------------------------------------------
# Mock hook
# ---------------------------------------------------------------------------


class TestMock:
    def test_mock_response_returned_verbatim(self, performer_factory, scripted) -> None:
        mocked = new_response(
            200,
            headers={"Content-Type": "text/plain", "X-Trace": "abc"},
            body="hello",
        )
        transport = scripted([])
        resp = performer_factory(transport, mock=lambda req: mocked).perform(new_request(URL))
        assert resp.status_code == 200
        assert resp.headers["x-trace"] == "abc"
        assert resp.text == "hello"
        assert transport.handles == []

    def test_mock_returning_none_falls_through(self, performer_factory, scripted, respond) -> None:
        transport = scripted([respond(204)])
        mock = CallableMock(lambda req: None)
        assert performer_factory(transport, mock=mock).perform(new_request(URL)).status_code == 204

    def test_mock_error_status_is_classified(self, performer_factory, scripted) -> None:
        performer = performer_factory(scripted([]), mock=lambda req: new_response(500))
        with pytest.raises(HttpError):
            performer.perform(new_request(URL))

    def test_mock_skips_signer(self, performer_factory, scripted) -> None:
        signer = CountingSigner()
        performer = performer_factory(scripted([]), mock=lambda req: new_response(200))
        performer.perform(new_request(URL).with_auth(signer))
        assert signer.calls == []

    def test_mocked_responses_context(self, quiet_output) -> None:
        with mocked_responses(lambda req: new_response(200, body=req.url)):
            resp = perform(new_request(URL))
        assert resp.text == URL
        assert resp.request is not None


# ---------------------------------------------------------------------------
# Verbosity
# ---------------------------------------------------------------------------


class TestVerbosity:
    @pytest.mark.parametrize("level", [-1, 4, "2", True])
    def test_invalid_verbosity_rejected_before_io(self, performer_factory, scripted, level) -> None:
        transport = scripted([])
        mock = MagicMock(return_value=None)
        with pytest.raises(ValidationError):
            performer_factory(transport, mock=mock).perform(new_request(URL), verbosity=level)
        mock.assert_not_called()
        assert transport.handles == []

    def test_env_verbosity_validated(self, performer_factory, scripted, monkeypatch) -> None:
        monkeypatch.setenv("HTTPERFORM_VERBOSITY", "9")
        with pytest.raises(ValidationError):
            performer_factory(scripted([])).perform(new_request(URL))

    def test_level_one_traces_headers(self, clock, scripted, respond, plain_output, capsys) -> None:
        transport = scripted([respond(200, {"X-Reply": "yes"}, "body-text")])
        performer = Performer(transport=transport, sleep=clock.sleep, clock=clock)
        performer.perform(
            new_request(URL, headers={"Authorization": "Bearer secret"}), verbosity=1
        )
        err = capsys.readouterr().err
        assert "-> GET /items HTTP/1.1" in err
        assert "-> Host: api.example.com" in err
        assert "<- HTTP/1.1 200 OK" in err
        assert "<- x-reply: yes" in err.lower()
        assert "secret" not in err
        assert "body-text" not in err

    def test_level_two_echoes_body(self, clock, scripted, respond, plain_output, capsys) -> None:
        transport = scripted([respond(200, {"Content-Type": "text/plain"}, "body-text")])
        performer = Performer(transport=transport, sleep=clock.sleep, clock=clock)
        performer.perform(new_request(URL), verbosity=2)
        assert "<< body-text" in capsys.readouterr().err

    def test_level_three_reports_retries(self, clock, scripted, respond, plain_output, capsys) -> None:
        transport = scripted([respond(503), respond(200)])
        performer = Performer(transport=transport, sleep=clock.sleep, clock=clock)
        performer.perform(
            new_request(URL).with_retry(max_tries=2, backoff=lambda n: 1.5), verbosity=3
        )
        err = capsys.readouterr().err
        assert "* Waiting 1.50s before retrying" in err


# ---------------------------------------------------------------------------
# Debug sink, hooks and bodies
# ---------------------------------------------------------------------------


class TestDebugSink:
    def test_injected_sink_records_last_exchange(self, performer_factory, scripted, respond) -> None:
        sink = LastExchange()
        transport = scripted([respond(503), respond(201)])
        req = new_request(URL).with_retry(max_tries=2, backoff=lambda n: 0)
        performer_factory(transport, debug_sink=sink).perform(req)
        assert sink.request.url == URL
        assert sink.response.status_code == 201

    def test_injected_sink_leaves_process_sink_alone(self, performer_factory, scripted, respond) -> None:
        performer_factory(scripted([respond(200)])).perform(new_request(URL))
        assert last_request() is None

    def test_failed_attempt_clears_response(self, performer_factory, scripted) -> None:
        sink = LastExchange()
        with pytest.raises(TransportFailure):
            performer_factory(scripted([httpx.ConnectError("x")]), debug_sink=sink).perform(
                new_request(URL)
            )
        assert sink.request is not None
        assert sink.response is None

    def test_module_perform_uses_process_sink(self, mock_transport, quiet_output) -> None:
        transport = mock_transport(lambda r: httpx.Response(418))
        with pytest.raises(HttpError):
            perform(new_request(URL), transport=transport)
        assert last_request().url == URL
        assert last_response().status_code == 418


class TestHooksAndBodies:
    def test_on_done_runs_after_every_attempt(self, performer_factory, scripted, respond) -> None:
        done = MagicMock()
        transport = scripted([httpx.ConnectError("x"), respond(503), respond(200)])
        req = new_request(URL).with_retry(max_tries=3, backoff=lambda n: 0).with_on_done(done)
        performer_factory(transport).perform(req)
        assert done.call_count == 3

    def test_json_body_sent_as_post(self, performer_factory, mock_transport) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["type"] = request.headers["content-type"]
            seen["body"] = json.loads(request.content)
            seen["agent"] = request.headers["user-agent"]
            return httpx.Response(201)

        performer_factory(mock_transport(handler)).perform(new_request(URL).with_body_json({"a": 1}))
        assert seen["method"] == "POST"
        assert seen["type"] == "application/json"
        assert seen["body"] == {"a": 1}
        assert seen["agent"].startswith("httperform/")

    def test_body_streamed_to_path(self, performer_factory, mock_transport, tmp_path: Path) -> None:
        transport = mock_transport(lambda r: httpx.Response(200, content=b"x" * 1024))
        target = tmp_path / "out" / "body.bin"
        resp = performer_factory(transport).perform(new_request(URL), path=target)
        assert isinstance(resp.body, BodyPath)
        assert target.read_bytes() == b"x" * 1024
        assert resp.content == b"x" * 1024

    def test_transport_failure_carries_path(self, performer_factory, scripted, tmp_path: Path) -> None:
        target = tmp_path / "body.bin"
        with pytest.raises(TransportFailure) as exc_info:
            performer_factory(scripted([httpx.ConnectError("x")])).perform(
                new_request(URL), path=target
            )
        assert exc_info.value.path == target

    def test_query_params_sent(self, performer_factory, mock_transport) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            return httpx.Response(200)

        performer_factory(mock_transport(handler)).perform(new_request(URL, params={"page": 2}))
        assert seen["url"] == URL + "?page=2"


class TestPrepareRequest:
    def test_defaults_method_and_user_agent(self) -> None:
        prepared = prepare_request(new_request(URL))
        assert prepared.method == "GET"
        assert prepared.header("user-agent").startswith("httperform/")

    def test_useragent_option_wins(self) -> None:
        prepared = prepare_request(new_request(URL, useragent="custom/1.0"))
        assert prepared.header("User-Agent") == "custom/1.0"

    def test_explicit_header_kept(self) -> None:
        prepared = prepare_request(new_request(URL, headers={"user-agent": "mine"}))
        assert prepared.header("User-Agent") == "mine"

    def test_form_body_encoded(self) -> None:
        prepared = prepare_request(new_request(URL).with_body_form({"a": "1", "b": "x y"}))
        assert prepared.method == "POST"
        assert prepared.body.data == b"a=1&b=x+y"
        assert prepared.header("content-type") == "application/x-www-form-urlencoded"
