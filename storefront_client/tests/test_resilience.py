"""
Unit tests for the client resilience loop.
"""

import asyncio

import httpx
import pytest

from shared.retry import RetryPolicy
from storefront_client.resilience import FetchState, ResilientFetch, is_transient
from storefront_client.token_store import TokenStore


class ManualHandle:
    def __init__(self, callback):
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose timers only fire when the test says so."""

    def __init__(self):
        self.handles = []

    def call_later(self, delay, callback):
        handle = ManualHandle(callback)
        self.handles.append(handle)
        return handle

    def fire(self):
        handle = self.handles.pop(0)
        handle.callback()
        return handle


class ScriptedAttempt:
    """Attempt callable answering from a list of responses or exceptions."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.tokens = []

    async def __call__(self, token):
        self.tokens.append(token)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def policy():
    return RetryPolicy(max_attempts=3, base_delay=0, max_delay=0)


def unreachable():
    return httpx.Response(500, json={"error": "Core service unavailable", "code": "TRANSPORT_ERROR"})


class TestResilientFetch:
    """Test cases for ResilientFetch."""

    @pytest.mark.asyncio
    async def test_success(self, policy):
        attempt = ScriptedAttempt(httpx.Response(200, json={"items": [1]}))
        fetch = ResilientFetch(attempt, lambda: "tok", policy=policy)

        fetch.start()
        state = await fetch.wait()

        assert state is FetchState.SUCCESS
        assert fetch.data == {"items": [1]}
        assert fetch.attempts == 1
        assert fetch.history == [FetchState.FETCHING, FetchState.SUCCESS]
        assert attempt.tokens == ["tok"]

    @pytest.mark.asyncio
    async def test_waits_for_credential(self, policy):
        store = TokenStore()
        scheduler = ManualScheduler()
        attempt = ScriptedAttempt(httpx.Response(200, json=[]))
        fetch = ResilientFetch(attempt, store.get, policy=policy, scheduler=scheduler)

        fetch.start()
        assert fetch.state is FetchState.RETRYING
        assert attempt.tokens == []

        store.set("late-token")
        scheduler.fire()
        state = await fetch.wait()

        assert state is FetchState.SUCCESS
        assert fetch.attempts == 2
        assert attempt.tokens == ["late-token"]
        assert fetch.history == [
            FetchState.FETCHING,
            FetchState.RETRYING,
            FetchState.FETCHING,
            FetchState.SUCCESS,
        ]

    @pytest.mark.asyncio
    async def test_unauthorized_exhausts_attempts(self, policy):
        attempt = ScriptedAttempt(httpx.Response(401, json={"error": "Authentication token not found"}))
        fetch = ResilientFetch(attempt, lambda: "expired", policy=policy)

        fetch.start()
        state = await fetch.wait()

        assert state is FetchState.FAILED
        assert fetch.attempts == 3
        assert len(attempt.tokens) == 3
        assert fetch.status_code == 401
        assert fetch.history.count(FetchState.RETRYING) == 2

    @pytest.mark.asyncio
    async def test_no_credential_exhausts_without_calls(self, policy):
        attempt = ScriptedAttempt(httpx.Response(200, json={}))
        fetch = ResilientFetch(attempt, lambda: None, policy=policy)

        fetch.start()
        state = await fetch.wait()

        assert state is FetchState.FAILED
        assert fetch.attempts == 3
        assert attempt.tokens == []
        assert fetch.error == "no_credential"

    @pytest.mark.asyncio
    async def test_transport_failure_retried(self, policy):
        attempt = ScriptedAttempt(httpx.ConnectError("down"), httpx.Response(200, json={"ok": True}))
        fetch = ResilientFetch(attempt, lambda: "tok", policy=policy)

        fetch.start()
        state = await fetch.wait()

        assert state is FetchState.SUCCESS
        assert fetch.attempts == 2

    @pytest.mark.asyncio
    async def test_unreachable_core_retried(self, policy):
        attempt = ScriptedAttempt(unreachable(), httpx.Response(200, json={"ok": True}))
        fetch = ResilientFetch(attempt, lambda: "tok", policy=policy)

        fetch.start()

        assert await fetch.wait() is FetchState.SUCCESS
        assert fetch.attempts == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(404, json={"message": "Not found"}),
        httpx.Response(400, json={"error": "Validation failed"}),
        httpx.Response(500, json={"error": "boom", "code": "SHAPE_ERROR"}),
    ])
    async def test_other_errors_fail_immediately(self, policy, response):
        attempt = ScriptedAttempt(response)
        fetch = ResilientFetch(attempt, lambda: "tok", policy=policy)

        fetch.start()

        assert await fetch.wait() is FetchState.FAILED
        assert fetch.attempts == 1
        assert fetch.status_code == response.status_code
        assert fetch.error == response.json()

    @pytest.mark.asyncio
    async def test_non_json_success_fails(self, policy):
        attempt = ScriptedAttempt(httpx.Response(200, text="<html></html>", headers={"content-type": "text/html"}))
        fetch = ResilientFetch(attempt, lambda: "tok", policy=policy)

        fetch.start()

        assert await fetch.wait() is FetchState.FAILED
        assert fetch.error == "invalid_json"

    @pytest.mark.asyncio
    async def test_crashing_attempt_fails(self, policy):
        attempt = ScriptedAttempt(RuntimeError("bad adapter"))
        fetch = ResilientFetch(attempt, lambda: "tok", policy=policy)

        fetch.start()

        assert await fetch.wait() is FetchState.FAILED
        assert fetch.attempts == 1

    @pytest.mark.asyncio
    async def test_crashing_credential_provider_fails_on_retry(self, policy):
        scheduler = ManualScheduler()
        calls = []

        def credentials():
            calls.append(1)
            if len(calls) > 1:
                raise RuntimeError("storage unavailable")
            return None

        fetch = ResilientFetch(ScriptedAttempt(httpx.Response(200, json={})), credentials, policy=policy,
                               scheduler=scheduler)
        fetch.start()
        assert fetch.state is FetchState.RETRYING

        scheduler.fire()

        assert await asyncio.wait_for(fetch.wait(), timeout=1) is FetchState.FAILED
        assert fetch.error == "storage unavailable"
        assert fetch.attempts == 2

    @pytest.mark.asyncio
    async def test_listener_sees_every_transition(self, policy):
        seen = []
        attempt = ScriptedAttempt(httpx.Response(200, json={}))
        fetch = ResilientFetch(attempt, lambda: "tok", policy=policy, on_change=seen.append)

        fetch.start()
        await fetch.wait()

        assert seen == [FetchState.FETCHING, FetchState.SUCCESS]

    @pytest.mark.asyncio
    async def test_close_while_retrying(self, policy):
        scheduler = ManualScheduler()
        seen = []
        fetch = ResilientFetch(lambda token: None, lambda: None, policy=policy, scheduler=scheduler,
                               on_change=seen.append)

        fetch.start()
        handle = scheduler.handles[0]
        fetch.close()

        assert handle.cancelled
        assert await fetch.wait() is FetchState.RETRYING

        # A timer that fires anyway must not restart the loop
        handle.callback()
        assert fetch.attempts == 1
        assert seen == [FetchState.FETCHING, FetchState.RETRYING]

    @pytest.mark.asyncio
    async def test_close_while_fetching(self, policy):
        gate = asyncio.Event()
        seen = []

        async def never_answers(token):
            await gate.wait()
            return httpx.Response(200, json={})

        fetch = ResilientFetch(never_answers, lambda: "tok", policy=policy, on_change=seen.append)
        fetch.start()
        await asyncio.sleep(0)

        fetch.close()
        gate.set()
        await asyncio.sleep(0)

        assert fetch.state is FetchState.FETCHING
        assert seen == [FetchState.FETCHING]
        assert fetch.closed

    @pytest.mark.asyncio
    async def test_start_twice(self, policy):
        fetch = ResilientFetch(ScriptedAttempt(httpx.Response(200, json={})), lambda: "tok", policy=policy)
        fetch.start()
        with pytest.raises(RuntimeError):
            fetch.start()
        await fetch.wait()

    @pytest.mark.asyncio
    async def test_start_after_close(self, policy):
        fetch = ResilientFetch(ScriptedAttempt(httpx.Response(200, json={})), lambda: "tok", policy=policy)
        fetch.close()
        with pytest.raises(RuntimeError):
            fetch.start()


@pytest.mark.parametrize("response, expected", [
    (httpx.Response(401), True),
    (unreachable(), True),
    (httpx.Response(500, json={"code": "SHAPE_ERROR"}), False),
    (httpx.Response(502, text="Bad Gateway"), False),
    (httpx.Response(403, json={"code": "TRANSPORT_ERROR"}), False),
])
def test_is_transient(response, expected):
    assert is_transient(response) is expected


class TestTokenStore:
    """Test cases for TokenStore."""

    def test_set_and_clear(self):
        store = TokenStore()
        assert store.get() is None
        store.set("abc")
        assert store.get() == "abc"
        store.clear()
        assert store.get() is None

    def test_blank_token_is_absent(self):
        assert TokenStore("").get() is None

    def test_subscribe(self):
        store = TokenStore()
        seen = []
        unsubscribe = store.subscribe(seen.append)

        store.set("one")
        unsubscribe()
        store.set("two")

        assert seen == ["one"]
