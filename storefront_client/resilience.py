"""
Client resilience loop around a single relay call.

``ResilientFetch`` is an explicit state machine::

    idle -> fetching -> success
                     -> retrying -> fetching ...
                     -> failed

A fetch cycle is retried when no credential is available yet, when the
relay answers 401, when the call fails at the transport level, or when the
relay reports that the core service was unreachable. Any other non-2xx
answer fails immediately. The number of fetch cycles never exceeds
``policy.max_attempts``.

``close()`` tears the loop down: the pending timer and the in-flight call
are cancelled and no state change is observable afterwards.
"""

import asyncio
import random
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

import httpx

from shared.logging import get_logger
from shared.retry import RetryPolicy
from storefront_client.scheduler import AsyncioScheduler, Scheduler, TimerHandle

TRANSPORT_ERROR_CODE = "TRANSPORT_ERROR"

CredentialProvider = Callable[[], Optional[str]]
FetchAttempt = Callable[[str], Awaitable[httpx.Response]]
StateListener = Callable[["FetchState"], None]


class FetchState(str, Enum):
    """States of the resilience loop."""
    IDLE = "idle"
    FETCHING = "fetching"
    RETRYING = "retrying"
    SUCCESS = "success"
    FAILED = "failed"


def is_transient(response: httpx.Response) -> bool:
    """True for relay answers worth another attempt."""
    if response.status_code == 401:
        return True
    if response.status_code < 500:
        return False
    try:
        body = response.json()
    except ValueError:
        return False
    return isinstance(body, dict) and body.get("code") == TRANSPORT_ERROR_CODE


class ResilientFetch:
    """Retry loop for one logical relay request."""

    def __init__(
        self,
        attempt: FetchAttempt,
        credentials: CredentialProvider,
        policy: Optional[RetryPolicy] = None,
        scheduler: Optional[Scheduler] = None,
        on_change: Optional[StateListener] = None,
        rng: Optional[random.Random] = None,
    ):
        self.attempt = attempt
        self.credentials = credentials
        self.policy = policy or RetryPolicy()
        self.scheduler = scheduler or AsyncioScheduler()
        self.on_change = on_change
        self.rng = rng
        self.logger = get_logger("storefront.resilience")

        self.state = FetchState.IDLE
        self.attempts = 0
        self.history: List[FetchState] = []
        self.data: Any = None
        self.error: Any = None
        self.status_code: Optional[int] = None

        self._timer: Optional[TimerHandle] = None
        self._task: Optional["asyncio.Task[None]"] = None
        self._done: Optional["asyncio.Future[FetchState]"] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Begin the first fetch cycle."""
        if self._closed:
            raise RuntimeError("Resilient fetch already closed")
        if self.state is not FetchState.IDLE:
            raise RuntimeError("Resilient fetch already started")
        self._done = asyncio.get_running_loop().create_future()
        self._begin_attempt()

    async def wait(self) -> FetchState:
        """Wait for a terminal state or teardown and return the state."""
        if self._done is None:
            return self.state
        return await asyncio.shield(self._done)

    def close(self) -> None:
        """Cancel pending work; no transition happens afterwards."""
        if self._closed:
            return
        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._resolve()
        self.logger.debug("Resilient fetch closed", state=self.state.value, attempts=self.attempts)

    def _begin_attempt(self) -> None:
        if self._closed:
            return
        self._timer = None
        self.attempts += 1
        self._transition(FetchState.FETCHING)

        try:
            token = self.credentials()
        except Exception as exc:
            self.logger.error("Credential provider crashed", error=str(exc), exc_info=True)
            self.error = str(exc)
            self._finish(FetchState.FAILED)
            return
        if not token:
            self._retry_or_fail("no_credential")
            return
        self._task = asyncio.ensure_future(self._run(token))

    async def _run(self, token: str) -> None:
        try:
            response = await self.attempt(token)
        except httpx.TransportError as exc:
            if not self._closed:
                self._retry_or_fail("transport", error=str(exc))
            return
        except Exception as exc:
            # Degrades to the failed state; the consumer renders its fallback
            self.logger.error("Resilient fetch attempt crashed", error=str(exc), exc_info=True)
            if not self._closed:
                self.error = str(exc)
                self._finish(FetchState.FAILED)
            return
        if self._closed:
            return
        self._handle(response)

    def _handle(self, response: httpx.Response) -> None:
        self.status_code = response.status_code
        if response.is_success:
            try:
                self.data = response.json() if response.content else None
            except ValueError:
                self.error = "invalid_json"
                self._finish(FetchState.FAILED)
                return
            self.error = None
            self._finish(FetchState.SUCCESS)
        elif is_transient(response):
            self._retry_or_fail("unauthorized" if response.status_code == 401 else "unreachable", error=_body(response))
        else:
            self.error = _body(response)
            self._finish(FetchState.FAILED)

    def _retry_or_fail(self, reason: str, error: Any = None) -> None:
        self.error = error if error is not None else reason
        if self.attempts >= self.policy.max_attempts:
            self.logger.warning("Resilient fetch exhausted", reason=reason, attempts=self.attempts)
            self._finish(FetchState.FAILED)
            return

        delay = self.policy.delay_for(self.attempts, self.rng)
        self.logger.info("Resilient fetch retrying", reason=reason, attempt=self.attempts, delay=delay)
        self._transition(FetchState.RETRYING)
        self._timer = self.scheduler.call_later(delay, self._begin_attempt)

    def _finish(self, state: FetchState) -> None:
        self._transition(state)
        self._resolve()

    def _transition(self, state: FetchState) -> None:
        if self._closed:
            return
        self.state = state
        self.history.append(state)
        if self.on_change is not None:
            self.on_change(state)

    def _resolve(self) -> None:
        if self._done is not None and not self._done.done():
            self._done.set_result(self.state)


def _body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
