"""Tests for the timeout, retry and cancellation policy around capability calls."""

from __future__ import annotations

import asyncio

import pytest

from config.settings import CapabilityConfig
from debate_engine.capabilities import CancellationToken, CapabilityInvoker
from debate_engine.exceptions import CapabilityError, CapabilityTimeout, SessionCancelled


def _invoker(token: CancellationToken | None = None, **overrides) -> CapabilityInvoker:
    settings = {"timeout_seconds": 0.5, "max_retries": 1, "retry_backoff_seconds": 0.0}
    settings.update(overrides)
    return CapabilityInvoker(CapabilityConfig(**settings), token)


def test_retries_once_then_succeeds() -> None:
    """A single failure is retried silently."""
    attempts = []

    async def flaky() -> str:
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("transient")
        return "ok"

    result = asyncio.run(_invoker().call("flaky", flaky))

    assert result == "ok"
    assert len(attempts) == 2


def test_second_failure_raises_capability_error() -> None:
    """Two failures exhaust the retry budget."""
    attempts = []

    async def broken() -> str:
        attempts.append(1)
        raise RuntimeError("down")

    with pytest.raises(CapabilityError, match="RuntimeError: down"):
        asyncio.run(_invoker().call("broken", broken))
    assert len(attempts) == 2


def test_timeout_is_a_capability_error() -> None:
    """Slow calls surface as CapabilityTimeout after the retry."""

    async def slow() -> str:
        await asyncio.sleep(5)
        return "late"

    with pytest.raises(CapabilityTimeout) as exc_info:
        asyncio.run(_invoker(timeout_seconds=0.05).call("slow", slow))
    assert isinstance(exc_info.value, CapabilityError)
    assert exc_info.value.timeout == pytest.approx(0.05)


def test_per_call_timeout_override() -> None:
    """An explicit timeout replaces the configured one."""

    async def medium() -> str:
        await asyncio.sleep(0.1)
        return "done"

    invoker = _invoker(timeout_seconds=0.01)
    assert asyncio.run(invoker.call("medium", medium, timeout=1.0)) == "done"


def test_cancelled_token_blocks_dispatch() -> None:
    """No call is made once the session is cancelled."""
    calls = []

    async def never() -> str:
        calls.append(1)
        return "unreachable"

    token = CancellationToken()
    token.cancel("Cancelled by user")

    with pytest.raises(SessionCancelled, match="Cancelled by user"):
        asyncio.run(_invoker(token).call("never", never))
    assert calls == []


def test_cancellation_abandons_in_flight_call() -> None:
    """Cancelling mid-call returns immediately and discards the result."""
    finished = []

    async def scenario() -> None:
        token = CancellationToken()
        invoker = _invoker(token, timeout_seconds=5.0)

        async def long_call() -> str:
            await asyncio.sleep(0.2)
            finished.append("result")
            return "result"

        async def cancel_soon() -> None:
            await asyncio.sleep(0.01)
            token.cancel()

        canceller = asyncio.create_task(cancel_soon())
        with pytest.raises(SessionCancelled):
            await invoker.call("long", long_call)
        await canceller
        assert finished == []
        # The abandoned call still runs to completion in the background
        await asyncio.sleep(0.3)

    asyncio.run(scenario())
    assert finished == ["result"]


def test_no_retry_when_retries_zero() -> None:
    """max_retries=0 means a single attempt."""
    attempts = []

    async def broken() -> str:
        attempts.append(1)
        raise ValueError("bad json")

    with pytest.raises(CapabilityError):
        asyncio.run(_invoker(max_retries=0).call("broken", broken))
    assert len(attempts) == 1


def test_negative_retry_count_is_rejected() -> None:
    """A call with no attempts left raises ValueError instead of returning nothing."""

    async def never_called() -> str:
        raise AssertionError("should not be invoked")

    with pytest.raises(ValueError, match="non-negative"):
        asyncio.run(_invoker().call("noop", never_called, retries=-1))
