from __future__ import annotations

import asyncio

import pytest

from waypoint.errors import classify_error
from waypoint.resilience import (
    CircuitBreaker,
    CircuitOpenError,
    ExternalFailureError,
    OperationTimeoutError,
    ResiliencePolicy,
    backoff_delay,
    wrap,
)
from waypoint.telemetry import InMemoryTelemetrySink


def run_async(coro):
    return asyncio.run(coro)


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


FAST = ResiliencePolicy(retries=3, timeout_s=1.0, backoff_base_s=1.0, backoff_max_s=30.0, jitter=False)


def test_retry_succeeds_on_third_attempt():
    calls = {"n": 0}
    sleep = RecordingSleep()

    async def flaky():
        calls["n"] += 1
        if calls["n"] < 3:
            raise ConnectionError("reset")
        return "ok"

    result = run_async(wrap("svc", flaky, policy=FAST, sleep=sleep))
    assert result == "ok"
    assert calls["n"] == 3
    assert sleep.delays == [1.0, 2.0]


def test_timeout_exhaustion_raises_timeout_kind():
    calls = {"n": 0}

    async def slow():
        calls["n"] += 1
        await asyncio.sleep(1.0)

    with pytest.raises(OperationTimeoutError) as info:
        run_async(wrap("slow", slow, retries=1, timeout_s=0.05, sleep=RecordingSleep()))

    assert calls["n"] == 2
    assert info.value.kind == "timeout"
    assert info.value.attempts == 2
    assert classify_error(info.value) == "timeout"


def test_exhausted_failure_is_tagged_external_with_cause():
    async def broken():
        raise ValueError("bad upstream")

    with pytest.raises(ExternalFailureError) as info:
        run_async(wrap("svc", broken, policy=FAST, retries=0))

    assert info.value.kind == "unknown"
    assert isinstance(info.value.__cause__, ValueError)
    assert info.value.attempts == 1


def test_retry_if_marks_failure_terminal():
    calls = {"n": 0}

    async def invalid():
        calls["n"] += 1
        raise KeyError("missing")

    with pytest.raises(ExternalFailureError):
        run_async(
            wrap(
                "svc",
                invalid,
                policy=FAST,
                retry_if=lambda e: not isinstance(e, KeyError),
                sleep=RecordingSleep(),
            )
        )
    assert calls["n"] == 1


def test_open_breaker_makes_no_attempt():
    breaker = CircuitBreaker("svc", failure_threshold=1, reset_timeout_s=60.0)
    breaker.record_failure()
    calls = {"n": 0}

    async def op():
        calls["n"] += 1
        return 1

    with pytest.raises(CircuitOpenError) as info:
        run_async(wrap("svc", op, policy=FAST, circuit_breaker=breaker))
    assert calls["n"] == 0
    assert classify_error(info.value) == "circuit_open"


def test_breaker_opens_mid_retry_and_stops_attempts():
    breaker = CircuitBreaker("svc", failure_threshold=2, reset_timeout_s=60.0)
    calls = {"n": 0}

    async def op():
        calls["n"] += 1
        raise ConnectionError("down")

    with pytest.raises(CircuitOpenError):
        run_async(wrap("svc", op, policy=FAST, circuit_breaker=breaker, sleep=RecordingSleep()))
    assert calls["n"] == 2
    assert breaker.state == "open"


def test_success_records_on_breaker_and_histogram():
    sink = InMemoryTelemetrySink()
    breaker = CircuitBreaker("svc", failure_threshold=3)
    breaker.record_failure()

    async def op():
        return 5

    assert run_async(wrap("svc", op, policy=FAST, circuit_breaker=breaker, telemetry=sink)) == 5
    assert breaker.snapshot().failure_count == 0
    assert len(sink.histograms("resilience.latency_ms")) == 1


def test_backoff_delay_is_exponential_and_capped():
    assert backoff_delay(1, 1.0, 30.0, jitter=False) == 1.0
    assert backoff_delay(3, 1.0, 30.0, jitter=False) == 4.0
    assert backoff_delay(10, 1.0, 30.0, jitter=False) == 30.0
    jittered = backoff_delay(2, 1.0, 30.0, jitter=True, jitter_ratio=0.25)
    assert 1.5 <= jittered <= 2.5


def test_policy_from_env(monkeypatch):
    monkeypatch.setenv("WAYPOINT_RETRIES", "1")
    monkeypatch.setenv("WAYPOINT_TIMEOUT_S", "2.5")
    monkeypatch.setenv("WAYPOINT_JITTER", "off")
    policy = ResiliencePolicy.from_env()
    assert policy.retries == 1
    assert policy.timeout_s == 2.5
    assert policy.jitter is False


def test_policy_validation():
    with pytest.raises(ValueError):
        ResiliencePolicy(retries=-1)
    with pytest.raises(ValueError):
        ResiliencePolicy(timeout_s=0)
