from __future__ import annotations

import asyncio

import pytest

from waypoint.resilience import BreakerRegistry, CircuitBreaker, CircuitOpenError
from waypoint.telemetry import InMemoryTelemetrySink


def run_async(coro):
    return asyncio.run(coro)


class FakeClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_breaker_opens_after_threshold_and_rejects():
    clock = FakeClock()
    breaker = CircuitBreaker("svc", failure_threshold=3, reset_timeout_s=10.0, clock=clock)

    for _ in range(2):
        assert breaker.allow_request()
        breaker.record_failure()
    assert breaker.state == "closed"

    assert breaker.allow_request()
    breaker.record_failure()
    assert breaker.state == "open"
    assert breaker.allow_request() is False


def test_breaker_half_open_admits_single_trial_then_closes():
    clock = FakeClock()
    breaker = CircuitBreaker("svc", failure_threshold=1, reset_timeout_s=5.0, clock=clock)
    breaker.record_failure()
    assert breaker.state == "open"

    clock.advance(4.9)
    assert breaker.allow_request() is False

    clock.advance(0.2)
    assert breaker.allow_request() is True
    assert breaker.state == "half_open"
    assert breaker.allow_request() is False

    breaker.record_success()
    assert breaker.state == "closed"
    assert breaker.snapshot().failure_count == 0


def test_breaker_half_open_failure_reopens_and_restarts_cooldown():
    clock = FakeClock()
    breaker = CircuitBreaker("svc", failure_threshold=1, reset_timeout_s=5.0, clock=clock)
    breaker.record_failure()
    clock.advance(5.0)
    assert breaker.allow_request()

    breaker.record_failure()
    assert breaker.state == "open"
    clock.advance(1.0)
    assert breaker.allow_request() is False


def test_success_clears_failure_streak():
    breaker = CircuitBreaker("svc", failure_threshold=3, clock=FakeClock())
    breaker.record_failure()
    breaker.record_failure()
    breaker.record_success()
    breaker.record_failure()
    breaker.record_failure()
    assert breaker.state == "closed"


def test_breaker_call_rejects_when_open():
    breaker = CircuitBreaker("svc", failure_threshold=1, reset_timeout_s=60.0, clock=FakeClock())

    async def boom():
        raise RuntimeError("down")

    async def ok():
        return "fine"

    with pytest.raises(RuntimeError):
        run_async(breaker.call(boom))
    with pytest.raises(CircuitOpenError):
        run_async(breaker.call(ok))


def test_transitions_are_reported_to_telemetry():
    sink = InMemoryTelemetrySink()
    clock = FakeClock()
    breaker = CircuitBreaker("svc", failure_threshold=1, reset_timeout_s=1.0, clock=clock, telemetry=sink)
    breaker.record_failure()
    clock.advance(1.0)
    breaker.allow_request()
    breaker.record_success()

    transitions = [(e.attributes["from"], e.attributes["to"]) for e in sink.events("circuit.transition")]
    assert transitions == [("closed", "open"), ("open", "half_open"), ("half_open", "closed")]


def test_breaker_rejects_invalid_configuration():
    with pytest.raises(ValueError):
        CircuitBreaker("svc", failure_threshold=0)
    with pytest.raises(ValueError):
        CircuitBreaker("svc", reset_timeout_s=-1)


def test_registry_hands_out_one_breaker_per_name():
    registry = BreakerRegistry(failure_threshold=2)
    a = registry.get("tool:read_file")
    assert registry.get("tool:read_file") is a
    assert registry.get("chat:model") is not a
    assert sorted(registry.names()) == ["chat:model", "tool:read_file"]
    assert {snap.failure_threshold for snap in registry.snapshots()} == {2}
