"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Closed/open/half-open circuit breaker guarding one named operation.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Literal, TypeVar

from ..telemetry import NullTelemetrySink, TelemetryEvent, TelemetrySink, now_ms
from .errors import CircuitOpenError

logger = logging.getLogger(__name__)

CircuitState = Literal["closed", "open", "half_open"]
ReturnT = TypeVar("ReturnT")


@dataclass(frozen=True, slots=True)
class CircuitBreakerSnapshot:
    """
    Point-in-time view of a breaker.

    Attributes:
        name: Breaker name (usually the guarded operation name).
        state: Current state.
        failure_count: Consecutive failures counted while closed.
        last_failure_time: Clock reading of the last recorded failure.
        failure_threshold: Failures needed to open the circuit.
        reset_timeout_s: Cooldown before a half-open trial is allowed.
    """

    name: str
    state: CircuitState
    failure_count: int
    last_failure_time: float | None
    failure_threshold: int
    reset_timeout_s: float


class CircuitBreaker:
    """
    Per-operation breaker.

    State machine:
    1. `closed`: failures increment a counter; reaching `failure_threshold`
       opens the circuit. Any success clears the streak.
    2. `open`: calls are rejected until `reset_timeout_s` has elapsed since the
       last failure; the next caller then moves the breaker to `half_open`.
    3. `half_open`: exactly one trial call is admitted. Success closes the
       circuit, failure re-opens it and restarts the cooldown.

    Transitions are serialized with a lock so one instance can be shared by
    concurrent workflow branches.
    """

    def __init__(
        self,
        name: str,
        *,
        failure_threshold: int = 5,
        reset_timeout_s: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
        telemetry: TelemetrySink | None = None,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if reset_timeout_s < 0:
            raise ValueError("reset_timeout_s must be >= 0")

        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout_s = reset_timeout_s
        self._clock = clock
        self._telemetry = telemetry or NullTelemetrySink()
        self._lock = threading.Lock()
        self._state: CircuitState = "closed"
        self._failure_count = 0
        self._last_failure_time: float | None = None
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        return self._state

    def get_state(self) -> CircuitState:
        """Return the stored state without applying any transition."""
        return self._state

    def snapshot(self) -> CircuitBreakerSnapshot:
        with self._lock:
            return CircuitBreakerSnapshot(
                name=self.name,
                state=self._state,
                failure_count=self._failure_count,
                last_failure_time=self._last_failure_time,
                failure_threshold=self.failure_threshold,
                reset_timeout_s=self.reset_timeout_s,
            )

    def allow_request(self) -> bool:
        """
        Decide whether one call may proceed, reserving the half-open trial.

        Returns:
            `True` when the caller may attempt the operation. A `True` result
            must be followed by `record_success` or `record_failure`.
        """
        with self._lock:
            if self._state == "closed":
                return True

            if self._state == "open":
                if not self._cooldown_elapsed():
                    return False
                self._transition("half_open")
                self._trial_in_flight = True
                return True

            # half_open: only the reserved trial may run
            if self._trial_in_flight:
                return False
            self._trial_in_flight = True
            return True

    def record_success(self) -> None:
        with self._lock:
            self._failure_count = 0
            self._trial_in_flight = False
            if self._state != "closed":
                self._transition("closed")

    def record_failure(self) -> None:
        with self._lock:
            now = self._clock()
            if self._state == "half_open":
                self._trial_in_flight = False
                self._last_failure_time = now
                self._transition("open")
                return

            self._failure_count += 1
            self._last_failure_time = now
            if self._state == "closed" and self._failure_count >= self.failure_threshold:
                self._transition("open")

    def reset(self) -> None:
        """Force the breaker back to a clean `closed` state."""
        with self._lock:
            self._failure_count = 0
            self._last_failure_time = None
            self._trial_in_flight = False
            if self._state != "closed":
                self._transition("closed")

    async def call(self, fn: Callable[[], Awaitable[ReturnT]]) -> ReturnT:
        """Run `fn` under this breaker, recording its outcome."""
        if not self.allow_request():
            raise CircuitOpenError(
                f"Circuit breaker '{self.name}' is open",
                operation=self.name,
                attempts=0,
            )
        try:
            result = await fn()
        except BaseException:
            self.record_failure()
            raise
        self.record_success()
        return result

    def _cooldown_elapsed(self) -> bool:
        if self._last_failure_time is None:
            return True
        return self._clock() - self._last_failure_time >= self.reset_timeout_s

    def _transition(self, target: CircuitState) -> None:
        previous = self._state
        self._state = target
        if target == "open":
            logger.warning(
                "circuit '%s' opened after %d failure(s)", self.name, self._failure_count
            )
        else:
            logger.info("circuit '%s' %s -> %s", self.name, previous, target)
        self._telemetry.record_event(
            TelemetryEvent(
                name="circuit.transition",
                timestamp_ms=now_ms(),
                attributes={"breaker": self.name, "from": previous, "to": target},
            )
        )


class BreakerRegistry:
    """Hands out one breaker per operation name."""

    def __init__(
        self,
        *,
        failure_threshold: int = 5,
        reset_timeout_s: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
        telemetry: TelemetrySink | None = None,
    ) -> None:
        self._failure_threshold = failure_threshold
        self._reset_timeout_s = reset_timeout_s
        self._clock = clock
        self._telemetry = telemetry
        self._lock = threading.Lock()
        self._breakers: dict[str, CircuitBreaker] = {}

    def get(self, name: str) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker(
                    name,
                    failure_threshold=self._failure_threshold,
                    reset_timeout_s=self._reset_timeout_s,
                    clock=self._clock,
                    telemetry=self._telemetry,
                )
                self._breakers[name] = breaker
            return breaker

    def names(self) -> list[str]:
        with self._lock:
            return list(self._breakers)

    def snapshots(self) -> list[CircuitBreakerSnapshot]:
        with self._lock:
            breakers = list(self._breakers.values())
        return [breaker.snapshot() for breaker in breakers]
