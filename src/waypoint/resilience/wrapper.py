"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Timeout + bounded exponential-backoff retry + optional circuit breaker around
any fallible async operation.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import replace
from typing import Awaitable, Callable, TypeVar

from ..telemetry import NullTelemetrySink, TelemetryEvent, TelemetrySink, now_ms
from .breaker import CircuitBreaker
from .config import ResiliencePolicy
from .errors import (
    CircuitOpenError,
    ExternalFailureError,
    OperationTimeoutError,
    ResilienceError,
)

logger = logging.getLogger(__name__)

ReturnT = TypeVar("ReturnT")
RetryPredicate = Callable[[Exception], bool]
Sleep = Callable[[float], Awaitable[None]]

_DEFAULT_POLICY = ResiliencePolicy()


def backoff_delay(
    attempt: int,
    base_s: float,
    max_s: float,
    *,
    jitter: bool = True,
    jitter_ratio: float = 0.25,
) -> float:
    """
    Exponential backoff, capped.
    attempt=1 => base, attempt=2 => 2*base, attempt=3 => 4*base, etc.
    """
    delay = min(max_s, base_s * (2 ** max(attempt - 1, 0)))
    if jitter and jitter_ratio > 0:
        delay *= random.uniform(1.0 - jitter_ratio, 1.0 + jitter_ratio)
    return max(0.0, min(max_s, delay))


async def wrap(
    name: str,
    operation: Callable[[], Awaitable[ReturnT]],
    *,
    policy: ResiliencePolicy | None = None,
    retries: int | None = None,
    timeout_s: float | None = None,
    jitter: bool | None = None,
    circuit_breaker: CircuitBreaker | None = None,
    retry_if: RetryPredicate | None = None,
    sleep: Sleep = asyncio.sleep,
    telemetry: TelemetrySink | None = None,
) -> ReturnT:
    """
    Run `operation` with timeout, retry and breaker protection.

    Keyword overrides (`retries`, `timeout_s`, `jitter`) take precedence over
    `policy`. Up to `retries + 1` attempts are made; each one races the
    operation against `timeout_s`. Every outcome is reported to
    `circuit_breaker` when one is supplied, and an open breaker fails the call
    before any attempt is made.

    Args:
        name: Operation name used in errors, logs and telemetry.
        operation: Zero-argument coroutine factory; called once per attempt.
        policy: Base retry/timeout/backoff settings.
        retries: Override for `policy.retries`.
        timeout_s: Override for `policy.timeout_s`.
        jitter: Override for `policy.jitter`.
        circuit_breaker: Caller-owned breaker consulted before each attempt.
        retry_if: Predicate deciding whether a failure may be retried.
            Failures it rejects end the call immediately.
        sleep: Awaitable sleep used between attempts.
        telemetry: Sink receiving retry/failure measurements.

    Returns:
        The operation result.

    Raises:
        CircuitOpenError: The breaker rejected the call.
        OperationTimeoutError: The final attempt timed out.
        ExternalFailureError: The final attempt failed for another reason.
    """
    effective = policy or _DEFAULT_POLICY
    overrides: dict[str, object] = {}
    if retries is not None:
        overrides["retries"] = retries
    if timeout_s is not None:
        overrides["timeout_s"] = timeout_s
    if jitter is not None:
        overrides["jitter"] = jitter
    if overrides:
        effective = replace(effective, **overrides)

    sink = telemetry or NullTelemetrySink()
    max_attempts = effective.retries + 1
    last: Exception | None = None
    attempts = 0

    for attempt in range(1, max_attempts + 1):
        if circuit_breaker is not None and not circuit_breaker.allow_request():
            sink.increment_counter("resilience.circuit_rejected", attributes={"operation": name})
            raise CircuitOpenError(
                f"Circuit breaker '{circuit_breaker.name}' is open; '{name}' not attempted",
                operation=name,
                attempts=attempts,
            ) from last

        attempts = attempt
        started = time.monotonic()
        try:
            result = await asyncio.wait_for(operation(), timeout=effective.timeout_s)
        except asyncio.TimeoutError as e:
            last = OperationTimeoutError(
                f"Operation '{name}' exceeded timeout of {effective.timeout_s} seconds",
                operation=name,
                attempts=attempt,
            )
            last.__cause__ = e
        except asyncio.CancelledError:
            if circuit_breaker is not None:
                circuit_breaker.record_failure()
            raise
        except Exception as e:
            last = e
        else:
            if circuit_breaker is not None:
                circuit_breaker.record_success()
            sink.record_histogram(
                "resilience.latency_ms",
                (time.monotonic() - started) * 1000.0,
                attributes={"operation": name, "attempt": attempt},
            )
            return result

        if circuit_breaker is not None:
            circuit_breaker.record_failure()

        retryable = retry_if(last) if retry_if is not None else True
        if retryable and attempt < max_attempts:
            delay = backoff_delay(
                attempt,
                effective.backoff_base_s,
                effective.backoff_max_s,
                jitter=effective.jitter,
                jitter_ratio=effective.jitter_ratio,
            )
            logger.warning(
                "operation '%s' failed (attempt %d/%d), retrying in %.2fs: %s",
                name,
                attempt,
                max_attempts,
                delay,
                last,
            )
            sink.increment_counter(
                "resilience.retry", attributes={"operation": name, "attempt": attempt}
            )
            await sleep(delay)
            continue
        break

    assert last is not None
    sink.record_event(
        TelemetryEvent(
            name="resilience.failure",
            timestamp_ms=now_ms(),
            attributes={
                "operation": name,
                "attempts": attempts,
                "error_class": type(last).__name__,
            },
        )
    )
    raise _tag_failure(name, last, attempts)


def _tag_failure(name: str, error: Exception, attempts: int) -> ResilienceError:
    """Return the exhausted failure tagged as Timeout or Unknown."""
    if isinstance(error, OperationTimeoutError):
        error.attempts = attempts
        return error
    if isinstance(error, ResilienceError):
        return error
    tagged = ExternalFailureError(
        f"Operation '{name}' failed after {attempts} attempt(s): {error}",
        operation=name,
        attempts=attempts,
    )
    tagged.__cause__ = error
    return tagged
