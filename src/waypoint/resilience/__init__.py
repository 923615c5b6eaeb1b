"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Resilience layer: circuit breakers and the `wrap` retry/timeout helper used at
every external-call boundary.
"""

from .breaker import BreakerRegistry, CircuitBreaker, CircuitBreakerSnapshot, CircuitState
from .config import ResiliencePolicy
from .errors import (
    CircuitOpenError,
    ExternalFailureError,
    OperationTimeoutError,
    ResilienceError,
    ResilienceErrorKind,
)
from .wrapper import RetryPredicate, backoff_delay, wrap

__all__ = [
    "wrap",
    "backoff_delay",
    "RetryPredicate",
    "ResiliencePolicy",
    "CircuitBreaker",
    "CircuitBreakerSnapshot",
    "CircuitState",
    "BreakerRegistry",
    "ResilienceError",
    "ResilienceErrorKind",
    "OperationTimeoutError",
    "CircuitOpenError",
    "ExternalFailureError",
]
