"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines the failures raised by the resilience layer.
"""

from __future__ import annotations

from typing import Literal

ResilienceErrorKind = Literal["timeout", "circuit_open", "unknown"]


class ResilienceError(Exception):
    """
    Base exception for failures surfaced by `wrap` and `CircuitBreaker`.

    Attributes:
        kind: Failure tag (`timeout`, `circuit_open` or `unknown`).
        operation: Name of the wrapped operation.
        attempts: Number of attempts actually made.
    """

    kind: ResilienceErrorKind = "unknown"

    def __init__(self, message: str, *, operation: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.operation = operation
        self.attempts = attempts


class OperationTimeoutError(ResilienceError):
    """Raised when the final attempt of an operation exceeded its timeout."""

    kind: ResilienceErrorKind = "timeout"


class CircuitOpenError(ResilienceError):
    """Raised when an open breaker rejects a call without attempting it."""

    kind: ResilienceErrorKind = "circuit_open"


class ExternalFailureError(ResilienceError):
    """Raised when an operation failed for any reason other than a timeout."""

    kind: ResilienceErrorKind = "unknown"
