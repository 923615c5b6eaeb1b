"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Cross-package error taxonomy.

Exceptions opt into a taxonomy entry through an `error_kind` class attribute;
resilience failures are classified by their `kind` and, for generic external
failures, by the exception that caused them.
"""

from __future__ import annotations

import asyncio
from typing import Literal, get_args

ErrorKind = Literal[
    "tool_not_found",
    "permission_denied",
    "delegation_denied",
    "timeout",
    "circuit_open",
    "malformed_response",
    "external_failure",
]

ERROR_KINDS: tuple[str, ...] = get_args(ErrorKind)


def classify_error(exc: BaseException) -> ErrorKind:
    """Map any exception onto the error taxonomy."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))

        tagged = getattr(current, "error_kind", None)
        if tagged in ERROR_KINDS:
            return tagged  # type: ignore[return-value]

        kind = getattr(current, "kind", None)
        if kind == "timeout":
            return "timeout"
        if kind == "circuit_open":
            return "circuit_open"

        if isinstance(current, (asyncio.TimeoutError, TimeoutError)):
            return "timeout"

        current = current.__cause__

    return "external_failure"
