"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines the records exchanged with the permission gate.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Literal

PermissionLevel = Literal["ask", "allow_once", "allow_session", "deny"]
RiskLevel = Literal["safe", "low", "medium", "high"]

PERMISSION_LEVELS: tuple[PermissionLevel, ...] = (
    "ask",
    "allow_once",
    "allow_session",
    "deny",
)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class PermissionRule:
    """
    Persisted permission decision for one tool.

    `session_id=None` marks a global rule; a session row takes precedence
    over the global row for the same tool.
    """

    tool: str
    level: PermissionLevel
    session_id: str | None = None
    path_pattern: str | None = None
    created_at: int = field(default_factory=now_ms)


@dataclass(frozen=True, slots=True)
class PermissionOperation:
    tool: str
    path: str | None = None

    @property
    def key(self) -> str:
        return f"{self.tool}:{self.path}" if self.path else self.tool


@dataclass(frozen=True, slots=True)
class BatchPermissionResult:
    allowed: list[str] = field(default_factory=list)
    denied: list[str] = field(default_factory=list)
    needs_approval: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PendingApproval:
    id: str
    tool: str
    description: str
    risk_level: RiskLevel = "medium"
    path: str | None = None
    args: dict[str, Any] = field(default_factory=dict)
