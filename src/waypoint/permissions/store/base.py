"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines the abstract contract for persistent permission rule stores.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..types import PermissionRule


class PermissionStore(ABC):
    """
    Base contract for permission rule backends.

    Rules are keyed by `(tool, session_id)`; writing the same key again
    replaces the previous row. A missing or empty `session_id` marks a
    global rule.
    """

    def __init__(self) -> None:
        self._is_setup = False

    async def setup(self) -> None:
        """Initialize backend resources."""
        self._is_setup = True

    async def close(self) -> None:
        """Release backend resources."""
        self._is_setup = False

    async def __aenter__(self) -> "PermissionStore":
        await self.setup()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def is_setup(self) -> bool:
        return self._is_setup

    def _ensure_setup(self) -> None:
        if not self._is_setup:
            raise RuntimeError(
                "PermissionStore is not initialized. Call setup() or use `async with`."
            )

    @staticmethod
    def _require_session(session_id: str) -> None:
        # an empty id would address the global rows
        if not session_id:
            raise ValueError("session_id must be a non-empty string")

    @abstractmethod
    async def upsert_rule(self, rule: PermissionRule) -> None:
        """Insert or replace the rule for `(rule.tool, rule.session_id)`."""

    @abstractmethod
    async def find_rule(self, tool: str, session_id: str | None) -> PermissionRule | None:
        """Return the session row for `tool` when present, else the global row."""

    @abstractmethod
    async def list_rules(self, session_id: str | None) -> list[PermissionRule]:
        """List global rules plus rules of `session_id`."""

    @abstractmethod
    async def delete_session(self, session_id: str) -> int:
        """Delete every rule of `session_id`; returns the number removed.

        Raises:
            ValueError: `session_id` is empty.
        """
