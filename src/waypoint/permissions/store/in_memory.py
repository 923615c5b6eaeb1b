"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

In-process permission store for tests and ephemeral sessions.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace

from ..types import PermissionRule
from .base import PermissionStore


class InMemoryPermissionStore(PermissionStore):
    def __init__(self) -> None:
        super().__init__()
        self._lock = asyncio.Lock()
        self._rules: dict[tuple[str, str | None], PermissionRule] = {}

    async def upsert_rule(self, rule: PermissionRule) -> None:
        self._ensure_setup()
        async with self._lock:
            if not rule.session_id:
                rule = replace(rule, session_id=None)
            self._rules[(rule.tool, rule.session_id)] = rule

    async def find_rule(self, tool: str, session_id: str | None) -> PermissionRule | None:
        self._ensure_setup()
        async with self._lock:
            if session_id:
                row = self._rules.get((tool, session_id))
                if row is not None:
                    return row
            return self._rules.get((tool, None))

    async def list_rules(self, session_id: str | None) -> list[PermissionRule]:
        self._ensure_setup()
        async with self._lock:
            return [
                rule
                for (_, owner), rule in self._rules.items()
                if owner is None or owner == session_id
            ]

    async def delete_session(self, session_id: str) -> int:
        self._ensure_setup()
        self._require_session(session_id)
        async with self._lock:
            doomed = [key for key in self._rules if key[1] == session_id]
            for key in doomed:
                del self._rules[key]
            return len(doomed)
