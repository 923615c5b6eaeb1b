"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Permission gate: decides whether a tool call may proceed.

Resolution order for `get_permission(tool, session_id, path)`:

1. sensitive path -> always `ask`
2. path-specific session override (`tool:path`)
3. tool-level session override
4. persisted rule (session row preferred over the global row)
5. built-in default, then tool-registered default, then `ask`

Only `allow_once` and `allow_session` let a call proceed.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Iterable, Mapping

from ..telemetry import NullTelemetrySink, TelemetryEvent, TelemetrySink
from .defaults import DEFAULT_RULES, FALLBACK_LEVEL, is_sensitive_path
from .store.base import PermissionStore
from .store.in_memory import InMemoryPermissionStore
from .types import (
    PERMISSION_LEVELS,
    BatchPermissionResult,
    PendingApproval,
    PermissionLevel,
    PermissionOperation,
    PermissionRule,
    RiskLevel,
    now_ms,
)

logger = logging.getLogger(__name__)

OperationLike = PermissionOperation | Mapping[str, Any]

_RISK_MARKERS: dict[str, str] = {"high": "[HIGH]", "medium": "[MED]"}


def _as_operation(op: OperationLike) -> PermissionOperation:
    if isinstance(op, PermissionOperation):
        return op
    return PermissionOperation(tool=str(op["tool"]), path=op.get("path"))


class PermissionGate:
    """
    Process-wide permission authority passed by handle to every caller.

    Session caches and approval queues are per `session_id`; writes within one
    session are serialized.
    """

    def __init__(
        self,
        store: PermissionStore | None = None,
        *,
        defaults: Mapping[str, PermissionLevel] | None = None,
        telemetry: TelemetrySink | None = None,
    ) -> None:
        self._store = store or InMemoryPermissionStore()
        self._defaults: dict[str, PermissionLevel] = dict(
            DEFAULT_RULES if defaults is None else defaults
        )
        self._tool_defaults: dict[str, PermissionLevel] = {}
        self._session_cache: dict[str, dict[str, PermissionLevel]] = {}
        self._path_cache: dict[str, dict[str, PermissionLevel]] = {}
        self._approval_queue: dict[str, list[PendingApproval]] = {}
        self._session_locks: dict[str, asyncio.Lock] = {}
        self._telemetry = telemetry or NullTelemetrySink()

    @property
    def store(self) -> PermissionStore:
        return self._store

    async def setup(self) -> None:
        if not self._store.is_setup:
            await self._store.setup()

    async def close(self) -> None:
        if self._store.is_setup:
            await self._store.close()

    async def __aenter__(self) -> "PermissionGate":
        await self.setup()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _lock_for(self, session_id: str | None) -> asyncio.Lock:
        key = session_id or ""
        lock = self._session_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._session_locks[key] = lock
        return lock

    # ------------------------------------------------------------------
    # Resolution

    def is_sensitive_path(self, path: str) -> bool:
        return is_sensitive_path(path)

    def register_tool_default(self, tool: str, level: PermissionLevel) -> None:
        """Seed a fallback level for a tool unknown to the built-in table."""
        if tool in self._defaults:
            return
        self._tool_defaults.setdefault(tool, level)

    def default_level(self, tool: str) -> PermissionLevel:
        if tool in self._defaults:
            return self._defaults[tool]
        return self._tool_defaults.get(tool, FALLBACK_LEVEL)

    async def get_permission(
        self,
        tool: str,
        session_id: str | None = None,
        path: str | None = None,
    ) -> PermissionLevel:
        level, source = await self._resolve(tool, session_id, path)
        logger.debug(
            "permission %s for tool=%s session=%s path=%s (%s)",
            level,
            tool,
            session_id,
            path,
            source,
        )
        self._telemetry.record_event(
            TelemetryEvent(
                name="permission.decision",
                timestamp_ms=now_ms(),
                attributes={
                    "tool": tool,
                    "level": level,
                    "source": source,
                    "session_id": session_id,
                },
            )
        )
        return level

    async def _resolve(
        self,
        tool: str,
        session_id: str | None,
        path: str | None,
    ) -> tuple[PermissionLevel, str]:
        if path and is_sensitive_path(path):
            return "ask", "sensitive_path"

        if path and session_id:
            level = self._path_cache.get(session_id, {}).get(f"{tool}:{path}")
            if level is not None:
                return level, "path_override"

        if session_id:
            level = self._session_cache.get(session_id, {}).get(tool)
            if level is not None:
                return level, "session_override"

        await self.setup()
        rule = await self._store.find_rule(tool, session_id)
        if rule is not None:
            return rule.level, "stored_rule"

        return self.default_level(tool), "default"

    async def should_prompt(
        self, tool: str, session_id: str | None = None, path: str | None = None
    ) -> bool:
        return await self.get_permission(tool, session_id, path) == "ask"

    async def is_denied(
        self, tool: str, session_id: str | None = None, path: str | None = None
    ) -> bool:
        return await self.get_permission(tool, session_id, path) == "deny"

    async def is_allowed(
        self, tool: str, session_id: str | None = None, path: str | None = None
    ) -> bool:
        level = await self.get_permission(tool, session_id, path)
        return level in ("allow_session", "allow_once")

    # ------------------------------------------------------------------
    # Mutation

    async def set_permission(
        self,
        tool: str,
        level: PermissionLevel,
        session_id: str | None = None,
        path: str | None = None,
    ) -> None:
        """
        Record a permission decision.

        With both `path` and `session_id` the decision lands in the path tier
        only. Otherwise `allow_session`/`deny` populate the session cache and
        every level except `allow_once` is persisted.
        """
        if level not in PERMISSION_LEVELS:
            raise ValueError(f"Unknown permission level: {level!r}")
        session_id = session_id or None

        async with self._lock_for(session_id):
            if path and session_id:
                self._path_cache.setdefault(session_id, {})[f"{tool}:{path}"] = level
                return

            if session_id and level in ("allow_session", "deny"):
                self._session_cache.setdefault(session_id, {})[tool] = level

            if level != "allow_once":
                await self.setup()
                await self._store.upsert_rule(
                    PermissionRule(tool=tool, level=level, session_id=session_id)
                )

    async def clear_session_permissions(self, session_id: str) -> None:
        """
        Drop the cached and persisted rules of one session.

        Raises:
            ValueError: `session_id` is empty; global rules are never cleared here.
        """
        if not session_id:
            raise ValueError("session_id must be a non-empty string")
        async with self._lock_for(session_id):
            self._session_cache.pop(session_id, None)
            self._path_cache.pop(session_id, None)
            await self.setup()
            removed = await self._store.delete_session(session_id)
        logger.info("cleared %d persisted permission(s) for session %s", removed, session_id)

    async def list_permissions(self, session_id: str | None = None) -> list[PermissionRule]:
        """Session cache entries first, then persisted rows not already listed."""
        result: list[PermissionRule] = []
        if session_id:
            for tool, level in self._session_cache.get(session_id, {}).items():
                result.append(PermissionRule(tool=tool, level=level, session_id=session_id))

        await self.setup()
        seen = {rule.tool for rule in result}
        for rule in await self._store.list_rules(session_id):
            if rule.tool not in seen:
                result.append(rule)
                seen.add(rule.tool)
        return result

    # ------------------------------------------------------------------
    # Batch

    async def check_batch_permissions(
        self,
        operations: Iterable[OperationLike],
        session_id: str | None = None,
    ) -> BatchPermissionResult:
        """Partition operations into allowed/denied/needs-approval keys without side effects."""
        result = BatchPermissionResult()
        for raw in operations:
            op = _as_operation(raw)
            level, _ = await self._resolve(op.tool, session_id, op.path)
            if level == "deny":
                result.denied.append(op.key)
            elif level in ("allow_session", "allow_once"):
                result.allowed.append(op.key)
            else:
                result.needs_approval.append(op.key)
        return result

    async def grant_batch_permissions(
        self,
        operations: Iterable[OperationLike],
        level: PermissionLevel,
        session_id: str | None = None,
    ) -> None:
        for raw in operations:
            op = _as_operation(raw)
            await self.set_permission(op.tool, level, session_id, op.path)

    # ------------------------------------------------------------------
    # Approval queue

    def queue_for_approval(
        self,
        session_id: str,
        tool: str,
        description: str,
        risk_level: RiskLevel = "medium",
        path: str | None = None,
        args: Mapping[str, Any] | None = None,
    ) -> str:
        op_id = f"{now_ms()}-{uuid.uuid4().hex[:4]}"
        self._approval_queue.setdefault(session_id, []).append(
            PendingApproval(
                id=op_id,
                tool=tool,
                description=description,
                risk_level=risk_level,
                path=path,
                args=dict(args or {}),
            )
        )
        return op_id

    def get_pending_approvals(self, session_id: str) -> list[PendingApproval]:
        return list(self._approval_queue.get(session_id, []))

    def _pop_pending(self, session_id: str, operation_id: str) -> PendingApproval | None:
        queue = self._approval_queue.get(session_id)
        if not queue:
            return None
        for idx, op in enumerate(queue):
            if op.id == operation_id:
                return queue.pop(idx)
        return None

    async def approve_operation(
        self, session_id: str, operation_id: str, grant_session: bool = False
    ) -> bool:
        op = self._pop_pending(session_id, operation_id)
        if op is None:
            return False
        if grant_session:
            await self.set_permission(op.tool, "allow_session", session_id, op.path)
        return True

    async def approve_all(self, session_id: str, grant_session: bool = False) -> int:
        queue = self._approval_queue.get(session_id)
        if not queue:
            return 0
        self._approval_queue[session_id] = []
        if grant_session:
            for op in queue:
                await self.set_permission(op.tool, "allow_session", session_id, op.path)
        return len(queue)

    async def deny_operation(
        self, session_id: str, operation_id: str, deny_session: bool = False
    ) -> bool:
        op = self._pop_pending(session_id, operation_id)
        if op is None:
            return False
        if deny_session:
            await self.set_permission(op.tool, "deny", session_id, op.path)
        return True

    def deny_all(self, session_id: str) -> int:
        queue = self._approval_queue.get(session_id)
        if not queue:
            return 0
        self._approval_queue[session_id] = []
        return len(queue)

    def clear_approval_queue(self, session_id: str) -> None:
        self._approval_queue.pop(session_id, None)

    def format_pending_approvals(self, session_id: str) -> str:
        pending = self.get_pending_approvals(session_id)
        if not pending:
            return "No pending approvals"

        lines = [f"{len(pending)} operation(s) awaiting approval:", ""]
        for i, op in enumerate(pending, start=1):
            marker = _RISK_MARKERS.get(op.risk_level, "[LOW]")
            lines.append(f"  {i}. {marker} {op.tool}: {op.description}")
            if op.path:
                lines.append(f"     Path: {op.path}")
        lines.append("")
        lines.append("Commands: approve <n|all>, deny <n|all>, skip")
        return "\n".join(lines)
