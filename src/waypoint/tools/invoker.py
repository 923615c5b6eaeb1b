"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Tool invoker: locate a tool, check the permission gate, execute, report.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict

from ..errors import ErrorKind, classify_error
from ..permissions import PermissionGate, PermissionLevel
from ..resilience import (
    BreakerRegistry,
    ExternalFailureError,
    ResiliencePolicy,
    wrap,
)
from ..telemetry import TelemetrySink
from .base import ToolContext
from .errors import ToolNotFoundError, ToolPermissionError, ToolValidationError
from .registry import ToolRegistry

logger = logging.getLogger(__name__)

ApprovalCallback = Callable[[str, Dict[str, Any]], Awaitable[bool]]

_PATH_KEYS = ("path", "file_path")

# Tools are not assumed idempotent: one attempt, bounded by a timeout.
DEFAULT_TOOL_POLICY = ResiliencePolicy(retries=0, timeout_s=60.0)


@dataclass(frozen=True, slots=True)
class ToolInvocation:
    """Outcome of one tool invocation, successful or not."""

    tool_name: str
    success: bool
    output: Any = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    permission: PermissionLevel | None = None
    approved_by_user: bool = False
    latency_ms: float = 0.0


def _path_from_args(args: Dict[str, Any]) -> str | None:
    for key in _PATH_KEYS:
        value = args.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _describe(e: BaseException) -> str:
    if isinstance(e, ExternalFailureError) and e.__cause__ is not None:
        return str(e.__cause__)
    return str(e)


def _is_retryable_tool_error(e: Exception) -> bool:
    return not isinstance(e, ToolValidationError)


class ToolInvoker:
    """
    Executes tool calls on behalf of agents.

    A call proceeds only when the gate resolves to `allow_once` or
    `allow_session`, or when an `ask` is settled by auto-approval or by the
    approval callback. Every failure comes back as a `ToolInvocation` with an
    `error_kind`; nothing is raised to the caller.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        gate: PermissionGate,
        *,
        policy: ResiliencePolicy | None = None,
        breakers: BreakerRegistry | None = None,
        remember_approvals: bool = True,
        telemetry: TelemetrySink | None = None,
    ) -> None:
        self.registry = registry
        self.gate = gate
        self._policy = policy or DEFAULT_TOOL_POLICY
        self._breakers = breakers
        self._remember_approvals = remember_approvals
        self._telemetry = telemetry

    def has(self, name: str) -> bool:
        return self.registry.has(name)

    async def invoke(
        self,
        name: str,
        args: Dict[str, Any] | None = None,
        *,
        path: str | None = None,
        session_id: str | None = None,
        agent_name: str | None = None,
        auto_approve: bool = False,
        on_approval: ApprovalCallback | None = None,
    ) -> ToolInvocation:
        started = time.monotonic()
        args = dict(args or {})

        def _fail(
            e: BaseException,
            *,
            level: PermissionLevel | None = None,
        ) -> ToolInvocation:
            return ToolInvocation(
                tool_name=name,
                success=False,
                error=_describe(e),
                error_kind=classify_error(e),
                permission=level,
                latency_ms=(time.monotonic() - started) * 1000.0,
            )

        if not self.registry.has(name):
            return _fail(ToolNotFoundError(f"Tool not found: {name}"))

        tool = self.registry.get(name)
        self.gate.register_tool_default(
            name, "ask" if tool.requires_confirmation else "allow_session"
        )

        path = path or _path_from_args(args)
        level = await self.gate.get_permission(name, session_id, path)
        approved_by_user = False

        if level == "deny":
            logger.info("tool %s denied by policy (session=%s)", name, session_id)
            return _fail(
                ToolPermissionError(
                    f"Tool '{name}' is denied by permission policy", tool=name, level=level
                ),
                level=level,
            )

        if level == "ask" and not auto_approve:
            if on_approval is None:
                logger.info("tool %s requires approval and no approver is attached", name)
                return _fail(
                    ToolPermissionError(
                        f"Tool '{name}' requires approval", tool=name, level=level
                    ),
                    level=level,
                )
            approved = await on_approval(name, args)
            if not approved:
                logger.info("tool %s denied by user (session=%s)", name, session_id)
                return _fail(
                    ToolPermissionError("Tool execution denied by user", tool=name, level=level),
                    level=level,
                )
            approved_by_user = True
            if self._remember_approvals and session_id:
                await self.gate.set_permission(name, "allow_session", session_id, path)

        ctx = ToolContext(session_id=session_id, agent_name=agent_name)
        breaker = self._breakers.get(f"tool:{name}") if self._breakers is not None else None
        try:
            output = await wrap(
                f"tool:{name}",
                lambda: self.registry.execute(name, args, ctx=ctx),
                policy=self._policy,
                circuit_breaker=breaker,
                retry_if=_is_retryable_tool_error,
                telemetry=self._telemetry,
            )
        except Exception as e:
            logger.warning("tool %s failed: %s", name, _describe(e))
            return _fail(e, level=level)

        return ToolInvocation(
            tool_name=name,
            success=True,
            output=output,
            permission=level,
            approved_by_user=approved_by_user,
            latency_ms=(time.monotonic() - started) * 1000.0,
        )
