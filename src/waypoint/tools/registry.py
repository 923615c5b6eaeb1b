"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

The tool registry doubles as the tool executor. It knows nothing about
permissions; `ToolInvoker` consults the gate first and only then asks the
registry to run a tool.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Iterable, List, Optional, Type

from .base import Tool, ToolContext, ToolResult, ToolSpec
from .errors import (
    ToolAlreadyRegisteredError,
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolTimeoutError,
    ToolValidationError,
)

_ERRORS_BY_CLASS: Dict[str, Type[ToolError]] = {
    cls.__name__: cls for cls in (ToolTimeoutError, ToolValidationError, ToolExecutionError)
}


@dataclass(frozen=True, slots=True)
class ToolCallRecord:
    """One finished registry call."""

    tool_name: str
    agent_name: Optional[str]
    session_id: Optional[str]
    started_at_s: float
    latency_ms: float
    ok: bool
    error: Optional[str] = None


class ToolRegistry:
    """
    Name-indexed tool store and executor.

    Args:
        max_concurrency: Upper bound on tools running at the same time.
        default_timeout: Deadline in seconds for tools that declare none.
        max_records: How many call records to retain for `recent_calls`.
    """

    def __init__(
        self,
        *,
        max_concurrency: int = 32,
        default_timeout: float | None = None,
        max_records: int = 1000,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._by_name: Dict[str, Tool[Any, Any]] = {}
        self._slots = asyncio.Semaphore(max_concurrency)
        self._default_timeout = default_timeout
        self._history: Deque[ToolCallRecord] = deque(maxlen=max_records)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._by_name)

    def register(self, tool: Tool[Any, Any], *, overwrite: bool = False) -> None:
        if tool.name in self._by_name and not overwrite:
            raise ToolAlreadyRegisteredError(f"Tool already registered: {tool.name}")
        self._by_name[tool.name] = tool

    def register_many(self, tools: Iterable[Tool[Any, Any]], *, overwrite: bool = False) -> None:
        for item in tools:
            self.register(item, overwrite=overwrite)

    def unregister(self, name: str) -> None:
        self._by_name.pop(name, None)

    def get(self, name: str) -> Tool[Any, Any]:
        found = self._by_name.get(name)
        if found is None:
            raise ToolNotFoundError(f"Unknown tool: {name}")
        return found

    def has(self, name: str) -> bool:
        return name in self._by_name

    def list(self) -> List[Tool[Any, Any]]:
        return [*self._by_name.values()]

    def names(self) -> List[str]:
        return [*self._by_name]

    def specs(self) -> List[ToolSpec]:
        return [item.spec for item in self._by_name.values()]

    def _deadline_for(self, tool: Tool[Any, Any], override: float | None) -> float | None:
        # call argument, then the tool's own default, then the registry's
        for candidate in (override, tool.default_timeout):
            if candidate is not None:
                return candidate
        return self._default_timeout

    async def call(
        self,
        name: str,
        raw_args: Dict[str, Any],
        *,
        ctx: ToolContext | None = None,
        timeout: float | None = None,
    ) -> ToolResult[Any]:
        """
        Run a tool and report the outcome as a `ToolResult`.

        Raises:
            ToolNotFoundError: `name` is not registered.
        """
        target = self.get(name)
        ctx = ctx or ToolContext()
        wall_start = time.time()
        started = time.monotonic()

        def remember(ok: bool, error: str | None) -> None:
            self._history.append(
                ToolCallRecord(
                    tool_name=name,
                    agent_name=ctx.agent_name,
                    session_id=ctx.session_id,
                    started_at_s=wall_start,
                    latency_ms=(time.monotonic() - started) * 1000.0,
                    ok=ok,
                    error=error,
                )
            )

        try:
            async with self._slots:
                result = await target.call(
                    raw_args, ctx=ctx, timeout=self._deadline_for(target, timeout)
                )
        except Exception as e:
            remember(False, str(e))
            raise
        remember(result.success, result.error_message)
        return result

    async def execute(
        self,
        name: str,
        raw_args: Dict[str, Any],
        *,
        ctx: ToolContext | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Like `call`, but hand back the bare output and raise the typed tool error on failure."""
        result = await self.call(name, raw_args, ctx=ctx, timeout=timeout)
        if result.success:
            return result.output
        error_cls = _ERRORS_BY_CLASS.get(result.metadata.get("error_class", ""), ToolExecutionError)
        raise error_cls(result.error_message or f"Tool '{name}' failed")

    def recent_calls(self, limit: int = 100) -> List[ToolCallRecord]:
        if limit <= 0:
            return []
        return list(self._history)[-limit:]

    def to_openai_function_tools(self, names: Iterable[str] | None = None) -> List[Dict[str, Any]]:
        """Describe tools in the OpenAI function-calling shape, optionally only `names`."""
        wanted = None if names is None else set(names)
        selected = [spec for spec in self.specs() if wanted is None or spec.name in wanted]
        return [
            {
                "type": "function",
                "function": {
                    "name": spec.name,
                    "description": spec.description,
                    "parameters": spec.parameters_schema,
                },
            }
            for spec in selected
        ]
