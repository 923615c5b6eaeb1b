"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Core tool types.

A `Tool` couples a plain function (sync or async) with a pydantic model that
describes its arguments. Agents never call the function directly: the
registry runs it through `Tool.call`, which validates the raw model-supplied
arguments, applies a deadline and folds every failure into a `ToolResult`.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Generic, Literal, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from .errors import ToolError, ToolExecutionError, ToolTimeoutError, ToolValidationError

ArgsT = TypeVar("ArgsT", bound=BaseModel)
ReturnT = TypeVar("ReturnT")

AsyncToolFn = Callable[..., Awaitable[Any]]
SyncToolFn = Callable[..., Any]
ToolFn = Union[AsyncToolFn, SyncToolFn]

# Where the ToolContext goes when the function accepts one.
ContextSlot = Literal["none", "first", "second"]


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """What agents and permission defaults see of a tool."""

    name: str
    description: str
    parameters_schema: Dict[str, Any]
    requires_confirmation: bool = False


@dataclass(frozen=True, slots=True)
class ToolContext:
    """Who is calling: permission session, requesting agent and free-form extras."""

    request_id: str | None = None
    session_id: str | None = None
    agent_name: str | None = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ToolResult(Generic[ReturnT]):
    output: Optional[ReturnT] = None
    success: bool = True
    error_message: Optional[str] = None
    tool_name: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


def as_async(fn: ToolFn) -> AsyncToolFn:
    """Return `fn` unchanged when it is a coroutine function, else offload it to a thread."""
    if asyncio.iscoroutinefunction(fn):
        return fn  # type: ignore[return-value]

    @functools.wraps(fn)
    async def _threaded(*args: Any, **kwargs: Any) -> Any:
        return await asyncio.to_thread(fn, *args, **kwargs)

    return _threaded


def _is_context_param(param: inspect.Parameter) -> bool:
    return param.name == "ctx" or param.annotation in (ToolContext, "ToolContext")


def _infer_call_style(fn: Callable[..., Any]) -> ContextSlot:
    """
    Work out where a tool function wants its ToolContext.

    Accepted shapes are `fn(args)`, `fn(args, ctx)` and `fn(ctx, args)`; the
    context parameter is recognised by the name `ctx` or a ToolContext
    annotation.
    """
    label = getattr(fn, "__name__", "<tool>")
    sig = inspect.signature(fn)
    params = list(sig.parameters.values())

    variadic = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
    if any(p.kind in variadic for p in params):
        raise ToolValidationError(f"Tool function '{label}' may not take *args or **kwargs")

    if len(params) == 1:
        return "none"
    if len(params) == 2:
        if _is_context_param(params[0]):
            return "first"
        if _is_context_param(params[1]):
            return "second"
        raise ToolValidationError(
            f"Tool function '{label}' takes two parameters but neither is a ToolContext {sig}"
        )
    raise ToolValidationError(
        f"Tool function '{label}' must look like (args), (args, ctx) or (ctx, args); got {sig}"
    )


class Tool(Generic[ArgsT, ReturnT]):
    """
    A named, schema-described callable an agent may request.

    `call` never raises for bad arguments, deadlines or failures inside the
    function; those come back as an unsuccessful `ToolResult` whose
    `metadata["error_class"]` names the tool error. Pass `raise_on_error=True`
    to get the typed exception instead.
    """

    def __init__(
        self,
        *,
        spec: ToolSpec,
        fn: ToolFn,
        args_model: Type[ArgsT],
        default_timeout: Optional[float] = None,
        raise_on_error: bool = False,
    ) -> None:
        self._context_slot = _infer_call_style(fn)
        self.spec = spec
        self.fn = as_async(fn)
        self.args_model = args_model
        self.default_timeout = default_timeout
        self.raise_on_error = raise_on_error

    def __repr__(self) -> str:
        return f"Tool(name={self.spec.name!r})"

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def requires_confirmation(self) -> bool:
        return self.spec.requires_confirmation

    def validate(self, raw_args: Dict[str, Any]) -> ArgsT:
        try:
            return self.args_model.model_validate(raw_args)
        except ValidationError as e:
            raise ToolValidationError(f"Invalid arguments for tool '{self.name}': {e}") from e

    def _bind(self, args: ArgsT, ctx: ToolContext) -> Awaitable[Any]:
        if self._context_slot == "first":
            return self.fn(ctx, args)
        if self._context_slot == "second":
            return self.fn(args, ctx)
        return self.fn(args)

    async def _run(self, args: ArgsT, ctx: ToolContext, deadline: Optional[float]) -> Any:
        if deadline is None:
            return await self._bind(args, ctx)
        try:
            return await asyncio.wait_for(self._bind(args, ctx), timeout=deadline)
        except asyncio.TimeoutError as e:
            raise ToolTimeoutError(
                f"Tool '{self.name}' did not finish within {deadline} seconds"
            ) from e

    async def call(
        self,
        raw_args: Dict[str, Any],
        *,
        ctx: Optional[ToolContext] = None,
        timeout: Optional[float] = None,
    ) -> ToolResult[ReturnT]:
        deadline = self.default_timeout if timeout is None else timeout
        started = time.monotonic()
        try:
            args = self.validate(raw_args)
            output = await self._run(args, ctx or ToolContext(), deadline)
        except ToolError as e:
            failure: ToolError = e
        except Exception as e:
            failure = ToolExecutionError(f"Error executing tool '{self.name}': {e}")
            failure.__cause__ = e
        else:
            return ToolResult(
                output=output,
                tool_name=self.name,
                metadata={"latency_ms": (time.monotonic() - started) * 1000.0},
            )

        if self.raise_on_error:
            raise failure
        return ToolResult(
            success=False,
            error_message=str(failure),
            tool_name=self.name,
            metadata={
                "error_class": type(failure).__name__,
                "latency_ms": (time.monotonic() - started) * 1000.0,
            },
        )
