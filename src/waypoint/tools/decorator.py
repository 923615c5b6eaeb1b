"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

`@tool` turns a plain function into a `Tool`.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Type, TypeVar

from pydantic import BaseModel

from .base import Tool, ToolFn, ToolSpec

ArgsT = TypeVar("ArgsT", bound=BaseModel)


def _summary_line(fn: Callable[..., Any]) -> str:
    doc = inspect.getdoc(fn)
    if not doc:
        return ""
    return doc.strip().partition("\n")[0].strip()


def tool(
    *,
    args_model: Type[ArgsT],
    name: str | None = None,
    description: str | None = None,
    timeout: float | None = None,
    requires_confirmation: bool = False,
    raise_on_error: bool = False,
) -> Callable[[ToolFn], Tool[ArgsT, Any]]:
    """
    Decorate a function taking `(args)`, `(args, ctx)` or `(ctx, args)`.

    The tool name defaults to the function name and the description to the
    first docstring line. Tools marked `requires_confirmation` start at the
    `ask` permission level; all others start at `allow_session`.

    Example:
        @tool(args_model=ReadArgs, requires_confirmation=False)
        async def read_file(args: ReadArgs) -> str:
            \"\"\"Read a UTF-8 text file.\"\"\"
            ...
    """

    def wrap(fn: ToolFn) -> Tool[ArgsT, Any]:
        resolved = name or getattr(fn, "__name__", "tool")
        return Tool(
            spec=ToolSpec(
                name=resolved,
                description=description or _summary_line(fn) or resolved,
                parameters_schema=args_model.model_json_schema(),
                requires_confirmation=requires_confirmation,
            ),
            fn=fn,
            args_model=args_model,
            default_timeout=timeout,
            raise_on_error=raise_on_error,
        )

    return wrap
