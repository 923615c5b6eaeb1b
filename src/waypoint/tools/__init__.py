"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Tool definitions, the tool registry (executor) and the permission-checked invoker.
"""

from .base import Tool, ToolContext, ToolFn, ToolResult, ToolSpec, as_async
from .decorator import tool
from .errors import (
    ToolAlreadyRegisteredError,
    ToolError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolPermissionError,
    ToolTimeoutError,
    ToolValidationError,
)
from .registry import ToolCallRecord, ToolRegistry
from .invoker import ApprovalCallback, ToolInvocation, ToolInvoker

__all__ = [
    "Tool",
    "ToolContext",
    "ToolFn",
    "ToolResult",
    "ToolSpec",
    "as_async",
    "tool",
    "ToolError",
    "ToolAlreadyRegisteredError",
    "ToolExecutionError",
    "ToolNotFoundError",
    "ToolPermissionError",
    "ToolTimeoutError",
    "ToolValidationError",
    "ToolCallRecord",
    "ToolRegistry",
    "ApprovalCallback",
    "ToolInvocation",
    "ToolInvoker",
]
