"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines custom exceptions for tool lookup, permission and execution failures.
"""

from __future__ import annotations


class ToolError(Exception):
    """Base exception for all tool-related errors."""

    pass


class ToolValidationError(ToolError):
    pass


class ToolAlreadyRegisteredError(ToolError):
    pass


class ToolExecutionError(ToolError):
    pass


class ToolTimeoutError(ToolError):
    error_kind = "timeout"


class ToolNotFoundError(ToolError):
    error_kind = "tool_not_found"


class ToolPermissionError(ToolError):
    """The permission gate (or the user) refused the call."""

    error_kind = "permission_denied"

    def __init__(self, message: str, *, tool: str, level: str | None = None) -> None:
        super().__init__(message)
        self.tool = tool
        self.level = level
