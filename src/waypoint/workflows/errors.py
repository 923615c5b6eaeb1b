"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines custom exceptions for workflow parsing and execution.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base exception for all workflow errors."""

    pass


class WorkflowValidationError(WorkflowError):
    """
    A workflow definition failed validation.

    `step_index` is the 1-based index of the offending top-level step, or
    `None` when the problem concerns the workflow as a whole.
    """

    def __init__(self, message: str, *, step_index: int | None = None) -> None:
        super().__init__(message)
        self.step_index = step_index


class WorkflowInputError(WorkflowError):
    """Required workflow inputs are missing or have the wrong type."""

    pass


class StepTimeoutError(WorkflowError):
    error_kind = "timeout"
