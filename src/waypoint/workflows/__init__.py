"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Declarative workflows: definition models, interpolation, parser and runner.
"""

from .errors import (
    StepTimeoutError,
    WorkflowError,
    WorkflowInputError,
    WorkflowValidationError,
)
from .models import (
    OnError,
    WorkflowDefinition,
    WorkflowInputSpec,
    WorkflowSettings,
    WorkflowStep,
)
from .interpolation import PREV_KEY, evaluate_condition, interpolate, resolve_input
from .parser import WorkflowParser
from .runner import (
    AgentRunner,
    Checkpoint,
    ParallelMemberResult,
    RunOptions,
    StepError,
    StepRecord,
    StepStatus,
    WorkflowContext,
    WorkflowResult,
    WorkflowRunner,
)

__all__ = [
    "WorkflowError",
    "WorkflowValidationError",
    "WorkflowInputError",
    "StepTimeoutError",
    "OnError",
    "WorkflowDefinition",
    "WorkflowInputSpec",
    "WorkflowSettings",
    "WorkflowStep",
    "PREV_KEY",
    "evaluate_condition",
    "interpolate",
    "resolve_input",
    "WorkflowParser",
    "AgentRunner",
    "Checkpoint",
    "ParallelMemberResult",
    "RunOptions",
    "StepError",
    "StepRecord",
    "StepStatus",
    "WorkflowContext",
    "WorkflowResult",
    "WorkflowRunner",
]
