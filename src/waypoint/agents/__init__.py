"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Agent definitions, registry and the agent execution loop.
"""

from .errors import (
    AgentConfigurationError,
    AgentError,
    AgentNotFoundError,
    DelegationDeniedError,
    DelegationDepthError,
)
from .types import (
    COMPLETE_ACTION,
    DELEGATE_ACTION,
    ERROR_ACTION,
    AgentDefinition,
    AgentExecution,
    AgentInput,
    AgentLoopConfig,
    AgentOutput,
    AgentStep,
    ExecutionOptions,
    ExecutionStatus,
    StopReason,
    MemoryScope,
    OutputFormat,
)
from .registry import AgentRegistry
from .prompts import build_system_prompt, build_task_prompt
from .executor import MAX_DELEGATION_DEPTH, AgentExecutor, summarize_steps

__all__ = [
    "AgentError",
    "AgentNotFoundError",
    "AgentConfigurationError",
    "DelegationDeniedError",
    "DelegationDepthError",
    "COMPLETE_ACTION",
    "DELEGATE_ACTION",
    "ERROR_ACTION",
    "AgentDefinition",
    "AgentExecution",
    "AgentInput",
    "AgentLoopConfig",
    "AgentOutput",
    "AgentStep",
    "ExecutionOptions",
    "ExecutionStatus",
    "StopReason",
    "MemoryScope",
    "OutputFormat",
    "AgentRegistry",
    "build_system_prompt",
    "build_task_prompt",
    "MAX_DELEGATION_DEPTH",
    "AgentExecutor",
    "summarize_steps",
]
