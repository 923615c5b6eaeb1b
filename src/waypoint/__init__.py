"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Waypoint: agent orchestration with permission-gated tools, resilient model
calls and declarative multi-agent workflows.
"""

from .errors import ERROR_KINDS, ErrorKind, classify_error
from .telemetry import InMemoryTelemetrySink, NullTelemetrySink, TelemetryEvent, TelemetrySink
from .agents import AgentDefinition, AgentExecutor, AgentRegistry, ExecutionOptions
from .permissions import PermissionGate, create_permission_store_from_env
from .tools import ToolInvoker, ToolRegistry, tool
from .workflows import RunOptions, WorkflowParser, WorkflowRunner

__all__ = [
    "ERROR_KINDS",
    "ErrorKind",
    "classify_error",
    "TelemetryEvent",
    "TelemetrySink",
    "NullTelemetrySink",
    "InMemoryTelemetrySink",
    "AgentDefinition",
    "AgentExecutor",
    "AgentRegistry",
    "ExecutionOptions",
    "PermissionGate",
    "create_permission_store_from_env",
    "ToolInvoker",
    "ToolRegistry",
    "tool",
    "RunOptions",
    "WorkflowParser",
    "WorkflowRunner",
]
