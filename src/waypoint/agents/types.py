"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Agent data model: definitions, inputs/outputs, steps, executions and loop config.
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal, Mapping, get_args

from ..resilience import ResiliencePolicy
from .errors import AgentConfigurationError

OutputFormat = Literal["markdown", "json", "table", "csv", "yaml"]
MemoryScope = Literal["session", "project", "global"]
ExecutionStatus = Literal["running", "completed", "failed"]
StopReason = Literal["completed", "delegated", "max_steps", "wall_time", "error"]

COMPLETE_ACTION = "complete"
DELEGATE_ACTION = "delegate"
ERROR_ACTION = "error"

StepCallback = Callable[["AgentStep"], Any]
ApprovalCallback = Callable[[str, dict[str, Any]], Awaitable[bool]]


def now_ms() -> int:
    return int(time.time() * 1000)


def _string_tuple(value: Any, field_name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise AgentConfigurationError(f"'{field_name}' must be a list of strings")
    return tuple(str(item) for item in value)


@dataclass(frozen=True, slots=True)
class AgentDefinition:
    """
    Immutable behavior profile for one agent.

    Attributes:
        name: Unique agent name.
        system_prompt: Instructions sent as the system message.
        tools: Tool names the agent may call.
        can_delegate: Agent names this agent may hand work to.
        outputs: Preferred output formats; the first one is used.
        timeout_s: Wall-clock budget for one execution.
    """

    name: str
    system_prompt: str
    tools: tuple[str, ...] = ()
    can_delegate: tuple[str, ...] = ()
    outputs: tuple[OutputFormat, ...] = ("markdown",)
    timeout_s: float = 180.0
    description: str = ""
    memory_scope: MemoryScope = "project"
    priority: int = 2

    def __post_init__(self) -> None:
        if not self.name:
            raise AgentConfigurationError("Agent definition requires a name")
        if self.timeout_s <= 0:
            raise AgentConfigurationError(f"Agent '{self.name}': timeout must be > 0")
        for fmt in self.outputs:
            if fmt not in get_args(OutputFormat):
                raise AgentConfigurationError(
                    f"Agent '{self.name}': unknown output format '{fmt}'"
                )
        if self.memory_scope not in get_args(MemoryScope):
            raise AgentConfigurationError(
                f"Agent '{self.name}': unknown memory scope '{self.memory_scope}'"
            )

    @property
    def output_format(self) -> OutputFormat:
        return self.outputs[0] if self.outputs else "markdown"

    def allows_delegation_to(self, target: str) -> bool:
        return target in self.can_delegate

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AgentDefinition":
        """
        Build a definition from a loader mapping.

        Accepts snake_case or camelCase keys. The loader keys `timeout` and `timeoutMs`
        are milliseconds; `timeout_s` is seconds.
        """
        if not isinstance(data, Mapping):
            raise AgentConfigurationError("Agent definition must be an object")

        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if key in data and data[key] is not None:
                    return data[key]
            return default

        name = pick("name")
        if not isinstance(name, str) or not name:
            raise AgentConfigurationError("Agent definition requires a string 'name'")

        timeout_ms = pick("timeoutMs", "timeout")
        if timeout_ms is not None:
            timeout_s = float(timeout_ms) / 1000.0
        else:
            timeout_s = float(pick("timeout_s", default=180.0))

        return cls(
            name=name,
            system_prompt=str(pick("system_prompt", "systemPrompt", default="")),
            tools=_string_tuple(pick("tools"), "tools"),
            can_delegate=_string_tuple(pick("can_delegate", "canDelegate"), "canDelegate"),
            outputs=_string_tuple(pick("outputs", default=["markdown"]), "outputs"),  # type: ignore[arg-type]
            timeout_s=timeout_s,
            description=str(pick("description", default="")),
            memory_scope=pick("memory_scope", "memoryScope", default="project"),
            priority=int(pick("priority", default=2)),
        )


@dataclass(frozen=True, slots=True)
class AgentInput:
    task: str
    params: dict[str, Any] = field(default_factory=dict)
    context: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AgentOutput:
    type: OutputFormat
    data: Any
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AgentStep:
    """
    One think-act-observe cycle.

    `action` is a tool name, `complete`, `delegate` or `error`.
    """

    thought: str
    action: str
    params: dict[str, Any] = field(default_factory=dict)
    result: Any = None
    error: str | None = None
    error_kind: str | None = None
    delegate_to: str | None = None
    timestamp: int = field(default_factory=now_ms)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_transcript(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "thought": self.thought,
            "action": self.action,
            "params": self.params,
        }
        if self.delegate_to:
            payload["delegateTo"] = self.delegate_to
        if self.result is not None:
            payload["result"] = self.result
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class AgentExecution:
    """
    Record of one agent run, owned by its caller.

    `status` moves only from `running` to `completed` or `failed`.
    """

    agent_name: str
    input: AgentInput
    steps: list[AgentStep] = field(default_factory=list)
    status: ExecutionStatus = "running"
    start_time_ms: int = field(default_factory=now_ms)
    end_time_ms: int | None = None
    output: AgentOutput | None = None
    delegated: "AgentExecution | None" = None
    depth: int = 0
    stop_reason: StopReason | None = None

    def finish(self, status: ExecutionStatus) -> None:
        if self.status != "running":
            raise RuntimeError(
                f"Execution of '{self.agent_name}' already finished with status '{self.status}'"
            )
        if status == "running":
            raise ValueError("Cannot finish an execution with status 'running'")
        self.status = status
        self.end_time_ms = now_ms()

    @property
    def duration_ms(self) -> int:
        end = self.end_time_ms if self.end_time_ms is not None else now_ms()
        return end - self.start_time_ms

    @property
    def completed_step(self) -> AgentStep | None:
        for step in reversed(self.steps):
            if step.action == COMPLETE_ACTION:
                return step
        return None


@dataclass(frozen=True, slots=True)
class AgentLoopConfig:
    max_steps: int = 10
    delegation_max_steps: int = 5
    max_delegation_depth: int = 5
    temperature: float = 0.7
    max_tokens: int = 2000
    chat_policy: ResiliencePolicy = field(default_factory=ResiliencePolicy)

    def __post_init__(self) -> None:
        if self.max_steps < 1:
            raise ValueError("max_steps must be >= 1")
        if self.delegation_max_steps < 1:
            raise ValueError("delegation_max_steps must be >= 1")
        if self.max_delegation_depth < 0:
            raise ValueError("max_delegation_depth must be >= 0")

    @staticmethod
    def from_env(prefix: str = "WAYPOINT") -> "AgentLoopConfig":
        return AgentLoopConfig(
            max_steps=int(os.getenv(f"{prefix}_AGENT_MAX_STEPS", "10")),
            delegation_max_steps=int(os.getenv(f"{prefix}_AGENT_DELEGATION_MAX_STEPS", "5")),
            max_delegation_depth=int(os.getenv(f"{prefix}_AGENT_MAX_DELEGATION_DEPTH", "5")),
            temperature=float(os.getenv(f"{prefix}_AGENT_TEMPERATURE", "0.7")),
            max_tokens=int(os.getenv(f"{prefix}_AGENT_MAX_TOKENS", "2000")),
            chat_policy=ResiliencePolicy.from_env(prefix),
        )


@dataclass(frozen=True, slots=True)
class ExecutionOptions:
    auto_approve: bool = False
    max_steps: int | None = None
    max_wall_time_s: float | None = None
    session_id: str | None = None
    on_step: StepCallback | None = None
    on_approval: ApprovalCallback | None = None
