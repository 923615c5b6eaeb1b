"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Agent execution loop.

Each cycle sends the transcript to the chat capability, parses the reply into
an action and carries it out: finish, delegate to another agent, or call a
tool through the invoker. Every failure inside a cycle becomes an `error` step
that is fed back to the model; only the step and wall-clock budgets end a run
early.
"""

from __future__ import annotations

import inspect
import json
import logging
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from ..errors import classify_error
from ..llms import (
    AgentAction,
    ChatClient,
    ChatOptions,
    Message,
    ResilientChatClient,
    parse_agent_action,
)
from ..resilience import CircuitBreaker, ExternalFailureError
from ..telemetry import NullTelemetrySink, TelemetryEvent, TelemetrySink, now_ms
from ..tools import ToolInvoker
from .errors import DelegationDeniedError, DelegationDepthError
from .prompts import build_system_prompt, build_task_prompt
from .registry import AgentRegistry
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
)

logger = logging.getLogger(__name__)

# Hard ceiling on nested delegation, whatever the config asks for.
MAX_DELEGATION_DEPTH = 5


def _error_message(e: BaseException) -> str:
    if isinstance(e, ExternalFailureError) and e.__cause__ is not None:
        return str(e.__cause__)
    return str(e)


def summarize_steps(steps: list[AgentStep]) -> str:
    return "\n".join(f"- {step.thought}" for step in steps if step.thought)


class AgentExecutor:
    """
    Drives agents through the think-act-observe loop.

    Args:
        chat: Chat capability. Raw clients are wrapped in a
            `ResilientChatClient` using `config.chat_policy`.
        model: Model identifier passed to every chat call.
        agents: Registry used to resolve agent and delegation names.
        tools: Invoker used for every tool action.
        config: Loop budgets and sampling settings.
        session_id: Default permission session for tool calls.
        breaker: Breaker for the chat boundary when `chat` is a raw client.
        telemetry: Sink receiving `agent.step` / `agent.execution` events.
    """

    def __init__(
        self,
        chat: ChatClient,
        model: str,
        agents: AgentRegistry,
        tools: ToolInvoker,
        *,
        config: AgentLoopConfig | None = None,
        session_id: str | None = None,
        breaker: CircuitBreaker | None = None,
        telemetry: TelemetrySink | None = None,
    ) -> None:
        self._config = config or AgentLoopConfig()
        self._telemetry = telemetry or NullTelemetrySink()
        if isinstance(chat, ResilientChatClient):
            self._chat: ChatClient = chat
        else:
            self._chat = ResilientChatClient(
                chat,
                policy=self._config.chat_policy,
                breaker=breaker,
                telemetry=telemetry,
            )
        self._model = model
        self._agents = agents
        self._tools = tools
        self._session_id = session_id
        self._max_depth = min(self._config.max_delegation_depth, MAX_DELEGATION_DEPTH)

    @property
    def agents(self) -> AgentRegistry:
        return self._agents

    @property
    def config(self) -> AgentLoopConfig:
        return self._config

    async def execute(
        self,
        agent_name: str,
        agent_input: AgentInput | str,
        options: ExecutionOptions | None = None,
    ) -> AgentExecution:
        """
        Run one agent to completion, delegation, budget exhaustion or failure.

        Raises:
            AgentNotFoundError: `agent_name` is not registered.
        """
        agent = self._agents.require(agent_name)
        if isinstance(agent_input, str):
            agent_input = AgentInput(task=agent_input)
        return await self._execute(agent, agent_input, options or ExecutionOptions(), depth=0)

    async def _execute(
        self,
        agent: AgentDefinition,
        agent_input: AgentInput,
        options: ExecutionOptions,
        *,
        depth: int,
    ) -> AgentExecution:
        execution = AgentExecution(agent_name=agent.name, input=agent_input, depth=depth)
        max_steps = options.max_steps or self._config.max_steps
        wall_s = options.max_wall_time_s or agent.timeout_s
        available = [name for name in agent.tools if self._tools.has(name)]

        messages = [
            Message(role="system", content=build_system_prompt(agent, available)),
            Message(role="user", content=build_task_prompt(agent_input)),
        ]
        started = time.monotonic()
        execution.stop_reason = "max_steps"

        try:
            for _ in range(max_steps):
                step, sub = await self._cycle(agent, messages, available, options, depth)
                execution.steps.append(step)
                self._emit_step(agent, step, depth)
                if options.on_step is not None:
                    maybe = options.on_step(step)
                    if inspect.isawaitable(maybe):
                        await maybe

                if step.action == COMPLETE_ACTION:
                    execution.stop_reason = "completed"
                    break
                if sub is not None:
                    execution.delegated = sub
                    execution.stop_reason = "delegated"
                    break

                messages.append(
                    Message(role="assistant", content=json.dumps(step.to_transcript(), default=str))
                )
                if step.error is not None:
                    messages.append(
                        Message(role="user", content=f"Error: {step.error}. Try a different approach.")
                    )
                else:
                    messages.append(
                        Message(role="user", content=f"Result: {json.dumps(step.result, default=str)}")
                    )

                if time.monotonic() - started > wall_s:
                    logger.warning(
                        "agent %s exceeded its wall-time budget of %.1fs after %d step(s)",
                        agent.name,
                        wall_s,
                        len(execution.steps),
                    )
                    execution.stop_reason = "wall_time"
                    break
        except Exception as e:
            logger.warning("agent %s execution failed: %s", agent.name, e)
            execution.stop_reason = "error"
            execution.steps.append(
                AgentStep(
                    thought="Execution failed",
                    action=ERROR_ACTION,
                    error=_error_message(e),
                    error_kind=classify_error(e),
                )
            )

        delegated_ok = execution.delegated is not None and execution.delegated.status == "completed"
        execution.finish("completed" if execution.completed_step or delegated_ok else "failed")
        execution.output = self._build_output(agent, execution)

        self._telemetry.record_event(
            TelemetryEvent(
                name="agent.execution",
                timestamp_ms=now_ms(),
                attributes={
                    "agent": agent.name,
                    "status": execution.status,
                    "steps": len(execution.steps),
                    "duration_ms": execution.duration_ms,
                    "depth": depth,
                },
            )
        )
        return execution

    async def _cycle(
        self,
        agent: AgentDefinition,
        messages: list[Message],
        available: list[str],
        options: ExecutionOptions,
        depth: int,
    ) -> tuple[AgentStep, AgentExecution | None]:
        chat_options = ChatOptions(
            temperature=self._config.temperature,
            max_tokens=self._config.max_tokens,
        )
        try:
            response = await self._chat.chat(list(messages), self._model, chat_options)
            action = parse_agent_action(response)
        except Exception as e:
            kind = classify_error(e)
            logger.info("agent %s: model turn failed (%s): %s", agent.name, kind, e)
            thought = "Failed to parse response" if kind == "malformed_response" else "Model call failed"
            return (
                AgentStep(thought=thought, action=ERROR_ACTION, error=_error_message(e), error_kind=kind),
                None,
            )

        if action.action == COMPLETE_ACTION:
            return (
                AgentStep(
                    thought=action.thought,
                    action=COMPLETE_ACTION,
                    params=action.params,
                    result=action.completion_result,
                ),
                None,
            )

        if action.action == DELEGATE_ACTION:
            return await self._delegate(agent, action, options, depth)

        if action.action not in available:
            return (
                AgentStep(
                    thought=action.thought,
                    action=action.action,
                    params=action.params,
                    error=f"Tool not available: {action.action}",
                    error_kind="tool_not_found",
                ),
                None,
            )

        invocation = await self._tools.invoke(
            action.action,
            action.params,
            session_id=options.session_id or self._session_id,
            agent_name=agent.name,
            auto_approve=options.auto_approve,
            on_approval=options.on_approval,
        )
        return (
            AgentStep(
                thought=action.thought,
                action=action.action,
                params=action.params,
                result=invocation.output if invocation.success else None,
                error=invocation.error,
                error_kind=invocation.error_kind,
            ),
            None,
        )

    async def _delegate(
        self,
        agent: AgentDefinition,
        action: AgentAction,
        options: ExecutionOptions,
        depth: int,
    ) -> tuple[AgentStep, AgentExecution | None]:
        target = action.delegate_to or action.params.get("agent")
        step = AgentStep(
            thought=action.thought,
            action=DELEGATE_ACTION,
            params=action.params,
            delegate_to=target if isinstance(target, str) else None,
        )

        denial: DelegationDeniedError | None = None
        target_def = self._agents.get(target) if isinstance(target, str) else None
        if not isinstance(target, str) or not agent.allows_delegation_to(target):
            denial = DelegationDeniedError(f"Cannot delegate to {target}")
        elif target_def is None:
            denial = DelegationDeniedError(f"Unknown delegation target: {target}")
        elif depth + 1 > self._max_depth:
            denial = DelegationDepthError(
                f"Delegation depth limit ({self._max_depth}) reached at '{agent.name}'"
            )
        if denial is not None or target_def is None:
            logger.info("agent %s: %s", agent.name, denial)
            return replace(step, error=str(denial), error_kind=classify_error(denial)), None

        sub_input = AgentInput(
            task=str(action.params.get("task") or action.thought or ""),
            params=dict(action.params),
            context={"parent_agent": agent.name},
        )
        sub_options = replace(
            options,
            max_steps=self._config.delegation_max_steps,
            max_wall_time_s=None,
        )
        sub = await self._execute(target_def, sub_input, sub_options, depth=depth + 1)
        result = sub.output.data if sub.output is not None else None

        if sub.status != "completed":
            return (
                replace(
                    step,
                    result=result,
                    error=f"Delegation to {target} failed",
                    error_kind="external_failure",
                ),
                sub,
            )
        return replace(step, result=result), sub

    def _build_output(self, agent: AgentDefinition, execution: AgentExecution) -> AgentOutput:
        completed = execution.completed_step
        if completed is not None and completed.result is not None:
            data: Any = completed.result
        elif execution.delegated is not None and execution.delegated.output is not None:
            data = execution.delegated.output.data
        else:
            data = summarize_steps(execution.steps)

        delegated_to = [
            step.delegate_to
            for step in execution.steps
            if step.action == DELEGATE_ACTION
            and step.delegate_to
            and step.error_kind != "delegation_denied"
        ]
        return AgentOutput(
            type=agent.output_format,
            data=data,
            metadata={
                "agent": agent.name,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "duration_ms": execution.duration_ms,
                "delegated_to": delegated_to,
            },
        )

    def _emit_step(self, agent: AgentDefinition, step: AgentStep, depth: int) -> None:
        self._telemetry.record_event(
            TelemetryEvent(
                name="agent.step",
                timestamp_ms=now_ms(),
                attributes={
                    "agent": agent.name,
                    "action": step.action,
                    "ok": step.ok,
                    "error_kind": step.error_kind,
                    "depth": depth,
                },
            )
        )
