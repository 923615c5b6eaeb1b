from __future__ import annotations

import asyncio
import json

import pytest
from pydantic import BaseModel

from waypoint.agents import (
    AgentDefinition,
    AgentExecutor,
    AgentLoopConfig,
    AgentNotFoundError,
    AgentRegistry,
    ExecutionOptions,
)
from waypoint.llms import ChatResponse
from waypoint.permissions import PermissionGate
from waypoint.resilience import ResiliencePolicy
from waypoint.telemetry import InMemoryTelemetrySink
from waypoint.tools import ToolInvoker, ToolRegistry, tool


def run_async(coro):
    return asyncio.run(coro)


class HttpError(Exception):
    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class RoutedChat:
    """Replies from a per-agent script, chosen by the system prompt prefix."""

    def __init__(self, scripts: dict[str, list]) -> None:
        self.scripts = {key: list(replies) for key, replies in scripts.items()}
        self.calls: list[list] = []
        self.delay_s = 0.0

    async def chat(self, messages, model, options):
        self.calls.append(list(messages))
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        system = messages[0].content
        for key, replies in self.scripts.items():
            if system.startswith(key):
                reply = replies.pop(0) if len(replies) > 1 else replies[0]
                break
        else:
            raise AssertionError(f"no script for system prompt: {system[:40]}")
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            reply = json.dumps(reply)
        return ChatResponse(content=reply)


class PathArgs(BaseModel):
    path: str
    content: str = ""


@tool(args_model=PathArgs, name="read_file")
def read_file(args: PathArgs) -> str:
    return f"contents of {args.path}"


@tool(args_model=PathArgs, name="write_file", requires_confirmation=True)
def write_file(args: PathArgs) -> str:
    return f"wrote {args.path}"


AGENTS = [
    AgentDefinition(
        name="planner",
        system_prompt="You are the planner.",
        tools=("read_file", "write_file"),
        can_delegate=("writer", "reviewer"),
    ),
    AgentDefinition(
        name="writer",
        system_prompt="You are the writer.",
        tools=("write_file",),
        can_delegate=("reviewer",),
    ),
    AgentDefinition(name="reviewer", system_prompt="You are the reviewer.", tools=("read_file",)),
]

FAST_CHAT = ResiliencePolicy(retries=0, timeout_s=5.0, backoff_base_s=0.0, jitter=False)


def make_executor(chat: RoutedChat, *, telemetry=None, **config) -> AgentExecutor:
    registry = ToolRegistry()
    registry.register_many([read_file, write_file])
    invoker = ToolInvoker(registry, PermissionGate())
    return AgentExecutor(
        chat,
        "test-model",
        AgentRegistry(AGENTS),
        invoker,
        config=AgentLoopConfig(chat_policy=FAST_CHAT, **config),
        session_id="session-1",
        telemetry=telemetry,
    )


def complete(result, thought="done"):
    return {"thought": thought, "action": "complete", "params": {"result": result}}


def test_complete_on_first_cycle_yields_single_step():
    chat = RoutedChat({"You are the planner": [complete("all good")]})
    execution = run_async(make_executor(chat).execute("planner", "summarize"))

    assert execution.status == "completed"
    assert execution.stop_reason == "completed"
    assert len(execution.steps) == 1
    assert execution.output.data == "all good"
    assert execution.output.type == "markdown"
    assert execution.output.metadata["agent"] == "planner"
    assert chat.calls[0][1].content == "Task: summarize"


def test_never_completing_run_fails_at_max_steps_with_summary():
    chat = RoutedChat(
        {"You are the planner": [{"thought": "keep reading", "action": "read_file", "params": {"path": "a.txt"}}]}
    )
    execution = run_async(make_executor(chat, max_steps=3).execute("planner", "loop forever"))

    assert execution.status == "failed"
    assert execution.stop_reason == "max_steps"
    assert len(execution.steps) == 3
    assert all(step.result == "contents of a.txt" for step in execution.steps)
    assert execution.output.data == "- keep reading\n- keep reading\n- keep reading"


def test_transcript_alternates_step_and_outcome_messages():
    chat = RoutedChat(
        {
            "You are the planner": [
                {"thought": "read it", "action": "read_file", "params": {"path": "a.txt"}},
                complete("fine"),
            ]
        }
    )
    run_async(make_executor(chat).execute("planner", "task"))

    second_call = chat.calls[1]
    assert [m.role for m in second_call] == ["system", "user", "assistant", "user"]
    assert json.loads(second_call[2].content)["action"] == "read_file"
    assert second_call[3].content == 'Result: "contents of a.txt"'


def test_malformed_response_becomes_error_step_and_loop_continues():
    chat = RoutedChat({"You are the planner": ["I am not JSON at all", complete("recovered")]})
    execution = run_async(make_executor(chat).execute("planner", "task"))

    assert execution.status == "completed"
    first = execution.steps[0]
    assert first.action == "error"
    assert first.thought == "Failed to parse response"
    assert first.error_kind == "malformed_response"
    feedback = chat.calls[1][-1].content
    assert feedback.startswith("Error: ") and feedback.endswith("Try a different approach.")


def test_model_call_failure_is_recorded_as_error_step():
    chat = RoutedChat({"You are the planner": [HttpError("bad request", 400), complete("ok")]})
    execution = run_async(make_executor(chat).execute("planner", "task"))

    assert execution.steps[0].thought == "Model call failed"
    assert execution.steps[0].error_kind == "external_failure"
    assert execution.status == "completed"


def test_tool_outside_agent_tool_set_is_not_available():
    chat = RoutedChat(
        {
            "You are the reviewer": [
                {"thought": "write", "action": "write_file", "params": {"path": "x"}},
                complete("ok"),
            ]
        }
    )
    execution = run_async(make_executor(chat).execute("reviewer", "task"))
    step = execution.steps[0]
    assert step.error == "Tool not available: write_file"
    assert step.error_kind == "tool_not_found"


def test_approval_denial_skips_execution():
    chat = RoutedChat(
        {
            "You are the planner": [
                {"thought": "write", "action": "write_file", "params": {"path": "out.md"}},
                complete("gave up"),
            ]
        }
    )
    asked: list[str] = []

    async def deny(tool_name, params):
        asked.append(tool_name)
        return False

    execution = run_async(
        make_executor(chat).execute("planner", "task", ExecutionOptions(on_approval=deny))
    )
    step = execution.steps[0]
    assert asked == ["write_file"]
    assert step.error == "Tool execution denied by user"
    assert step.error_kind == "permission_denied"
    assert step.result is None


def test_auto_approve_runs_confirmation_tools():
    chat = RoutedChat(
        {
            "You are the planner": [
                {"thought": "write", "action": "write_file", "params": {"path": "out.md"}},
                complete("written"),
            ]
        }
    )
    execution = run_async(
        make_executor(chat).execute("planner", "task", ExecutionOptions(auto_approve=True))
    )
    assert execution.steps[0].result == "wrote out.md"
    assert execution.steps[0].ok


def test_successful_delegation_completes_outer_execution():
    chat = RoutedChat(
        {
            "You are the planner": [
                {"thought": "hand off", "action": "delegate", "delegateTo": "writer", "params": {"task": "draft"}}
            ],
            "You are the writer": [complete("the draft")],
        }
    )
    execution = run_async(make_executor(chat).execute("planner", "write a doc"))

    assert execution.status == "completed"
    assert execution.stop_reason == "delegated"
    assert execution.delegated is not None
    assert execution.delegated.agent_name == "writer"
    assert execution.delegated.depth == 1
    assert execution.steps[-1].result == "the draft"
    assert execution.output.data == "the draft"
    assert execution.output.metadata["delegated_to"] == ["writer"]
    writer_task = [calls for calls in chat.calls if calls[0].content.startswith("You are the writer")][0]
    assert writer_task[1].content.startswith("Task: draft")


def test_failed_delegation_fails_outer_execution():
    chat = RoutedChat(
        {
            "You are the planner": [
                {"thought": "hand off", "action": "delegate", "delegateTo": "reviewer", "params": {"task": "check"}}
            ],
            "You are the reviewer": [{"thought": "look", "action": "read_file", "params": {"path": "a"}}],
        }
    )
    execution = run_async(make_executor(chat, delegation_max_steps=2).execute("planner", "task"))

    assert execution.status == "failed"
    assert execution.delegated.status == "failed"
    assert len(execution.delegated.steps) == 2
    assert execution.steps[-1].error == "Delegation to reviewer failed"


def test_delegation_outside_can_delegate_is_denied():
    chat = RoutedChat(
        {
            "You are the writer": [
                {"thought": "escalate", "action": "delegate", "delegateTo": "planner"},
                complete("did it myself"),
            ]
        }
    )
    execution = run_async(make_executor(chat).execute("writer", "task"))

    step = execution.steps[0]
    assert step.error == "Cannot delegate to planner"
    assert step.error_kind == "delegation_denied"
    assert execution.status == "completed"
    assert execution.output.metadata["delegated_to"] == []


def test_delegation_depth_ceiling_is_enforced():
    chat = RoutedChat(
        {
            "You are the planner": [{"thought": "down", "action": "delegate", "delegateTo": "writer"}],
            "You are the writer": [
                {"thought": "deeper", "action": "delegate", "delegateTo": "reviewer"},
                complete("writer finished"),
            ],
        }
    )
    execution = run_async(make_executor(chat, max_delegation_depth=1).execute("planner", "task"))

    writer = execution.delegated
    assert writer is not None
    assert writer.steps[0].error_kind == "delegation_denied"
    assert "depth limit" in writer.steps[0].error
    assert execution.status == "completed"
    assert execution.output.data == "writer finished"


def test_wall_time_budget_stops_between_cycles():
    chat = RoutedChat(
        {"You are the planner": [{"thought": "slow", "action": "read_file", "params": {"path": "a"}}]}
    )
    chat.delay_s = 0.02
    execution = run_async(
        make_executor(chat).execute("planner", "task", ExecutionOptions(max_wall_time_s=0.01))
    )
    assert execution.stop_reason == "wall_time"
    assert len(execution.steps) == 1
    assert execution.status == "failed"


def test_step_callback_and_telemetry():
    chat = RoutedChat(
        {
            "You are the planner": [
                {"thought": "read", "action": "read_file", "params": {"path": "a"}},
                complete("x"),
            ]
        }
    )
    sink = InMemoryTelemetrySink()
    seen: list[str] = []

    async def on_step(step):
        seen.append(step.action)

    run_async(
        make_executor(chat, telemetry=sink).execute("planner", "task", ExecutionOptions(on_step=on_step))
    )
    assert seen == ["read_file", "complete"]
    assert len(sink.events("agent.step")) == 2
    (done,) = sink.events("agent.execution")
    assert done.attributes["status"] == "completed"


def test_unknown_agent_raises():
    chat = RoutedChat({"You are the planner": [complete("x")]})
    with pytest.raises(AgentNotFoundError):
        run_async(make_executor(chat).execute("ghost", "task"))
