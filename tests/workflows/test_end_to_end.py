from __future__ import annotations

import asyncio
import json

from waypoint.agents import AgentDefinition, AgentExecutor, AgentRegistry
from waypoint.llms import ChatResponse
from waypoint.permissions import PermissionGate
from waypoint.tools import ToolInvoker, ToolRegistry
from waypoint.workflows import WorkflowParser, WorkflowRunner


def run_async(coro):
    return asyncio.run(coro)


class EchoingChat:
    """Agent `a` answers 42; agent `b` completes with the task it was given."""

    async def chat(self, messages, model, options):
        system, task = messages[0].content, messages[1].content
        if system.startswith("You are a."):
            result = "42"
        else:
            result = task
        return ChatResponse(content=json.dumps({"thought": "done", "action": "complete", "params": {"result": result}}))


def test_output_of_one_agent_reaches_the_next_agents_task():
    agents = AgentRegistry(
        [
            AgentDefinition(name="a", system_prompt="You are a."),
            AgentDefinition(name="b", system_prompt="You are b."),
        ]
    )
    executor = AgentExecutor(EchoingChat(), "test-model", agents, ToolInvoker(ToolRegistry(), PermissionGate()))
    workflow = WorkflowParser(agents).parse(
        {"name": "scenario", "steps": [{"agent": "a", "output": "x"}, {"agent": "b", "input": "use ${x}", "output": "y"}]}
    )

    result = run_async(WorkflowRunner(executor).run(workflow))

    assert result.success is True
    assert result.outputs["x"] == "42"
    assert "42" in result.outputs["y"]
    assert result.outputs["y"].startswith("Task: use 42")
