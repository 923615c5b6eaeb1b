from __future__ import annotations

import asyncio

from pydantic import BaseModel

from waypoint.permissions import PermissionGate
from waypoint.resilience import BreakerRegistry, ResiliencePolicy
from waypoint.tools import ToolInvoker, ToolRegistry, tool


def run_async(coro):
    return asyncio.run(coro)


class PathArgs(BaseModel):
    path: str
    content: str = ""


class NoArgs(BaseModel):
    pass


@tool(args_model=PathArgs, name="read_file")
def read_file(args: PathArgs) -> str:
    return f"contents of {args.path}"


@tool(args_model=PathArgs, name="write_file", requires_confirmation=True)
def write_file(args: PathArgs) -> int:
    return len(args.content)


@tool(args_model=NoArgs, name="flaky_service")
def flaky_service(args: NoArgs) -> str:
    raise ConnectionError("service unreachable")


class Approver:
    def __init__(self, answer: bool) -> None:
        self.answer = answer
        self.calls: list[tuple[str, dict]] = []

    async def __call__(self, tool_name: str, args: dict) -> bool:
        self.calls.append((tool_name, args))
        return self.answer


def make_invoker(**kwargs) -> ToolInvoker:
    registry = ToolRegistry()
    registry.register_many([read_file, write_file, flaky_service])
    return ToolInvoker(registry, PermissionGate(), **kwargs)


def test_unknown_tool_is_reported_not_raised():
    invoker = make_invoker()
    result = run_async(invoker.invoke("nope", {}))
    assert result.success is False
    assert result.error_kind == "tool_not_found"


def test_allowed_tool_executes():
    invoker = make_invoker()
    result = run_async(invoker.invoke("read_file", {"path": "README.md"}, session_id="s1"))
    assert result.success is True
    assert result.output == "contents of README.md"
    assert result.permission == "allow_session"
    assert result.approved_by_user is False


def test_denied_tool_does_not_execute():
    invoker = make_invoker()

    async def scenario():
        await invoker.gate.set_permission("read_file", "deny", "s1")
        return await invoker.invoke("read_file", {"path": "README.md"}, session_id="s1")

    result = run_async(scenario())
    assert result.success is False
    assert result.error_kind == "permission_denied"
    assert invoker.registry.recent_calls() == []


def test_ask_without_approver_is_denied():
    invoker = make_invoker()
    result = run_async(invoker.invoke("write_file", {"path": "out.txt", "content": "x"}, session_id="s1"))
    assert result.success is False
    assert result.error_kind == "permission_denied"
    assert "requires approval" in result.error


def test_user_denial_reports_message():
    invoker = make_invoker()
    approver = Approver(False)
    result = run_async(
        invoker.invoke("write_file", {"path": "out.txt", "content": "x"}, session_id="s1", on_approval=approver)
    )
    assert result.error == "Tool execution denied by user"
    assert result.error_kind == "permission_denied"
    assert approver.calls == [("write_file", {"path": "out.txt", "content": "x"})]


def test_user_approval_is_remembered_for_the_path():
    invoker = make_invoker()
    approver = Approver(True)

    async def scenario():
        first = await invoker.invoke(
            "write_file", {"path": "out.txt", "content": "abc"}, session_id="s1", on_approval=approver
        )
        second = await invoker.invoke(
            "write_file", {"path": "out.txt", "content": "abcd"}, session_id="s1", on_approval=approver
        )
        return first, second

    first, second = run_async(scenario())
    assert first.success and first.output == 3 and first.approved_by_user
    assert second.success and second.output == 4 and not second.approved_by_user
    assert len(approver.calls) == 1


def test_auto_approve_skips_prompt_but_not_deny():
    invoker = make_invoker()

    async def scenario():
        allowed = await invoker.invoke(
            "write_file", {"path": "out.txt", "content": "ab"}, session_id="s1", auto_approve=True
        )
        await invoker.gate.set_permission("write_file", "deny", "s2")
        denied = await invoker.invoke(
            "write_file", {"path": "out.txt", "content": "ab"}, session_id="s2", auto_approve=True
        )
        return allowed, denied

    allowed, denied = run_async(scenario())
    assert allowed.success and allowed.output == 2
    assert denied.error_kind == "permission_denied"


def test_sensitive_path_asks_even_for_read_tools():
    invoker = make_invoker()
    result = run_async(invoker.invoke("read_file", {"path": "/etc/shadow"}, session_id="s1"))
    assert result.success is False
    assert result.permission == "ask"


def test_execution_failure_and_breaker():
    breakers = BreakerRegistry(failure_threshold=1, reset_timeout_s=60.0)
    invoker = make_invoker(
        breakers=breakers,
        policy=ResiliencePolicy(retries=0, timeout_s=1.0),
    )

    async def scenario():
        first = await invoker.invoke("flaky_service", {})
        second = await invoker.invoke("flaky_service", {})
        return first, second

    first, second = run_async(scenario())
    assert first.success is False
    assert first.error_kind == "external_failure"
    assert "service unreachable" in first.error
    assert second.error_kind == "circuit_open"
    assert breakers.get("tool:flaky_service").state == "open"


def test_validation_errors_are_reported():
    invoker = make_invoker()
    result = run_async(invoker.invoke("read_file", {}, session_id="s1"))
    assert result.success is False
    assert result.error_kind == "external_failure"
    assert "Invalid arguments" in result.error
