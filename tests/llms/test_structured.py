from __future__ import annotations

import pytest

from waypoint.llms import (
    ChatResponse,
    MalformedResponseError,
    ToolCall,
    parse_agent_action,
)
from waypoint.llms.utils import extract_json_object, strip_code_fence


def test_parses_raw_json_action():
    action = parse_agent_action(
        ChatResponse(content='{"thought": "look", "action": "read_file", "params": {"path": "a.txt"}}')
    )
    assert action.thought == "look"
    assert action.action == "read_file"
    assert action.params == {"path": "a.txt"}


def test_parses_fenced_json_and_delegate_alias():
    content = '```json\n{"thought": "hand off", "action": "delegate", "delegateTo": "writer"}\n```'
    action = parse_agent_action(ChatResponse(content=content))
    assert action.action == "delegate"
    assert action.delegate_to == "writer"


def test_parses_json_embedded_in_prose():
    content = 'Sure! Here is my decision: {"action": "complete", "params": {"result": "done {ok}"}} Thanks.'
    action = parse_agent_action(ChatResponse(content=content))
    assert action.action == "complete"
    assert action.completion_result == "done {ok}"


def test_missing_action_defaults_to_complete():
    action = parse_agent_action(ChatResponse(content='{"thought": "finished", "result": 42}'))
    assert action.action == "complete"
    assert action.params == {}
    assert action.completion_result == 42


def test_native_tool_call_wins_over_text():
    response = ChatResponse(
        content="calling a tool",
        tool_calls=[ToolCall(id="c1", tool_name="search", arguments={"q": "x"})],
    )
    action = parse_agent_action(response)
    assert action.action == "search"
    assert action.params == {"q": "x"}
    assert action.thought == "calling a tool"


@pytest.mark.parametrize(
    "content",
    [
        "",
        "   ",
        "I could not decide what to do",
        '{"thought": "unterminated"',
        '{"action": 5}',
    ],
)
def test_unparseable_responses_raise_malformed(content):
    with pytest.raises(MalformedResponseError) as info:
        parse_agent_action(ChatResponse(content=content))
    assert info.value.error_kind == "malformed_response"


def test_tool_call_without_name_is_malformed():
    with pytest.raises(MalformedResponseError):
        parse_agent_action(ChatResponse(content="", tool_calls=[ToolCall(tool_name="")]))


def test_fence_and_object_helpers():
    assert strip_code_fence("~~~\njson\n{\"a\": 1}\n~~~") == '{"a": 1}'
    assert strip_code_fence("plain") == "plain"
    assert extract_json_object('x {"a": "}"} y') == '{"a": "}"}'
    assert extract_json_object("no object here") is None
