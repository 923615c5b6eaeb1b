"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Single fallible boundary between untrusted model output and the agent loop.
Every response goes through `parse_agent_action`; anything that does not parse
becomes a `MalformedResponseError` and nothing else.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import MalformedResponseError
from .types import ChatResponse
from .utils import clamp_str, extract_json_object, safe_json_loads


class AgentAction(BaseModel):
    """Normalized action decided by the model for one agent cycle."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    thought: str = ""
    action: str = "complete"
    params: dict[str, Any] = Field(default_factory=dict)
    delegate_to: str | None = Field(default=None, alias="delegateTo")
    result: Any = None

    @field_validator("thought", mode="before")
    @classmethod
    def _coerce_thought(cls, value: Any) -> str:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    @field_validator("action", mode="before")
    @classmethod
    def _coerce_action(cls, value: Any) -> str:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "complete"
        if not isinstance(value, str):
            raise ValueError("action must be a string")
        return value.strip()

    @field_validator("params", mode="before")
    @classmethod
    def _coerce_params(cls, value: Any) -> dict[str, Any]:
        if value is None:
            return {}
        return value

    @property
    def completion_result(self) -> Any:
        """Final answer for a `complete` action: `params.result`, then `result`."""
        value = self.params.get("result")
        return value if value is not None else self.result


def agent_action_prompt() -> str:
    return (
        "Respond in JSON format:\n"
        "{\n"
        '  "thought": "your reasoning",\n'
        '  "action": "tool_name or \'complete\' or \'delegate\'",\n'
        '  "params": { ... },\n'
        '  "delegateTo": "agent_name (if action is delegate)"\n'
        "}\n\n"
        'When task is complete, use action: "complete" with your final answer in params.result'
    )


def parse_agent_action(response: ChatResponse) -> AgentAction:
    """
    Turn a chat response into an `AgentAction`.

    A native tool call wins over text content. Text is accepted as raw JSON,
    fenced JSON, or JSON embedded in prose.

    Raises:
        MalformedResponseError: when no valid action object can be extracted.
    """
    if response.tool_calls:
        call = response.tool_calls[0]
        if not call.tool_name:
            raise MalformedResponseError("Tool call without a tool name", raw=response.content)
        return AgentAction(
            thought=response.content or "",
            action=call.tool_name,
            params=dict(call.arguments),
        )

    text = response.content or ""
    if not text.strip():
        raise MalformedResponseError("Empty response from model", raw=text)

    payload = safe_json_loads(text.strip())
    if payload is None:
        extracted = extract_json_object(text)
        payload = safe_json_loads(extracted) if extracted else None
    if payload is None:
        raise MalformedResponseError(
            f"Invalid JSON response from model: {clamp_str(text, 200)}", raw=text
        )

    try:
        return AgentAction.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponseError(
            f"Response does not describe a valid action: {e}", raw=text
        ) from e
