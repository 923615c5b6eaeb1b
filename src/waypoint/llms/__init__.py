"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Chat capability contract, resilient adapter and model-response parsing.
"""

from .types import (
    ChatClient,
    ChatOptions,
    ChatResponse,
    JSONObject,
    JSONValue,
    Message,
    Role,
    ToolCall,
)
from .errors import ChatError, ChatRetryableError, MalformedResponseError
from .client import ResilientChatClient, classify_chat_error, is_retryable_chat_error
from .structured import AgentAction, agent_action_prompt, parse_agent_action
from .utils import extract_json_object, safe_json_loads

__all__ = [
    "ChatClient",
    "ChatOptions",
    "ChatResponse",
    "JSONObject",
    "JSONValue",
    "Message",
    "Role",
    "ToolCall",
    "ChatError",
    "ChatRetryableError",
    "MalformedResponseError",
    "ResilientChatClient",
    "classify_chat_error",
    "is_retryable_chat_error",
    "AgentAction",
    "agent_action_prompt",
    "parse_agent_action",
    "extract_json_object",
    "safe_json_loads",
]
