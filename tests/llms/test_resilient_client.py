from __future__ import annotations

import asyncio

import pytest

from waypoint.errors import classify_error
from waypoint.llms import (
    ChatError,
    ChatOptions,
    ChatResponse,
    ChatRetryableError,
    Message,
    ResilientChatClient,
    classify_chat_error,
    is_retryable_chat_error,
)
from waypoint.resilience import CircuitBreaker, CircuitOpenError, ExternalFailureError, ResiliencePolicy


def run_async(coro):
    return asyncio.run(coro)


NO_WAIT = ResiliencePolicy(retries=2, timeout_s=1.0, backoff_base_s=0.0, backoff_max_s=0.0, jitter=False)


class HttpError(Exception):
    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class ScriptedClient:
    def __init__(self, outcomes: list) -> None:
        self.outcomes = list(outcomes)
        self.calls = 0

    async def chat(self, messages, model, options):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def chat(client: ResilientChatClient):
    return client.chat([Message(role="user", content="hi")], "test-model", ChatOptions())


def test_classifies_status_codes_and_phrases():
    assert isinstance(classify_chat_error(HttpError("slow down", 429)), ChatRetryableError)
    assert isinstance(classify_chat_error(HttpError("boom", 503)), ChatRetryableError)
    assert not isinstance(classify_chat_error(HttpError("bad request", 400)), ChatRetryableError)
    assert isinstance(classify_chat_error(ConnectionError("x")), ChatRetryableError)
    assert isinstance(classify_chat_error(RuntimeError("Rate limit reached")), ChatRetryableError)
    assert type(classify_chat_error(RuntimeError("Invalid API key"))) is ChatError


def test_retryable_failures_are_retried_until_success():
    raw = ScriptedClient([HttpError("overloaded", 529), ChatResponse(content='{"action": "complete"}')])
    client = ResilientChatClient(raw, policy=NO_WAIT)
    response = run_async(chat(client))
    assert response.content == '{"action": "complete"}'
    assert raw.calls == 2


def test_terminal_failures_are_not_retried():
    raw = ScriptedClient([HttpError("unauthorized", 401)])
    client = ResilientChatClient(raw, policy=NO_WAIT)
    with pytest.raises(ExternalFailureError) as info:
        run_async(chat(client))
    assert raw.calls == 1
    assert isinstance(info.value.__cause__, ChatError)
    assert not is_retryable_chat_error(info.value.__cause__)


def test_empty_response_is_malformed_and_not_retried():
    raw = ScriptedClient([ChatResponse(content="   ")])
    client = ResilientChatClient(raw, policy=NO_WAIT)
    with pytest.raises(ExternalFailureError) as info:
        run_async(chat(client))
    assert raw.calls == 1
    assert classify_error(info.value) == "malformed_response"


def test_breaker_opens_and_rejects_next_call():
    breaker = CircuitBreaker("chat", failure_threshold=1, reset_timeout_s=60.0)
    raw = ScriptedClient([HttpError("bad", 400), ChatResponse(content="{}")])
    client = ResilientChatClient(raw, policy=NO_WAIT, breaker=breaker)

    with pytest.raises(ExternalFailureError):
        run_async(chat(client))
    with pytest.raises(CircuitOpenError):
        run_async(chat(client))
    assert raw.calls == 1
