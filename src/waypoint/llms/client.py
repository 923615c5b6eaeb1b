"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Chat client adapter that routes every call through the resilience layer.
"""

from __future__ import annotations

import asyncio
import logging
import socket

from ..resilience import CircuitBreaker, ResiliencePolicy, wrap
from ..telemetry import TelemetrySink
from .errors import ChatError, ChatRetryableError, MalformedResponseError
from .types import ChatClient, ChatOptions, ChatResponse, Message

logger = logging.getLogger(__name__)

_RETRY_PHRASES = (
    "rate limit",
    "rate_limit",
    "rate-limit",
    "quota exceeded",
    "temporarily unavailable",
    "overloaded",
    "service unavailable",
    "try again",
    "please retry",
    "timeout",
    "timed out",
    "connection reset",
    "connection aborted",
    "connection refused",
    "connection error",
    "econnreset",
    "econnrefused",
    "502",
    "503",
    "504",
)

_TERMINAL_PHRASES = (
    "unauthorized",
    "forbidden",
    "invalid api key",
    "authentication",
)


def _status_code(e: Exception) -> int | None:
    for attr in ("status_code", "status", "code"):
        val = getattr(e, attr, None)
        if isinstance(val, int):
            return val
        if isinstance(val, str) and val.isdigit():
            return int(val)

    resp = getattr(e, "response", None)
    if resp is not None:
        sc = getattr(resp, "status_code", None) or getattr(resp, "status", None)
        if isinstance(sc, int):
            return sc
        if isinstance(sc, str) and sc.isdigit():
            return int(sc)
    return None


def classify_chat_error(e: Exception) -> ChatError:
    """Map arbitrary exceptions into retryable vs non-retryable chat errors."""
    if isinstance(e, ChatError):
        return e

    msg = str(e) or repr(e)
    status = _status_code(e)
    if status is not None:
        if status in (408, 429) or 500 <= status < 600:
            return ChatRetryableError(msg)
        if 400 <= status < 500:
            return ChatError(msg)

    if isinstance(e, (asyncio.TimeoutError, TimeoutError, socket.timeout, ConnectionError)):
        return ChatRetryableError(msg)

    m = msg.lower()
    if any(p in m for p in _TERMINAL_PHRASES):
        return ChatError(msg)
    if any(p in m for p in _RETRY_PHRASES):
        return ChatRetryableError(msg)
    return ChatError(msg)


def is_retryable_chat_error(e: Exception) -> bool:
    if isinstance(e, MalformedResponseError):
        return False
    return isinstance(classify_chat_error(e), ChatRetryableError)


class ResilientChatClient:
    """
    Wraps a raw `ChatClient` with timeout, bounded retry and a circuit breaker.

    Failures surface as `ResilienceError` subclasses whose `__cause__` is the
    classified `ChatError`. An empty reply with no tool calls is never passed
    through silently; it raises `MalformedResponseError` instead.
    """

    def __init__(
        self,
        client: ChatClient,
        *,
        policy: ResiliencePolicy | None = None,
        breaker: CircuitBreaker | None = None,
        telemetry: TelemetrySink | None = None,
        name: str = "chat",
    ) -> None:
        self._client = client
        self._policy = policy or ResiliencePolicy()
        self._breaker = breaker
        self._telemetry = telemetry
        self._name = name

    @property
    def breaker(self) -> CircuitBreaker | None:
        return self._breaker

    async def chat(
        self,
        messages: list[Message],
        model: str,
        options: ChatOptions,
    ) -> ChatResponse:
        async def _attempt() -> ChatResponse:
            try:
                response = await self._client.chat(messages, model, options)
            except asyncio.TimeoutError:
                raise
            except Exception as e:
                raise classify_chat_error(e) from e
            if not (response.content or "").strip() and not response.tool_calls:
                logger.warning("model %s returned an empty response", model)
                raise MalformedResponseError("Empty response from model")
            return response

        return await wrap(
            f"{self._name}:{model}",
            _attempt,
            policy=self._policy,
            timeout_s=options.timeout_s,
            circuit_breaker=self._breaker,
            retry_if=is_retryable_chat_error,
            telemetry=self._telemetry,
        )
