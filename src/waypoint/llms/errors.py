"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines custom exceptions for the chat boundary.
"""

from __future__ import annotations


class ChatError(Exception):
    """Base exception for all chat-capability errors."""

    pass


class ChatRetryableError(ChatError):
    """
    Transient failures: rate limits, timeouts, provider issues, etc.
    These errors may be retried with backoff.
    """

    pass


class MalformedResponseError(ChatError):
    """
    The model returned a response that we couldn't parse into an agent action.
    Carries the raw text so it can be fed back to the model as correction context.
    """

    error_kind = "malformed_response"

    def __init__(self, message: str, *, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw
