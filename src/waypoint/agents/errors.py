"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Agent-layer error taxonomy.
"""

from __future__ import annotations


class AgentError(Exception):
    """Base exception for all agent-runtime failures."""
    pass


class AgentNotFoundError(AgentError):
    """Raised when an agent name is not present in the registry."""
    pass


class AgentConfigurationError(AgentError):
    """
    Raised when an agent definition is invalid.

    Typical cases:
    - missing name
    - unknown output format or memory scope
    - non-positive timeout
    """
    pass


class DelegationDeniedError(AgentError):
    """Raised when an agent tries to delegate to a target it may not use."""

    error_kind = "delegation_denied"


class DelegationDepthError(DelegationDeniedError):
    """Raised when delegation would exceed the recursion-depth ceiling."""
    pass
