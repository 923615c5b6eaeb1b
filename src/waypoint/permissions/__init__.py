"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Tool permission gate with session memory, path overrides and batch approval.
"""

from .types import (
    PERMISSION_LEVELS,
    BatchPermissionResult,
    PendingApproval,
    PermissionLevel,
    PermissionOperation,
    PermissionRule,
    RiskLevel,
)
from .defaults import DEFAULT_RULES, SENSITIVE_PATH_PATTERNS, is_sensitive_path
from .store import InMemoryPermissionStore, PermissionStore, SQLitePermissionStore
from .factory import create_permission_store_from_env
from .gate import PermissionGate

__all__ = [
    "PERMISSION_LEVELS",
    "BatchPermissionResult",
    "PendingApproval",
    "PermissionLevel",
    "PermissionOperation",
    "PermissionRule",
    "RiskLevel",
    "DEFAULT_RULES",
    "SENSITIVE_PATH_PATTERNS",
    "is_sensitive_path",
    "PermissionStore",
    "InMemoryPermissionStore",
    "SQLitePermissionStore",
    "create_permission_store_from_env",
    "PermissionGate",
]
