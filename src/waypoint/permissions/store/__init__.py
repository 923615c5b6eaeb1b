"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.
"""

from .base import PermissionStore
from .in_memory import InMemoryPermissionStore
from .sqlite import SQLitePermissionStore

__all__ = ["PermissionStore", "InMemoryPermissionStore", "SQLitePermissionStore"]
