"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module provides a factory for creating permission stores based on environment variables.
"""

from __future__ import annotations

import os

from .store.base import PermissionStore
from .store.in_memory import InMemoryPermissionStore
from .store.sqlite import SQLitePermissionStore


def create_permission_store_from_env() -> PermissionStore:
    """Create a permission store based on `WAYPOINT_PERMISSION_BACKEND`."""
    backend = os.getenv("WAYPOINT_PERMISSION_BACKEND", "sqlite").strip().lower()

    if backend in ("mem", "memory", "inmemory", "in_memory"):
        return InMemoryPermissionStore()

    if backend in ("sqlite", "sqlite3"):
        path = os.getenv("WAYPOINT_PERMISSION_DB", "waypoint_permissions.sqlite3")
        return SQLitePermissionStore(path=path)

    raise ValueError(f"Unknown WAYPOINT_PERMISSION_BACKEND: {backend}")
