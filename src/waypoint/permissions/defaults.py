"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Built-in permission defaults and sensitive path patterns.
"""

from __future__ import annotations

import re

from .types import PermissionLevel

# Read-only tools are allowed for the session; anything that mutates the
# filesystem or runs a shell asks first.
DEFAULT_RULES: dict[str, PermissionLevel] = {
    "list_directory": "allow_session",
    "read_file": "allow_session",
    "glob": "allow_session",
    "search_file_content": "allow_session",
    "rg_search": "allow_session",
    "git_status": "allow_session",
    "git_diff": "allow_session",
    "git_log": "allow_session",
    "git_blame": "allow_session",
    "get_file_info": "allow_session",
    "get_project_info": "allow_session",
    "check_dependency": "allow_session",
    "write_file": "ask",
    "replace": "ask",
    "append_to_file": "ask",
    "create_directory": "ask",
    "delete_file": "ask",
    "move_file": "ask",
    "copy_file": "ask",
    "run_shell_command": "ask",
}

FALLBACK_LEVEL: PermissionLevel = "ask"

SENSITIVE_PATH_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^/etc/"),
    re.compile(r"^/usr/"),
    re.compile(r"^/var/"),
    re.compile(r"^~/\."),
    re.compile(r"\.env"),
    re.compile(r"\.ssh"),
    re.compile(r"\.aws"),
    re.compile(r"credentials", re.IGNORECASE),
    re.compile(r"secrets?", re.IGNORECASE),
    re.compile(r"password", re.IGNORECASE),
    re.compile(r"\.git/config"),
)


def is_sensitive_path(path: str) -> bool:
    return any(pattern.search(path) for pattern in SENSITIVE_PATH_PATTERNS)
