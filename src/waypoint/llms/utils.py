"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Helpers for pulling JSON out of free-form model text.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

_FENCES = ("```", "~~~")
_LANGUAGE_TAGS = ("json", "javascript", "js")


def clamp_str(s: str, max_chars: int) -> str:
    if len(s) <= max_chars:
        return s
    return s[:max_chars] + "…"


def safe_json_loads(s: str) -> Optional[Dict[str, Any]]:
    try:
        obj = json.loads(s)
    except (TypeError, ValueError):
        return None
    return obj if isinstance(obj, dict) else None


def strip_code_fence(text: str) -> str:
    """
    If `text` starts with a fenced code block (``` or ~~~), return its body.
    Otherwise return the original text stripped.
    """
    t = (text or "").strip()
    lines = t.splitlines()
    if not lines:
        return t

    opener = lines[0].lstrip()
    fence = next((f for f in _FENCES if opener.startswith(f)), None)
    if fence is None:
        return t

    body: list[str] = []
    for line in lines[1:]:
        if line.lstrip().startswith(fence):
            break
        body.append(line)

    inner = "\n".join(body).strip()
    # bare language tag on the first line inside the fence
    first, _, rest = inner.partition("\n")
    if first.strip().lower() in _LANGUAGE_TAGS:
        inner = rest.strip()
    return inner


def extract_json_object(text: str) -> Optional[str]:
    """
    Best-effort extraction of the first balanced JSON object from a text blob.

    Braces inside double-quoted strings (with escapes) are ignored while
    matching. Returns the substring, or `None` when no complete object exists.
    """
    t = strip_code_fence(text)
    start = t.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(t)):
        ch = t[i]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return t[start : i + 1]

    return None
