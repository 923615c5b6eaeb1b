"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Interpolation mini-language for step `input` and `condition` strings.

Grammar:
    $prev.field   field of the most recent completed step (`variables["$prev"]`)
    ${name}       variable lookup
    $name         variable lookup (word characters only)

Unknown names render as the empty string. Conditions support `left == right`,
`left != right` and plain truthiness; nothing richer.
"""

from __future__ import annotations

import json
import re
from typing import Any, Mapping

PREV_KEY = "$prev"

_TOKEN = re.compile(r"\$prev\.(\w+)|\$\{([^}]+)\}|\$(\w+)")
_FALSY = ("", "false", "0")


def stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)


def interpolate(template: str, variables: Mapping[str, Any]) -> str:
    def _replace(match: re.Match[str]) -> str:
        prev_field, braced, simple = match.groups()
        if prev_field is not None:
            prev = variables.get(PREV_KEY)
            if isinstance(prev, Mapping):
                return stringify(prev.get(prev_field))
            return ""
        name = (braced if braced is not None else simple).strip()
        return stringify(variables.get(name))

    return _TOKEN.sub(_replace, template)


def evaluate_condition(condition: str, variables: Mapping[str, Any]) -> bool:
    text = interpolate(condition, variables)
    if "==" in text:
        left, _, right = text.partition("==")
        return left.strip() == right.strip()
    if "!=" in text:
        left, _, right = text.partition("!=")
        return left.strip() != right.strip()
    return text.strip() not in _FALSY


def _interpolate_leaves(value: Any, variables: Mapping[str, Any]) -> Any:
    if isinstance(value, str):
        return interpolate(value, variables)
    if isinstance(value, dict):
        return {k: _interpolate_leaves(v, variables) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_leaves(v, variables) for v in value]
    return value


def resolve_input(step_input: str | Mapping[str, Any] | None, variables: Mapping[str, Any]) -> str:
    """Render a step input as the task string handed to the agent."""
    if step_input is None:
        return ""
    if isinstance(step_input, str):
        return interpolate(step_input, variables)
    return json.dumps(_interpolate_leaves(dict(step_input), variables), default=str)
