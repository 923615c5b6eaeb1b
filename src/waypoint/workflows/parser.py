"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Workflow parser: validates and normalizes raw definitions before the runner
sees them. Pure and synchronous.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping, Protocol

from pydantic import ValidationError

from .errors import WorkflowValidationError
from .models import WorkflowDefinition

PARALLEL_GROUP_AGENT = "parallel"


class AgentLookup(Protocol):
    def has(self, name: str) -> bool:
        ...


def _ms_to_seconds(raw: dict[str, Any], seconds_key: str, *ms_keys: str) -> None:
    # loader durations are milliseconds
    for key in ms_keys:
        value = raw.pop(key, None)
        if value is not None:
            raw[seconds_key] = float(value) / 1000.0


class WorkflowParser:
    """
    Turns a raw workflow mapping (or JSON text) into a `WorkflowDefinition`.

    Checks that the workflow is named, has steps, and that every referenced
    agent exists in `agents`. Generated step ids are `step-N` for top-level
    steps and `step-N.M` for parallel members.
    """

    def __init__(self, agents: AgentLookup) -> None:
        self._agents = agents

    def parse(self, source: str | Mapping[str, Any]) -> WorkflowDefinition:
        if isinstance(source, str):
            try:
                raw = json.loads(source)
            except json.JSONDecodeError as e:
                raise WorkflowValidationError(f"Invalid workflow JSON: {e}") from e
        else:
            raw = source

        self._validate(raw)
        normalized = self._normalize(raw)
        try:
            return WorkflowDefinition.model_validate(normalized)
        except ValidationError as e:
            raise WorkflowValidationError(f"Invalid workflow definition: {e}") from e

    def parse_file(self, path: str | Path) -> WorkflowDefinition:
        return self.parse(Path(path).read_text(encoding="utf-8"))

    def _validate(self, raw: Any) -> None:
        if not isinstance(raw, Mapping):
            raise WorkflowValidationError("Workflow must be an object")

        name = raw.get("name")
        if not isinstance(name, str) or not name:
            raise WorkflowValidationError("Workflow must have a name")

        steps = raw.get("steps")
        if not isinstance(steps, list) or not steps:
            raise WorkflowValidationError("Workflow must have at least one step")

        for i, step in enumerate(steps, start=1):
            if not isinstance(step, Mapping):
                raise WorkflowValidationError(f"Step {i}: must be an object", step_index=i)

            members = step.get("parallel")
            if members:
                if not isinstance(members, list):
                    raise WorkflowValidationError(
                        f"Step {i}: parallel must be a list of steps", step_index=i
                    )
                for j, member in enumerate(members, start=1):
                    if not isinstance(member, Mapping):
                        raise WorkflowValidationError(
                            f"Step {i}.{j}: must be an object", step_index=i
                        )
                    if isinstance(member.get("parallel"), list) and member.get("parallel"):
                        raise WorkflowValidationError(
                            f"Step {i}.{j}: nested parallel groups are not supported",
                            step_index=i,
                        )
                    self._check_agent(member.get("agent"), f"Step {i}.{j}", i)
                continue

            self._check_agent(step.get("agent"), f"Step {i}", i)

    def _check_agent(self, agent: Any, label: str, index: int) -> None:
        if not isinstance(agent, str) or not agent:
            raise WorkflowValidationError(f"{label}: agent is required", step_index=index)
        if not self._agents.has(agent):
            raise WorkflowValidationError(f'{label}: unknown agent "{agent}"', step_index=index)

    def _normalize(self, raw: Mapping[str, Any]) -> dict[str, Any]:
        out = dict(raw)
        out["steps"] = [
            self._normalize_step(step, f"step-{i}") for i, step in enumerate(raw["steps"], start=1)
        ]
        settings = dict(raw.get("settings") or {})
        _ms_to_seconds(settings, "default_timeout_s", "defaultTimeout", "defaultTimeoutMs")
        out["settings"] = settings
        out["inputs"] = dict(raw.get("inputs") or {})
        out["outputs"] = list(raw.get("outputs") or [])
        out["description"] = raw.get("description") or ""
        return out

    def _normalize_step(self, step: Mapping[str, Any], default_id: str) -> dict[str, Any]:
        out = dict(step)
        out["id"] = out.get("id") or default_id
        _ms_to_seconds(out, "timeout_s", "timeout", "timeoutMs")
        for key in ("onError", "on_error"):
            if key in out and out[key] is None:
                del out[key]
        for key in ("maxRetries", "max_retries"):
            if key in out and out[key] is None:
                out[key] = 0

        members = out.get("parallel") or []
        if members:
            if not out.get("agent"):
                out["agent"] = PARALLEL_GROUP_AGENT
            out["parallel"] = [
                self._normalize_step(member, f"{out['id']}.{j}")
                for j, member in enumerate(members, start=1)
            ]
        else:
            out["parallel"] = []
        return out
