"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.
"""

from __future__ import annotations

import json
from typing import Sequence

from ..llms import agent_action_prompt
from .types import AgentDefinition, AgentInput


def build_system_prompt(agent: AgentDefinition, available_tools: Sequence[str]) -> str:
    tools = ", ".join(available_tools) if available_tools else "(none)"
    parts = [agent.system_prompt.strip(), "", f"Available tools: {tools}"]
    if agent.can_delegate:
        parts.append(f"You may delegate to: {', '.join(agent.can_delegate)}")
    parts.extend(["", agent_action_prompt()])
    return "\n".join(parts)


def build_task_prompt(agent_input: AgentInput) -> str:
    prompt = f"Task: {agent_input.task}"
    if agent_input.params:
        prompt += f"\n\nParameters: {json.dumps(agent_input.params, indent=2, default=str)}"
    return prompt
