"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

In-process agent registry.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

from .errors import AgentConfigurationError, AgentNotFoundError
from .types import AgentDefinition

logger = logging.getLogger(__name__)


class AgentRegistry:
    """Name -> `AgentDefinition` lookup used by the executor and the workflow parser."""

    def __init__(self, definitions: Iterable[AgentDefinition] | None = None) -> None:
        self._agents: dict[str, AgentDefinition] = {}
        for definition in definitions or ():
            self.register(definition)

    @classmethod
    def from_definitions(
        cls, definitions: Iterable[AgentDefinition | Mapping[str, Any]]
    ) -> "AgentRegistry":
        registry = cls()
        for item in definitions:
            if isinstance(item, AgentDefinition):
                registry.register(item)
            else:
                registry.register(AgentDefinition.from_dict(item))
        return registry

    def register(self, definition: AgentDefinition) -> None:
        if definition.name in self._agents:
            logger.debug("replacing agent definition '%s'", definition.name)
        self._agents[definition.name] = definition

    def get(self, name: str) -> AgentDefinition | None:
        return self._agents.get(name)

    def require(self, name: str) -> AgentDefinition:
        definition = self._agents.get(name)
        if definition is None:
            raise AgentNotFoundError(f"Agent not found: {name}")
        return definition

    def has(self, name: str) -> bool:
        return name in self._agents

    def names(self) -> list[str]:
        return list(self._agents.keys())

    def list(self) -> list[AgentDefinition]:
        return list(self._agents.values())

    def load_json(self, path: str | Path) -> int:
        """
        Load agent definitions from a JSON file holding one object or a list.

        Returns the number of agents registered.
        """
        file_path = Path(path)
        try:
            payload = json.loads(file_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise AgentConfigurationError(f"Invalid agent file {file_path}: {e}") from e

        items = payload if isinstance(payload, list) else [payload]
        for item in items:
            self.register(AgentDefinition.from_dict(item))
        return len(items)

    def __contains__(self, name: object) -> bool:
        return name in self._agents

    def __len__(self) -> int:
        return len(self._agents)
