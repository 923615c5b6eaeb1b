"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Workflow definition models. Field aliases accept the camelCase keys produced
by external workflow loaders.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

OnError = Literal["stop", "continue", "retry"]


class _DefinitionModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class WorkflowStep(_DefinitionModel):
    """One declared unit of work: an agent execution or a parallel group."""

    id: str = ""
    agent: str
    input: str | dict[str, Any] | None = None
    output: str | None = None
    condition: str | None = None
    on_error: OnError = Field(default="stop", alias="onError")
    max_retries: int = Field(default=0, ge=0, alias="maxRetries")
    requires_approval: bool = Field(default=False, alias="requiresApproval")
    approval_message: str | None = Field(default=None, alias="approvalMessage")
    parallel: list[WorkflowStep] = Field(default_factory=list)
    timeout_s: float | None = Field(default=None, gt=0)

    @property
    def is_parallel(self) -> bool:
        return bool(self.parallel)

    @property
    def retry_budget(self) -> int:
        """Retries after the first attempt; `retry` guarantees at least one."""
        if self.on_error == "retry":
            return max(1, self.max_retries)
        return self.max_retries


class WorkflowInputSpec(_DefinitionModel):
    type: str = "string"
    required: bool = False
    default: Any = None
    description: str = ""


class WorkflowSettings(_DefinitionModel):
    max_parallel: int = Field(default=3, ge=1, alias="maxParallel")
    default_timeout_s: float = Field(default=180.0, gt=0)
    auto_approve: bool = Field(default=False, alias="autoApprove")


class WorkflowDefinition(_DefinitionModel):
    name: str = Field(min_length=1)
    description: str = ""
    steps: list[WorkflowStep] = Field(min_length=1)
    inputs: dict[str, WorkflowInputSpec] = Field(default_factory=dict)
    outputs: list[str] = Field(default_factory=list)
    settings: WorkflowSettings = Field(default_factory=WorkflowSettings)


WorkflowStep.model_rebuild()
