"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Workflow runner.

Steps run in declaration order. Each step is either skipped by its condition,
halted at an approval checkpoint, fanned out as a parallel group (chunks of
`max_parallel`, strict barrier between chunks) or executed as a single agent
run with per-step timeout and inline retries.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal, Mapping, Protocol

from ..agents import AgentExecution, AgentInput, ExecutionOptions
from ..telemetry import NullTelemetrySink, TelemetryEvent, TelemetrySink, now_ms
from .errors import StepTimeoutError, WorkflowInputError
from .interpolation import PREV_KEY, evaluate_condition, resolve_input
from .models import WorkflowDefinition, WorkflowSettings, WorkflowStep

logger = logging.getLogger(__name__)

StepStatus = Literal["completed", "failed", "skipped", "denied"]

StepStartCallback = Callable[[WorkflowStep, int], Any]
StepCompleteCallback = Callable[[WorkflowStep, int, Any], Any]
CheckpointCallback = Callable[[WorkflowStep, int, str], Awaitable[bool]]
ApprovalCallback = Callable[[str, dict[str, Any]], Awaitable[bool]]

_INPUT_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "number": (int, float),
    "integer": (int,),
    "boolean": (bool,),
    "array": (list, tuple),
    "object": (dict,),
}


class AgentRunner(Protocol):
    async def execute(
        self,
        agent_name: str,
        agent_input: AgentInput,
        options: ExecutionOptions | None = None,
    ) -> AgentExecution:
        ...


@dataclass(frozen=True, slots=True)
class ParallelMemberResult:
    step_id: str
    agent: str
    status: StepStatus
    output: Any = None
    error: str | None = None
    attempts: int = 0
    duration_ms: float = 0.0


@dataclass(frozen=True, slots=True)
class StepRecord:
    """Ledger entry for one top-level step; `index` is 0-based."""

    index: int
    step_id: str
    agent: str
    status: StepStatus
    duration_ms: float = 0.0
    output: Any = None
    error: str | None = None
    attempts: int = 0
    parallel_results: tuple[ParallelMemberResult, ...] = ()


@dataclass(frozen=True, slots=True)
class StepError:
    step: int
    error: str


@dataclass(frozen=True, slots=True)
class Checkpoint:
    step: int
    approved: bool
    timestamp_ms: int = field(default_factory=now_ms)


@dataclass(slots=True)
class WorkflowContext:
    """Mutable state of one run, owned by the runner."""

    inputs: dict[str, Any]
    outputs: dict[str, Any] = field(default_factory=dict)
    variables: dict[str, Any] = field(default_factory=dict)
    current_step: int = 0
    errors: list[StepError] = field(default_factory=list)
    checkpoints: list[Checkpoint] = field(default_factory=list)

    def bind_output(self, name: str, value: Any) -> None:
        self.outputs[name] = value
        self.variables[name] = value

    def set_prev(self, value: Any) -> None:
        self.variables[PREV_KEY] = {"output": value}


@dataclass(frozen=True, slots=True)
class WorkflowResult:
    workflow_name: str
    success: bool
    outputs: dict[str, Any]
    steps: list[StepRecord]
    duration_ms: float
    errors: list[StepError] = field(default_factory=list)
    checkpoints: list[Checkpoint] = field(default_factory=list)

    def step(self, index: int) -> StepRecord | None:
        for record in self.steps:
            if record.index == index:
                return record
        return None


@dataclass(frozen=True, slots=True)
class RunOptions:
    auto_approve: bool = False
    session_id: str | None = None
    max_parallel: int | None = None
    on_step_start: StepStartCallback | None = None
    on_step_complete: StepCompleteCallback | None = None
    on_checkpoint: CheckpointCallback | None = None
    on_approval: ApprovalCallback | None = None

    def __post_init__(self) -> None:
        if self.max_parallel is not None and self.max_parallel < 1:
            raise ValueError("max_parallel must be >= 1")


@dataclass(frozen=True, slots=True)
class _Outcome:
    ok: bool
    output: Any = None
    error: str | None = None
    attempts: int = 0


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000.0


def _chunks(steps: list[WorkflowStep], size: int) -> list[list[WorkflowStep]]:
    return [steps[i : i + size] for i in range(0, len(steps), size)]


class WorkflowRunner:
    """
    Executes validated workflow definitions through an agent executor.

    Args:
        executor: Anything exposing `execute(agent_name, AgentInput, ExecutionOptions)`,
            normally an `AgentExecutor`.
        telemetry: Sink receiving `workflow.step` / `workflow.run` events.
    """

    def __init__(self, executor: AgentRunner, *, telemetry: TelemetrySink | None = None) -> None:
        self._executor = executor
        self._telemetry = telemetry or NullTelemetrySink()

    async def run(
        self,
        workflow: WorkflowDefinition,
        inputs: Mapping[str, Any] | None = None,
        options: RunOptions | None = None,
    ) -> WorkflowResult:
        """
        Run `workflow` to completion or to its first stopping failure.

        Raises:
            WorkflowInputError: required inputs are missing or mistyped; no
                step runs in that case.
        """
        options = options or RunOptions()
        settings = workflow.settings
        started = time.monotonic()

        resolved_inputs = self._resolve_inputs(workflow, inputs or {})
        ctx = WorkflowContext(inputs=resolved_inputs, variables=dict(resolved_inputs))
        auto_approve = options.auto_approve or settings.auto_approve
        max_parallel = options.max_parallel or settings.max_parallel

        records: list[StepRecord] = []
        success = True

        for index, step in enumerate(workflow.steps):
            ctx.current_step = index

            if step.condition and not evaluate_condition(step.condition, ctx.variables):
                logger.debug("workflow %s: step %s skipped by condition", workflow.name, step.id)
                self._record(workflow, records, StepRecord(index, step.id, step.agent, "skipped"))
                continue

            if step.requires_approval and not auto_approve:
                approved = await self._checkpoint(step, index, options)
                ctx.checkpoints.append(Checkpoint(step=index, approved=approved))
                if not approved:
                    logger.info("workflow %s: checkpoint at step %s denied", workflow.name, step.id)
                    self._record(workflow, records, StepRecord(index, step.id, step.agent, "denied"))
                    success = False
                    break

            if options.on_step_start is not None:
                await _maybe_await(options.on_step_start(step, index))
            step_started = time.monotonic()

            if step.is_parallel:
                record, output = await self._run_group(step, index, ctx, options, settings, max_parallel)
            else:
                outcome = await self._run_attempts(step, ctx, options, settings)
                output = outcome.output
                record = StepRecord(
                    index=index,
                    step_id=step.id,
                    agent=step.agent,
                    status="completed" if outcome.ok else "failed",
                    duration_ms=_elapsed_ms(step_started),
                    output=outcome.output if outcome.ok else None,
                    error=outcome.error,
                    attempts=outcome.attempts,
                )
                if outcome.ok and step.output:
                    ctx.bind_output(step.output, outcome.output)

            self._record(workflow, records, record)

            if record.status == "completed":
                ctx.set_prev(output)
                if options.on_step_complete is not None:
                    await _maybe_await(options.on_step_complete(step, index, output))
                continue

            ctx.errors.append(StepError(step=index, error=record.error or "Step failed"))
            logger.warning(
                "workflow %s: step %s failed (%s): %s",
                workflow.name,
                step.id,
                step.on_error,
                record.error,
            )
            if step.on_error == "stop":
                success = False
                break

        result = WorkflowResult(
            workflow_name=workflow.name,
            success=success,
            outputs=dict(ctx.outputs),
            steps=records,
            duration_ms=_elapsed_ms(started),
            errors=list(ctx.errors),
            checkpoints=list(ctx.checkpoints),
        )
        self._telemetry.record_event(
            TelemetryEvent(
                name="workflow.run",
                timestamp_ms=now_ms(),
                attributes={
                    "workflow": workflow.name,
                    "success": success,
                    "steps": len(records),
                    "duration_ms": result.duration_ms,
                },
            )
        )
        return result

    def _resolve_inputs(
        self, workflow: WorkflowDefinition, inputs: Mapping[str, Any]
    ) -> dict[str, Any]:
        resolved = dict(inputs)
        missing: list[str] = []
        for name, spec in workflow.inputs.items():
            if resolved.get(name) is None:
                if spec.default is not None:
                    resolved[name] = spec.default
                elif spec.required:
                    missing.append(name)
                continue

            expected = _INPUT_TYPES.get(spec.type)
            value = resolved[name]
            if expected is None:
                continue
            if isinstance(value, bool) and bool not in expected:
                raise WorkflowInputError(f"Input '{name}' must be of type {spec.type}")
            if not isinstance(value, expected):
                raise WorkflowInputError(f"Input '{name}' must be of type {spec.type}")

        if missing:
            raise WorkflowInputError(f"Missing required workflow input(s): {', '.join(missing)}")
        return resolved

    async def _checkpoint(self, step: WorkflowStep, index: int, options: RunOptions) -> bool:
        if options.on_checkpoint is None:
            logger.info("no checkpoint handler attached; denying step %s", step.id)
            return False
        message = step.approval_message or f"Approve step {index + 1}: {step.agent}?"
        return bool(await options.on_checkpoint(step, index, message))

    async def _run_attempts(
        self,
        step: WorkflowStep,
        ctx: WorkflowContext,
        options: RunOptions,
        settings: WorkflowSettings,
    ) -> _Outcome:
        max_attempts = step.retry_budget + 1
        timeout_s = step.timeout_s or settings.default_timeout_s
        error = "Step failed"

        for attempt in range(1, max_attempts + 1):
            agent_input = AgentInput(
                task=resolve_input(step.input, ctx.variables),
                params=dict(ctx.variables),
            )
            exec_options = ExecutionOptions(
                auto_approve=options.auto_approve or settings.auto_approve,
                session_id=options.session_id,
                on_approval=options.on_approval,
            )
            try:
                execution = await asyncio.wait_for(
                    self._executor.execute(step.agent, agent_input, exec_options),
                    timeout=timeout_s,
                )
            except asyncio.TimeoutError:
                error = str(StepTimeoutError(f"Step timeout after {timeout_s:g}s"))
            except Exception as e:
                error = str(e) or type(e).__name__
            else:
                if execution.status == "completed":
                    output = execution.output.data if execution.output is not None else None
                    return _Outcome(ok=True, output=output, attempts=attempt)
                error = next((s.error for s in execution.steps if s.error), None) or "Step failed"

            if attempt < max_attempts:
                logger.warning(
                    "step %s attempt %d/%d failed, retrying: %s",
                    step.id,
                    attempt,
                    max_attempts,
                    error,
                )

        return _Outcome(ok=False, error=error, attempts=max_attempts)

    async def _run_group(
        self,
        step: WorkflowStep,
        index: int,
        ctx: WorkflowContext,
        options: RunOptions,
        settings: WorkflowSettings,
        max_parallel: int,
    ) -> tuple[StepRecord, Any]:
        started = time.monotonic()
        members: list[ParallelMemberResult] = []

        async def _member(member: WorkflowStep) -> ParallelMemberResult:
            member_started = time.monotonic()
            outcome = await self._run_attempts(member, ctx, options, settings)
            return ParallelMemberResult(
                step_id=member.id,
                agent=member.agent,
                status="completed" if outcome.ok else "failed",
                output=outcome.output,
                error=outcome.error,
                attempts=outcome.attempts,
                duration_ms=_elapsed_ms(member_started),
            )

        for chunk in _chunks(step.parallel, max_parallel):
            chunk_results = await asyncio.gather(*(_member(m) for m in chunk))
            members.extend(chunk_results)

        # Bind outputs only after every chunk has joined.
        for member, result in zip(step.parallel, members):
            if result.status != "completed":
                continue
            if member.output:
                ctx.bind_output(member.output, result.output)
            ctx.variables[f"parallel_{result.agent}"] = result.output

        failed = [m for m in members if m.status != "completed"]
        outputs = [m.output for m in members]
        record = StepRecord(
            index=index,
            step_id=step.id,
            agent=step.agent,
            status="failed" if failed else "completed",
            duration_ms=_elapsed_ms(started),
            output=outputs if not failed else None,
            error=f"{len(failed)} of {len(members)} parallel step(s) failed" if failed else None,
            attempts=1,
            parallel_results=tuple(members),
        )
        return record, outputs

    def _record(
        self, workflow: WorkflowDefinition, records: list[StepRecord], record: StepRecord
    ) -> None:
        records.append(record)
        self._telemetry.record_event(
            TelemetryEvent(
                name="workflow.step",
                timestamp_ms=now_ms(),
                attributes={
                    "workflow": workflow.name,
                    "step": record.step_id,
                    "agent": record.agent,
                    "status": record.status,
                    "duration_ms": record.duration_ms,
                },
            )
        )
