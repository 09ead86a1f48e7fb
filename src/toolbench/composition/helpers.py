"""Shared helpers for composition strategies."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from toolbench.exceptions import ErrorKind, ToolbenchError, ToolNotFoundError
from toolbench.models.composition import (
    Composition,
    ExecutionError,
    ExecutionStatus,
    StepOutcome,
    StepStatus,
    ToolSpec,
)
from toolbench.models.metrics import ExecutionOutcome
from toolbench.registry.registry import ToolRegistry
from toolbench.tools.base import ToolContext

logger = logging.getLogger(__name__)


@dataclass
class StrategyResult:
    """What a strategy produced, before the engine stamps timing on it."""

    status: ExecutionStatus
    results: list[StepOutcome] = field(default_factory=list)
    errors: list[ExecutionError] = field(default_factory=list)
    final_output: Any = None


class StepInvoker:
    """Invokes one tool for one step and records the outcome in metrics.

    Resolution happens at invocation time, so a tool unregistered
    mid-execution fails the steps that have not started yet with
    tool_not_found while already-dispatched calls run on.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        composition: Composition,
        on_step: Callable[[StepOutcome], None] | None = None,
    ) -> None:
        self.registry = registry
        self.composition = composition
        self.on_step = on_step

    async def invoke(
        self,
        spec: ToolSpec,
        params: dict[str, Any],
        index: int,
    ) -> StepOutcome:
        """Run spec's tool with params. Never raises except on cancellation."""
        try:
            tool = self.registry.get_tool(spec.tool_ref)
        except ToolNotFoundError as e:
            outcome = StepOutcome(
                index=index,
                tool_ref=spec.tool_ref,
                status=StepStatus.FAILURE,
                error=str(e),
                error_kind=ErrorKind.TOOL_NOT_FOUND.value,
            )
            self._notify(outcome)
            return outcome

        context = ToolContext(
            composition_id=self.composition.id,
            composition_type=self.composition.type,
            step_index=index,
            metadata=self.composition.metadata,
        )

        started = time.perf_counter()
        try:
            output = await call_tool(tool, params, context)
        except Exception as e:
            kind = classify_error(e)
            self.registry.record_metric(spec.tool_ref, ExecutionOutcome.error(kind))
            logger.warning(
                f"Step {index + 1} ({spec.tool_ref}) failed: {kind.value}: {e}"
            )
            outcome = StepOutcome(
                index=index,
                tool_ref=spec.tool_ref,
                status=StepStatus.TIMEOUT if kind == ErrorKind.TIMEOUT else StepStatus.FAILURE,
                error=str(e) or type(e).__name__,
                error_kind=kind.value,
                latency_ms=_elapsed_ms(started),
            )
            self._notify(outcome)
            return outcome

        latency = _elapsed_ms(started)
        self.registry.record_metric(spec.tool_ref, ExecutionOutcome.ok(latency))
        outcome = StepOutcome(
            index=index,
            tool_ref=spec.tool_ref,
            status=StepStatus.SUCCESS,
            output=output,
            latency_ms=latency,
        )
        self._notify(outcome)
        return outcome

    def timed_out(self, spec: ToolSpec, index: int, timeout_ms: float) -> StepOutcome:
        """Build and record the outcome of a branch abandoned at the deadline."""
        self.registry.record_metric(spec.tool_ref, ExecutionOutcome.error(ErrorKind.TIMEOUT))
        outcome = StepOutcome(
            index=index,
            tool_ref=spec.tool_ref,
            status=StepStatus.TIMEOUT,
            error=f"Timed out after {timeout_ms:g}ms",
            error_kind=ErrorKind.TIMEOUT.value,
            latency_ms=timeout_ms,
        )
        self._notify(outcome)
        return outcome

    def _notify(self, outcome: StepOutcome) -> None:
        if self.on_step is not None:
            self.on_step(outcome)


async def call_tool(tool: object, params: dict[str, Any], context: ToolContext) -> Any:
    """Call tool.execute, awaiting coroutines and offloading sync calls."""
    execute = getattr(tool, "execute")
    if inspect.iscoroutinefunction(execute):
        return await execute(params, context)
    result = await asyncio.to_thread(execute, params, context)
    if inspect.isawaitable(result):
        result = await result
    return result


def classify_error(error: BaseException) -> ErrorKind:
    """Map an exception raised by a tool to an ErrorKind."""
    if isinstance(error, TimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(error, ToolbenchError) and error.kind is not None:
        return error.kind
    return ErrorKind.EXECUTION_FAILED


def step_error(outcome: StepOutcome) -> ExecutionError:
    """Turn a failed StepOutcome into an ExecutionError."""
    return ExecutionError(
        kind=outcome.error_kind or ErrorKind.EXECUTION_FAILED.value,
        message=outcome.error or "",
        tool_ref=outcome.tool_ref,
        index=outcome.index,
    )


def as_params(value: Any) -> dict[str, Any]:
    """Coerce a running value into a params mapping."""
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return dict(value)
    return {"input": value}


def apply_output_mapping(data: Any, mapping: Mapping[str, str]) -> dict[str, Any]:
    """Project new keys out of upstream data using dotted paths.

    Missing path segments resolve to None.
    """
    return {new_key: resolve_path(data, path) for new_key, path in mapping.items()}


def resolve_path(data: Any, path: str) -> Any:
    """Read a dotted path; integer segments index into sequences."""
    current = data
    for segment in str(path).split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(segment)
        elif isinstance(current, Sequence) and not isinstance(current, str):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError):
                return None
        else:
            current = getattr(current, segment, None)
    return current


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0
