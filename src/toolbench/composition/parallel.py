"""Parallel strategy: independent branches under one deadline."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from toolbench.composition.helpers import StepInvoker, StrategyResult, as_params
from toolbench.exceptions import ErrorKind
from toolbench.models.composition import (
    Composition,
    ExecutionError,
    ExecutionStatus,
    StepOutcome,
    StepStatus,
)

logger = logging.getLogger(__name__)


class ParallelStrategy:
    """Fans every spec out as its own task and waits up to a timeout.

    Branches still pending at the deadline are cancelled and reported
    as timeouts. Any failed branch fails the whole composition, but the
    outcome of every branch is kept.
    """

    def __init__(self, default_timeout_ms: float) -> None:
        self.default_timeout_ms = default_timeout_ms

    async def execute(
        self,
        composition: Composition,
        value: Any,
        invoker: StepInvoker,
        timeout_ms: float | None = None,
    ) -> StrategyResult:
        timeout_ms = self.default_timeout_ms if timeout_ms is None else timeout_ms
        total = len(composition.specs)
        logger.info(
            f"Parallel composition '{composition.name}' starting "
            f"with {total} branches (timeout {timeout_ms:g}ms)"
        )

        shared = as_params(value)
        tasks = [
            asyncio.create_task(invoker.invoke(spec, {**spec.params, **shared}, index))
            for index, spec in enumerate(composition.specs)
        ]

        _, pending = await asyncio.wait(tasks, timeout=timeout_ms / 1000)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        outcomes: list[StepOutcome] = []
        for index, (spec, task) in enumerate(zip(composition.specs, tasks)):
            # A tool that swallowed the cancellation has recorded its own outcome
            if task.cancelled():
                logger.warning(f"Branch {index + 1} ({spec.tool_ref}) timed out")
                outcomes.append(invoker.timed_out(spec, index, timeout_ms))
            else:
                outcomes.append(task.result())

        failed = [o for o in outcomes if o.status != StepStatus.SUCCESS]
        if not failed:
            return StrategyResult(
                status=ExecutionStatus.SUCCESS,
                results=outcomes,
                final_output=[o.output for o in outcomes],
            )

        logger.info(f"{len(failed)}/{total} parallel branches failed")
        error = ExecutionError(
            kind=ErrorKind.PARALLEL_EXECUTION_FAILED.value,
            message=f"{len(failed)} of {total} parallel branches failed",
            reasons=[f"{o.tool_ref}: {o.error_kind}: {o.error}" for o in failed],
        )
        return StrategyResult(
            status=ExecutionStatus.FAILURE,
            results=outcomes,
            errors=[error],
        )
