"""Conditional strategy: run the first branch whose condition holds."""

from __future__ import annotations

import logging
from typing import Any

from toolbench.composition.helpers import (
    StepInvoker,
    StrategyResult,
    as_params,
    step_error,
)
from toolbench.exceptions import ErrorKind
from toolbench.models.composition import (
    Composition,
    ExecutionError,
    ExecutionStatus,
    StepStatus,
    ToolSpec,
)

logger = logging.getLogger(__name__)


class ConditionalStrategy:
    async def execute(
        self,
        composition: Composition,
        value: Any,
        invoker: StepInvoker,
        timeout_ms: float | None = None,
    ) -> StrategyResult:
        for index, spec in enumerate(composition.specs):
            if not _matches(spec, value, index):
                continue

            logger.info(
                f"Conditional composition '{composition.name}' "
                f"selected branch {index + 1}: {spec.tool_ref}"
            )
            outcome = await invoker.invoke(
                spec, {**spec.params, **as_params(value)}, index
            )
            if outcome.status == StepStatus.SUCCESS:
                return StrategyResult(
                    status=ExecutionStatus.SUCCESS,
                    results=[outcome],
                    final_output=outcome.output,
                )
            return StrategyResult(
                status=ExecutionStatus.FAILURE,
                results=[outcome],
                errors=[step_error(outcome)],
            )

        logger.info(f"No branch of '{composition.name}' matched the input")
        return StrategyResult(
            status=ExecutionStatus.FAILURE,
            errors=[
                ExecutionError(
                    kind=ErrorKind.NO_MATCHING_CONDITION.value,
                    message="No condition matched the input",
                )
            ],
        )


def _matches(spec: ToolSpec, value: Any, index: int) -> bool:
    """Evaluate a branch condition. A raising predicate counts as false."""
    if spec.condition is None:
        return True
    try:
        return bool(spec.condition(value))
    except Exception as e:
        logger.warning(
            f"Condition for branch {index + 1} ({spec.tool_ref}) raised: {e}"
        )
        return False
