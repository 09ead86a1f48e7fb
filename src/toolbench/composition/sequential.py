"""Sequential strategy: a pipeline where each step feeds the next."""

from __future__ import annotations

import logging
from typing import Any

from toolbench.composition.helpers import (
    StepInvoker,
    StrategyResult,
    apply_output_mapping,
    as_params,
    step_error,
)
from toolbench.models.composition import (
    Composition,
    ExecutionStatus,
    StepOutcome,
    StepStatus,
)

logger = logging.getLogger(__name__)


class SequentialStrategy:
    """Folds the running value through every spec in order.

    A step with an output_mapping projects its extra params out of the
    running value; otherwise the running value itself is merged over the
    step's params. The first failing step stops the pipeline.
    """

    async def execute(
        self,
        composition: Composition,
        value: Any,
        invoker: StepInvoker,
        timeout_ms: float | None = None,
    ) -> StrategyResult:
        total = len(composition.specs)
        logger.info(
            f"Sequential composition '{composition.name}' starting "
            f"with {total} steps"
        )

        results: list[StepOutcome] = []
        running = value

        for index, spec in enumerate(composition.specs):
            if spec.output_mapping:
                extra = apply_output_mapping(running, spec.output_mapping)
            else:
                extra = as_params(running)
            params = {**spec.params, **extra}

            logger.info(f"Composition step {index + 1}/{total}: {spec.tool_ref}")
            outcome = await invoker.invoke(spec, params, index)
            results.append(outcome)

            if outcome.status != StepStatus.SUCCESS:
                succeeded = len(results) - 1
                logger.info(
                    f"Pipeline '{composition.name}' stopped at step {index + 1} "
                    f"after {succeeded} successful step(s)"
                )
                return StrategyResult(
                    status=ExecutionStatus.PARTIAL if succeeded else ExecutionStatus.FAILURE,
                    results=results,
                    errors=[step_error(outcome)],
                    final_output=running if succeeded else None,
                )

            running = outcome.output

        return StrategyResult(
            status=ExecutionStatus.SUCCESS,
            results=results,
            final_output=running,
        )
