"""Composition engine: builds, validates, executes and analyzes workflows."""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Iterable
from typing import Any

from toolbench.composition.analysis import analyze, to_diagram
from toolbench.composition.conditional import ConditionalStrategy
from toolbench.composition.events import (
    EVENT_COMPLETE,
    EVENT_ERROR,
    EVENT_STARTED,
    EVENT_STEP,
    EventBus,
)
from toolbench.composition.helpers import StepInvoker
from toolbench.composition.parallel import ParallelStrategy
from toolbench.composition.sequential import SequentialStrategy
from toolbench.composition.validation import CompositionValidator
from toolbench.config import Settings, get_settings
from toolbench.exceptions import SignalEmissionError
from toolbench.models.composition import (
    Composition,
    CompositionAnalysis,
    CompositionType,
    ExecutionResult,
    ExecutionStatus,
    StepOutcome,
    generate_execution_id,
    normalize_spec,
)
from toolbench.registry.registry import ToolRegistry

logger = logging.getLogger(__name__)

_VALIDATED_CACHE_SIZE = 1024


class CompositionEngine:
    """Builds and runs compositions of registered tools.

    Compositions are immutable and may be executed any number of times.
    The engine remembers which composition ids passed validation against
    the current registry contents. Any registration change invalidates
    that memory, so a composition is checked again before its first
    tool runs whenever the tools it names may have changed.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        event_bus: EventBus | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.registry = registry
        self.event_bus = event_bus
        self.settings = settings or get_settings()
        self.validator = CompositionValidator(registry)
        self._validated: OrderedDict[str, int] = OrderedDict()
        self._strategies = {
            CompositionType.SEQUENTIAL: SequentialStrategy(),
            CompositionType.PARALLEL: ParallelStrategy(self.settings.parallel_timeout_ms),
            CompositionType.CONDITIONAL: ConditionalStrategy(),
        }

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    def sequential(
        self,
        name: str,
        specs: Iterable[Any],
        *,
        description: str = "",
        metadata: dict[str, Any] | None = None,
        validate: bool = False,
    ) -> Composition:
        """Build a pipeline where each step's output feeds the next."""
        return self._build(
            CompositionType.SEQUENTIAL, name, specs, description, metadata, validate
        )

    def parallel(
        self,
        name: str,
        specs: Iterable[Any],
        *,
        description: str = "",
        metadata: dict[str, Any] | None = None,
        validate: bool = False,
    ) -> Composition:
        """Build independent branches that run concurrently on the same input."""
        return self._build(
            CompositionType.PARALLEL, name, specs, description, metadata, validate
        )

    def conditional(
        self,
        name: str,
        specs: Iterable[Any],
        *,
        description: str = "",
        metadata: dict[str, Any] | None = None,
        validate: bool = False,
    ) -> Composition:
        """Build branches of which the first matching one runs.

        Every branch except the last must carry a condition.
        """
        return self._build(
            CompositionType.CONDITIONAL, name, specs, description, metadata, validate
        )

    def _build(
        self,
        composition_type: CompositionType,
        name: str,
        specs: Iterable[Any],
        description: str,
        metadata: dict[str, Any] | None,
        validate: bool,
    ) -> Composition:
        normalized = tuple(normalize_spec(spec) for spec in specs)
        if not normalized:
            raise ValueError("Composition requires at least one tool spec")

        composition = Composition(
            name=name,
            description=description,
            type=composition_type,
            specs=normalized,
            metadata=metadata or {},
        )
        logger.info(
            f"Built {composition_type.value} composition '{name}' "
            f"({composition.id}) with {len(normalized)} specs"
        )
        if validate:
            self.validate(composition)
        return composition

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, composition: Composition) -> None:
        """Validate a composition, raising a CompositionValidationError on failure."""
        version = self.registry.version
        self.validator.validate(composition)
        self._validated[composition.id] = version
        self._validated.move_to_end(composition.id)
        while len(self._validated) > _VALIDATED_CACHE_SIZE:
            self._validated.popitem(last=False)

    def is_validated(self, composition: Composition) -> bool:
        """True if the composition passed validation since the last registry change."""
        return self._validated.get(composition.id) == self.registry.version

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(
        self,
        composition: Composition,
        input: Any = None,
        *,
        timeout_ms: float | None = None,
        execution_id: str | None = None,
    ) -> ExecutionResult:
        """Execute a composition against an input.

        Args:
            composition: A composition built by this engine
            input: The initial value (usually a dict of params)
            timeout_ms: Overall deadline for parallel compositions;
                defaults to Settings.parallel_timeout_ms
            execution_id: Id for this run's event stream. Pass one to
                subscribe on the event bus before the run starts;
                otherwise a fresh one is generated.

        Returns:
            ExecutionResult with per-step outcomes and structured errors

        Raises:
            CompositionValidationError: If the composition has not been
                validated against the current registry and fails
                validation. No tool is invoked.
        """
        if not self.is_validated(composition):
            self.validate(composition)

        execution_id = execution_id or generate_execution_id()
        strategy = self._strategies[composition.type]
        self._emit(
            execution_id,
            composition,
            {
                "event": EVENT_STARTED,
                "name": composition.name,
                "type": composition.type.value,
                "steps": len(composition.specs),
            },
        )

        def on_step(outcome: StepOutcome) -> None:
            self._emit(
                execution_id,
                composition,
                {"event": EVENT_STEP, **outcome.model_dump(mode="json", exclude={"output"})},
            )

        invoker = StepInvoker(self.registry, composition, on_step=on_step)

        started = time.perf_counter()
        try:
            outcome = await strategy.execute(composition, input, invoker, timeout_ms)
        except Exception as e:
            self._emit(execution_id, composition, {"event": EVENT_ERROR, "error": str(e)})
            raise
        elapsed_ms = (time.perf_counter() - started) * 1000.0

        result = ExecutionResult(
            composition_id=composition.id,
            execution_id=execution_id,
            status=outcome.status,
            results=outcome.results,
            errors=outcome.errors,
            execution_time_ms=elapsed_ms,
            final_output=outcome.final_output,
        )

        logger.info(
            f"Composition '{composition.name}' ({execution_id}) finished: "
            f"status={result.status.value}, steps={len(result.results)}, "
            f"time={elapsed_ms:.1f}ms"
        )

        if result.status == ExecutionStatus.FAILURE:
            terminal = {
                "event": EVENT_ERROR,
                "status": result.status.value,
                "errors": [error.model_dump(mode="json") for error in result.errors],
            }
        else:
            terminal = {
                "event": EVENT_COMPLETE,
                "status": result.status.value,
                "execution_time_ms": elapsed_ms,
            }
        self._emit(execution_id, composition, terminal)
        if self.event_bus is not None:
            self.event_bus.cleanup_stale()
        return result

    def _emit(
        self, execution_id: str, composition: Composition, event: dict[str, Any]
    ) -> None:
        if self.event_bus is None:
            return
        try:
            self.event_bus.emit(execution_id, composition.id, event)
        except SignalEmissionError as e:
            logger.warning(f"Event emission failed for {execution_id}: {e}")

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze(self, composition: Composition) -> CompositionAnalysis:
        """Report parallelizable steps, redundant tools, capability gaps and latency."""
        return analyze(
            composition,
            self.registry,
            self.validator.compatible,
            self.settings.default_latency_estimate_ms,
        )

    def to_diagram(self, composition: Composition) -> str:
        return to_diagram(composition)
