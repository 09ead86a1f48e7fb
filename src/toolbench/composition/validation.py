"""Static validation of compositions against the registry and catalog."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from toolbench.catalog import CapabilityCatalog
from toolbench.exceptions import (
    IncompatibleToolsError,
    InvalidConditionalStructureError,
    InvalidMappingError,
)
from toolbench.models.composition import Composition, CompositionType
from toolbench.models.tool import ToolDescriptor
from toolbench.registry.registry import ToolRegistry

logger = logging.getLogger(__name__)


class CompositionValidator:
    """Checks a composition before any of its tools run.

    Three passes, in order, each raising the first problem it finds:
    every tool ref resolves, data flow is sound for the composition
    type, and adjacent sequential steps have composable capabilities.
    """

    def __init__(self, registry: ToolRegistry) -> None:
        self.registry = registry

    @property
    def catalog(self) -> CapabilityCatalog:
        return self.registry.catalog

    def validate(self, composition: Composition) -> None:
        """Validate a composition.

        Raises:
            ToolNotFoundError: A spec references an unregistered tool.
            InvalidMappingError: A sequential output mapping names keys
                no earlier step produced.
            InvalidConditionalStructureError: A conditional branch other
                than the last has no condition.
            IncompatibleToolsError: Two adjacent sequential tools share
                no composable capability pair.
        """
        descriptors = [self.registry.get(spec.tool_ref) for spec in composition.specs]

        if composition.type == CompositionType.SEQUENTIAL:
            self._check_sequential_data_flow(composition, descriptors)
            self._check_sequential_capabilities(descriptors)
        elif composition.type == CompositionType.CONDITIONAL:
            self._check_conditional_structure(composition)

        logger.debug(f"Composition {composition.id} ('{composition.name}') is valid")

    def _check_sequential_data_flow(
        self,
        composition: Composition,
        descriptors: list[ToolDescriptor],
    ) -> None:
        known: set[str] = set()
        for spec, descriptor in zip(composition.specs, descriptors):
            if spec.output_mapping:
                unknown = [key for key in spec.output_mapping if key not in known]
                if unknown:
                    raise InvalidMappingError(spec.tool_ref, unknown)
            known.add(spec.tool_ref)
            known.add(descriptor.name)

    def _check_conditional_structure(self, composition: Composition) -> None:
        missing = [
            index
            for index, spec in enumerate(composition.specs[:-1])
            if spec.condition is None
        ]
        if missing:
            raise InvalidConditionalStructureError(missing)

    def _check_sequential_capabilities(self, descriptors: list[ToolDescriptor]) -> None:
        for first, second in zip(descriptors, descriptors[1:]):
            if not self.compatible(first.capabilities, second.capabilities):
                raise IncompatibleToolsError(first.ref, second.ref)

    def compatible(self, first: Iterable[str], second: Iterable[str]) -> bool:
        """Whether any capability of first is composable with any of second."""
        second = list(second)
        return any(
            self.catalog.composable(a, b) for a in first for b in second
        )
