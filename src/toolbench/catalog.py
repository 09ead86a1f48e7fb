"""Capability catalog: the static table of capabilities tools can advertise."""

import logging
import re
from collections.abc import Iterable, Mapping
from functools import lru_cache
from typing import Any

from toolbench.exceptions import ChainNotFoundError
from toolbench.models.capability import CapabilityDefinition

logger = logging.getLogger(__name__)

# Built-in capabilities and the value kinds they move between
DEFAULT_CAPABILITIES: dict[str, dict[str, Any]] = {
    "text_processing": {
        "description": "Transforms or interprets natural-language text",
        "input_kinds": ["text"],
        "output_kinds": ["text"],
        "composable_with": [
            "text_processing",
            "code_generation",
            "documentation",
            "search",
            "data_transformation",
        ],
    },
    "code_analysis": {
        "description": "Inspects source code and reports on its structure",
        "input_kinds": ["code", "file"],
        "output_kinds": ["report", "ast"],
        "composable_with": [
            "code_generation",
            "documentation",
            "text_processing",
            "testing",
        ],
    },
    "code_generation": {
        "description": "Produces source code from a description or report",
        "input_kinds": ["text", "report"],
        "output_kinds": ["code"],
        "composable_with": ["code_analysis", "testing", "file_operations"],
    },
    "file_operations": {
        "description": "Reads, writes and moves files",
        "input_kinds": ["path", "file"],
        "output_kinds": ["file", "text", "code"],
        "composable_with": [
            "code_analysis",
            "text_processing",
            "data_transformation",
        ],
    },
    "search": {
        "description": "Looks up information matching a query",
        "input_kinds": ["text"],
        "output_kinds": ["text", "json"],
        "composable_with": ["text_processing", "data_transformation"],
    },
    "data_transformation": {
        "description": "Reshapes structured data",
        "input_kinds": ["json", "text"],
        "output_kinds": ["json", "text"],
        "composable_with": ["data_transformation", "text_processing"],
    },
    "documentation": {
        "description": "Writes human-readable documentation",
        "input_kinds": ["code", "report"],
        "output_kinds": ["text"],
        "composable_with": ["text_processing"],
    },
    "testing": {
        "description": "Generates or runs tests against code",
        "input_kinds": ["code"],
        "output_kinds": ["report"],
        "composable_with": ["code_analysis", "documentation"],
        "requirements": ["code_analysis"],
    },
    "async_execution": {
        "description": "Runs work in the background and reports later",
        "composable_with": ["workflow_execution"],
    },
    "streaming": {
        "description": "Emits partial results incrementally",
        "input_kinds": ["stream", "text"],
        "output_kinds": ["stream"],
        "composable_with": ["streaming", "text_processing"],
    },
    "workflow_execution": {
        "description": "Drives a multi-step workflow by identifier",
        "input_kinds": ["workflow", "json"],
        "output_kinds": ["json"],
        "composable_with": ["async_execution", "data_transformation"],
    },
}


class CapabilityCatalog:
    """Read-only table of capability definitions."""

    def __init__(self, definitions: Iterable[CapabilityDefinition]) -> None:
        self._definitions: dict[str, CapabilityDefinition] = {
            d.name: d for d in definitions
        }

    @classmethod
    def from_mapping(cls, table: Mapping[str, Mapping[str, Any]]) -> "CapabilityCatalog":
        """Build a catalog from a name -> attributes table."""
        return cls(
            CapabilityDefinition(name=name, **attributes)
            for name, attributes in table.items()
        )

    def get(self, name: str) -> CapabilityDefinition | None:
        return self._definitions.get(name)

    def list_all(self) -> list[str]:
        return sorted(self._definitions)

    def composable(self, a: str, b: str) -> bool:
        """Whether a and b can be chained.

        Either side declaring the other is enough, so both directions
        are checked explicitly.
        """
        first = self._definitions.get(a)
        second = self._definitions.get(b)
        if first is not None and b in first.composable_with:
            return True
        if second is not None and a in second.composable_with:
            return True
        return False

    def find_by_kinds(
        self,
        input_kinds: Iterable[str] | None = None,
        output_kinds: Iterable[str] | None = None,
    ) -> list[str]:
        """Capabilities accepting any of input_kinds and producing any of output_kinds.

        An empty or missing filter matches everything.
        """
        wanted_in = set(input_kinds or ())
        wanted_out = set(output_kinds or ())
        return [
            name
            for name, definition in self._definitions.items()
            if (not wanted_in or wanted_in & definition.input_kinds)
            and (not wanted_out or wanted_out & definition.output_kinds)
        ]

    def build_chain(self, from_kind: str, to_kind: str) -> list[str]:
        """Find capabilities turning from_kind into to_kind.

        Tries a single capability first, then a two-hop chain through
        an intermediate kind. Returns the first chain found; this is a
        heuristic, not a shortest-path search.

        Raises:
            ChainNotFoundError: If no one- or two-hop chain exists
        """
        definitions = list(self._definitions.values())

        for definition in definitions:
            if from_kind in definition.input_kinds and to_kind in definition.output_kinds:
                return [definition.name]

        for first in definitions:
            if from_kind not in first.input_kinds:
                continue
            for intermediate in sorted(first.output_kinds):
                for second in definitions:
                    if (
                        intermediate in second.input_kinds
                        and to_kind in second.output_kinds
                        and self.composable(first.name, second.name)
                    ):
                        return [first.name, second.name]

        raise ChainNotFoundError(from_kind, to_kind)

    def __contains__(self, name: str) -> bool:
        return name in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)


@lru_cache
def default_catalog() -> CapabilityCatalog:
    """Get the process-wide catalog built from DEFAULT_CAPABILITIES."""
    return CapabilityCatalog.from_mapping(DEFAULT_CAPABILITIES)


# ---------------------------------------------------------------------------
# Schema-based inference
# ---------------------------------------------------------------------------

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")
_FILE_TOKENS = frozenset(
    {"file", "files", "filename", "filenames", "filepath", "path", "paths", "dirpath"}
)
_WORKFLOW_TOKENS = frozenset({"workflow", "workflows"})


def infer_from_schema(schema: Any) -> frozenset[str]:
    """Guess capabilities from parameter names in a tool's input schema.

    Best-effort and additive: the result is unioned with the tool's
    declared capabilities, never used to remove any. Accepts a JSON
    schema ({"properties": {...}}), a {"parameters": [...]} mapping or
    a bare list of parameter dicts/names.
    """
    inferred: set[str] = set()
    for name in _parameter_names(schema):
        tokens = set(_TOKEN_SPLIT.split(name))
        if "async" in tokens:
            inferred.add("async_execution")
        if tokens & {"stream", "streaming"}:
            inferred.add("streaming")
        if tokens & _FILE_TOKENS:
            inferred.add("file_operations")
        if tokens & _WORKFLOW_TOKENS:
            inferred.add("workflow_execution")

    if inferred:
        logger.debug(f"Inferred capabilities from schema: {sorted(inferred)}")
    return frozenset(inferred)


def _parameter_names(schema: Any) -> list[str]:
    if not schema:
        return []
    if isinstance(schema, Mapping):
        if isinstance(schema.get("properties"), Mapping):
            return [str(k).lower() for k in schema["properties"]]
        if "parameters" in schema:
            return _parameter_names(schema["parameters"])
        return []
    if isinstance(schema, (list, tuple)):
        names = []
        for param in schema:
            if isinstance(param, Mapping) and "name" in param:
                names.append(str(param["name"]).lower())
            elif isinstance(param, str):
                names.append(param.lower())
        return names
    return []
