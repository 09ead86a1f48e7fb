"""Composition, tool spec and execution result models."""

import secrets
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CompositionType(str, Enum):
    """Execution mode of a composition.

    SEQUENTIAL: each step's result feeds the next
    PARALLEL: independent branches fan out under one timeout
    CONDITIONAL: the first branch whose condition holds runs
    """

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    CONDITIONAL = "conditional"


class ExecutionStatus(str, Enum):
    """Overall status of a composition execution."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


class StepStatus(str, Enum):
    """Status of a single step or branch."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


class ToolSpec(BaseModel):
    """One tool invocation inside a composition."""

    model_config = ConfigDict(frozen=True)

    tool_ref: str
    params: dict[str, Any] = Field(default_factory=dict)
    output_mapping: dict[str, str] | None = Field(
        default=None,
        description="new-key -> dotted path into upstream data (sequential only)",
    )
    condition: Callable[[Any], bool] | None = Field(
        default=None,
        description="Predicate over the input (conditional only)",
        exclude=True,
    )


def generate_composition_id() -> str:
    return f"comp_{secrets.token_urlsafe(8)}"


def generate_execution_id() -> str:
    return f"exec_{secrets.token_urlsafe(8)}"


class Composition(BaseModel):
    """An immutable workflow of tool invocations plus an execution mode."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_composition_id)
    name: str
    description: str = ""
    type: CompositionType
    specs: tuple[ToolSpec, ...]
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("specs")
    @classmethod
    def _require_specs(cls, value: tuple[ToolSpec, ...]) -> tuple[ToolSpec, ...]:
        if not value:
            raise ValueError("Composition requires at least one tool spec")
        return value


class StepOutcome(BaseModel):
    """Outcome of one step (sequential/conditional) or branch (parallel)."""

    index: int
    tool_ref: str
    status: StepStatus
    output: Any = None
    error: str | None = None
    error_kind: str | None = None
    latency_ms: float | None = None


class ExecutionError(BaseModel):
    """A structured error attached to an ExecutionResult."""

    kind: str
    message: str
    tool_ref: str | None = None
    index: int | None = None
    reasons: list[str] = Field(default_factory=list)


class ExecutionResult(BaseModel):
    """Structured result of executing a composition."""

    composition_id: str
    execution_id: str
    status: ExecutionStatus
    results: list[StepOutcome] = Field(default_factory=list)
    errors: list[ExecutionError] = Field(default_factory=list)
    execution_time_ms: float
    final_output: Any = None


class RedundantTool(BaseModel):
    """Specs sharing the same tool and params."""

    tool_ref: str
    indices: list[int]


class CapabilityGap(BaseModel):
    """Adjacent sequential steps with no composable capability pair."""

    from_index: int
    to_index: int
    from_tool: str
    to_tool: str


class CompositionAnalysis(BaseModel):
    """Optimization hints for a composition."""

    parallelizable_steps: list[tuple[int, int]] = Field(default_factory=list)
    redundant_tools: list[RedundantTool] = Field(default_factory=list)
    capability_gaps: list[CapabilityGap] = Field(default_factory=list)
    estimated_latency_ms: float


def normalize_spec(spec: Any) -> ToolSpec:
    """Coerce the accepted spec shorthands into a ToolSpec.

    Accepts a ToolSpec, a bare tool ref, a (ref, params) tuple, or a
    mapping with a 'tool_ref' (or 'tool') key.
    """
    if isinstance(spec, ToolSpec):
        return spec
    if isinstance(spec, str):
        return ToolSpec(tool_ref=spec)
    if isinstance(spec, tuple) and len(spec) == 2:
        ref, params = spec
        return ToolSpec(tool_ref=ref, params=dict(params or {}))
    if isinstance(spec, Mapping):
        data = dict(spec)
        if "tool_ref" not in data and "tool" in data:
            data["tool_ref"] = data.pop("tool")
        return ToolSpec(**data)
    raise TypeError(f"Unsupported tool spec: {spec!r}")
