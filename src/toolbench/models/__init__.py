"""Pydantic models for Toolbench - the contracts."""

from toolbench.models.capability import CapabilityDefinition
from toolbench.models.composition import (
    CapabilityGap,
    Composition,
    CompositionAnalysis,
    CompositionType,
    ExecutionError,
    ExecutionResult,
    ExecutionStatus,
    RedundantTool,
    StepOutcome,
    StepStatus,
    ToolSpec,
    normalize_spec,
)
from toolbench.models.metrics import ExecutionOutcome, ToolMetrics
from toolbench.models.tool import (
    PerformanceHints,
    RecommendationContext,
    ToolCategory,
    ToolDescriptor,
    ToolSource,
)

__all__ = [
    "CapabilityDefinition",
    "CapabilityGap",
    "Composition",
    "CompositionAnalysis",
    "CompositionType",
    "ExecutionError",
    "ExecutionOutcome",
    "ExecutionResult",
    "ExecutionStatus",
    "normalize_spec",
    "PerformanceHints",
    "RecommendationContext",
    "RedundantTool",
    "StepOutcome",
    "StepStatus",
    "ToolCategory",
    "ToolDescriptor",
    "ToolMetrics",
    "ToolSource",
    "ToolSpec",
]
