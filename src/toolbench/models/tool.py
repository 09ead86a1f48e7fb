"""Tool descriptor and registry query models."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ToolCategory(str, Enum):
    """Broad grouping used for filtering and recommendation."""

    ANALYSIS = "analysis"
    GENERATION = "generation"
    TRANSFORMATION = "transformation"
    FILESYSTEM = "filesystem"
    SEARCH = "search"
    WORKFLOW = "workflow"
    UTILITY = "utility"
    GENERAL = "general"


class ToolSource(str, Enum):
    """Where a tool came from."""

    INTERNAL = "internal"
    EXTERNAL = "external"


class PerformanceHints(BaseModel):
    """Default runtime expectations declared by a tool."""

    model_config = ConfigDict(frozen=True)

    expected_latency_ms: float | None = None
    timeout_ms: int = 30_000
    max_concurrency: int | None = None


class ToolDescriptor(BaseModel):
    """Immutable metadata describing a registered tool.

    Re-registering a ref replaces the descriptor wholesale.
    """

    model_config = ConfigDict(frozen=True)

    ref: str
    name: str
    description: str = ""
    category: ToolCategory = ToolCategory.GENERAL
    tags: frozenset[str] = Field(default_factory=frozenset)
    capabilities: frozenset[str] = Field(default_factory=frozenset)
    version: str = "1.0.0"
    input_schema: dict[str, Any] = Field(default_factory=dict)
    examples: list[dict[str, Any]] = Field(default_factory=list)
    performance_hints: PerformanceHints = Field(default_factory=PerformanceHints)
    dependencies: frozenset[str] = Field(default_factory=frozenset)
    source: ToolSource = ToolSource.INTERNAL
    registered_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class RecommendationContext(BaseModel):
    """What the caller is trying to do, for tool recommendation."""

    tags: set[str] = Field(default_factory=set)
    required_capabilities: set[str] = Field(default_factory=set)
    category: ToolCategory | None = None
