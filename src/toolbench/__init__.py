"""Toolbench - a tool capability registry and composition engine."""

from toolbench.catalog import CapabilityCatalog, default_catalog, infer_from_schema
from toolbench.composition import CompositionEngine, EventBus
from toolbench.config import Settings, get_settings
from toolbench.exceptions import (
    ChainNotFoundError,
    CompositionValidationError,
    ErrorKind,
    IncompatibleToolsError,
    InvalidConditionalStructureError,
    InvalidMappingError,
    SignalEmissionError,
    ToolbenchError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolRegistrationError,
)
from toolbench.models import (
    Composition,
    CompositionType,
    ExecutionOutcome,
    ExecutionResult,
    ExecutionStatus,
    ToolDescriptor,
    ToolMetrics,
    ToolSpec,
)
from toolbench.registry import MetricsAggregator, ToolRegistry
from toolbench.tools import Tool, ToolContext

__version__ = "0.1.0"

__all__ = [
    "CapabilityCatalog",
    "ChainNotFoundError",
    "Composition",
    "CompositionEngine",
    "CompositionType",
    "CompositionValidationError",
    "default_catalog",
    "ErrorKind",
    "EventBus",
    "ExecutionOutcome",
    "ExecutionResult",
    "ExecutionStatus",
    "get_settings",
    "IncompatibleToolsError",
    "infer_from_schema",
    "InvalidConditionalStructureError",
    "InvalidMappingError",
    "MetricsAggregator",
    "Settings",
    "SignalEmissionError",
    "Tool",
    "ToolbenchError",
    "ToolContext",
    "ToolDescriptor",
    "ToolExecutionError",
    "ToolMetrics",
    "ToolNotFoundError",
    "ToolRegistrationError",
    "ToolRegistry",
    "ToolSpec",
]
