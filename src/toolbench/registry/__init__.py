"""Tool registry, its backing stores and background maintenance."""

from toolbench.registry.aggregator import MetricsAggregator
from toolbench.registry.registry import ToolRegistry
from toolbench.registry.store import InMemoryRegistryStore, RegistryEntry, RegistryStore

__all__ = [
    "InMemoryRegistryStore",
    "MetricsAggregator",
    "RegistryEntry",
    "RegistryStore",
    "ToolRegistry",
]
