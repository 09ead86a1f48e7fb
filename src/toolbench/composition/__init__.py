"""Composition engine and its execution strategies."""

from toolbench.composition.engine import CompositionEngine
from toolbench.composition.events import EventBus
from toolbench.composition.validation import CompositionValidator

__all__ = [
    "CompositionEngine",
    "CompositionValidator",
    "EventBus",
]
