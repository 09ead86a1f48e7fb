"""Backing stores for the tool registry.

A store owns the three tables the registry needs (descriptors, the
capability index and per-tool metrics) and keeps them consistent with
each other. Every mutation happens inside one critical section, so a
reader never sees an index entry for a removed descriptor.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from toolbench.models.metrics import ToolMetrics
from toolbench.models.tool import ToolDescriptor


@dataclass(frozen=True)
class RegistryEntry:
    """A registered tool and its descriptor."""

    descriptor: ToolDescriptor
    tool: object

    @property
    def ref(self) -> str:
        return self.descriptor.ref


@runtime_checkable
class RegistryStore(Protocol):
    """Storage interface behind ToolRegistry."""

    def put(self, entry: RegistryEntry) -> RegistryEntry | None: ...

    def remove(self, ref: str) -> RegistryEntry | None: ...

    def get(self, ref: str) -> RegistryEntry | None: ...

    def entries(self) -> list[RegistryEntry]: ...

    def by_capability(self, capability: str) -> list[RegistryEntry]: ...

    def get_metrics(self, ref: str) -> ToolMetrics | None: ...

    def update_metrics(
        self, ref: str, update: Callable[[ToolMetrics], ToolMetrics]
    ) -> ToolMetrics | None: ...

    def metrics_snapshot(self) -> dict[str, ToolMetrics]: ...

    def snapshot(
        self, capability: str | None = None
    ) -> list[tuple[RegistryEntry, ToolMetrics]]: ...

    def __len__(self) -> int: ...

    @property
    def version(self) -> int: ...


class InMemoryRegistryStore:
    """Process-local store guarded by a re-entrant lock."""

    def __init__(self) -> None:
        self._entries: dict[str, RegistryEntry] = {}
        self._by_capability: dict[str, list[str]] = {}
        self._metrics: dict[str, ToolMetrics] = {}
        self._version = 0
        self._lock = threading.RLock()

    def put(self, entry: RegistryEntry) -> RegistryEntry | None:
        """Insert or replace an entry and reset its metrics.

        Returns:
            The entry that was replaced, if any
        """
        with self._lock:
            previous = self._entries.get(entry.ref)
            if previous is not None:
                self._unindex(previous)
            # Assignment keeps a replaced ref in its original insertion slot
            self._entries[entry.ref] = entry
            for capability in sorted(entry.descriptor.capabilities):
                self._by_capability.setdefault(capability, []).append(entry.ref)
            self._metrics[entry.ref] = ToolMetrics()
            self._version += 1
            return previous

    def remove(self, ref: str) -> RegistryEntry | None:
        with self._lock:
            entry = self._entries.pop(ref, None)
            if entry is None:
                return None
            self._unindex(entry)
            self._metrics.pop(ref, None)
            self._version += 1
            return entry

    def get(self, ref: str) -> RegistryEntry | None:
        with self._lock:
            return self._entries.get(ref)

    def entries(self) -> list[RegistryEntry]:
        with self._lock:
            return list(self._entries.values())

    def by_capability(self, capability: str) -> list[RegistryEntry]:
        with self._lock:
            return [
                self._entries[ref]
                for ref in self._by_capability.get(capability, [])
            ]

    def get_metrics(self, ref: str) -> ToolMetrics | None:
        with self._lock:
            return self._metrics.get(ref)

    def update_metrics(
        self, ref: str, update: Callable[[ToolMetrics], ToolMetrics]
    ) -> ToolMetrics | None:
        """Apply update to a tool's metrics atomically.

        Returns:
            The new metrics, or None if the tool is not registered
        """
        with self._lock:
            current = self._metrics.get(ref)
            if current is None:
                return None
            updated = update(current)
            self._metrics[ref] = updated
            return updated

    def metrics_snapshot(self) -> dict[str, ToolMetrics]:
        with self._lock:
            return dict(self._metrics)

    def snapshot(
        self, capability: str | None = None
    ) -> list[tuple[RegistryEntry, ToolMetrics]]:
        """Entries paired with their metrics, read under one lock.

        Args:
            capability: Restrict to entries indexed under this capability
        """
        with self._lock:
            if capability is None:
                refs = list(self._entries)
            else:
                refs = list(self._by_capability.get(capability, []))
            return [(self._entries[ref], self._metrics[ref]) for ref in refs]

    @property
    def version(self) -> int:
        """Bumped on every put and remove, never on metric updates."""
        with self._lock:
            return self._version

    def _unindex(self, entry: RegistryEntry) -> None:
        for capability in entry.descriptor.capabilities:
            refs = self._by_capability.get(capability)
            if not refs:
                continue
            refs[:] = [r for r in refs if r != entry.ref]
            if not refs:
                del self._by_capability[capability]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
