"""Lifecycle event streams for composition executions.

Every call to CompositionEngine.execute gets its own execution id and
its own stream, so two runs of the same composition never share
history. Streams are looked up by execution id; ``executions`` maps a
composition back to the runs it has had.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

from toolbench.exceptions import SignalEmissionError

# Event type constants
EVENT_STARTED = "started"
EVENT_STEP = "step"
EVENT_COMPLETE = "complete"
EVENT_ERROR = "error"
_TERMINAL_EVENTS = frozenset({EVENT_COMPLETE, EVENT_ERROR})


@dataclass
class _Stream:
    composition_id: str | None = None
    events: list[dict[str, Any]] = field(default_factory=list)
    subscribers: list[asyncio.Queue[dict[str, Any]]] = field(default_factory=list)
    finished_at: float | None = None


class EventBus:
    """Broadcasts execution events to subscriber queues.

    A subscriber may attach before the first event (if it knows the
    execution id up front) or after the run has started, in which case
    its queue is pre-filled with the events emitted so far. Finished
    streams are dropped by ``cleanup_stale`` once they are older than
    ``history_ttl`` seconds.
    """

    def __init__(self, history_ttl: float = 300, queue_size: int = 100) -> None:
        self._streams: dict[str, _Stream] = {}
        self._history_ttl = history_ttl
        self._queue_size = queue_size

    def emit(
        self, execution_id: str, composition_id: str, event: dict[str, Any]
    ) -> None:
        """Record an event for one execution and push it to its subscribers.

        Raises:
            SignalEmissionError: If one or more subscribers could not
                take the event. The event is still recorded and
                delivered to every other subscriber.
        """
        stream = self._streams.setdefault(execution_id, _Stream())
        stream.composition_id = composition_id
        event = {
            **event,
            "execution_id": execution_id,
            "composition_id": composition_id,
            "timestamp": time.time(),
        }
        stream.events.append(event)
        if event.get("event") in _TERMINAL_EVENTS:
            stream.finished_at = time.monotonic()

        dropped = 0
        for queue in stream.subscribers:
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                dropped += 1

        if dropped:
            raise SignalEmissionError(
                f"Dropped '{event.get('event')}' event for {execution_id}: "
                f"{dropped} subscriber(s) full"
            )

    def subscribe(self, execution_id: str) -> asyncio.Queue[dict[str, Any]]:
        """Attach a queue to an execution, pre-filled with its history."""
        stream = self._streams.setdefault(execution_id, _Stream())
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self._queue_size)
        for event in stream.events:
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                break
        stream.subscribers.append(queue)
        return queue

    def unsubscribe(
        self, execution_id: str, queue: asyncio.Queue[dict[str, Any]]
    ) -> None:
        """Detach a subscriber queue. Idempotent."""
        stream = self._streams.get(execution_id)
        if stream is not None and queue in stream.subscribers:
            stream.subscribers.remove(queue)

    def history(self, execution_id: str) -> list[dict[str, Any]]:
        stream = self._streams.get(execution_id)
        return list(stream.events) if stream is not None else []

    def executions(self, composition_id: str) -> list[str]:
        """Execution ids seen for a composition, oldest first."""
        return [
            execution_id
            for execution_id, stream in self._streams.items()
            if stream.composition_id == composition_id
        ]

    def has_terminal_event(self, execution_id: str) -> bool:
        stream = self._streams.get(execution_id)
        return stream is not None and stream.finished_at is not None

    def cleanup_stale(self) -> int:
        """Drop finished streams older than the history TTL.

        Returns the number of streams removed.
        """
        now = time.monotonic()
        stale = [
            execution_id
            for execution_id, stream in self._streams.items()
            if stream.finished_at is not None
            and now - stream.finished_at > self._history_ttl
        ]
        for execution_id in stale:
            del self._streams[execution_id]
        return len(stale)
