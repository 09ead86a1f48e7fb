"""Background metrics aggregation loop."""

import asyncio
import logging

from toolbench.registry.registry import ToolRegistry

logger = logging.getLogger(__name__)


class MetricsAggregator:
    """Periodically prunes expired metric buckets for every registered tool."""

    def __init__(
        self,
        registry: ToolRegistry,
        interval_seconds: float | None = None,
    ) -> None:
        self.registry = registry
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else registry.settings.metrics_aggregation_interval
        )
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the loop on the running event loop. Idempotent."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(
            f"Metrics aggregation started: every {self.interval_seconds}s"
        )

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Metrics aggregation stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.registry.aggregate_metrics()
            except Exception as e:
                logger.error(f"Metrics aggregation failed: {e}")
