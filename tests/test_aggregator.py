"""Tests for the background MetricsAggregator."""

import asyncio
from unittest.mock import MagicMock

import pytest

from toolbench.config import Settings
from toolbench.registry import MetricsAggregator, ToolRegistry


class TestMetricsAggregator:
    """Verify the periodic aggregation loop."""

    def test_interval_defaults_to_settings(self):
        registry = ToolRegistry(settings=Settings(metrics_aggregation_interval=7))
        assert MetricsAggregator(registry).interval_seconds == 7

    @pytest.mark.asyncio
    async def test_runs_aggregation_periodically(self, registry):
        registry.aggregate_metrics = MagicMock(return_value=0)
        aggregator = MetricsAggregator(registry, interval_seconds=0.01)

        aggregator.start()
        await asyncio.sleep(0.08)
        await aggregator.stop()

        assert registry.aggregate_metrics.call_count >= 2
        assert aggregator.running is False

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, registry):
        aggregator = MetricsAggregator(registry, interval_seconds=10)
        aggregator.start()
        task = aggregator._task
        aggregator.start()
        assert aggregator._task is task
        assert aggregator.running is True
        await aggregator.stop()

    @pytest.mark.asyncio
    async def test_errors_are_logged_and_loop_continues(self, registry, caplog):
        registry.aggregate_metrics = MagicMock(side_effect=RuntimeError("disk gone"))
        aggregator = MetricsAggregator(registry, interval_seconds=0.01)

        aggregator.start()
        await asyncio.sleep(0.06)
        assert aggregator.running is True
        await aggregator.stop()

        assert registry.aggregate_metrics.call_count >= 2
        assert "disk gone" in caplog.text

    @pytest.mark.asyncio
    async def test_stop_without_start(self, registry):
        await MetricsAggregator(registry).stop()
