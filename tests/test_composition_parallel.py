"""Tests for parallel composition execution."""

import asyncio

import pytest

from toolbench.composition import CompositionEngine
from toolbench.config import Settings
from toolbench.models.composition import ExecutionStatus, StepStatus


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class SleepyTool:
    """Async tool that sleeps, then echoes its params with its name."""

    def __init__(self, name, delay_ms, *, error=None, capabilities=("search",)):
        self.name = name
        self.capabilities = frozenset(capabilities)
        self._delay = delay_ms / 1000
        self._error = error
        self.calls = []

    async def execute(self, params, context):
        self.calls.append(params)
        await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return {"tool": self.name, **params}


class StubbornTool:
    """Async tool that catches its own cancellation and returns anyway."""

    def __init__(self, name):
        self.name = name
        self.capabilities = frozenset({"search"})

    async def execute(self, params, context):
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            return "gave up"
        return "finished"


@pytest.fixture
def engine(registry):
    return CompositionEngine(registry)


def _register(registry, *tools):
    for tool in tools:
        registry.register(tool)


# ---------------------------------------------------------------------------
# TestParallelSuccess
# ---------------------------------------------------------------------------

class TestParallelSuccess:
    """Verify fan-out when every branch succeeds."""

    @pytest.mark.asyncio
    async def test_outputs_in_spec_order(self, engine, registry):
        _register(registry, SleepyTool("slow", 60), SleepyTool("fast", 5))
        comp = engine.parallel("fan", ["slow", "fast"])

        result = await engine.execute(comp, {"q": 1})

        assert result.status == ExecutionStatus.SUCCESS
        assert [o["tool"] for o in result.final_output] == ["slow", "fast"]
        assert [r.index for r in result.results] == [0, 1]
        assert result.errors == []

    @pytest.mark.asyncio
    async def test_branches_run_concurrently(self, engine, registry):
        _register(registry, *(SleepyTool(f"t{i}", 100) for i in range(5)))
        comp = engine.parallel("fan", [f"t{i}" for i in range(5)])

        result = await engine.execute(comp, {})

        assert result.status == ExecutionStatus.SUCCESS
        assert result.execution_time_ms < 400

    @pytest.mark.asyncio
    async def test_input_overrides_spec_params(self, engine, registry):
        tool = SleepyTool("t", 1)
        _register(registry, tool)
        comp = engine.parallel("fan", [("t", {"q": "default", "k": 2})])

        await engine.execute(comp, {"q": "given"})

        assert tool.calls == [{"q": "given", "k": 2}]

    @pytest.mark.asyncio
    async def test_no_capability_check(self, engine, registry):
        _register(
            registry,
            SleepyTool("writer", 1, capabilities=["code_generation"]),
            SleepyTool("finder", 1, capabilities=["search"]),
        )
        comp = engine.parallel("mixed", ["writer", "finder"])

        result = await engine.execute(comp, {})

        assert result.status == ExecutionStatus.SUCCESS


# ---------------------------------------------------------------------------
# TestParallelFailure
# ---------------------------------------------------------------------------

class TestParallelFailure:
    """Verify timeouts and branch failures."""

    @pytest.mark.asyncio
    async def test_slow_branch_times_out(self, engine, registry):
        _register(
            registry,
            SleepyTool("t10", 10),
            SleepyTool("t20", 20),
            SleepyTool("t5000", 5000),
        )
        comp = engine.parallel("race", ["t10", "t20", "t5000"])

        result = await engine.execute(comp, {}, timeout_ms=100)

        assert result.status == ExecutionStatus.FAILURE
        assert len(result.results) == 3
        statuses = [r.status for r in result.results]
        assert statuses.count(StepStatus.TIMEOUT) == 1
        assert statuses[2] == StepStatus.TIMEOUT
        assert result.final_output is None
        assert len(result.errors) == 1
        assert result.errors[0].kind == "parallel_execution_failed"
        assert len(result.errors[0].reasons) == 1
        assert "t5000" in result.errors[0].reasons[0]
        assert result.execution_time_ms < 1000
        assert registry.get_metrics("t5000").error_type_counts == {"timeout": 1}
        assert registry.get_metrics("t10").successful_executions == 1

    @pytest.mark.asyncio
    async def test_branch_ignoring_cancellation_records_one_metric(self, engine, registry):
        _register(registry, StubbornTool("stubborn"))
        comp = engine.parallel("fan", ["stubborn"])

        result = await engine.execute(comp, {}, timeout_ms=20)

        metrics = registry.get_metrics("stubborn")
        assert metrics.total_executions == 1
        assert len(result.results) == 1
        assert result.results[0].output == "gave up"

    @pytest.mark.asyncio
    async def test_default_timeout_from_settings(self, registry):
        engine = CompositionEngine(registry, settings=Settings(parallel_timeout_ms=50))
        _register(registry, SleepyTool("sleepy", 2000))
        comp = engine.parallel("fan", ["sleepy"])

        result = await engine.execute(comp, {})

        assert result.results[0].status == StepStatus.TIMEOUT
        assert result.execution_time_ms < 1000

    @pytest.mark.asyncio
    async def test_raising_branch_fails_composition(self, engine, registry):
        _register(
            registry,
            SleepyTool("ok", 1),
            SleepyTool("bad", 1, error=RuntimeError("exploded")),
        )
        comp = engine.parallel("fan", ["ok", "bad"])

        result = await engine.execute(comp, {})

        assert result.status == ExecutionStatus.FAILURE
        assert result.results[0].status == StepStatus.SUCCESS
        assert result.results[1].status == StepStatus.FAILURE
        assert result.results[1].error == "exploded"
        assert "exploded" in result.errors[0].reasons[0]

    @pytest.mark.asyncio
    async def test_unknown_tool_rejected_before_fan_out(self, engine, registry):
        tool = SleepyTool("ok", 1)
        _register(registry, tool)
        comp = engine.parallel("fan", ["ok", "ghost"])

        with pytest.raises(LookupError):
            await engine.execute(comp, {})

        assert tool.calls == []
