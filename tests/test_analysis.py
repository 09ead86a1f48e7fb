"""Tests for composition analysis and diagram rendering."""

import pytest

from toolbench.composition import CompositionEngine
from toolbench.config import Settings
from toolbench.models.composition import ToolSpec
from toolbench.models.metrics import ExecutionOutcome


class Plain:
    def __init__(self, name, *capabilities):
        self.name = name
        self.capabilities = frozenset(capabilities)

    def execute(self, params, context):
        return params


@pytest.fixture
def engine(registry):
    for name, capability in [
        ("parse", "code_analysis"),
        ("gen", "code_generation"),
        ("find", "search"),
        ("doc", "documentation"),
    ]:
        registry.register(Plain(name, capability))
    return CompositionEngine(registry)


def _latency(registry, ref, *samples):
    for ms in samples:
        registry.record_metric(ref, ExecutionOutcome.ok(ms))


# ---------------------------------------------------------------------------
# TestAnalyze
# ---------------------------------------------------------------------------

class TestAnalyze:
    """Verify optimization hints."""

    def test_parallelizable_steps(self, engine):
        comp = engine.sequential(
            "s",
            ["parse", {"tool": "doc", "output_mapping": {"parse": "x"}}, "parse"],
        )
        assert engine.analyze(comp).parallelizable_steps == [(1, 2)]

    def test_parallelizable_only_for_sequential(self, engine):
        comp = engine.parallel("p", ["parse", "doc"])
        assert engine.analyze(comp).parallelizable_steps == []

    def test_redundant_tools(self, engine):
        comp = engine.parallel(
            "p",
            [
                ("find", {"q": "a"}),
                ("parse", {}),
                ("find", {"q": "a"}),
                ("find", {"q": "b"}),
            ],
        )
        redundant = engine.analyze(comp).redundant_tools
        assert len(redundant) == 1
        assert redundant[0].tool_ref == "find"
        assert redundant[0].indices == [0, 2]

    def test_redundant_ignores_param_order(self, engine):
        comp = engine.parallel(
            "p", [("find", {"a": 1, "b": 2}), ("find", {"b": 2, "a": 1})]
        )
        assert engine.analyze(comp).redundant_tools[0].indices == [0, 1]

    def test_capability_gaps(self, engine):
        comp = engine.sequential("s", ["parse", "gen", "find", "doc"])
        gaps = engine.analyze(comp).capability_gaps
        assert [(g.from_tool, g.to_tool) for g in gaps] == [("gen", "find"), ("find", "doc")]
        assert (gaps[0].from_index, gaps[0].to_index) == (1, 2)

    def test_capability_gaps_skip_unknown_tools(self, engine):
        comp = engine.sequential("s", ["ghost", "find"])
        assert engine.analyze(comp).capability_gaps == []


# ---------------------------------------------------------------------------
# TestEstimateLatency
# ---------------------------------------------------------------------------

class TestEstimateLatency:
    """Verify latency estimates per composition type."""

    @pytest.fixture
    def measured(self, engine):
        _latency(engine.registry, "parse", 40, 60)
        _latency(engine.registry, "gen", 300)
        return engine

    def test_sequential_sums(self, measured):
        comp = measured.sequential("s", ["parse", "gen", "find"])
        # find has no samples and falls back to the default
        assert measured.analyze(comp).estimated_latency_ms == pytest.approx(50 + 300 + 100)

    def test_parallel_takes_max(self, measured):
        comp = measured.parallel("p", ["parse", "gen", "find"])
        assert measured.analyze(comp).estimated_latency_ms == pytest.approx(300)

    def test_conditional_takes_mean(self, measured):
        comp = measured.conditional(
            "c", [ToolSpec(tool_ref="parse", condition=bool), "gen"]
        )
        assert measured.analyze(comp).estimated_latency_ms == pytest.approx(175)

    def test_default_from_settings(self, registry):
        registry.register(Plain("x", "search"))
        engine = CompositionEngine(
            registry, settings=Settings(default_latency_estimate_ms=250)
        )
        comp = engine.sequential("s", ["x", "x"])
        assert engine.analyze(comp).estimated_latency_ms == pytest.approx(500)


# ---------------------------------------------------------------------------
# TestDiagram
# ---------------------------------------------------------------------------

class TestDiagram:
    """Verify Mermaid output."""

    def test_sequential_chain(self, engine):
        comp = engine.sequential("s", ["parse", "doc", "find"])
        lines = engine.to_diagram(comp).splitlines()
        assert lines[0] == "graph TD"
        assert '    T0["parse"]' in lines
        assert "    T0 --> T1" in lines
        assert "    T1 --> T2" in lines
        assert "    T2 --> T3" not in lines

    def test_parallel_fan(self, engine):
        comp = engine.parallel("p", ["parse", "find"])
        diagram = engine.to_diagram(comp)
        for line in (
            "    Start[Input]",
            "    Start --> T0",
            "    Start --> T1",
            "    T0 --> End",
            "    T1 --> End",
            "    End[Output]",
        ):
            assert line in diagram.splitlines()

    def test_conditional_edges(self, engine):
        comp = engine.conditional(
            "c", [ToolSpec(tool_ref="parse", condition=bool), "find"]
        )
        lines = engine.to_diagram(comp).splitlines()
        assert "    Start --condition--> T0" in lines
        assert "    Start --default--> T1" in lines

    def test_quotes_in_ref_are_escaped(self, engine):
        comp = engine.sequential("s", ['say "hi"'])
        assert '    T0["say #quot;hi#quot;"]' in engine.to_diagram(comp).splitlines()
