"""Optimization hints and Mermaid rendering for compositions."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from toolbench.exceptions import ToolNotFoundError
from toolbench.models.composition import (
    CapabilityGap,
    Composition,
    CompositionAnalysis,
    CompositionType,
    RedundantTool,
    ToolSpec,
)
from toolbench.registry.registry import ToolRegistry


def analyze(
    composition: Composition,
    registry: ToolRegistry,
    compatible: Callable[[Iterable[str], Iterable[str]], bool],
    default_latency_ms: float,
) -> CompositionAnalysis:
    return CompositionAnalysis(
        parallelizable_steps=find_parallelizable_steps(composition),
        redundant_tools=find_redundant_tools(composition),
        capability_gaps=find_capability_gaps(composition, registry, compatible),
        estimated_latency_ms=estimate_latency(composition, registry, default_latency_ms),
    )


def find_parallelizable_steps(composition: Composition) -> list[tuple[int, int]]:
    """Adjacent sequential steps where the second reads no mapped output."""
    if composition.type != CompositionType.SEQUENTIAL:
        return []
    specs = composition.specs
    return [
        (index, index + 1)
        for index in range(len(specs) - 1)
        if not specs[index + 1].output_mapping
    ]


def find_redundant_tools(composition: Composition) -> list[RedundantTool]:
    """Group specs that invoke the same tool with identical params."""
    groups: dict[tuple[str, str], list[int]] = {}
    for index, spec in enumerate(composition.specs):
        groups.setdefault((spec.tool_ref, _params_key(spec)), []).append(index)
    return [
        RedundantTool(tool_ref=tool_ref, indices=indices)
        for (tool_ref, _), indices in groups.items()
        if len(indices) > 1
    ]


def find_capability_gaps(
    composition: Composition,
    registry: ToolRegistry,
    compatible: Callable[[Iterable[str], Iterable[str]], bool],
) -> list[CapabilityGap]:
    """Adjacent sequential pairs with no composable capability pair.

    Pairs involving a tool that is no longer registered are skipped.
    """
    if composition.type != CompositionType.SEQUENTIAL:
        return []

    gaps = []
    specs = composition.specs
    for index in range(len(specs) - 1):
        try:
            first = registry.get(specs[index].tool_ref)
            second = registry.get(specs[index + 1].tool_ref)
        except ToolNotFoundError:
            continue
        if not compatible(first.capabilities, second.capabilities):
            gaps.append(
                CapabilityGap(
                    from_index=index,
                    to_index=index + 1,
                    from_tool=first.ref,
                    to_tool=second.ref,
                )
            )
    return gaps


def estimate_latency(
    composition: Composition,
    registry: ToolRegistry,
    default_latency_ms: float,
) -> float:
    """Estimate wall-clock latency from recorded averages.

    Sequential sums, parallel takes the slowest branch and conditional
    averages over the branches.
    """
    latencies = []
    for spec in composition.specs:
        average = registry.get_metrics(spec.tool_ref).average_latency_ms
        latencies.append(average if average is not None else default_latency_ms)

    if composition.type == CompositionType.SEQUENTIAL:
        return float(sum(latencies))
    if composition.type == CompositionType.PARALLEL:
        return float(max(latencies))
    return sum(latencies) / len(latencies)


def to_diagram(composition: Composition) -> str:
    """Render a composition as a Mermaid flowchart."""
    lines = ["graph TD"]
    lines.extend(
        f"    T{index}[{_label(spec)}]" for index, spec in enumerate(composition.specs)
    )

    count = len(composition.specs)
    if composition.type == CompositionType.SEQUENTIAL:
        lines.extend(f"    T{index} --> T{index + 1}" for index in range(count - 1))
    elif composition.type == CompositionType.PARALLEL:
        lines.append("    Start[Input]")
        lines.extend(f"    Start --> T{index}" for index in range(count))
        lines.extend(f"    T{index} --> End" for index in range(count))
        lines.append("    End[Output]")
    else:
        for index, spec in enumerate(composition.specs):
            label = "condition" if spec.condition is not None else "default"
            lines.append(f"    Start --{label}--> T{index}")

    return "\n".join(lines) + "\n"


def _label(spec: ToolSpec) -> str:
    # Mermaid node text cannot contain brackets or quotes unescaped
    return '"' + spec.tool_ref.replace('"', "#quot;") + '"'


def _params_key(spec: ToolSpec) -> str:
    return repr(_freeze(spec.params))


def _freeze(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _freeze(v) for k, v in sorted(value.items(), key=lambda kv: str(kv[0]))}
    if isinstance(value, (list, tuple)):
        return [_freeze(v) for v in value]
    return value
