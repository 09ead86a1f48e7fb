"""Tool protocol and invocation context."""

from __future__ import annotations

import inspect
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from toolbench.models.composition import CompositionType


class ToolContext(BaseModel):
    """Context handed to a tool alongside its params."""

    composition_id: str | None = None
    composition_type: CompositionType | None = None
    step_index: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


@runtime_checkable
class Tool(Protocol):
    """Protocol that every registered tool must satisfy.

    execute may be a coroutine function or a plain function. Returning
    a value means success; raising (typically ToolExecutionError) means
    failure. Declarative metadata (name, description, category, tags,
    capabilities, version, input_schema, examples, performance_hints,
    dependencies) is optional and read from attributes when present.
    """

    def execute(self, params: dict[str, Any], context: ToolContext) -> Any: ...


def check_execute_contract(tool: object) -> str | None:
    """Return why tool cannot be invoked as execute(params, context), or None."""
    execute = getattr(tool, "execute", None)
    if execute is None:
        return "missing execute(params, context)"
    if not callable(execute):
        return "execute is not callable"
    try:
        inspect.signature(execute).bind({}, ToolContext())
    except TypeError:
        return "execute must accept (params, context)"
    except ValueError:
        # No introspectable signature (some builtins and C callables)
        return None
    return None
