"""Build ToolDescriptors from tool objects and discover tools in modules."""

import inspect
import logging
from types import ModuleType
from typing import Any

from toolbench.models.tool import (
    PerformanceHints,
    ToolCategory,
    ToolDescriptor,
    ToolSource,
)

logger = logging.getLogger(__name__)

# Attributes a tool may declare, mapped to ToolDescriptor fields
METADATA_ATTRIBUTES = (
    "name",
    "description",
    "category",
    "tags",
    "capabilities",
    "version",
    "input_schema",
    "examples",
    "performance_hints",
    "dependencies",
)


def default_ref(tool: object) -> str:
    """Reference used when the caller does not supply one.

    Prefers a declared name, falling back to the qualified class name.
    """
    name = getattr(tool, "name", None)
    if isinstance(name, str) and name:
        return name
    cls = tool if inspect.isclass(tool) else type(tool)
    return f"{cls.__module__}.{cls.__qualname__}"


def describe_tool(
    tool: object,
    *,
    ref: str | None = None,
    source: ToolSource = ToolSource.INTERNAL,
    **overrides: Any,
) -> ToolDescriptor:
    """Build a descriptor from a tool's declared attributes.

    Keyword overrides win over attributes found on the tool.

    Args:
        tool: The tool object (instance or class with execute)
        ref: Unique reference; defaults to default_ref(tool)
        source: Whether the tool is internal or external
        **overrides: Any ToolDescriptor field

    Returns:
        The ToolDescriptor (capabilities not yet augmented by inference)
    """
    data: dict[str, Any] = {}
    for attribute in METADATA_ATTRIBUTES:
        value = getattr(tool, attribute, None)
        if value is not None and not callable(value):
            data[attribute] = value
    data.update({k: v for k, v in overrides.items() if v is not None})

    ref = ref or default_ref(tool)
    data.setdefault("name", ref)
    if data.get("description") is None:
        data["description"] = inspect.getdoc(tool) or ""

    if isinstance(data.get("category"), str):
        data["category"] = _coerce_category(data["category"])
    if isinstance(data.get("performance_hints"), dict):
        data["performance_hints"] = PerformanceHints(**data["performance_hints"])

    return ToolDescriptor(ref=ref, source=source, **data)


def find_tools(module: ModuleType) -> list[object]:
    """Return objects in module that look like tools.

    A tool here is a class or instance defined in the module that
    declares a string name and an execute attribute. Classes are
    instantiated with no arguments; a class whose constructor needs
    arguments is logged and skipped.
    """
    found: list[object] = []
    for attr_name, value in vars(module).items():
        if attr_name.startswith("_"):
            continue
        if inspect.isclass(value):
            if value.__module__ != module.__name__:
                continue
            if not _declares_tool(value):
                continue
            try:
                found.append(value())
            except TypeError as e:
                logger.warning(f"Skipping tool class {attr_name}: {e}")
        elif _declares_tool(value) and not inspect.ismodule(value):
            if type(value).__module__ == module.__name__:
                found.append(value)
    return found


def _declares_tool(obj: object) -> bool:
    return isinstance(getattr(obj, "name", None), str) and hasattr(obj, "execute")


def _coerce_category(value: str) -> ToolCategory:
    try:
        return ToolCategory(value.lower())
    except ValueError:
        return ToolCategory.GENERAL
