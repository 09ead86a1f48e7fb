"""Custom exceptions for Toolbench."""

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of registry and composition failures.

    Values double as the keys of ToolMetrics.error_type_counts.
    """

    TOOL_NOT_FOUND = "tool_not_found"
    INVALID_MAPPING = "invalid_mapping"
    INVALID_CONDITIONAL_STRUCTURE = "invalid_conditional_structure"
    INCOMPATIBLE_TOOLS = "incompatible_tools"
    EXECUTION_FAILED = "execution_failed"
    TIMEOUT = "timeout"
    NO_MATCHING_CONDITION = "no_matching_condition"
    PARALLEL_EXECUTION_FAILED = "parallel_execution_failed"
    SIGNAL_EMISSION_FAILED = "signal_emission_failed"


class ToolbenchError(Exception):
    """Base class for all Toolbench errors."""

    kind: ErrorKind | None = None


class ToolRegistrationError(ToolbenchError):
    """Raised when a tool does not satisfy the execute contract."""

    def __init__(self, ref: str, reason: str) -> None:
        self.ref = ref
        self.reason = reason
        super().__init__(f"Cannot register tool '{ref}': {reason}")


class CompositionValidationError(ToolbenchError):
    """Raised when a composition fails static validation."""


class ToolNotFoundError(CompositionValidationError, LookupError):
    """Raised when a tool reference does not resolve in the registry."""

    kind = ErrorKind.TOOL_NOT_FOUND

    def __init__(self, ref: str) -> None:
        self.ref = ref
        super().__init__(f"Tool not found: {ref}")


class InvalidMappingError(CompositionValidationError):
    """Raised when an output mapping references keys no earlier step produced."""

    kind = ErrorKind.INVALID_MAPPING

    def __init__(self, tool_ref: str, keys: list[str]) -> None:
        self.tool_ref = tool_ref
        self.keys = keys
        super().__init__(
            f"Invalid output mapping for tool '{tool_ref}': "
            f"unknown keys {keys}"
        )


class InvalidConditionalStructureError(CompositionValidationError):
    """Raised when a conditional branch other than the last lacks a condition."""

    kind = ErrorKind.INVALID_CONDITIONAL_STRUCTURE

    def __init__(self, indices: list[int]) -> None:
        self.indices = indices
        super().__init__(
            f"Conditional composition branches {indices} have no condition; "
            "only the last branch may be unconditional"
        )


class IncompatibleToolsError(CompositionValidationError):
    """Raised when adjacent sequential tools share no composable capability."""

    kind = ErrorKind.INCOMPATIBLE_TOOLS

    def __init__(self, first: str, second: str) -> None:
        self.first = first
        self.second = second
        super().__init__(f"Incompatible tools: '{first}' -> '{second}'")


class ChainNotFoundError(ToolbenchError, LookupError):
    """Raised when no capability chain connects two value kinds."""

    def __init__(self, from_kind: str, to_kind: str) -> None:
        self.from_kind = from_kind
        self.to_kind = to_kind
        super().__init__(f"No capability chain from '{from_kind}' to '{to_kind}'")


class ToolExecutionError(ToolbenchError):
    """Raised by a tool to report a failed invocation."""

    kind = ErrorKind.EXECUTION_FAILED

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class SignalEmissionError(ToolbenchError):
    """Raised when a lifecycle event could not be delivered to a subscriber."""

    kind = ErrorKind.SIGNAL_EMISSION_FAILED
