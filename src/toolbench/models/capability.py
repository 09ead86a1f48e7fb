"""Capability definition model."""

from pydantic import BaseModel, ConfigDict, Field


class CapabilityDefinition(BaseModel):
    """A named ability a tool can advertise.

    input_kinds/output_kinds describe the value kinds the capability
    consumes and produces. composable_with lists capabilities whose
    output this one can be chained with; the relation is checked in
    both directions, so it need not be declared symmetrically.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    input_kinds: frozenset[str] = Field(default_factory=frozenset)
    output_kinds: frozenset[str] = Field(default_factory=frozenset)
    composable_with: frozenset[str] = Field(default_factory=frozenset)
    requirements: frozenset[str] = Field(default_factory=frozenset)
