"""Tool registry for capability-based discovery and quality-ranked lookup."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from types import ModuleType
from typing import Any

from toolbench.catalog import CapabilityCatalog, default_catalog, infer_from_schema
from toolbench.config import Settings, get_settings
from toolbench.exceptions import ToolNotFoundError, ToolRegistrationError
from toolbench.models.metrics import ExecutionOutcome, ToolMetrics
from toolbench.models.tool import (
    RecommendationContext,
    ToolCategory,
    ToolDescriptor,
    ToolSource,
)
from toolbench.registry.store import InMemoryRegistryStore, RegistryEntry, RegistryStore
from toolbench.tools.base import check_execute_contract
from toolbench.tools.introspection import default_ref, describe_tool, find_tools

logger = logging.getLogger(__name__)

# Search ranking weights
NAME_MATCH_SCORE = 10
DESCRIPTION_MATCH_SCORE = 5
TAG_MATCH_SCORE = 3

# Recommendation weights
QUALITY_WEIGHT = 0.4
CONTEXT_WEIGHT = 0.6
TAG_OVERLAP_SCORE = 10
CAPABILITY_OVERLAP_SCORE = 15
CATEGORY_MATCH_SCORE = 20


class ToolRegistry:
    """Central registry that catalogs tools and ranks them by quality.

    Backed by an injectable RegistryStore so tests get isolated state
    and the in-memory table can later be swapped for a shared one.
    """

    def __init__(
        self,
        store: RegistryStore | None = None,
        catalog: CapabilityCatalog | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.store = store if store is not None else InMemoryRegistryStore()
        self.catalog = catalog if catalog is not None else default_catalog()
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        tool: object,
        descriptor: ToolDescriptor | None = None,
        *,
        ref: str | None = None,
        source: ToolSource = ToolSource.INTERNAL,
        **metadata: Any,
    ) -> ToolDescriptor:
        """Register (or re-register) a tool.

        Args:
            tool: Object exposing execute(params, context)
            descriptor: Explicit descriptor; built from the tool's
                attributes and metadata when omitted
            ref: Unique reference (defaults to the tool's name)
            source: Internal or external tool
            **metadata: Descriptor field overrides

        Returns:
            The stored descriptor, including inferred capabilities

        Raises:
            ToolRegistrationError: If the tool does not satisfy the
                execute contract
        """
        target_ref = ref or (descriptor.ref if descriptor else default_ref(tool))

        reason = check_execute_contract(tool)
        if reason is not None:
            logger.error(f"Failed to register tool {target_ref}: {reason}")
            raise ToolRegistrationError(target_ref, reason)

        if descriptor is None:
            descriptor = describe_tool(tool, ref=target_ref, source=source, **metadata)
        elif ref or metadata:
            descriptor = ToolDescriptor(
                **{**descriptor.model_dump(), **metadata, "ref": target_ref}
            )

        inferred = infer_from_schema(descriptor.input_schema)
        capabilities = descriptor.capabilities | inferred
        unknown = sorted(c for c in capabilities if c not in self.catalog)
        if unknown:
            logger.warning(
                f"Tool {target_ref} declares capabilities not in the catalog: {unknown}"
            )

        descriptor = descriptor.model_copy(
            update={
                "capabilities": frozenset(capabilities),
                "registered_at": datetime.now(UTC),
            }
        )

        previous = self.store.put(RegistryEntry(descriptor=descriptor, tool=tool))
        action = "Re-registered" if previous is not None else "Registered"
        logger.info(
            f"{action} tool: {target_ref} "
            f"(capabilities={sorted(descriptor.capabilities)})"
        )
        return descriptor

    def unregister(self, ref: str) -> bool:
        """Remove a tool, its capability index entries and its metrics.

        Returns:
            True if the tool was found and removed
        """
        removed = self.store.remove(ref)
        if removed is None:
            return False
        logger.info(f"Unregistered tool: {ref}")
        return True

    def discover_tools(
        self,
        module: ModuleType,
        *,
        source: ToolSource = ToolSource.INTERNAL,
    ) -> list[ToolDescriptor]:
        """Register every tool found in a module.

        Objects that fail the execute contract are logged and skipped.

        Returns:
            Descriptors of the tools that were registered
        """
        logger.info(f"Discovering tools in {module.__name__}...")
        registered: list[ToolDescriptor] = []
        for tool in find_tools(module):
            try:
                registered.append(self.register(tool, source=source))
            except ToolRegistrationError as e:
                logger.warning(f"Skipping discovered tool: {e}")
        return registered

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, ref: str) -> ToolDescriptor:
        """Get a tool's descriptor.

        Raises:
            ToolNotFoundError: If ref is not registered
        """
        entry = self.store.get(ref)
        if entry is None:
            raise ToolNotFoundError(ref)
        return entry.descriptor

    def get_tool(self, ref: str) -> object:
        """Get the callable tool object behind ref.

        Raises:
            ToolNotFoundError: If ref is not registered
        """
        entry = self.store.get(ref)
        if entry is None:
            raise ToolNotFoundError(ref)
        return entry.tool

    def list_tools(
        self,
        category: ToolCategory | str | None = None,
        tags: Iterable[str] | None = None,
        capabilities: Iterable[str] | None = None,
    ) -> list[ToolDescriptor]:
        """List descriptors matching every supplied filter, sorted by name.

        Args:
            category: Exact category match
            tags: Matches when any tag overlaps
            capabilities: Matches when all are present
        """
        wanted_tags = set(tags) if tags is not None else None
        wanted_caps = set(capabilities) if capabilities is not None else None
        wanted_category = ToolCategory(category) if category is not None else None

        matches = [
            entry.descriptor
            for entry in self.store.entries()
            if (wanted_category is None or entry.descriptor.category == wanted_category)
            and (wanted_tags is None or wanted_tags & entry.descriptor.tags)
            and (wanted_caps is None or wanted_caps <= entry.descriptor.capabilities)
        ]
        return sorted(matches, key=lambda d: d.name)

    def search(self, query: str, limit: int | None = None) -> list[ToolDescriptor]:
        """Case-insensitive substring search over name, description and tags.

        Ranked by 10 per name match, 5 per description match and 3 per
        matching tag; ties keep registration order.
        """
        limit = limit if limit is not None else self.settings.search_limit
        needle = query.lower()

        scored: list[tuple[int, ToolDescriptor]] = []
        for entry in self.store.entries():
            score = _search_score(entry.descriptor, needle)
            if score > 0:
                scored.append((score, entry.descriptor))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [descriptor for _, descriptor in scored[:limit]]

    def discover_by_capability(
        self,
        capability: str,
        limit: int | None = None,
    ) -> list[ToolDescriptor]:
        """Tools providing capability, best quality score first."""
        ranked = sorted(
            self.store.snapshot(capability),
            key=lambda pair: pair[1].quality_score,
            reverse=True,
        )
        descriptors = [entry.descriptor for entry, _ in ranked]
        return descriptors[:limit] if limit is not None else descriptors

    def recommend(
        self,
        context: RecommendationContext | Mapping[str, Any],
        limit: int | None = None,
    ) -> list[ToolDescriptor]:
        """Rank tools for a context by quality and contextual fit.

        score = 0.4 * quality_score + 0.6 * context_score, where the
        context score rewards tag overlap (10 each), required
        capabilities provided (15 each) and an exact category match (20).
        """
        if not isinstance(context, RecommendationContext):
            context = RecommendationContext.model_validate(context)
        limit = limit if limit is not None else self.settings.recommend_limit

        scored = [
            (
                QUALITY_WEIGHT * metrics.quality_score
                + CONTEXT_WEIGHT * _context_score(entry.descriptor, context),
                entry.descriptor,
            )
            for entry, metrics in self.store.snapshot()
        ]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [descriptor for _, descriptor in scored[:limit]]

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def record_metric(self, ref: str, outcome: ExecutionOutcome) -> None:
        """Record one invocation outcome for a tool.

        Never raises: metric recording must not break the caller.
        """
        try:
            updated = self.store.update_metrics(ref, lambda m: m.record(outcome))
        except Exception as e:
            logger.warning(f"Failed to record metric for {ref}: {e}")
            return
        if updated is None:
            logger.warning(f"Dropping metric for unregistered tool: {ref}")

    def get_metrics(self, ref: str) -> ToolMetrics:
        """Metrics for a tool; the zero value when it has none."""
        return self.store.get_metrics(ref) or ToolMetrics()

    def aggregate_metrics(self, now: datetime | None = None) -> int:
        """Prune expired time buckets for every tool.

        Returns:
            Number of tools whose metrics were aggregated
        """
        now = now or datetime.now(UTC)
        count = 0
        for ref in self.store.metrics_snapshot():
            updated = self.store.update_metrics(
                ref,
                lambda m: m.aggregate(
                    now,
                    hourly_retention_hours=self.settings.hourly_retention_hours,
                    daily_retention_days=self.settings.daily_retention_days,
                ),
            )
            if updated is not None:
                count += 1
        logger.debug(f"Aggregated metrics for {count} tools")
        return count

    @property
    def version(self) -> int:
        """Changes whenever a tool is registered, replaced or unregistered."""
        return self.store.version

    def __len__(self) -> int:
        return len(self.store)

    def __contains__(self, ref: str) -> bool:
        return self.store.get(ref) is not None


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _search_score(descriptor: ToolDescriptor, needle: str) -> int:
    score = 0
    if needle in descriptor.name.lower():
        score += NAME_MATCH_SCORE
    if needle in descriptor.description.lower():
        score += DESCRIPTION_MATCH_SCORE
    score += TAG_MATCH_SCORE * sum(1 for tag in descriptor.tags if needle in tag.lower())
    return score


def _context_score(descriptor: ToolDescriptor, context: RecommendationContext) -> float:
    tag_matches = len(descriptor.tags & context.tags)
    capability_matches = len(descriptor.capabilities & context.required_capabilities)
    category_match = (
        CATEGORY_MATCH_SCORE
        if context.category is not None and descriptor.category == context.category
        else 0
    )
    return (
        tag_matches * TAG_OVERLAP_SCORE
        + capability_matches * CAPABILITY_OVERLAP_SCORE
        + category_match
    )
