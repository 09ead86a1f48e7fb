"""Per-tool execution metrics and the quality score derived from them.

ToolMetrics is an immutable value: record(), aggregate() and merge()
return new instances, so a store can swap records atomically and
readers never observe a half-applied update.
"""

from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field

from toolbench.exceptions import ErrorKind

HOUR_KEY_FORMAT = "%Y-%m-%dT%H"
DAY_KEY_FORMAT = "%Y-%m-%d"

# (upper bound in ms, score); anything slower scores SLOWEST_LATENCY_SCORE
LATENCY_SCORE_STEPS: tuple[tuple[float, float], ...] = (
    (100.0, 100.0),
    (500.0, 80.0),
    (1000.0, 60.0),
    (5000.0, 40.0),
)
SLOWEST_LATENCY_SCORE = 25.0

# (exclusive upper bound on executions, score)
USAGE_SCORE_STEPS: tuple[tuple[int, float], ...] = (
    (1, 0.0),
    (10, 50.0),
    (100, 75.0),
)
FULL_USAGE_SCORE = 100.0


class ExecutionOutcome(BaseModel):
    """Result of one tool invocation, as fed to ToolMetrics.record()."""

    model_config = ConfigDict(frozen=True)

    succeeded: bool
    latency_ms: float | None = None
    error_kind: str | None = None

    @classmethod
    def ok(cls, latency_ms: float) -> ExecutionOutcome:
        return cls(succeeded=True, latency_ms=latency_ms)

    @classmethod
    def error(cls, kind: ErrorKind | str) -> ExecutionOutcome:
        value = kind.value if isinstance(kind, ErrorKind) else str(kind)
        return cls(succeeded=False, error_kind=value)


class ToolMetrics(BaseModel):
    """Rolling counters and time-bucketed history for one tool."""

    model_config = ConfigDict(frozen=True)

    total_executions: int = Field(default=0, ge=0)
    successful_executions: int = Field(default=0, ge=0)
    failed_executions: int = Field(default=0, ge=0)
    total_latency_ms: float = Field(default=0.0, ge=0)
    min_latency_ms: float | None = None
    max_latency_ms: float | None = None
    error_type_counts: dict[str, int] = Field(default_factory=dict)
    last_execution_at: datetime | None = None
    hourly_buckets: dict[str, int] = Field(default_factory=dict)
    daily_buckets: dict[str, int] = Field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        """Percentage of successful executions.

        A never-used tool reports 100.0 so it is not ranked below tools
        that have actually failed.
        """
        if self.total_executions == 0:
            return 100.0
        return self.successful_executions / self.total_executions * 100.0

    @property
    def average_latency_ms(self) -> float | None:
        """Mean latency over successful executions, None without samples."""
        if self.successful_executions == 0:
            return None
        return self.total_latency_ms / self.successful_executions

    @property
    def latency_score(self) -> float:
        average = self.average_latency_ms
        if average is None:
            return 100.0
        for bound, score in LATENCY_SCORE_STEPS:
            if average <= bound:
                return score
        return SLOWEST_LATENCY_SCORE

    @property
    def usage_score(self) -> float:
        for bound, score in USAGE_SCORE_STEPS:
            if self.total_executions < bound:
                return score
        return FULL_USAGE_SCORE

    @property
    def quality_score(self) -> float:
        """Composite 0-100 score used for ranking.

        60% success rate, 30% latency, 10% usage volume.
        """
        return (
            0.6 * self.success_rate
            + 0.3 * self.latency_score
            + 0.1 * self.usage_score
        )

    def record(
        self,
        outcome: ExecutionOutcome,
        at: datetime | None = None,
    ) -> ToolMetrics:
        """Return metrics updated with one execution outcome.

        Args:
            outcome: Success with latency, or failure with an error kind
            at: Timezone-aware timestamp of the execution (defaults to
                now). Bucket keys are always UTC.

        Returns:
            A new ToolMetrics instance

        Raises:
            ValueError: If at is a naive datetime
        """
        at = _as_utc(at) if at is not None else datetime.now(UTC)
        hour_key = at.strftime(HOUR_KEY_FORMAT)
        day_key = at.strftime(DAY_KEY_FORMAT)

        update: dict = {
            "total_executions": self.total_executions + 1,
            "last_execution_at": _later(self.last_execution_at, at),
            "hourly_buckets": _bump(self.hourly_buckets, hour_key),
            "daily_buckets": _bump(self.daily_buckets, day_key),
        }

        if outcome.succeeded:
            latency = max(float(outcome.latency_ms or 0.0), 0.0)
            update["successful_executions"] = self.successful_executions + 1
            update["total_latency_ms"] = self.total_latency_ms + latency
            update["min_latency_ms"] = _min_optional(self.min_latency_ms, latency)
            update["max_latency_ms"] = _max_optional(self.max_latency_ms, latency)
        else:
            kind = outcome.error_kind or ErrorKind.EXECUTION_FAILED.value
            update["failed_executions"] = self.failed_executions + 1
            update["error_type_counts"] = _bump(self.error_type_counts, kind)

        return self.model_copy(update=update)

    def aggregate(
        self,
        now: datetime | None = None,
        hourly_retention_hours: int = 24,
        daily_retention_days: int = 30,
    ) -> ToolMetrics:
        """Drop bucket entries outside the retention windows.

        Cumulative counters are left untouched.
        """
        now = _as_utc(now) if now is not None else datetime.now(UTC)
        hour_cutoff = now - timedelta(hours=hourly_retention_hours)
        day_cutoff = (now - timedelta(days=daily_retention_days)).date()

        hourly = {
            key: count
            for key, count in self.hourly_buckets.items()
            if _parse_hour(key) >= hour_cutoff
        }
        daily = {
            key: count
            for key, count in self.daily_buckets.items()
            if _parse_day(key) >= day_cutoff
        }
        return self.model_copy(
            update={"hourly_buckets": hourly, "daily_buckets": daily}
        )

    def merge(self, other: ToolMetrics) -> ToolMetrics:
        """Combine metrics gathered by independent shards.

        Counters and bucket maps sum, min/max latency combine, and the
        later last_execution_at wins. Associative and commutative.
        """
        return ToolMetrics(
            total_executions=self.total_executions + other.total_executions,
            successful_executions=(
                self.successful_executions + other.successful_executions
            ),
            failed_executions=self.failed_executions + other.failed_executions,
            total_latency_ms=self.total_latency_ms + other.total_latency_ms,
            min_latency_ms=_min_optional(self.min_latency_ms, other.min_latency_ms),
            max_latency_ms=_max_optional(self.max_latency_ms, other.max_latency_ms),
            error_type_counts=_sum_maps(self.error_type_counts, other.error_type_counts),
            last_execution_at=_later(self.last_execution_at, other.last_execution_at),
            hourly_buckets=_sum_maps(self.hourly_buckets, other.hourly_buckets),
            daily_buckets=_sum_maps(self.daily_buckets, other.daily_buckets),
        )


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _bump(counts: dict[str, int], key: str) -> dict[str, int]:
    updated = dict(counts)
    updated[key] = updated.get(key, 0) + 1
    return updated


def _sum_maps(a: dict[str, int], b: dict[str, int]) -> dict[str, int]:
    return dict(Counter(a) + Counter(b))


def _min_optional(a: float | None, b: float | None) -> float | None:
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)


def _max_optional(a: float | None, b: float | None) -> float | None:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"Expected a timezone-aware datetime, got {value!r}")
    return value.astimezone(UTC)


def _later(a: datetime | None, b: datetime | None) -> datetime | None:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


def _parse_hour(key: str) -> datetime:
    return datetime.strptime(key, HOUR_KEY_FORMAT).replace(tzinfo=UTC)


def _parse_day(key: str):
    return datetime.strptime(key, DAY_KEY_FORMAT).date()
