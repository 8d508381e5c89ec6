"""Filtering and aggregation — pure functions of (records, filter).

Every metric carries a combination tag.  Snapshot metrics (cumulative state,
e.g. followers) only count each page's latest period inside the filter; flow
metrics (activity within a period: growth, reach, views) sum every filtered
record.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from social_pulse import ALL
from social_pulse.models import (
    AggregationResult,
    FilterSpec,
    NormalizedRecord,
    Period,
    PlatformStats,
)


class MetricKind(str, Enum):
    SNAPSHOT = "snapshot"
    FLOW = "flow"


@dataclass(frozen=True)
class Metric:
    name: str
    attr: str
    kind: MetricKind


METRICS: tuple[Metric, ...] = (
    Metric("followers", "followers", MetricKind.SNAPSHOT),
    Metric("reach", "reach", MetricKind.FLOW),
    Metric("growth", "follower_growth", MetricKind.FLOW),
    Metric("views", "video_views", MetricKind.FLOW),
)

SORTABLE_FIELDS = ("followers", "follower_growth", "reach", "platform", "owner", "period")


# ── Dropdown data ────────────────────────────────────────────────


def platform_options(records: Iterable[NormalizedRecord]) -> list[str]:
    return sorted({r.platform for r in records if r.platform})


def owner_options(records: Iterable[NormalizedRecord]) -> list[str]:
    return sorted({r.owner for r in records if r.owner})


def period_options(records: Iterable[NormalizedRecord]) -> list[Period]:
    """Distinct periods, ascending by order.

    Deduplicated by label, keeping the first order seen for that label, so
    two sheets naming the same month differently stay separate entries.
    """
    orders: dict[str, int] = {}
    for r in records:
        orders.setdefault(r.period, r.period_order)
    return sorted(
        (Period(label=label, order=order) for label, order in orders.items()),
        key=lambda p: p.order,
    )


def latest_period(records: Iterable[NormalizedRecord]) -> Period | None:
    """The highest-order period present, or ``None`` for no records."""
    periods = period_options(records)
    return periods[-1] if periods else None


# ── Filtering ────────────────────────────────────────────────────


def _resolve_order(label: str, periods: Sequence[Period], default: float) -> float:
    if label == ALL:
        return default
    for period in periods:
        if period.label == label:
            return period.order
    return default


def filter_records(
    records: Sequence[NormalizedRecord], spec: FilterSpec = FilterSpec()
) -> list[NormalizedRecord]:
    """Records matching *spec*.

    Period bounds are resolved to orders through :func:`period_options`; an
    inverted range (start after end) matches nothing.
    """
    periods = period_options(records)
    start = _resolve_order(spec.period_start, periods, -math.inf)
    end = _resolve_order(spec.period_end, periods, math.inf)
    if spec.period_start != ALL and spec.period_end != ALL and start > end:
        return []

    return [
        r
        for r in records
        if (spec.platform == ALL or r.platform == spec.platform)
        and (spec.owner == ALL or r.owner == spec.owner)
        and start <= r.period_order <= end
    ]


def search_records(records: Iterable[NormalizedRecord], term: str) -> list[NormalizedRecord]:
    """Case-insensitive match on page name, owner, category or period label."""
    needle = term.strip().lower()
    if not needle:
        return list(records)
    return [
        r
        for r in records
        if needle in r.page_name.lower()
        or needle in r.owner.lower()
        or needle in r.category.lower()
        or needle in r.period.lower()
    ]


def sort_records(
    records: Iterable[NormalizedRecord], field: str = "followers", *, descending: bool = True
) -> list[NormalizedRecord]:
    """Sort for display; ``period`` sorts by period order, not label text."""
    if field not in SORTABLE_FIELDS:
        raise ValueError(f"Cannot sort by {field!r}. Use one of: {', '.join(SORTABLE_FIELDS)}")
    attr = "period_order" if field == "period" else field
    return sorted(records, key=lambda r: getattr(r, attr), reverse=descending)


# ── Aggregation ──────────────────────────────────────────────────


def latest_snapshots(records: Iterable[NormalizedRecord]) -> list[NormalizedRecord]:
    """One record per ``(platform, page_name)``: the one with the highest order.

    Ties keep the first record encountered; output follows first appearance.
    """
    latest: dict[tuple[str, str], NormalizedRecord] = {}
    for r in records:
        existing = latest.get(r.key)
        if existing is None or r.period_order > existing.period_order:
            latest[r.key] = r
    return list(latest.values())


def combine(
    metric: Metric,
    records: Sequence[NormalizedRecord],
    latest: Sequence[NormalizedRecord],
) -> float:
    source = latest if metric.kind is MetricKind.SNAPSHOT else records
    return float(sum(getattr(r, metric.attr) for r in source))


def aggregate(
    records: Sequence[NormalizedRecord], spec: FilterSpec = FilterSpec()
) -> AggregationResult | None:
    """Aggregate *records* under *spec*; ``None`` when nothing matches.

    ``ranked_pages`` orders each page's latest snapshot by that period's
    growth, while ``total_growth`` sums growth over the whole range.
    """
    filtered = filter_records(records, spec)
    if not filtered:
        return None

    latest = latest_snapshots(filtered)
    totals = {m.name: combine(m, filtered, latest) for m in METRICS}

    breakdown: list[PlatformStats] = []
    for platform in dict.fromkeys(r.platform for r in filtered):
        platform_records = [r for r in filtered if r.platform == platform]
        platform_latest = [r for r in latest if r.platform == platform]
        breakdown.append(
            PlatformStats(
                platform=platform,
                **{m.name: combine(m, platform_records, platform_latest) for m in METRICS},
            )
        )

    ranked = sorted(latest, key=lambda r: r.follower_growth, reverse=True)

    return AggregationResult(
        total_followers=totals["followers"],
        total_reach=totals["reach"],
        total_growth=totals["growth"],
        total_views=totals["views"],
        platform_breakdown=tuple(breakdown),
        ranked_pages=tuple(ranked),
        record_count=len(filtered),
    )
