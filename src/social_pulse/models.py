"""Data models shared across the ingestion and aggregation engines."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from numbers import Integral
from typing import Any

from social_pulse import ALL


def _to_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


def _to_string_list(values: Sequence[Any] | None, field_name: str) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a sequence of strings")
    normalized: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise TypeError(f"{field_name} items must be strings")
        normalized.append(item)
    return normalized


# ── Ingestion inputs ─────────────────────────────────────────────


@dataclass
class RawSheet:
    """One workbook sheet as an untyped grid; empty cells are ``None``."""

    name: str
    rows: list[list[Any]] = field(default_factory=list)


@dataclass(frozen=True)
class Period:
    label: str
    order: int


@dataclass(frozen=True)
class ColumnRoleMap:
    """Column positions resolved from one sheet's header row.

    ``None`` means the role was not found by keyword search; the row mapper
    then falls back to the role's fixed position.
    """

    platform: int | None = None
    category: int | None = None
    page_name: int | None = None
    followers: int | None = None
    follower_growth: int | None = None
    follower_growth_pct: int | None = None
    reach: int | None = None
    reach_growth: int | None = None
    reach_growth_pct: int | None = None
    views: tuple[int, ...] = ()
    url: int | None = None
    owner: int | None = None

    def found(self) -> list[str]:
        """Names of the single-column roles located by keyword."""
        return [
            name
            for name, value in self.__dict__.items()
            if name != "views" and value is not None
        ]


# ── Records ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class NormalizedRecord:
    """One page's metrics for one reporting period."""

    platform: str
    category: str
    page_name: str
    owner: str
    followers: float = 0.0
    follower_growth: float = 0.0
    follower_growth_pct: float = 0.0
    reach: float = 0.0
    reach_growth: float = 0.0
    reach_growth_pct: float = 0.0
    video_views: float = 0.0
    url: str = "#"
    period: str = ""
    period_order: int = 0

    @property
    def key(self) -> tuple[str, str]:
        return (self.platform, self.page_name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform,
            "category": self.category,
            "page_name": self.page_name,
            "owner": self.owner,
            "followers": self.followers,
            "follower_growth": self.follower_growth,
            "follower_growth_pct": self.follower_growth_pct,
            "reach": self.reach,
            "reach_growth": self.reach_growth,
            "reach_growth_pct": self.reach_growth_pct,
            "video_views": self.video_views,
            "url": self.url,
            "period": self.period,
            "period_order": self.period_order,
        }


# ── Aggregation ──────────────────────────────────────────────────


@dataclass(frozen=True)
class FilterSpec:
    """Dashboard-style selection; ``"All"`` leaves a dimension unconstrained."""

    platform: str = ALL
    owner: str = ALL
    period_start: str = ALL
    period_end: str = ALL


@dataclass(frozen=True)
class PlatformStats:
    platform: str
    followers: float = 0.0
    reach: float = 0.0
    growth: float = 0.0
    views: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform,
            "followers": self.followers,
            "reach": self.reach,
            "growth": self.growth,
            "views": self.views,
        }


@dataclass(frozen=True)
class AggregationResult:
    """Totals, per-platform breakdown and leaderboard for one filter state.

    ``total_followers`` only counts each page's latest snapshot;
    ``total_reach``, ``total_growth`` and ``total_views`` sum every filtered
    record.  ``ranked_pages`` is ordered by the latest period's growth.
    """

    total_followers: float
    total_reach: float
    total_growth: float
    total_views: float = 0.0
    platform_breakdown: tuple[PlatformStats, ...] = ()
    ranked_pages: tuple[NormalizedRecord, ...] = ()
    record_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_followers": self.total_followers,
            "total_reach": self.total_reach,
            "total_growth": self.total_growth,
            "total_views": self.total_views,
            "record_count": self.record_count,
            "platform_breakdown": [p.to_dict() for p in self.platform_breakdown],
            "ranked_pages": [r.to_dict() for r in self.ranked_pages],
        }


# ── Run artifacts ────────────────────────────────────────────────


@dataclass
class IngestReport:
    """Quality-control report emitted alongside every ingestion.

    Contract invariant: ``dropped_rows == rows_in - rows_out``.
    """

    sheets_in: int = 0
    sheets_skipped: int = 0
    rows_in: int = 0
    rows_out: int = 0
    dropped_rows: int = 0
    undated_sheets: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.sheets_in = _to_non_negative_int(self.sheets_in, "sheets_in")
        self.sheets_skipped = _to_non_negative_int(self.sheets_skipped, "sheets_skipped")
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.rows_out = _to_non_negative_int(self.rows_out, "rows_out")
        self.dropped_rows = _to_non_negative_int(self.dropped_rows, "dropped_rows")
        self.undated_sheets = _to_string_list(self.undated_sheets, "undated_sheets")
        self.warnings = _to_string_list(self.warnings, "warnings")
        if self.sheets_skipped > self.sheets_in:
            raise ValueError("sheets_skipped must be <= sheets_in")
        if self.rows_out > self.rows_in:
            raise ValueError("rows_out must be <= rows_in")
        expected_dropped = self.rows_in - self.rows_out
        if self.dropped_rows != expected_dropped:
            raise ValueError("dropped_rows must equal rows_in - rows_out")

    def to_dict(self) -> dict[str, Any]:
        return {
            "sheets_in": self.sheets_in,
            "sheets_skipped": self.sheets_skipped,
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
            "dropped_rows": self.dropped_rows,
            "undated_sheets": list(self.undated_sheets),
            "warnings": list(self.warnings),
        }


@dataclass
class RunManifest:
    """Audit-trail manifest for a single CLI run."""

    tool: str = "social-pulse"
    version: str = ""
    run_id: str = ""
    input_path: str = ""
    output_dir: str = ""
    created_at_utc: str = ""
    rows_in: int = 0
    rows_out: int = 0
    sha256: str = ""
    status: str = "success"
    error_code: int | None = None
    error_message: str = ""

    def __post_init__(self) -> None:
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.rows_out = _to_non_negative_int(self.rows_out, "rows_out")
        if self.status not in {"success", "failed"}:
            raise ValueError("status must be 'success' or 'failed'")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "version": self.version,
            "run_id": self.run_id,
            "input_path": self.input_path,
            "output_dir": self.output_dir,
            "created_at_utc": self.created_at_utc,
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
            "sha256": self.sha256,
            "status": self.status,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }
