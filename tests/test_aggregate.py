from __future__ import annotations

import pytest

from social_pulse.aggregate import (
    METRICS,
    MetricKind,
    aggregate,
    filter_records,
    latest_period,
    latest_snapshots,
    owner_options,
    period_options,
    platform_options,
    search_records,
    sort_records,
)
from social_pulse.models import FilterSpec, NormalizedRecord, Period


def _rec(
    page: str,
    period: str,
    order: int,
    *,
    platform: str = "Facebook",
    owner: str = "Alice",
    followers: float = 0,
    growth: float = 0,
    reach: float = 0,
    views: float = 0,
) -> NormalizedRecord:
    return NormalizedRecord(
        platform=platform,
        category="News",
        page_name=page,
        owner=owner,
        followers=followers,
        follower_growth=growth,
        reach=reach,
        video_views=views,
        period=period,
        period_order=order,
    )


@pytest.fixture
def records() -> list[NormalizedRecord]:
    return [
        _rec("P1", "Sept", 202509, followers=100, growth=10, reach=1000, views=5),
        _rec("P1", "Oct", 202510, followers=150, growth=20, reach=2000, views=7),
        _rec("P2", "Sept", 202509, platform="Instagram", owner="Bob", followers=500, growth=40, reach=300),
        _rec("P2", "Oct", 202510, platform="Instagram", owner="Bob", followers=510, growth=5, reach=400),
        _rec("P3", "Oct", 202510, platform="TikTok", followers=80, growth=15, reach=50),
    ]


def test_metric_tags() -> None:
    kinds = {m.name: m.kind for m in METRICS}
    assert kinds == {
        "followers": MetricKind.SNAPSHOT,
        "reach": MetricKind.FLOW,
        "growth": MetricKind.FLOW,
        "views": MetricKind.FLOW,
    }


def test_followers_count_latest_snapshot_only() -> None:
    rows = [
        _rec("P1", "A", 1, followers=100, growth=10),
        _rec("P1", "B", 2, followers=150, growth=20),
    ]

    result = aggregate(rows)

    assert result is not None
    assert result.total_followers == 150
    assert result.total_growth == 30
    assert result.record_count == 2


def test_totals_across_pages(records: list[NormalizedRecord]) -> None:
    result = aggregate(records)

    assert result is not None
    assert result.total_followers == 150 + 510 + 80
    assert result.total_reach == 1000 + 2000 + 300 + 400 + 50
    assert result.total_growth == 10 + 20 + 40 + 5 + 15
    assert result.total_views == 12
    assert result.record_count == 5


def test_platform_breakdown_first_appearance_order(records: list[NormalizedRecord]) -> None:
    result = aggregate(records)

    assert result is not None
    stats = {p.platform: p for p in result.platform_breakdown}
    assert [p.platform for p in result.platform_breakdown] == ["Facebook", "Instagram", "TikTok"]
    assert stats["Facebook"].followers == 150
    assert stats["Facebook"].reach == 3000
    assert stats["Facebook"].growth == 30
    assert stats["Instagram"].followers == 510
    assert stats["Instagram"].growth == 45
    assert sum(p.followers for p in result.platform_breakdown) == result.total_followers


def test_ranked_pages_use_latest_period_growth(records: list[NormalizedRecord]) -> None:
    result = aggregate(records)

    assert result is not None
    # P2 grew 45 over the range but only 5 in its latest period.
    assert [r.page_name for r in result.ranked_pages] == ["P1", "P3", "P2"]
    assert all(r.period == "Oct" for r in result.ranked_pages)


def test_ranked_pages_are_stable_on_ties() -> None:
    rows = [
        _rec("First", "Oct", 1, growth=5),
        _rec("Second", "Oct", 1, growth=5),
    ]

    result = aggregate(rows)

    assert result is not None
    assert [r.page_name for r in result.ranked_pages] == ["First", "Second"]


def test_latest_snapshot_tie_keeps_first_record() -> None:
    rows = [
        _rec("P1", "Oct", 202510, followers=100),
        _rec("P1", "October", 202510, followers=999),
    ]

    latest = latest_snapshots(rows)

    assert len(latest) == 1
    assert latest[0].followers == 100


def test_same_page_name_on_two_platforms_is_two_pages() -> None:
    rows = [
        _rec("Brand", "Oct", 1, platform="Facebook", followers=10),
        _rec("Brand", "Oct", 1, platform="Instagram", followers=20),
    ]

    result = aggregate(rows)

    assert result is not None
    assert result.total_followers == 30


def test_platform_and_owner_filters(records: list[NormalizedRecord]) -> None:
    facebook = aggregate(records, FilterSpec(platform="Facebook"))
    bob = aggregate(records, FilterSpec(owner="Bob"))

    assert facebook is not None
    assert facebook.total_followers == 150
    assert facebook.record_count == 2
    assert bob is not None
    assert [p.platform for p in bob.platform_breakdown] == ["Instagram"]


def test_period_range_is_inclusive(records: list[NormalizedRecord]) -> None:
    sept_only = aggregate(records, FilterSpec(period_start="Sept", period_end="Sept"))
    from_oct = aggregate(records, FilterSpec(period_start="Oct"))

    assert sept_only is not None
    assert sept_only.total_followers == 600
    assert sept_only.record_count == 2
    assert from_oct is not None
    assert from_oct.record_count == 3


def test_inverted_range_matches_nothing(records: list[NormalizedRecord]) -> None:
    spec = FilterSpec(period_start="Oct", period_end="Sept")

    assert filter_records(records, spec) == []
    assert aggregate(records, spec) is None


def test_unknown_platform_returns_none(records: list[NormalizedRecord]) -> None:
    assert aggregate(records, FilterSpec(platform="Myspace")) is None
    assert aggregate([]) is None


def test_unknown_period_label_leaves_bound_open(records: list[NormalizedRecord]) -> None:
    assert len(filter_records(records, FilterSpec(period_start="Nope"))) == 5


def test_aggregate_is_idempotent(records: list[NormalizedRecord]) -> None:
    spec = FilterSpec(platform="Instagram")

    assert aggregate(records, spec) == aggregate(records, spec)


def test_dropdown_options(records: list[NormalizedRecord]) -> None:
    assert platform_options(records) == ["Facebook", "Instagram", "TikTok"]
    assert owner_options(records) == ["Alice", "Bob"]
    assert period_options(records) == [Period("Sept", 202509), Period("Oct", 202510)]


def test_period_options_dedupe_by_label() -> None:
    rows = [
        _rec("P1", "Oct", 202510),
        _rec("P2", "Oct", 202410),
        _rec("P3", "Undated", 0),
    ]

    assert period_options(rows) == [Period("Undated", 0), Period("Oct", 202510)]


def test_latest_period(records: list[NormalizedRecord]) -> None:
    assert latest_period(records) == Period("Oct", 202510)
    assert latest_period([]) is None


def test_search_records(records: list[NormalizedRecord]) -> None:
    assert {r.page_name for r in search_records(records, "bob")} == {"P2"}
    assert len(search_records(records, "OCT")) == 3
    assert len(search_records(records, "  ")) == 5


def test_sort_records(records: list[NormalizedRecord]) -> None:
    by_followers = sort_records(records)
    by_period = sort_records(records, "period", descending=False)

    assert by_followers[0].followers == 510
    assert [r.period for r in by_period] == ["Sept", "Sept", "Oct", "Oct", "Oct"]


def test_sort_records_rejects_unknown_field(records: list[NormalizedRecord]) -> None:
    with pytest.raises(ValueError, match="Cannot sort by"):
        sort_records(records, "url")
