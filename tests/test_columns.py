"""Header detection and column-role classification."""

from __future__ import annotations

import pytest

from social_pulse.columns import (
    HEADER_SCAN_ROWS,
    KEYWORDS,
    best_header_score,
    build_keyword_table,
    classify_columns,
    detect_header_row,
    score_header_row,
)


def test_detect_header_row_skips_title_rows() -> None:
    rows = [
        ["October social report"],
        [],
        ["Platform", "Page Name", "Followers", "Owner"],
        ["FB", "Page A", 100, "Alice"],
    ]

    assert detect_header_row(rows) == 2


def test_detect_header_row_prefers_highest_score_and_earliest_tie() -> None:
    rows = [
        ["Platform", "Notes"],
        ["平台", "账号名称", "粉丝数", "负责人"],
        ["Platform", "Page", "Followers", "Owner"],
    ]

    assert score_header_row(rows[1]) == 4
    assert detect_header_row(rows) == 1


def test_detect_header_row_never_looks_past_scan_window() -> None:
    rows: list[list[object]] = [["data", i] for i in range(HEADER_SCAN_ROWS)]
    rows.append(["Platform", "Page Name", "Followers", "Owner"])

    idx = detect_header_row(rows)

    assert idx < HEADER_SCAN_ROWS
    assert idx == 0


def test_detect_header_row_falls_back_to_first_row() -> None:
    rows = [["a", "b"], ["c", "d"]]

    assert detect_header_row(rows) == 0
    assert best_header_score(rows) == 0


def test_detect_header_row_handles_empty_input() -> None:
    assert detect_header_row([]) == 0


def test_classify_columns_english_header() -> None:
    header = [
        "Platform", "Category", "Page Name", "Followers", "Follower Growth",
        "Follower Growth %", "Reach", "Reach Growth", "Reach Growth Rate",
        "Video Views", "Live Views", "Link", "Owner",
    ]

    roles = classify_columns(header)

    assert roles.platform == 0
    assert roles.category == 1
    assert roles.page_name == 2
    assert roles.followers == 3
    assert roles.follower_growth == 4
    assert roles.follower_growth_pct == 5
    assert roles.reach == 6
    assert roles.reach_growth == 7
    assert roles.reach_growth_pct == 8
    assert roles.views == (9, 10)
    assert roles.url == 11
    assert roles.owner == 12


def test_classify_columns_chinese_header() -> None:
    header = ["平台", "垂类", "账号名称", "粉丝数", "涨粉数", "涨粉率", "阅读量", "播放量", "链接", "负责人"]

    roles = classify_columns(header)

    assert roles.platform == 0
    assert roles.category == 1
    assert roles.page_name == 2
    assert roles.followers == 3
    assert roles.follower_growth == 4
    assert roles.reach == 6
    assert roles.views == (7,)
    assert roles.url == 8
    assert roles.owner == 9


def test_value_role_skips_percentage_header_that_comes_first() -> None:
    header = ["Page", "Growth %", "Growth"]

    roles = classify_columns(header)

    assert roles.follower_growth == 2
    assert roles.follower_growth_pct == 1


def test_percentage_role_requires_base_keyword_and_rate_marker() -> None:
    roles = classify_columns(["Page", "Engagement rate", "Net growth"])

    assert roles.follower_growth_pct is None
    assert roles.follower_growth == 2


def test_chinese_ratio_marker_counts_as_percentage() -> None:
    roles = classify_columns(["账号名称", "粉丝数", "净增", "净增环比"])

    assert roles.follower_growth == 2
    assert roles.follower_growth_pct == 3


def test_view_columns_exclude_growth_and_rate_headers() -> None:
    header = ["Page", "Video Views", "Views Growth", "播放量", "播放增长", "Play rate", "VV"]

    roles = classify_columns(header)

    assert roles.views == (1, 3, 6)


def test_unmatched_roles_resolve_to_none() -> None:
    roles = classify_columns(["Foo", "Bar"])

    assert roles.platform is None
    assert roles.views == ()
    assert roles.found() == []


def test_build_keyword_table_appends_fragments_without_reordering() -> None:
    table = build_keyword_table({"followers": ["订阅", "Subscribers", "fans"]})

    assert table["followers"][: len(KEYWORDS["followers"])] == KEYWORDS["followers"]
    assert table["followers"][-2:] == ("订阅", "subscribers")
    assert KEYWORDS["followers"][-1] == "关注"


def test_build_keyword_table_extends_classification() -> None:
    table = build_keyword_table({"followers": ["subscribers"]})

    assert classify_columns(["Page", "Subscribers"]).followers is None
    assert classify_columns(["Page", "Subscribers"], table).followers == 1


def test_build_keyword_table_rejects_unknown_role() -> None:
    with pytest.raises(ValueError, match="Unknown keyword role"):
        build_keyword_table({"likes": ["likes"]})
