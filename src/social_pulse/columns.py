"""Header-row detection and column-role classification.

Both steps are keyword-table lookups: a header cell plays a role when its
lowercased text contains one of the role's (English or Chinese) fragments.
Table contents and resolution order are part of the classification contract;
extend them through :func:`build_keyword_table` rather than editing them.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from social_pulse import HEADER_ROLES
from social_pulse.models import ColumnRoleMap
from social_pulse.utils import cell_text

HEADER_SCAN_ROWS = 10

KeywordTable = Mapping[str, Sequence[str]]

KEYWORDS: dict[str, tuple[str, ...]] = {
    "platform": ("platform", "平台", "渠道", "channel"),
    "category": ("category", "分类", "垂类", "type"),
    "page_name": ("page name", "page", "account", "账号名称", "名称", "name", "account name"),
    "followers": ("followers", "fans", "total followers", "粉丝数", "粉丝量", "关注"),
    "follower_growth": ("follower growth", "growth", "net growth", "涨粉数", "净增", "增量"),
    "reach": ("reach", "total reach", "coverage", "阅读量", "覆盖", "曝光", "impressions"),
    "reach_growth": ("reach growth", "覆盖增长", "阅读增长"),
    "views": ("view", "play", "播放量", "视频播放", "vv"),
    "url": ("link", "url", "链接", "主页"),
    "owner": ("owner", "pic", "负责人", "运营", "contact", "leader"),
}

RATE_MARKERS: tuple[str, ...] = ("%", "rate", "率", "比")
VIEW_EXCLUDE_MARKERS: tuple[str, ...] = ("growth", "增", "rate", "比")


def build_keyword_table(
    extra: Mapping[str, Sequence[str]] | None = None,
) -> dict[str, tuple[str, ...]]:
    """Return :data:`KEYWORDS` with *extra* fragments appended per role.

    Raises
    ------
    ValueError
        If *extra* names a role that does not exist.
    """
    table = dict(KEYWORDS)
    for role, fragments in (extra or {}).items():
        if role not in table:
            known = ", ".join(sorted(KEYWORDS))
            raise ValueError(f"Unknown keyword role: {role!r} (expected one of {known})")
        additions = tuple(
            f.strip().lower() for f in fragments if f.strip() and f.strip().lower() not in table[role]
        )
        table[role] = table[role] + additions
    return table


# ── Matching primitives ─────────────────────────────────────────


def _header_text(cell: Any) -> str:
    return cell_text(cell).lower()


def _contains_any(text: str, fragments: Sequence[str]) -> bool:
    return any(fragment in text for fragment in fragments)


def find_column(header: Sequence[Any], fragments: Sequence[str]) -> int | None:
    """Index of the first header cell containing any of *fragments*."""
    for idx, cell in enumerate(header):
        if not cell:
            continue
        if _contains_any(_header_text(cell), fragments):
            return idx
    return None


def find_value_column(header: Sequence[Any], fragments: Sequence[str]) -> int | None:
    """Like :func:`find_column`, skipping percentage/rate headers."""
    for idx, cell in enumerate(header):
        if not cell:
            continue
        text = _header_text(cell)
        if _contains_any(text, fragments) and not _contains_any(text, RATE_MARKERS):
            return idx
    return None


def find_rate_column(header: Sequence[Any], fragments: Sequence[str]) -> int | None:
    """Index of the first header matching *fragments* AND a rate marker."""
    for idx, cell in enumerate(header):
        if not cell:
            continue
        text = _header_text(cell)
        if _contains_any(text, fragments) and _contains_any(text, RATE_MARKERS):
            return idx
    return None


def find_view_columns(header: Sequence[Any], fragments: Sequence[str]) -> tuple[int, ...]:
    """Every views-like column that is not a growth or rate column."""
    return tuple(
        idx
        for idx, cell in enumerate(header)
        if _contains_any(_header_text(cell), fragments)
        and not _contains_any(_header_text(cell), VIEW_EXCLUDE_MARKERS)
    )


# ── Public API ───────────────────────────────────────────────────


def score_header_row(row: Sequence[Any], keywords: KeywordTable = KEYWORDS) -> int:
    """Number of header roles (platform, page, followers, owner) present in *row*."""
    return sum(1 for role in HEADER_ROLES if find_column(row, keywords[role]) is not None)


def best_header_score(rows: Sequence[Sequence[Any]], keywords: KeywordTable = KEYWORDS) -> int:
    """Highest :func:`score_header_row` among the scanned rows (0 if none match)."""
    return max(
        (score_header_row(row or [], keywords) for row in rows[:HEADER_SCAN_ROWS]), default=0
    )


def detect_header_row(rows: Sequence[Sequence[Any]], keywords: KeywordTable = KEYWORDS) -> int:
    """Return the index of the likeliest header among the first 10 rows.

    Highest :func:`score_header_row` wins, ties keep the earliest row, and
    row 0 is the fallback when nothing scores.
    """
    best_idx = 0
    best_score = 0
    for idx, row in enumerate(rows[:HEADER_SCAN_ROWS]):
        score = score_header_row(row or [], keywords)
        if score > best_score:
            best_score = score
            best_idx = idx
    return best_idx


def classify_columns(header: Sequence[Any], keywords: KeywordTable = KEYWORDS) -> ColumnRoleMap:
    """Resolve every role to a column position within *header*."""
    return ColumnRoleMap(
        platform=find_column(header, keywords["platform"]),
        category=find_column(header, keywords["category"]),
        page_name=find_column(header, keywords["page_name"]),
        followers=find_value_column(header, keywords["followers"]),
        follower_growth=find_value_column(header, keywords["follower_growth"]),
        follower_growth_pct=find_rate_column(header, keywords["follower_growth"]),
        reach=find_value_column(header, keywords["reach"]),
        reach_growth=find_value_column(header, keywords["reach_growth"]),
        reach_growth_pct=find_rate_column(header, keywords["reach_growth"]),
        views=find_view_columns(header, keywords["views"]),
        url=find_column(header, keywords["url"]),
        owner=find_column(header, keywords["owner"]),
    )
