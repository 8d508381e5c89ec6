"""Cell, platform and period normalisation — total functions, never raise."""

from __future__ import annotations

import re
from datetime import date
from numbers import Real

from social_pulse.models import Period
from social_pulse.utils import cell_text

# ── Numbers ──────────────────────────────────────────────────────


_LEADING_FLOAT_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_BOOLEAN_LITERALS = frozenset({"FALSE", "TRUE"})


def _leading_float(token: str) -> float | None:
    match = _LEADING_FLOAT_RE.match(token.strip())
    if match is None:
        return None
    return float(match.group(0))


def parse_number(value: object) -> float:
    """Convert one raw cell to a number.

    ``"1,200"`` -> 1200, ``"5%"`` -> 0.05, ``"FALSE"``/``""``/``"abc"`` -> 0.
    Numeric cells are returned unchanged (NaN counts as empty).
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, Real):
        if value != value:  # NaN
            return 0.0
        return value  # type: ignore[return-value]

    text = cell_text(value).strip()
    if not text or text in _BOOLEAN_LITERALS:
        return 0.0

    cleaned = text.replace(",", "")
    if "%" in cleaned:
        parsed = _leading_float(cleaned.replace("%", ""))
        return parsed / 100 if parsed is not None else 0.0

    parsed = _leading_float(cleaned)
    return parsed if parsed is not None else 0.0


# ── Platforms ────────────────────────────────────────────────────


UNKNOWN_PLATFORM = "Unknown"

# (canonical, exact aliases, substring aliases), checked in order.
_PLATFORM_ALIASES: list[tuple[str, frozenset[str], tuple[str, ...]]] = [
    ("Facebook", frozenset({"FB"}), ("FACEBOOK",)),
    ("Instagram", frozenset({"IG"}), ("INSTAGRAM",)),
    ("TikTok", frozenset({"TT"}), ("TIKTOK", "DOUYIN")),
    ("YouTube", frozenset({"YT"}), ("YOUTUBE",)),
    ("X (Twitter)", frozenset({"X"}), ("TWITTER",)),
    ("Xiaohongshu", frozenset({"XHS"}), ("RED", "XIAOHONGSHU")),
]


def map_platform(raw: object) -> str:
    """Map a free-text platform cell to its canonical label."""
    token = cell_text(raw).strip().upper()
    if not token:
        return UNKNOWN_PLATFORM

    for canonical, exact, contains in _PLATFORM_ALIASES:
        if token in exact or any(alias in token for alias in contains):
            return canonical

    return token[0] + token[1:].lower()


# ── Periods ──────────────────────────────────────────────────────


UNDATED_ORDER = 0

_YEAR_RE = re.compile(r"20\d{2}")
_CJK_MONTH_RE = re.compile(r"(\d{1,2})\s*月")
_MONTH_ABBREVIATIONS = (
    "jan", "feb", "mar", "apr", "may", "jun",
    "jul", "aug", "sep", "oct", "nov", "dec",
)


def parse_period(sheet_name: str, today: date | None = None) -> Period:
    """Derive ``(label, order)`` from a free-text sheet name.

    ``order`` is ``year * 100 + month``; the year defaults to the current one
    and a name without any month token gets :data:`UNDATED_ORDER`.  The label
    is the trimmed name as written.
    """
    today = today or date.today()
    year = today.year
    month = 0

    year_match = _YEAR_RE.search(sheet_name)
    if year_match:
        year = int(year_match.group(0))

    cjk_match = _CJK_MONTH_RE.search(sheet_name)
    if cjk_match:
        month = int(cjk_match.group(1))
    else:
        lower = sheet_name.lower()
        for idx, abbrev in enumerate(_MONTH_ABBREVIATIONS, start=1):
            if abbrev in lower:
                month = idx
                break

    order = year * 100 + month if month > 0 else UNDATED_ORDER
    return Period(label=sheet_name.strip(), order=order)
