"""Ingestion pipeline — raw sheets to normalized records, no side effects."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date
from typing import Any

from social_pulse.columns import (
    KEYWORDS,
    KeywordTable,
    best_header_score,
    classify_columns,
    detect_header_row,
)
from social_pulse.io import read_workbook
from social_pulse.models import ColumnRoleMap, IngestReport, NormalizedRecord, Period, RawSheet
from social_pulse.normalize import UNDATED_ORDER, map_platform, parse_number, parse_period
from social_pulse.utils import cell_text

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "No valid data found in the workbook."

PLACEHOLDER_PAGE = "Unknown Page"
SUMMARY_FRAGMENTS: tuple[str, ...] = ("total", "总计", "合计")
UNKNOWN_OWNER = "Unknown"
DEFAULT_CATEGORY = "Uncategorized"
DEFAULT_URL = "#"

# Positions used when a role's header is not found (0-indexed).
FALLBACK_COLUMNS: dict[str, int] = {
    "platform": 0,
    "category": 1,
    "page_name": 2,
    "followers": 3,
    "follower_growth": 4,
    "follower_growth_pct": 5,
    "reach": 6,
    "reach_growth": 7,
    "reach_growth_pct": 8,
    "url": 12,
    "owner": 13,
}
FALLBACK_VIEW_COLUMNS: tuple[int, ...] = (10, 11, 12)


class ParseError(ValueError):
    """A readable workbook produced zero usable records."""


# ── Row helpers ──────────────────────────────────────────────────


def _cell(row: Sequence[Any], idx: int | None) -> Any:
    if idx is None or idx < 0 or idx >= len(row):
        return None
    return row[idx]


def _lookup(row: Sequence[Any], roles: ColumnRoleMap, role: str) -> Any:
    value = _cell(row, getattr(roles, role))
    if value is None:
        value = _cell(row, FALLBACK_COLUMNS[role])
    return value


def _text(row: Sequence[Any], roles: ColumnRoleMap, role: str, default: str) -> str:
    return cell_text(_lookup(row, roles, role)).strip() or default


def _number(row: Sequence[Any], roles: ColumnRoleMap, role: str) -> float:
    return float(parse_number(_lookup(row, roles, role)))


def _is_blank(row: Sequence[Any] | None) -> bool:
    if not row:
        return True
    return all(cell is None or (isinstance(cell, str) and not cell.strip()) for cell in row)


def is_summary_name(page_name: str) -> bool:
    """True for subtotal/total rows and rows without a page name."""
    if page_name == PLACEHOLDER_PAGE:
        return True
    lowered = page_name.lower()
    return any(fragment in lowered for fragment in SUMMARY_FRAGMENTS)


def map_row(row: Sequence[Any], roles: ColumnRoleMap, period: Period) -> NormalizedRecord | None:
    """Turn one data row into a record, or ``None`` for blank and summary rows."""
    if _is_blank(row):
        return None

    page_name = _text(row, roles, "page_name", PLACEHOLDER_PAGE)
    if is_summary_name(page_name):
        return None

    view_columns = roles.views or FALLBACK_VIEW_COLUMNS
    video_views = sum(float(parse_number(_cell(row, idx))) for idx in view_columns)

    return NormalizedRecord(
        platform=map_platform(_lookup(row, roles, "platform")),
        category=_text(row, roles, "category", DEFAULT_CATEGORY),
        page_name=page_name,
        owner=_text(row, roles, "owner", UNKNOWN_OWNER),
        followers=_number(row, roles, "followers"),
        follower_growth=_number(row, roles, "follower_growth"),
        follower_growth_pct=_number(row, roles, "follower_growth_pct"),
        reach=_number(row, roles, "reach"),
        reach_growth=_number(row, roles, "reach_growth"),
        reach_growth_pct=_number(row, roles, "reach_growth_pct"),
        video_views=video_views,
        url=_text(row, roles, "url", DEFAULT_URL),
        period=period.label,
        period_order=period.order,
    )


# ── Sheet + workbook ─────────────────────────────────────────────


def parse_sheet(
    sheet: RawSheet,
    *,
    keywords: KeywordTable = KEYWORDS,
    today: date | None = None,
) -> tuple[list[NormalizedRecord], int]:
    """Parse one sheet; returns ``(records, non_blank_data_rows)``."""
    if len(sheet.rows) < 1:
        return [], 0

    period = parse_period(sheet.name, today=today)
    header_idx = detect_header_row(sheet.rows, keywords)
    header = sheet.rows[header_idx] or []
    roles = classify_columns(header, keywords)
    logger.debug(
        "Sheet %r: header row %d, roles %s, views %s, period order %d",
        sheet.name, header_idx, roles.found(), list(roles.views), period.order,
    )

    records: list[NormalizedRecord] = []
    rows_in = 0
    for row in sheet.rows[header_idx + 1:]:
        if _is_blank(row):
            continue
        rows_in += 1
        record = map_row(row, roles, period)
        if record is not None:
            records.append(record)
    return records, rows_in


def parse_workbook(
    sheets: Sequence[RawSheet],
    *,
    keywords: KeywordTable = KEYWORDS,
    today: date | None = None,
) -> tuple[list[NormalizedRecord], IngestReport]:
    """Parse every sheet in order.

    Returns ``(records, ingest_report)``.  Never raises on an empty result;
    see :func:`parse` for the strict variant.
    """
    report = IngestReport(sheets_in=len(sheets))
    records: list[NormalizedRecord] = []

    for sheet in sheets:
        if len(sheet.rows) < 1:
            report.sheets_skipped += 1
            report.warnings.append(f"Skipped empty sheet {sheet.name!r}")
            continue

        if best_header_score(sheet.rows, keywords) == 0:
            report.warnings.append(
                f"No header keywords found in sheet {sheet.name!r}; using positional columns"
            )

        sheet_records, rows_in = parse_sheet(sheet, keywords=keywords, today=today)
        report.rows_in += rows_in
        report.rows_out += len(sheet_records)

        if parse_period(sheet.name, today=today).order == UNDATED_ORDER:
            report.undated_sheets.append(sheet.name)
            report.warnings.append(
                f"Sheet {sheet.name!r} has no recognizable month; sorted before dated periods"
            )
        records.extend(sheet_records)

    report.dropped_rows = report.rows_in - report.rows_out
    if report.dropped_rows:
        suffix = "" if report.dropped_rows == 1 else "s"
        report.warnings.append(
            f"Dropped {report.dropped_rows} summary or unnamed row{suffix}"
        )
    if not records:
        report.warnings.append(NO_DATA_MESSAGE)

    logger.info(
        "Parsed %d record(s) from %d sheet(s) (%d rows dropped)",
        report.rows_out, report.sheets_in, report.dropped_rows,
    )
    return records, report


def parse(
    workbook_bytes: bytes,
    *,
    name: str = "workbook.xlsx",
    keywords: KeywordTable = KEYWORDS,
    today: date | None = None,
) -> list[NormalizedRecord]:
    """Read and normalize a workbook held in memory.

    Raises
    ------
    WorkbookReadError
        If the bytes cannot be read as a workbook.
    ParseError
        If the workbook yields zero records.
    """
    records, _report = parse_workbook(
        read_workbook(workbook_bytes, name=name), keywords=keywords, today=today
    )
    if not records:
        raise ParseError(NO_DATA_MESSAGE)
    return records
