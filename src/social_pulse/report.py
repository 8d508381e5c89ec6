"""Excel report writer — produces Social_Report.xlsx."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo
from openpyxl.worksheet.worksheet import Worksheet

from social_pulse.models import AggregationResult, FilterSpec, IngestReport, NormalizedRecord

REPORT_NAME = "Social_Report.xlsx"

# ── Style constants ──────────────────────────────────────────────

HEADER_FONT = Font(name="Calibri", bold=True, size=11, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="2F5496", end_color="2F5496", fill_type="solid")
HEADER_ALIGN = Alignment(horizontal="center", vertical="center", wrap_text=True)

TITLE_FONT = Font(name="Calibri", bold=True, size=14, color="2F5496")
SUBTITLE_FONT = Font(name="Calibri", bold=False, size=10, color="808080")
LABEL_FONT = Font(name="Calibri", bold=True, size=11)
VALUE_FONT = Font(name="Calibri", size=11)
WARN_FONT = Font(name="Calibri", italic=True, size=10, color="CC6600")

NOTE_FILL = PatternFill(start_color="FFF2CC", end_color="FFF2CC", fill_type="solid")
KPI_FILL = PatternFill(start_color="D6E4F0", end_color="D6E4F0", fill_type="solid")
INSIGHT_FILL = PatternFill(start_color="E4DFEC", end_color="E4DFEC", fill_type="solid")

INT_FMT = '#,##0'
# Growth-rate cells hold fractions (0.05 is 5%).
PCT_FMT = '0.00%'

_COL_FORMATS: dict[str, str] = {
    "followers": INT_FMT,
    "follower_growth": INT_FMT,
    "follower_growth_pct": PCT_FMT,
    "reach": INT_FMT,
    "reach_growth": INT_FMT,
    "reach_growth_pct": PCT_FMT,
    "video_views": INT_FMT,
    "growth": INT_FMT,
    "views": INT_FMT,
}

DATA_COLUMNS = [
    "platform", "category", "page_name", "owner", "followers", "follower_growth",
    "follower_growth_pct", "reach", "reach_growth", "reach_growth_pct", "video_views",
    "url", "period", "period_order",
]
PLATFORM_COLUMNS = ["platform", "followers", "reach", "growth", "views"]
TOP_PAGE_COLUMNS = ["platform", "page_name", "owner", "period", "followers", "follower_growth"]

_AUTO_WIDTH_SAMPLE_ROWS = 300
_EXCEL_FORMULA_PREFIXES = ("=", "+", "-", "@")


# ── Frames ───────────────────────────────────────────────────────


def records_to_frame(records: Sequence[NormalizedRecord]) -> pd.DataFrame:
    """Tabular view of *records* (one row per record, fixed column order)."""
    if not records:
        return pd.DataFrame(columns=DATA_COLUMNS)
    return pd.DataFrame([r.to_dict() for r in records], columns=DATA_COLUMNS)


def platforms_to_frame(result: AggregationResult | None) -> pd.DataFrame:
    if result is None or not result.platform_breakdown:
        return pd.DataFrame(columns=PLATFORM_COLUMNS)
    return pd.DataFrame(
        [p.to_dict() for p in result.platform_breakdown], columns=PLATFORM_COLUMNS
    )


def top_pages_to_frame(result: AggregationResult | None, n: int = 10) -> pd.DataFrame:
    if result is None or not result.ranked_pages:
        return pd.DataFrame(columns=TOP_PAGE_COLUMNS)
    return records_to_frame(list(result.ranked_pages[:n]))[TOP_PAGE_COLUMNS]


def dashboard_kpis(result: AggregationResult | None) -> dict[str, Any]:
    """Top-level KPI block for the Dashboard sheet."""
    if result is None:
        return {
            "Total Followers": 0,
            "Total Reach": 0,
            "Net Growth": 0,
            "Video Views": 0,
            "Pages": 0,
            "Top Page": "N/A",
            "Top Platform": "N/A",
        }

    top_page = result.ranked_pages[0] if result.ranked_pages else None
    top_platform = max(result.platform_breakdown, key=lambda p: p.followers, default=None)
    return {
        "Total Followers": result.total_followers,
        "Total Reach": result.total_reach,
        "Net Growth": result.total_growth,
        "Video Views": result.total_views,
        "Pages": len(result.ranked_pages),
        "Top Page": f"{top_page.page_name} ({top_page.platform})" if top_page else "N/A",
        "Top Platform": top_platform.platform if top_platform else "N/A",
    }


# ── Helpers ──────────────────────────────────────────────────────


def _style_header(ws: Worksheet, ncols: int) -> None:
    for c in range(1, ncols + 1):
        cell = ws.cell(row=1, column=c)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGN


def _auto_width(ws: Worksheet) -> None:
    max_row = min(ws.max_row, _AUTO_WIDTH_SAMPLE_ROWS + 1)  # include header row
    for c_idx in range(1, ws.max_column + 1):
        letter = get_column_letter(c_idx)
        width = 0
        for row in ws.iter_rows(min_row=1, max_row=max_row, min_col=c_idx, max_col=c_idx):
            width = max(width, len(str(row[0].value or "")))
        ws.column_dimensions[letter].width = min(width + 4, 40)


def _apply_number_formats(ws: Worksheet, col_names: list[str]) -> None:
    if ws.max_row < 2:
        return
    for c_idx, name in enumerate(col_names, 1):
        fmt = _COL_FORMATS.get(name.lower())
        if fmt:
            for row in ws.iter_rows(min_row=2, max_row=ws.max_row, min_col=c_idx, max_col=c_idx):
                for cell in row:
                    cell.number_format = fmt


def _add_excel_table(ws: Worksheet, name: str, ncols: int, nrows: int) -> None:
    if nrows < 1 or ncols < 1:
        return
    ref = f"A1:{get_column_letter(ncols)}{nrows + 1}"  # +1 for header
    table = Table(displayName=f"{name}_table", ref=ref)
    table.tableStyleInfo = TableStyleInfo(
        name="TableStyleMedium9", showFirstColumn=False,
        showLastColumn=False, showRowStripes=True, showColumnStripes=False,
    )
    ws.add_table(table)


def _excel_value(val: Any) -> Any:
    try:
        if pd.isna(val):
            return None
    except (TypeError, ValueError):
        return val

    if isinstance(val, str):
        if val.startswith("'"):
            return val
        stripped = val.lstrip()
        if stripped and stripped[0] in _EXCEL_FORMULA_PREFIXES:
            return f"'{val}"

    return val


def _df_to_sheet(wb: Workbook, name: str, df: pd.DataFrame) -> None:
    ws = wb.create_sheet(title=name)
    col_names = [str(c) for c in df.columns]

    if df.empty:
        ws.cell(row=1, column=1, value="No data").font = VALUE_FONT
        ws.column_dimensions["A"].width = 18
        return

    for c_idx, col_name in enumerate(col_names, 1):
        ws.cell(row=1, column=c_idx, value=col_name)
    for r_idx, row_vals in enumerate(df.itertuples(index=False, name=None), 2):
        for c_idx, val in enumerate(row_vals, 1):
            ws.cell(row=r_idx, column=c_idx, value=_excel_value(val))
    _style_header(ws, len(col_names))
    _apply_number_formats(ws, col_names)
    ws.freeze_panes = "A2"
    _auto_width(ws)
    _add_excel_table(ws, name, len(col_names), len(df))


def _fill_row(ws: Worksheet, row: int, fill: PatternFill) -> None:
    for c in range(1, 5):
        ws.cell(row=row, column=c).fill = fill


def _describe_filter(spec: FilterSpec) -> str:
    return (
        f"Platform: {spec.platform} | Owner: {spec.owner} | "
        f"From: {spec.period_start} | To: {spec.period_end}"
    )


def _write_dashboard(
    wb: Workbook,
    kpis: dict[str, Any],
    ingest: IngestReport,
    spec: FilterSpec,
    insights: str | None,
    has_data: bool,
) -> None:
    ws = wb.create_sheet(title="Dashboard")

    # ── Title ────────────────────────────────────────────────────
    ws.cell(row=1, column=1, value="social-pulse — Dashboard").font = TITLE_FONT
    ws.merge_cells("A1:D1")
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    ws.cell(row=2, column=1, value=f"Generated {generated}").font = SUBTITLE_FONT
    ws.merge_cells("A2:D2")
    ws.cell(row=3, column=1, value=_describe_filter(spec)).font = SUBTITLE_FONT
    ws.merge_cells("A3:D3")

    # ── Notes block (from ingestion) ─────────────────────────────
    row = 5
    ws.cell(row=row, column=1, value="Notes").font = LABEL_FONT
    _fill_row(ws, row, NOTE_FILL)
    ws.merge_cells(f"A{row}:D{row}")
    row += 1
    ws.cell(row=row, column=1, value=f"Sheets: {ingest.sheets_in}")
    ws.cell(row=row, column=2, value=f"Rows in: {ingest.rows_in}")
    ws.cell(row=row, column=3, value=f"Records: {ingest.rows_out}")
    ws.cell(row=row, column=4, value=f"Dropped: {ingest.dropped_rows}")
    _fill_row(ws, row, NOTE_FILL)
    row += 1
    notes = list(ingest.warnings)
    if not has_data:
        notes.append("No data for current filter")
    if notes:
        for note in notes:
            ws.cell(row=row, column=1, value=f"⚠ {note}").font = WARN_FONT
            _fill_row(ws, row, NOTE_FILL)
            row += 1
    else:
        ws.cell(row=row, column=1, value="No warnings").font = VALUE_FONT
        _fill_row(ws, row, NOTE_FILL)
        row += 1

    # ── KPI cards ────────────────────────────────────────────────
    row += 1
    ws.cell(row=row, column=1, value="Key Metrics").font = LABEL_FONT
    ws.merge_cells(f"A{row}:D{row}")
    _fill_row(ws, row, KPI_FILL)
    row += 1

    for label, value in kpis.items():
        lbl_cell = ws.cell(row=row, column=1, value=label)
        lbl_cell.font = LABEL_FONT
        lbl_cell.fill = KPI_FILL
        val_cell = ws.cell(row=row, column=2, value=value)
        val_cell.font = VALUE_FONT
        val_cell.fill = KPI_FILL
        if isinstance(value, (int, float)):
            val_cell.number_format = INT_FMT
            val_cell.alignment = Alignment(horizontal="right")
        row += 1

    # ── Insights ─────────────────────────────────────────────────
    if insights:
        row += 1
        ws.cell(row=row, column=1, value="AI Generated Analysis").font = LABEL_FONT
        ws.merge_cells(f"A{row}:D{row}")
        _fill_row(ws, row, INSIGHT_FILL)
        row += 1
        for line in insights.splitlines():
            if not line.strip():
                continue
            ws.cell(row=row, column=1, value=line.strip()).font = VALUE_FONT
            ws.merge_cells(f"A{row}:D{row}")
            _fill_row(ws, row, INSIGHT_FILL)
            row += 1

    ws.column_dimensions["A"].width = 24
    ws.column_dimensions["B"].width = 22
    ws.column_dimensions["C"].width = 18
    ws.column_dimensions["D"].width = 18


# ── Public API ───────────────────────────────────────────────────


def write_report(
    out_dir: Path,
    records: Sequence[NormalizedRecord],
    result: AggregationResult | None,
    ingest: IngestReport | None = None,
    *,
    spec: FilterSpec = FilterSpec(),
    insights: str | None = None,
    top_n: int = 10,
) -> Path:
    """Write the report workbook and return its path.

    *records* is the filtered record list shown on the ``Data`` sheet;
    *result* is ``None`` when the filter matched nothing.
    """
    if ingest is None:
        ingest = IngestReport()

    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    report_path = out_dir / REPORT_NAME

    wb = Workbook()
    active_sheet = wb.active
    if active_sheet is not None:
        wb.remove(active_sheet)  # remove default sheet

    _write_dashboard(wb, dashboard_kpis(result), ingest, spec, insights, result is not None)
    _df_to_sheet(wb, "Platforms", platforms_to_frame(result))
    _df_to_sheet(wb, "Top_Pages", top_pages_to_frame(result, n=top_n))
    _df_to_sheet(wb, "Data", records_to_frame(records))

    tmp_path = out_dir / f"{report_path.stem}.tmp.xlsx"
    wb.save(tmp_path)
    tmp_path.replace(report_path)
    return report_path
