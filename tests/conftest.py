from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
from openpyxl import Workbook

Rows = list[list[object]]


def build_workbook(path: Path, sheets: dict[str, Rows]) -> Path:
    """Save *sheets* (name -> rows) as an .xlsx file at *path*."""
    wb = Workbook()
    active = wb.active
    if active is not None:
        wb.remove(active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(row)
    wb.save(path)
    return path


@pytest.fixture
def make_workbook(tmp_path: Path) -> Callable[..., Path]:
    def _make(sheets: dict[str, Rows], name: str = "report.xlsx") -> Path:
        return build_workbook(tmp_path / name, sheets)

    return _make


@pytest.fixture
def two_month_sheets() -> dict[str, Rows]:
    header = ["Platform", "Page Name", "Followers", "Follower Growth", "Reach", "Owner"]
    return {
        "9月": [
            ["Monthly social report"],
            header,
            ["FB", "Page A", "1,000", "50", "2,000", "Alice"],
            ["IG", "Page B", 500, 20, 800, "Bob"],
            [None, "Total", 1500, 70, 2800, None],
        ],
        "10月": [
            header,
            ["FB", "Page A", "1,100", "100", "3,000", "Alice"],
            ["IG", "Page B", 510, 10, 900, "Bob"],
            ["TT", "Page C", 300, 30, 100, "Alice"],
        ],
    }
