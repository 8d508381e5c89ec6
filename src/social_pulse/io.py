"""I/O helpers — read workbooks into raw sheets, write JSON artifacts."""

from __future__ import annotations

import csv
import json
import logging
from datetime import date, datetime
from io import BytesIO, StringIO
from pathlib import Path
from typing import Any, Callable, cast

import pandas as pd

from social_pulse.models import RawSheet

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xltx", ".xltm")
SUPPORTED_SUFFIXES = (*EXCEL_SUFFIXES, ".xls", ".csv")

_ZIP_MAGIC = b"PK\x03\x04"
_OLE_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"


class WorkbookReadError(ValueError):
    """The workbook bytes could not be opened or decoded."""


# ── Loading ──────────────────────────────────────────────────────


def _frame_to_rows(df: pd.DataFrame) -> list[list[Any]]:
    grid = df.astype(object).where(pd.notna(df), None)
    return [list(row) for row in grid.itertuples(index=False, name=None)]


def _read_excel_sheets(data: bytes, engine: str) -> list[RawSheet]:
    read_excel = cast(Callable[..., dict[str, pd.DataFrame]], getattr(pd, "read_excel"))
    frames = read_excel(
        BytesIO(data), sheet_name=None, header=None, dtype=object, engine=engine
    )
    return [RawSheet(name=str(name), rows=_frame_to_rows(df)) for name, df in frames.items()]


def _decode_csv(data: bytes, name: str) -> str:
    last_exc: Exception | None = None
    for encoding in ("utf-8-sig", "utf-8", "latin-1"):
        try:
            return data.decode(encoding)
        except UnicodeDecodeError as exc:
            last_exc = exc
    raise WorkbookReadError(f"Could not decode CSV {name}") from last_exc


def _read_csv_sheet(data: bytes, name: str) -> list[RawSheet]:
    sheet_name = Path(name).stem
    text = _decode_csv(data, name)
    if not text.strip():
        return [RawSheet(name=sheet_name)]

    try:
        sep = csv.Sniffer().sniff(text[:4096], delimiters=",;\t|").delimiter
    except csv.Error:
        sep = ","
    # Title rows may be narrower than the header row; width is the widest line.
    width = max((len(r) for r in csv.reader(StringIO(text), delimiter=sep)), default=0)

    try:
        df = pd.read_csv(
            StringIO(text),
            header=None,
            names=list(range(width)),
            sep=sep,
            dtype=object,
            skip_blank_lines=False,
        )
    except pd.errors.ParserError as exc:
        raise WorkbookReadError(f"Could not read CSV {name} (decode or parse failed)") from exc
    return [RawSheet(name=sheet_name, rows=_frame_to_rows(df))]


def read_workbook(data: bytes, *, name: str = "workbook.xlsx") -> list[RawSheet]:
    """Read every sheet of a workbook held in memory.

    The format is sniffed from the leading bytes (OOXML zip or legacy OLE);
    anything else is only accepted when *name* ends in ``.csv``.

    Raises
    ------
    WorkbookReadError
        If the bytes are empty, of an unknown format, or fail to parse.
    """
    if not data:
        raise WorkbookReadError(f"Workbook {name} is empty")

    if data.startswith(_ZIP_MAGIC):
        engine = "openpyxl"
    elif data.startswith(_OLE_MAGIC):
        engine = "xlrd"
    elif name.lower().endswith(".csv"):
        return _read_csv_sheet(data, name)
    else:
        raise WorkbookReadError(
            f"Unrecognised workbook format for {name}. Use .xlsx, .xls, or .csv"
        )

    try:
        sheets = _read_excel_sheets(data, engine)
    except ImportError as exc:
        raise WorkbookReadError(
            "Unsupported .xls input unless 'xlrd' is installed. "
            "Either convert to .xlsx or add dependency: pip install xlrd"
        ) from exc
    except Exception as exc:
        raise WorkbookReadError(f"Could not read workbook {name}: {exc}") from exc

    logger.debug("Read %d sheet(s) from %s with %s", len(sheets), name, engine)
    return sheets


def load_workbook(path: Path) -> list[RawSheet]:
    """Load a workbook file from disk.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If *path* is a directory, has an unsupported extension, or cannot be
        read (:class:`WorkbookReadError`).
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    if path.is_dir():
        raise ValueError(f"Input path is a directory, not a file: {path}")

    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValueError(f"Unsupported file type: {suffix!r}. Use .xlsx, .xls, or .csv")

    return read_workbook(path.read_bytes(), name=path.name)


# ── Writing ──────────────────────────────────────────────────────


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    item = getattr(obj, "item", None)
    if callable(item):
        converted = item()
        if isinstance(converted, (str, int, float, bool)) or converted is None:
            return converted
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def write_json(path: Path, data: Any) -> Path:
    """Write *data* as pretty-printed JSON to *path* (atomic + deterministic)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = json.dumps(
        data,
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
        default=_json_default,
    ) + "\n"
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(path)
    return path
