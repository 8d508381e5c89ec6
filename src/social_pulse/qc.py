"""Ingestion QC report persistence."""

from __future__ import annotations

from pathlib import Path

from social_pulse.io import write_json
from social_pulse.models import IngestReport


def write_qc_report(out_dir: Path, report: IngestReport) -> Path:
    """Write ``qc_report.json`` into *out_dir* and return the path."""
    return write_json(out_dir / "qc_report.json", report.to_dict())
