"""QC report and diagnostics persistence."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from sheet_mapper.io import write_json
from sheet_mapper.mapper import Diagnostic
from sheet_mapper.models import QCReport


def write_qc_report(out_dir: Path, qc: QCReport) -> Path:
    """Write ``qc_report.json`` into *out_dir* and return the path."""
    return write_json(out_dir / "qc_report.json", qc.to_dict())


def write_diagnostics(out_dir: Path, diagnostics: Sequence[Diagnostic]) -> Path:
    """Write ``diagnostics.json`` (one entry per field/record issue, in order)."""
    return write_json(out_dir / "diagnostics.json", [d.to_dict() for d in diagnostics])
