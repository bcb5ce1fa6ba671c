"""Row extraction — header-keyed dynamic records from raw sheet rows."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from sheet_mapper.io import RowSource
from sheet_mapper.models import Cell, DynamicRecord, QCReport

logger = logging.getLogger(__name__)


def _read_headers(row: Sequence[Any], qc: QCReport) -> dict[int, str]:
    headers: dict[int, str] = {}
    for col, raw in enumerate(row):
        cell = Cell.classify(raw)
        header = "" if cell is None else str(cell.value).strip()
        if not header:
            logger.warning("Empty header found at column %d. Skipping this column.", col)
            qc.warnings.append(f"Skipped column {col}: empty header")
            continue
        headers[col] = header
        logger.debug("Found column %d: %r", col, header)
    return headers


def _parse_row(row: Sequence[Any], headers: dict[int, str]) -> DynamicRecord | None:
    cells: dict[str, Cell] = {}
    for col, header in headers.items():
        if col >= len(row):
            continue
        cell = Cell.classify(row[col])
        if cell is None:
            continue
        cells[header] = cell
    if not cells:
        return None
    return DynamicRecord(cells)


def extract_with_report(source: RowSource) -> tuple[list[DynamicRecord], QCReport]:
    """Extract dynamic records from *source* and report skipped rows/columns.

    Row 0 is the header row. Columns with a blank header are ignored in every
    row, and data rows without a single populated cell are skipped.

    Returns ``(records, qc_report)`` where ``qc_report.rows_in`` counts data
    rows (header excluded).
    """
    logger.info("Starting dynamic sheet parsing")
    records: list[DynamicRecord] = []
    qc = QCReport()
    headers: dict[int, str] = {}
    data_rows = 0
    empty_rows = 0

    for index, row in enumerate(source.rows()):
        if index == 0:
            headers = _read_headers(row, qc)
            continue

        data_rows += 1
        record = _parse_row(row, headers)
        if record is None:
            logger.warning("Skipped empty or unprocessable row at index %d.", index)
            empty_rows += 1
            continue

        records.append(record)
        logger.debug("Parsed row %d.", index)

    if empty_rows:
        qc.warnings.append(f"Skipped {empty_rows} empty rows")

    qc.rows_in = data_rows
    qc.rows_out = len(records)
    qc.dropped_rows = data_rows - len(records)

    logger.info(
        "Completed parsing. Total rows processed (incl. header): %d of %d",
        len(records) + 1,
        source.row_count,
    )
    return records, qc


def extract_records(source: RowSource) -> list[DynamicRecord]:
    """Return the dynamic records of *source*, in row order."""
    records, _qc = extract_with_report(source)
    return records
