"""Data models used across the package: cells, dynamic records, QC artifacts."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from numbers import Integral
from typing import Any

import numpy as np
import pandas as pd


def _to_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


def _to_string_list(values: Sequence[Any] | None, field_name: str) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a sequence of strings")
    normalized: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise TypeError(f"{field_name} items must be strings")
        normalized.append(item)
    return normalized


# ── Cells ────────────────────────────────────────────────────────


class CellKind(str, Enum):
    TEXT = "text"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"


def _is_missing(raw: object) -> bool:
    if raw is None:
        return True
    try:
        return bool(pd.isna(raw))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return False


def _unwrap(raw: object) -> object:
    if isinstance(raw, np.datetime64):
        return pd.Timestamp(raw).to_pydatetime()
    if isinstance(raw, np.generic):
        return raw.item()
    if isinstance(raw, pd.Timestamp):
        return raw.to_pydatetime()
    return raw


@dataclass(frozen=True)
class Cell:
    """A scalar value tagged with its kind.

    Readers hand back loosely-typed values; the kind is decided once, here,
    so conversions never have to inspect Python types again.
    """

    kind: CellKind
    value: Any

    @property
    def is_blank(self) -> bool:
        return self.kind is CellKind.TEXT and not str(self.value).strip()

    @classmethod
    def of(cls, raw: object) -> Cell:
        """Tag *raw* without discarding blank text."""
        if _is_missing(raw):
            raise TypeError("cannot build a cell from a missing value")
        raw = _unwrap(raw)
        if isinstance(raw, bool):
            return cls(CellKind.BOOLEAN, raw)
        if isinstance(raw, int):
            return cls(CellKind.INTEGER, raw)
        if isinstance(raw, float):
            return cls(CellKind.FLOAT, raw)
        if isinstance(raw, datetime):
            return cls(CellKind.TIMESTAMP, raw)
        if isinstance(raw, date):
            return cls(CellKind.TIMESTAMP, datetime.combine(raw, time()))
        if isinstance(raw, str):
            return cls(CellKind.TEXT, raw)
        return cls(CellKind.TEXT, str(raw))

    @classmethod
    def classify(cls, raw: object) -> Cell | None:
        """Tag a raw reader value, returning ``None`` for absent or blank values."""
        if _is_missing(raw):
            return None
        cell = cls.of(raw)
        if cell.is_blank:
            return None
        return cell


# ── Dynamic records ──────────────────────────────────────────────


class DynamicRecord(Mapping[str, Cell]):
    """Header-keyed cells of one sheet row, in column order.

    Keys keep the exact case read from the header row.
    """

    __slots__ = ("_cells",)

    def __init__(self, cells: Mapping[str, Cell] | None = None) -> None:
        self._cells: dict[str, Cell] = dict(cells or {})

    @classmethod
    def from_mapping(cls, values: Mapping[str, object]) -> DynamicRecord:
        return cls({key: Cell.of(value) for key, value in values.items()})

    def __getitem__(self, key: str) -> Cell:
        return self._cells[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._cells)

    def __len__(self) -> int:
        return len(self._cells)

    def __repr__(self) -> str:
        return f"DynamicRecord({self.to_dict()!r})"

    def find(self, column: str) -> tuple[str, Cell] | None:
        """Return the first ``(key, cell)`` whose key equals *column* ignoring case."""
        wanted = column.casefold()
        for key, cell in self._cells.items():
            if key.casefold() == wanted:
                return key, cell
        return None

    def to_dict(self) -> dict[str, Any]:
        return {key: cell.value for key, cell in self._cells.items()}


# ── QC artifacts ─────────────────────────────────────────────────


@dataclass
class QCReport:
    """Quality-control report emitted alongside every run.

    Contract invariant: ``dropped_rows == rows_in - rows_out``.
    """

    rows_in: int = 0
    rows_out: int = 0
    dropped_rows: int = 0
    missing_columns: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.rows_out = _to_non_negative_int(self.rows_out, "rows_out")
        self.dropped_rows = _to_non_negative_int(self.dropped_rows, "dropped_rows")
        self.missing_columns = _to_string_list(self.missing_columns, "missing_columns")
        self.warnings = _to_string_list(self.warnings, "warnings")
        if self.rows_out > self.rows_in:
            raise ValueError("rows_out must be <= rows_in")
        expected_dropped = self.rows_in - self.rows_out
        if self.dropped_rows != expected_dropped:
            raise ValueError("dropped_rows must equal rows_in - rows_out")

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
            "dropped_rows": self.dropped_rows,
            "missing_columns": list(self.missing_columns),
            "warnings": list(self.warnings),
        }


@dataclass
class RunManifest:
    """Audit-trail manifest for a single CLI run."""

    tool: str = "sheet-mapper"
    command: str = ""
    run_id: str = ""
    version: str = ""
    input_path: str = ""
    output_dir: str = ""
    created_at_utc: str = ""
    rows_in: int = 0
    rows_out: int = 0
    sha256: str = ""
    status: str = "success"
    error_code: int | None = None
    error_message: str = ""

    def __post_init__(self) -> None:
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.rows_out = _to_non_negative_int(self.rows_out, "rows_out")
        if self.status not in {"success", "failed"}:
            raise ValueError(f"status must be 'success' or 'failed', got {self.status!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "command": self.command,
            "run_id": self.run_id,
            "version": self.version,
            "input_path": self.input_path,
            "output_dir": self.output_dir,
            "created_at_utc": self.created_at_utc,
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
            "sha256": self.sha256,
            "status": self.status,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }
