"""Cell → field value conversion table.

Every supported ``(CellKind, FieldType)`` pair has an entry; any other pair
fails with :class:`ConversionError`.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import pandas as pd

from sheet_mapper.mapping import FieldType
from sheet_mapper.models import Cell, CellKind

_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}(?:[T ].*)?$")
_BOOLEAN_LITERALS = {"true": True, "false": False}


class ConversionError(ValueError):
    """A cell value cannot be converted to the requested field type."""


def _fail(value: Any, target: FieldType, reason: str = "") -> ConversionError:
    suffix = f": {reason}" if reason else ""
    return ConversionError(f"cannot convert {value!r} to {target.value}{suffix}")


# ── text targets ─────────────────────────────────────────────────


def _float_to_text(value: float) -> str:
    if math.isfinite(value) and value.is_integer():
        return str(int(value))
    return repr(value)


# ── numeric targets ──────────────────────────────────────────────


def _finite(value: float, target: FieldType) -> float:
    if not math.isfinite(value):
        raise _fail(value, target, "not a finite number")
    return value


def _text_to_int(text: str) -> int:
    token = text.strip()
    if not _INTEGER_RE.fullmatch(token):
        raise _fail(text, FieldType.INTEGER, "not an integer literal")
    return int(token)


def _float_to_int(value: float) -> int:
    return round(_finite(value, FieldType.INTEGER))


def _text_to_float(text: str) -> float:
    try:
        value = float(text.strip())
    except ValueError:
        raise _fail(text, FieldType.FLOAT, "not a number") from None
    return _finite(value, FieldType.FLOAT)


def _to_decimal(value: Any) -> Decimal:
    token = value.strip() if isinstance(value, str) else str(value)
    try:
        result = Decimal(token)
    except InvalidOperation:
        raise _fail(value, FieldType.DECIMAL, "not a decimal literal") from None
    if not result.is_finite():
        raise _fail(value, FieldType.DECIMAL, "not a finite number")
    return result


# ── boolean / timestamp targets ──────────────────────────────────


def _text_to_bool(text: str) -> bool:
    try:
        return _BOOLEAN_LITERALS[text.strip().lower()]
    except KeyError:
        raise _fail(text, FieldType.BOOLEAN, "expected true or false") from None


def _text_to_timestamp(text: str) -> datetime:
    """Parse ISO-8601 text that carries a full calendar date."""
    token = text.strip()
    if not _ISO_DATE_RE.match(token):
        raise _fail(text, FieldType.TIMESTAMP, "expected an ISO-8601 date (YYYY-MM-DD)")
    parsed = pd.to_datetime(token, format="ISO8601", errors="coerce")
    if pd.isna(parsed):
        raise _fail(text, FieldType.TIMESTAMP, "unparseable date")
    return parsed.to_pydatetime()


def _identity(value: Any) -> Any:
    return value


_CONVERTERS: dict[tuple[CellKind, FieldType], Callable[[Any], Any]] = {
    (CellKind.TEXT, FieldType.TEXT): _identity,
    (CellKind.INTEGER, FieldType.TEXT): str,
    (CellKind.FLOAT, FieldType.TEXT): _float_to_text,
    (CellKind.BOOLEAN, FieldType.TEXT): str,
    (CellKind.TIMESTAMP, FieldType.TEXT): lambda v: v.isoformat(),
    (CellKind.TEXT, FieldType.INTEGER): _text_to_int,
    (CellKind.INTEGER, FieldType.INTEGER): _identity,
    (CellKind.FLOAT, FieldType.INTEGER): _float_to_int,
    (CellKind.TEXT, FieldType.FLOAT): _text_to_float,
    (CellKind.INTEGER, FieldType.FLOAT): float,
    (CellKind.FLOAT, FieldType.FLOAT): lambda v: _finite(v, FieldType.FLOAT),
    (CellKind.TEXT, FieldType.DECIMAL): _to_decimal,
    (CellKind.INTEGER, FieldType.DECIMAL): Decimal,
    (CellKind.FLOAT, FieldType.DECIMAL): _to_decimal,
    (CellKind.TEXT, FieldType.BOOLEAN): _text_to_bool,
    (CellKind.BOOLEAN, FieldType.BOOLEAN): _identity,
    (CellKind.TEXT, FieldType.TIMESTAMP): _text_to_timestamp,
    (CellKind.TIMESTAMP, FieldType.TIMESTAMP): _identity,
}


def convert(cell: Cell, field_type: FieldType) -> Any:
    """Convert *cell* to a value of *field_type*.

    Raises
    ------
    ConversionError
        If the pair is unsupported or the value is malformed.
    """
    converter = _CONVERTERS.get((cell.kind, field_type))
    if converter is None:
        raise _fail(cell.value, field_type, f"unsupported source kind {cell.kind.value}")
    return converter(cell.value)
