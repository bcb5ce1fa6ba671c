"""I/O helpers — open spreadsheet row sources, write JSON artifacts."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Sequence
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import IO, Any, Callable, Protocol, cast

import pandas as pd

from sheet_mapper import ACCEPTED_CONTENT_TYPES, XLS_CONTENT_TYPE, XLSX_CONTENT_TYPE

logger = logging.getLogger(__name__)


class SpreadsheetFormatError(ValueError):
    """The spreadsheet container could not be decoded."""


class UnsupportedContentTypeError(ValueError):
    """The content type is not one of the accepted spreadsheet formats."""


_ENGINES: dict[str, str] = {
    XLSX_CONTENT_TYPE: "openpyxl",
    XLS_CONTENT_TYPE: "xlrd",
}

_SUFFIX_CONTENT_TYPES: dict[str, str] = {
    ".xlsx": XLSX_CONTENT_TYPE,
    ".xlsm": XLSX_CONTENT_TYPE,
    ".xls": XLS_CONTENT_TYPE,
}


# ── Row sources ──────────────────────────────────────────────────


class RowSource(Protocol):
    """Upstream reader: a header row followed by data rows of raw cell values."""

    @property
    def row_count(self) -> int: ...

    @property
    def field_count(self) -> int: ...

    def rows(self) -> Iterator[Sequence[Any]]: ...


class FrameRowSource:
    """Row source over a header-less DataFrame (row 0 holds the headers)."""

    def __init__(self, frame: pd.DataFrame) -> None:
        self._frame = frame

    @property
    def row_count(self) -> int:
        return int(self._frame.shape[0])

    @property
    def field_count(self) -> int:
        return int(self._frame.shape[1])

    def rows(self) -> Iterator[Sequence[Any]]:
        for values in self._frame.itertuples(index=False, name=None):
            yield values


def content_type_for(path: Path) -> str:
    """Return the content-type label for *path* based on its suffix."""
    suffix = Path(path).suffix.lower()
    try:
        return _SUFFIX_CONTENT_TYPES[suffix]
    except KeyError:
        raise UnsupportedContentTypeError(
            f"Unsupported file type: {suffix!r}. Use .xlsx, .xlsm, or .xls"
        ) from None


def _reset_stream(stream: IO[bytes]) -> None:
    if stream.tell() == 0:
        return
    logger.debug("Resetting stream position to 0.")
    stream.seek(0)


def open_row_source(stream: IO[bytes], content_type: str) -> FrameRowSource:
    """Decode the first sheet of *stream* into a row source.

    Raises
    ------
    UnsupportedContentTypeError
        If *content_type* is not an accepted spreadsheet label.
    SpreadsheetFormatError
        If the container cannot be decoded.
    """
    if content_type not in ACCEPTED_CONTENT_TYPES:
        raise UnsupportedContentTypeError(
            f"Invalid content type {content_type!r}. Please upload a valid Excel file."
        )
    engine = _ENGINES[content_type]
    _reset_stream(stream)

    read_excel = cast(Callable[..., pd.DataFrame], getattr(pd, "read_excel"))
    try:
        frame = read_excel(
            stream, header=None, dtype=object, engine=engine, keep_default_na=False
        )
    except ImportError as exc:
        raise SpreadsheetFormatError(
            f"Reading {content_type} requires the {engine!r} package"
        ) from exc
    except Exception as exc:
        raise SpreadsheetFormatError(f"Could not read spreadsheet: {exc}") from exc

    logger.debug("Decoded sheet with %d rows x %d columns", frame.shape[0], frame.shape[1])
    return FrameRowSource(frame)


def load_row_source(path: Path) -> FrameRowSource:
    """Open the spreadsheet at *path* and return its row source.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If *path* is a directory, has an unsupported suffix, or cannot be decoded.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    if path.is_dir():
        raise ValueError(f"Input path is not a file: {path}")

    content_type = content_type_for(path)
    with open(path, "rb") as fh:
        return open_row_source(fh, content_type)


# ── Writing ──────────────────────────────────────────────────────


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    item = getattr(obj, "item", None)
    if callable(item):
        converted = item()
        if isinstance(converted, (str, int, float, bool)) or converted is None:
            return converted
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def write_json(path: Path, data: Any, *, sort_keys: bool = True) -> Path:
    """Write *data* as pretty-printed JSON to *path* (atomic + deterministic).

    Pass ``sort_keys=False`` to keep mapping order, e.g. the column order of records.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = json.dumps(
        data,
        indent=2,
        sort_keys=sort_keys,
        ensure_ascii=False,
        default=_json_default,
    ) + "\n"
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(path)
    return path
