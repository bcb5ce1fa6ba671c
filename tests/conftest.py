from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path
from typing import Any

import pytest
from openpyxl import Workbook


class ListRowSource:
    """In-memory row source: rows are given as plain Python lists."""

    def __init__(self, rows: Sequence[Sequence[Any]]) -> None:
        self._rows = [list(row) for row in rows]
        self.reads = 0

    @property
    def row_count(self) -> int:
        return len(self._rows)

    @property
    def field_count(self) -> int:
        return max((len(row) for row in self._rows), default=0)

    def rows(self) -> Iterator[Sequence[Any]]:
        self.reads += 1
        width = self.field_count
        for row in self._rows:
            yield row + [None] * (width - len(row))


@pytest.fixture
def write_workbook(tmp_path: Path) -> Callable[..., Path]:
    def _write(rows: Sequence[Sequence[Any]], name: str = "input.xlsx") -> Path:
        wb = Workbook()
        ws = wb.active
        for row in rows:
            ws.append(list(row))
        path = tmp_path / name
        wb.save(path)
        return path

    return _write


@pytest.fixture(autouse=True)
def _reset_package_logger() -> Iterator[None]:
    yield
    logger = logging.getLogger("sheet_mapper")
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
