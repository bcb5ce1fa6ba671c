"""Typed mapping — project dynamic records onto a declared record shape."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from sheet_mapper.convert import ConversionError, convert
from sheet_mapper.mapping import RecordShape
from sheet_mapper.models import DynamicRecord, QCReport

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DiagnosticReason(str, Enum):
    MISSING_COLUMN = "missing_column"
    CONVERSION_FAILED = "conversion_failed"
    FILTERED_BLANK = "filtered_blank"
    REQUIRED_BLANK = "required_blank"
    NO_DATA = "no_data"


# Reasons that drop the whole record; the rest only affect a single field.
DROP_REASONS = frozenset(
    {DiagnosticReason.FILTERED_BLANK, DiagnosticReason.REQUIRED_BLANK, DiagnosticReason.NO_DATA}
)


@dataclass(frozen=True)
class Diagnostic:
    record_index: int
    reason: DiagnosticReason
    field: str = ""
    column: str = ""
    value: Any = None
    detail: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_index": self.record_index,
            "reason": self.reason.value,
            "field": self.field,
            "column": self.column,
            "value": self.value,
            "detail": self.detail,
        }


@dataclass
class MappingResult(Generic[T]):
    """Typed records kept by :func:`map_records`, plus why the others were not."""

    records: list[T] = field(default_factory=list)
    source_count: int = 0
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def mapped_count(self) -> int:
        return len(self.records)

    @property
    def dropped_count(self) -> int:
        return self.source_count - self.mapped_count

    def to_qc(self) -> QCReport:
        qc = QCReport(
            rows_in=self.source_count,
            rows_out=self.mapped_count,
            dropped_rows=self.dropped_count,
            missing_columns=sorted(
                {d.column for d in self.diagnostics if d.reason is DiagnosticReason.MISSING_COLUMN}
            ),
        )
        counts = Counter(d.reason for d in self.diagnostics)
        for reason in DiagnosticReason:
            if counts[reason]:
                label = "records" if reason in DROP_REASONS else "fields"
                qc.warnings.append(f"{reason.value}: {counts[reason]} {label}")
        return qc


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _map_one(
    index: int, source: DynamicRecord, shape: RecordShape[T], diagnostics: list[Diagnostic]
) -> T | None:
    instance = shape.factory()
    has_data = False

    for mapping in shape.fields:
        found = source.find(mapping.source_column)
        if found is None:
            logger.debug("Column %s not found for field %s", mapping.source_column, mapping.name)
            diagnostics.append(
                Diagnostic(index, DiagnosticReason.MISSING_COLUMN, mapping.name, mapping.source_column)
            )
            continue

        key, cell = found
        if mapping.filter_null_or_empty and cell.is_blank:
            diagnostics.append(
                Diagnostic(index, DiagnosticReason.FILTERED_BLANK, mapping.name, key, cell.value)
            )
            return None

        try:
            value = convert(cell, mapping.field_type)
        except ConversionError as exc:
            logger.debug(
                "Failed to convert value %r to %s for field %s: %s",
                cell.value, mapping.field_type.value, mapping.name, exc,
            )
            diagnostics.append(
                Diagnostic(
                    index, DiagnosticReason.CONVERSION_FAILED, mapping.name, key, cell.value, str(exc)
                )
            )
            continue

        mapping.set(instance, value)
        has_data = True

    if not has_data:
        diagnostics.append(Diagnostic(index, DiagnosticReason.NO_DATA))
        return None

    for mapping in shape.required_fields:
        if _is_blank(mapping.get(instance)):
            diagnostics.append(
                Diagnostic(index, DiagnosticReason.REQUIRED_BLANK, mapping.name, mapping.source_column)
            )
            return None

    return instance


def map_records(records: Sequence[DynamicRecord], shape: RecordShape[T]) -> MappingResult[T]:
    """Map *records* onto *shape*, dropping records that fail its field policies.

    Never raises for data problems: unconvertible values leave the field at
    its default and are reported in ``diagnostics``.
    """
    result: MappingResult[T] = MappingResult(source_count=len(records))

    if not shape.fields:
        logger.warning("No field mappings declared for %s", shape.name)
        return result

    logger.info(
        "Mapping %d records to %s using %d fields",
        len(records), shape.name, len(shape.fields),
    )

    for index, source in enumerate(records):
        instance = _map_one(index, source, shape, result.diagnostics)
        if instance is not None:
            result.records.append(instance)

    logger.info(
        "Successfully mapped %d out of %d records to %s",
        result.mapped_count, result.source_count, shape.name,
    )
    return result
