"""Built-in record shapes."""

from __future__ import annotations

from dataclasses import dataclass

from sheet_mapper.mapping import FieldMapping, FieldType, RecordShape


@dataclass
class PersonRecord:
    name: str = ""
    email: str = ""
    age: int = 0


PERSON_SHAPE: RecordShape[PersonRecord] = RecordShape(
    name="PersonRecord",
    factory=PersonRecord,
    fields=(
        FieldMapping("name", "Name", FieldType.TEXT, filter_null_or_empty=True, is_required=True),
        FieldMapping("email", "Email", FieldType.TEXT, filter_null_or_empty=True),
        FieldMapping("age", "Age", FieldType.INTEGER, filter_null_or_empty=True),
    ),
)
