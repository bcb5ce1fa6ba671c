"""Typed mapping: filter/required policies, conversions, diagnostics."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import pytest

from sheet_mapper.mapper import DiagnosticReason, map_records
from sheet_mapper.mapping import FieldMapping, FieldType, RecordShape
from sheet_mapper.models import DynamicRecord
from sheet_mapper.shapes import PERSON_SHAPE, PersonRecord


def _records(*rows: dict[str, Any]) -> list[DynamicRecord]:
    return [DynamicRecord.from_mapping(row) for row in rows]


def _reasons(result: Any) -> list[tuple[int, DiagnosticReason, str]]:
    return [(d.record_index, d.reason, d.field) for d in result.diagnostics]


def test_maps_valid_records() -> None:
    result = map_records(
        _records({"Name": "John Doe", "Email": "john@example.com", "Age": 30}),
        PERSON_SHAPE,
    )

    assert result.records == [PersonRecord("John Doe", "john@example.com", 30)]
    assert result.source_count == 1
    assert result.dropped_count == 0


def test_column_names_match_case_insensitively() -> None:
    lower = map_records(_records({"name": "X", "EMAIL": "x@y.z", "age": 1}), PERSON_SHAPE)
    exact = map_records(_records({"Name": "X", "Email": "x@y.z", "Age": 1}), PERSON_SHAPE)

    assert lower.records == exact.records == [PersonRecord("X", "x@y.z", 1)]


def test_blank_filtered_value_drops_whole_record() -> None:
    result = map_records(
        _records(
            {"Name": "John", "Email": "", "Age": 30},
            {"Name": "Jane", "Email": "jane@x.com", "Age": 25},
        ),
        PERSON_SHAPE,
    )

    assert result.records == [PersonRecord("Jane", "jane@x.com", 25)]
    assert result.source_count == 2
    assert result.dropped_count == 1
    assert _reasons(result) == [(0, DiagnosticReason.FILTERED_BLANK, "email")]


def test_filter_drop_short_circuits_remaining_fields() -> None:
    result = map_records(_records({"Name": "   ", "Age": "bad"}), PERSON_SHAPE)

    assert result.records == []
    assert _reasons(result) == [(0, DiagnosticReason.FILTERED_BLANK, "name")]


def test_missing_required_column_drops_record() -> None:
    result = map_records(
        _records(
            {"Email": "john@example.com", "Age": 30},
            {"Name": "Jane Smith", "Email": "jane@example.com", "Age": 25},
        ),
        PERSON_SHAPE,
    )

    assert [r.name for r in result.records] == ["Jane Smith"]
    assert (0, DiagnosticReason.MISSING_COLUMN, "name") in _reasons(result)
    assert (0, DiagnosticReason.REQUIRED_BLANK, "name") in _reasons(result)


def test_conversion_failure_keeps_record_with_default() -> None:
    result = map_records(_records({"Name": "John", "Age": "invalid_number"}), PERSON_SHAPE)

    assert result.records == [PersonRecord(name="John", email="", age=0)]
    (missing, failed) = result.diagnostics
    assert missing.reason is DiagnosticReason.MISSING_COLUMN and missing.field == "email"
    assert failed.reason is DiagnosticReason.CONVERSION_FAILED
    assert failed.column == "Age"
    assert failed.value == "invalid_number"
    assert "int" in failed.detail


def test_conversion_failure_is_logged_at_debug(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="sheet_mapper"):
        map_records(_records({"Name": "John", "Age": "x"}), PERSON_SHAPE)

    assert "Failed to convert value 'x' to int for field age" in caplog.text


def test_text_numbers_are_parsed() -> None:
    result = map_records(_records({"Name": "John", "Email": "j@x.com", "Age": "30"}), PERSON_SHAPE)

    assert result.records[0].age == 30


def test_absent_filtered_columns_do_not_drop() -> None:
    result = map_records(_records({"Name": "John"}), PERSON_SHAPE)

    assert result.records == [PersonRecord(name="John")]


def test_record_without_any_mapped_data_is_dropped() -> None:
    result = map_records(_records({"Phone": "123"}), PERSON_SHAPE)

    assert result.records == []
    assert (0, DiagnosticReason.NO_DATA, "") in _reasons(result)


def test_shape_without_fields_yields_nothing(caplog: pytest.LogCaptureFixture) -> None:
    empty_shape: RecordShape[PersonRecord] = RecordShape("Nothing", PersonRecord, ())

    with caplog.at_level(logging.WARNING, logger="sheet_mapper"):
        result = map_records(_records({"Name": "John"}, {"Name": "Jane"}), empty_shape)

    assert result.records == []
    assert result.source_count == 2
    assert result.diagnostics == []
    assert "No field mappings declared for Nothing" in caplog.text


def test_empty_input_yields_empty_result() -> None:
    result = map_records([], PERSON_SHAPE)

    assert result.records == []
    assert result.source_count == 0


@dataclass
class Contact:
    name: str = ""
    nickname: str = ""
    score: int = 0
    joined: datetime | None = None
    active: bool = False


@dataclass
class Note:
    note: str = ""


CONTACT_SHAPE: RecordShape[Contact] = RecordShape(
    name="Contact",
    factory=Contact,
    fields=(
        FieldMapping("name", "Name", filter_null_or_empty=False),
        FieldMapping("nickname", "Nickname", filter_null_or_empty=False, is_required=True),
        FieldMapping("score", "Score", FieldType.INTEGER, filter_null_or_empty=False, is_required=True),
        FieldMapping("joined", "Joined", FieldType.TIMESTAMP),
        FieldMapping("active", "Active", FieldType.BOOLEAN),
    ),
)


def test_required_applies_even_without_filtering() -> None:
    result = map_records(
        _records(
            {"Name": "A", "Nickname": "  "},
            {"Name": "B", "Nickname": "bee"},
        ),
        CONTACT_SHAPE,
    )

    assert [c.name for c in result.records] == ["B"]
    assert (0, DiagnosticReason.REQUIRED_BLANK, "nickname") in _reasons(result)


def test_required_numeric_field_is_satisfied_by_default_zero() -> None:
    result = map_records(_records({"Nickname": "z"}), CONTACT_SHAPE)

    assert result.records == [Contact(nickname="z", score=0)]


def test_blank_value_set_with_filtering_off_counts_as_data() -> None:
    note_shape: RecordShape[Note] = RecordShape(
        "Note", Note, (FieldMapping("note", "Note", filter_null_or_empty=False),)
    )

    result = map_records(_records({"Note": "  "}), note_shape)

    assert result.records == [Note("  ")]
    assert result.diagnostics == []


def test_blank_required_value_drops_even_though_it_was_set() -> None:
    result = map_records(_records({"Name": " ", "Nickname": ""}), CONTACT_SHAPE)

    assert result.records == []
    assert (0, DiagnosticReason.REQUIRED_BLANK, "nickname") in _reasons(result)
    assert (0, DiagnosticReason.NO_DATA, "") not in _reasons(result)


def test_timestamp_and_boolean_fields() -> None:
    result = map_records(
        _records(
            {"Nickname": "n", "Joined": "2024-02-03", "Active": "TRUE"},
            {"Nickname": "m", "Joined": datetime(2023, 1, 1, 9), "Active": True},
        ),
        CONTACT_SHAPE,
    )

    assert [(c.joined, c.active) for c in result.records] == [
        (datetime(2024, 2, 3), True),
        (datetime(2023, 1, 1, 9), True),
    ]


def test_first_case_insensitive_match_wins() -> None:
    result = map_records(
        _records({"Name": "x", "EMAIL": "upper@x.com", "Email": "exact@x.com"}),
        PERSON_SHAPE,
    )

    assert result.records[0].email == "upper@x.com"


def test_output_keeps_source_order_and_is_repeatable() -> None:
    records = _records(
        {"Name": "C", "Age": 3},
        {"Name": "", "Age": 9},
        {"Name": "A", "Age": "1"},
        {"Name": "B", "Email": "b@x.com"},
    )

    first = map_records(records, PERSON_SHAPE)
    second = map_records(records, PERSON_SHAPE)

    assert [r.name for r in first.records] == ["C", "A", "B"]
    assert first.records == second.records
    assert first.diagnostics == second.diagnostics


def test_output_records_satisfy_required_and_filter_policies() -> None:
    records = _records(
        {"Name": "ok", "Email": "e", "Age": 1},
        {"Name": "\t", "Email": "e"},
        {"Email": "e", "Age": 2},
        {"Name": "ok2", "Email": " "},
        {"Name": "ok3", "Age": "x"},
    )

    result = map_records(records, PERSON_SHAPE)

    assert [r.name for r in result.records] == ["ok", "ok3"]
    for record in result.records:
        for mapping in PERSON_SHAPE.required_fields:
            assert str(mapping.get(record)).strip()
    kept = {0, 4}
    for index in kept:
        for mapping in PERSON_SHAPE.fields:
            found = records[index].find(mapping.source_column)
            if mapping.filter_null_or_empty and found is not None:
                assert not found[1].is_blank


def test_to_qc_summarises_drops() -> None:
    result = map_records(
        _records(
            {"Name": "John", "Email": "", "Age": 30},
            {"Name": "Jane", "Email": "jane@x.com", "Age": "old"},
        ),
        PERSON_SHAPE,
    )

    qc = result.to_qc()

    assert (qc.rows_in, qc.rows_out, qc.dropped_rows) == (2, 1, 1)
    assert qc.warnings == ["conversion_failed: 1 fields", "filtered_blank: 1 records"]


def test_to_qc_lists_missing_columns() -> None:
    result = map_records(
        _records({"Name": "John"}, {"Name": "Jane", "age": 4}),
        PERSON_SHAPE,
    )

    qc = result.to_qc()

    assert qc.missing_columns == ["Age", "Email"]
    assert qc.warnings == ["missing_column: 3 fields"]


def test_missing_column_is_logged_at_debug(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="sheet_mapper"):
        map_records(_records({"Name": "John"}), PERSON_SHAPE)

    assert "Column Email not found for field email" in caplog.text
