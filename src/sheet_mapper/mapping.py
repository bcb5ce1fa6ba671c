"""Field-mapping descriptors and record shapes.

A record shape is declared once, as an explicit ordered list of
:class:`FieldMapping` entries. Each entry names the source column it reads,
the type it converts to, its null/required policy, and how to get and set the
value on a target record.
"""

from __future__ import annotations

import keyword
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field, make_dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from operator import attrgetter
from pathlib import Path
from typing import Any, Generic, Optional, TypeVar, cast

T = TypeVar("T")

Getter = Callable[[Any], Any]
Setter = Callable[[Any, Any], None]


class FieldType(str, Enum):
    TEXT = "str"
    INTEGER = "int"
    FLOAT = "float"
    DECIMAL = "decimal"
    BOOLEAN = "bool"
    TIMESTAMP = "datetime"


_PYTHON_TYPES: dict[FieldType, Any] = {
    FieldType.TEXT: str,
    FieldType.INTEGER: int,
    FieldType.FLOAT: float,
    FieldType.DECIMAL: Decimal,
    FieldType.BOOLEAN: bool,
    FieldType.TIMESTAMP: Optional[datetime],
}

_DEFAULTS: dict[FieldType, Any] = {
    FieldType.TEXT: "",
    FieldType.INTEGER: 0,
    FieldType.FLOAT: 0.0,
    FieldType.DECIMAL: Decimal(0),
    FieldType.BOOLEAN: False,
    FieldType.TIMESTAMP: None,
}


def default_for(field_type: FieldType) -> Any:
    """Return the value a field of *field_type* holds when nothing was mapped."""
    return _DEFAULTS[field_type]


def _attribute_setter(name: str) -> Setter:
    def _set(record: Any, value: Any) -> None:
        setattr(record, name, value)

    return _set


@dataclass(frozen=True)
class FieldMapping:
    """How one field of a record shape is filled from a sheet column.

    ``filter_null_or_empty`` drops the whole record when the matched value is
    blank; ``is_required`` drops it when the field is still blank after
    mapping. A column that is absent from a record triggers neither.
    """

    name: str
    source_column: str
    field_type: FieldType = FieldType.TEXT
    filter_null_or_empty: bool = True
    is_required: bool = False
    getter: Getter | None = field(default=None, compare=False, repr=False)
    setter: Setter | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("field name must not be empty")
        if not self.source_column or not self.source_column.strip():
            raise ValueError(f"source_column for field {self.name!r} must not be blank")
        object.__setattr__(self, "field_type", FieldType(self.field_type))
        if self.getter is None:
            object.__setattr__(self, "getter", attrgetter(self.name))
        if self.setter is None:
            object.__setattr__(self, "setter", _attribute_setter(self.name))

    def get(self, record: Any) -> Any:
        return cast(Getter, self.getter)(record)

    def set(self, record: Any, value: Any) -> None:
        cast(Setter, self.setter)(record, value)


@dataclass(frozen=True)
class RecordShape(Generic[T]):
    """A target record type plus its ordered field mappings."""

    name: str
    factory: Callable[[], T]
    fields: tuple[FieldMapping, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))
        seen: set[str] = set()
        duplicates: list[str] = []
        for mapping in self.fields:
            if mapping.name in seen:
                duplicates.append(mapping.name)
            seen.add(mapping.name)
        if duplicates:
            raise ValueError(
                f"Duplicate fields in shape {self.name!r}: {', '.join(sorted(set(duplicates)))}"
            )

    @property
    def required_fields(self) -> tuple[FieldMapping, ...]:
        return tuple(m for m in self.fields if m.is_required)


# ── Profiles ─────────────────────────────────────────────────────

_FLAGS = {"required", "keep-blank"}
_LINE_RE = re.compile(r"^(?P<name>[^:=]+?)\s*(?::\s*(?P<type>[^=]+?))?\s*=\s*(?P<rest>.+)$")


def _class_name(shape_name: str) -> str:
    parts = re.split(r"[^0-9A-Za-z]+", shape_name)
    base = "".join(part[:1].upper() + part[1:] for part in parts if part)
    if not base or not base.isidentifier():
        base = "Profile"
    return f"{base}Record"


def _parse_line(lineno: int, line: str) -> FieldMapping:
    match = _LINE_RE.match(line)
    if match is None:
        raise ValueError(
            f"Invalid profile line {lineno}: {line!r}  (expected name:type=Column[, flags])"
        )
    name = match.group("name").strip()
    if not name.isidentifier() or keyword.iskeyword(name):
        raise ValueError(f"Invalid profile line {lineno}: {name!r} is not a valid field name")

    type_token = (match.group("type") or FieldType.TEXT.value).strip().lower()
    try:
        field_type = FieldType(type_token)
    except ValueError:
        allowed = "|".join(t.value for t in FieldType)
        raise ValueError(
            f"Invalid profile line {lineno}: unknown type {type_token!r} (use {allowed})"
        ) from None

    column, *flags = [part.strip() for part in match.group("rest").split(",")]
    if not column:
        raise ValueError(f"Invalid profile line {lineno}: empty source column")
    unknown = [flag for flag in flags if flag.lower() not in _FLAGS]
    if unknown:
        raise ValueError(
            f"Invalid profile line {lineno}: unknown flag(s) {', '.join(map(repr, unknown))}"
        )
    lowered = {flag.lower() for flag in flags}
    return FieldMapping(
        name=name,
        source_column=column,
        field_type=field_type,
        filter_null_or_empty="keep-blank" not in lowered,
        is_required="required" in lowered,
    )


def parse_shape_profile(lines: Iterable[str], name: str = "profile") -> RecordShape[Any]:
    """Build a record shape from profile lines.

    Each non-comment line reads ``name:type=Source Column[, required][, keep-blank]``.
    The record class is generated with one attribute per line, each starting
    at the default for its type.
    """
    mappings: list[FieldMapping] = []
    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        mappings.append(_parse_line(lineno, line))

    shape_fields: Sequence[tuple[str, Any, Any]] = [
        (m.name, _PYTHON_TYPES[m.field_type], field(default=default_for(m.field_type)))
        for m in mappings
    ]
    try:
        record_cls = make_dataclass(_class_name(name), shape_fields)
    except TypeError as exc:
        raise ValueError(f"Invalid profile {name!r}: {exc}") from exc
    return RecordShape(name=name, factory=record_cls, fields=tuple(mappings))


def load_shape_profile(path: Path) -> RecordShape[Any]:
    """Read a shape profile file (see :func:`parse_shape_profile`)."""
    path = Path(path)
    if not path.exists():
        raise ValueError(f"Profile not found: {path} (expected lines like age:int=Age)")
    if path.is_dir():
        raise ValueError(f"Profile is a directory, not a file: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read profile {path}: {exc}") from exc
    return parse_shape_profile(text.splitlines(), name=path.stem)
