"""Typed access to Jira field values.

Raw JSON from the issue endpoints is converted once into a closed set of value
variants (null, string, number, object, array). The accessors below are total:
malformed or unexpected shapes degrade to ``None`` instead of raising.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Union

from .config import ASSIGNEE_FIELD
from .models import Assignee


@dataclass(frozen=True, slots=True)
class NullValue:
    pass


@dataclass(frozen=True, slots=True)
class StringValue:
    text: str


@dataclass(frozen=True, slots=True)
class NumberValue:
    number: int | float


@dataclass(frozen=True, slots=True)
class ObjectValue:
    attrs: Mapping[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> Any:
        return self.attrs.get("name")

    @property
    def value(self) -> Any:
        return self.attrs.get("value")


@dataclass(frozen=True, slots=True)
class ArrayValue:
    items: tuple[FieldValue, ...] = ()
    raw: tuple[Any, ...] = ()


FieldValue = Union[NullValue, StringValue, NumberValue, ObjectValue, ArrayValue]

NULL = NullValue()

DECIMAL_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)


def to_field_value(raw: Any) -> FieldValue:
    if raw is None:
        return NULL
    if isinstance(raw, bool):
        return StringValue("true" if raw else "false")
    if isinstance(raw, (int, float)):
        return NumberValue(raw)
    if isinstance(raw, str):
        return StringValue(raw)
    if isinstance(raw, Mapping):
        return ObjectValue(MappingProxyType(dict(raw)))
    if isinstance(raw, (list, tuple)):
        return ArrayValue(tuple(to_field_value(item) for item in raw), tuple(raw))
    return StringValue(str(raw))


class FieldSet(Mapping[str, FieldValue]):
    """Read-only field-id -> value mapping for one issue."""

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, FieldValue] | None = None):
        self._values = MappingProxyType(dict(values or {}))

    @classmethod
    def from_raw(cls, raw_fields: Mapping[str, Any] | None) -> FieldSet:
        return cls({str(k): to_field_value(v) for k, v in (raw_fields or {}).items()})

    def __getitem__(self, key: str) -> FieldValue:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"FieldSet({sorted(self._values)})"

    def sorted_ids(self) -> list[str]:
        return sorted(self._values, key=str.lower)


def _lookup(fields: Mapping[str, FieldValue] | None, field_id: str | None) -> FieldValue | None:
    if not fields or not field_id or not field_id.strip():
        return None
    return fields.get(field_id)


def _json_text(raw: Any) -> str:
    try:
        return json.dumps(raw, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return str(raw)


def _finite(number: int | float) -> float | None:
    try:
        number = float(number)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def _parse_number(text: Any) -> float | None:
    if not isinstance(text, str):
        return None
    text = text.strip()
    # Plain ASCII decimals only: no digit separators, no other scripts' digits
    if not DECIMAL_RE.fullmatch(text):
        return None
    return _finite(float(text))


def _as_number(value: FieldValue) -> float | None:
    if isinstance(value, NumberValue):
        return _finite(value.number)
    if isinstance(value, StringValue):
        return _parse_number(value.text)
    return None


def get_string(fields: Mapping[str, FieldValue] | None, field_id: str | None) -> str | None:
    value = _lookup(fields, field_id)
    if value is None or isinstance(value, NullValue):
        return None
    if isinstance(value, StringValue):
        return value.text
    if isinstance(value, ObjectValue):
        if isinstance(value.name, str):
            return value.name
        if isinstance(value.value, str):
            return value.value
        return _json_text(dict(value.attrs))
    if isinstance(value, NumberValue):
        return _json_text(value.number)
    if isinstance(value, ArrayValue):
        return _json_text(list(value.raw))
    return None


def get_number(fields: Mapping[str, FieldValue] | None, field_id: str | None) -> float | None:
    value = _lookup(fields, field_id)
    if value is None:
        return None
    if isinstance(value, (NumberValue, StringValue)):
        return _as_number(value)
    if isinstance(value, ObjectValue):
        parsed = _parse_number(value.value)
        if parsed is not None:
            return parsed
        return _parse_number(value.name)
    if isinstance(value, ArrayValue):
        if not value.items:
            return None
        return _as_number(value.items[0])
    return None


def get_assignee(fields: Mapping[str, FieldValue] | None) -> Assignee:
    value = _lookup(fields, ASSIGNEE_FIELD)
    if not isinstance(value, ObjectValue):
        return Assignee()
    account_id = value.attrs.get("accountId")
    display_name = value.attrs.get("displayName")
    return Assignee(
        account_id=account_id if isinstance(account_id, str) else None,
        display_name=display_name if isinstance(display_name, str) else None,
    )


def is_match(actual: str | None, expected: str | None) -> bool:
    if not actual or not actual.strip() or not expected or not expected.strip():
        return False
    return actual.strip().casefold() == expected.strip().casefold()


def format_number(value: float | None) -> str:
    if value is None:
        return "null"
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    return "0" if text in {"-0", ""} else text
