"""Backend-neutral column values.

``Value`` is a closed tagged union: every column crossing the persistence
boundary is exactly one of ``Text``, ``Bytes``, ``Int64``, ``Float64``,
``Bool``, ``Date``, ``TimeOfDay``, ``Timestamp`` or ``Null``. Backends never
see these types directly; :class:`~sqlpersist.codec.ValueCodec` converts them
to and from driver-native Python objects.

Examples:
    >>> from sqlpersist.values import Int64, Text, NULL, ValueKind
    >>> Int64(42).kind
    <ValueKind.INT64: 'int64'>
    >>> Text("abc") == Text("abc")
    True
    >>> NULL.kind is ValueKind.NULL
    True

    Pattern matching:

    >>> match value:
    ...     case Text(s):
    ...         ...
    ...     case Int64(i):
    ...         ...
    ...     case Null():
    ...         ...

Tags:
    value, tagged-union, column, sqlpersist
"""

from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class ValueKind(str, Enum):
    """Tag of a :data:`Value`; also the field type of an entity column."""

    TEXT = "text"
    BYTES = "bytes"
    INT64 = "int64"
    FLOAT64 = "float64"
    BOOL = "bool"
    DATE = "date"
    TIME_OF_DAY = "time_of_day"
    TIMESTAMP = "timestamp"
    NULL = "null"


@dataclass(frozen=True, slots=True)
class Text:
    value: str
    kind: ClassVar[ValueKind] = ValueKind.TEXT

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise TypeError(f"Text expects str, got {type(self.value).__name__}")


@dataclass(frozen=True, slots=True)
class Bytes:
    value: bytes
    kind: ClassVar[ValueKind] = ValueKind.BYTES

    def __post_init__(self) -> None:
        if isinstance(self.value, (bytearray, memoryview)):
            object.__setattr__(self, "value", bytes(self.value))
        elif not isinstance(self.value, bytes):
            raise TypeError(f"Bytes expects bytes, got {type(self.value).__name__}")


@dataclass(frozen=True, slots=True)
class Int64:
    """Signed 64-bit integer. Out-of-range values are rejected, not wrapped."""

    value: int
    kind: ClassVar[ValueKind] = ValueKind.INT64

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError(f"Int64 expects int, got {type(self.value).__name__}")
        if not INT64_MIN <= self.value <= INT64_MAX:
            raise ValueError(f"{self.value} does not fit in a signed 64-bit integer")


@dataclass(frozen=True, slots=True)
class Float64:
    value: float
    kind: ClassVar[ValueKind] = ValueKind.FLOAT64

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
            raise TypeError(f"Float64 expects float, got {type(self.value).__name__}")
        object.__setattr__(self, "value", float(self.value))

    def __eq__(self, other: object) -> bool:
        # NaN payloads compare equal so decoded rows can be asserted on.
        if not isinstance(other, Float64):
            return NotImplemented
        if math.isnan(self.value) and math.isnan(other.value):
            return True
        return self.value == other.value

    def __hash__(self) -> int:
        return hash((ValueKind.FLOAT64, "nan" if math.isnan(self.value) else self.value))


@dataclass(frozen=True, slots=True)
class Bool:
    value: bool
    kind: ClassVar[ValueKind] = ValueKind.BOOL

    def __post_init__(self) -> None:
        if not isinstance(self.value, bool):
            raise TypeError(f"Bool expects bool, got {type(self.value).__name__}")


@dataclass(frozen=True, slots=True)
class Date:
    """Calendar date without time."""

    value: dt.date
    kind: ClassVar[ValueKind] = ValueKind.DATE

    def __post_init__(self) -> None:
        if isinstance(self.value, dt.datetime) or not isinstance(self.value, dt.date):
            raise TypeError(f"Date expects date, got {type(self.value).__name__}")


@dataclass(frozen=True, slots=True)
class TimeOfDay:
    """Wall-clock time without a date or a timezone."""

    value: dt.time
    kind: ClassVar[ValueKind] = ValueKind.TIME_OF_DAY

    def __post_init__(self) -> None:
        if not isinstance(self.value, dt.time):
            raise TypeError(f"TimeOfDay expects time, got {type(self.value).__name__}")
        if self.value.tzinfo is not None:
            raise ValueError("TimeOfDay must not carry a timezone")


@dataclass(frozen=True, slots=True)
class Timestamp:
    """UTC date and time.

    Naive datetimes are taken to be UTC already; aware ones are converted.
    The stored value is always aware with ``tzinfo=UTC``.
    """

    value: dt.datetime
    kind: ClassVar[ValueKind] = ValueKind.TIMESTAMP

    def __post_init__(self) -> None:
        if not isinstance(self.value, dt.datetime):
            raise TypeError(f"Timestamp expects datetime, got {type(self.value).__name__}")
        if self.value.tzinfo is None:
            normalized = self.value.replace(tzinfo=dt.UTC)
        else:
            normalized = self.value.astimezone(dt.UTC)
        object.__setattr__(self, "value", normalized)


@dataclass(frozen=True, slots=True)
class Null:
    kind: ClassVar[ValueKind] = ValueKind.NULL


NULL = Null()

Value = Text | Bytes | Int64 | Float64 | Bool | Date | TimeOfDay | Timestamp | Null

VALUE_TYPES: dict[ValueKind, type] = {
    ValueKind.TEXT: Text,
    ValueKind.BYTES: Bytes,
    ValueKind.INT64: Int64,
    ValueKind.FLOAT64: Float64,
    ValueKind.BOOL: Bool,
    ValueKind.DATE: Date,
    ValueKind.TIME_OF_DAY: TimeOfDay,
    ValueKind.TIMESTAMP: Timestamp,
    ValueKind.NULL: Null,
}


def is_value(obj: object) -> bool:
    """True if ``obj`` is one of the Value variants."""
    return isinstance(obj, tuple(VALUE_TYPES.values()))


__all__ = [
    "ValueKind",
    "Text",
    "Bytes",
    "Int64",
    "Float64",
    "Bool",
    "Date",
    "TimeOfDay",
    "Timestamp",
    "Null",
    "NULL",
    "Value",
    "VALUE_TYPES",
    "INT64_MIN",
    "INT64_MAX",
    "is_value",
]
