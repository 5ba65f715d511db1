"""Value codec — Value ↔ driver-native Python objects.

Every DB-API driver speaks plain Python objects (``int``, ``str``,
``datetime``, ``Decimal``, ...). ``ValueCodec`` is the single place those
objects are turned into :data:`~sqlpersist.values.Value` and back, so
backends only ever move native objects and callers only ever see Values.

Manifesto:
    - **Total encode:** every Value tag has exactly one native form
    - **Widening decode:** every integer width collapses onto Int64, every
      exact numeric onto Float64
    - **Observable loss:** a native type with no Value mapping is rendered as
      text *and* reported as a ``DecodeFallbackWarning``

Architecture:
    ::

        encode                                decode
        ──────                                ──────
        Text(s)       → str                   None                  → Null
        Bytes(b)      → bytes                 SqlChar(c)            → Int64(ord(c))
        Int64(i)      → int                   str                   → Text
        Float64(f)    → float                 bool                  → Bool
        Bool(b)       → bool                  int (any width)       → Int64 (wrapped)
        Date(d)       → date                  float                 → Float64
        TimeOfDay(t)  → time                  Decimal / Fraction    → Float64
        Timestamp(ts) → datetime (UTC)        bytes-like            → Bytes
        Null          → None                  datetime              → Timestamp
                                              date                  → Date
                                              time                  → TimeOfDay
                                              anything else         → Text(str(x)) + warning

Guardrails:
    ❌ DON'T: Treat the text fallback as ground truth in round-trip tests
    ✅ DO: Assert the ``DecodeFallbackWarning`` instead

Tags:
    codec, marshalling, value, sqlpersist
"""

from __future__ import annotations

import datetime as dt
import warnings
from collections.abc import Iterable, Sequence
from decimal import Decimal
from fractions import Fraction
from typing import Any

from sqlpersist.errors import DecodeFallbackWarning
from sqlpersist.logging import get_logger
from sqlpersist.values import (
    INT64_MAX,
    NULL,
    Bool,
    Bytes,
    Date,
    Float64,
    Int64,
    Null,
    Text,
    TimeOfDay,
    Timestamp,
    Value,
)

logger = get_logger(__name__)

_UINT64_RANGE = 2**64


class SqlChar(str):
    """A value read from a fixed-width single-character column.

    Drivers return such columns as plain ``str``; backends that can tell them
    apart (PostgreSQL's internal ``"char"`` type) wrap them in ``SqlChar`` so
    the codec decodes them to their ordinal, like the legacy backend did.
    """

    __slots__ = ()


def to_int64(value: int) -> int:
    """Reinterpret an integer of any width as a signed 64-bit integer.

    In-range values are returned unchanged; wider or unsigned values wrap
    the way a two's complement narrowing does (``2**64 - 1`` → ``-1``).
    """
    wrapped = value % _UINT64_RANGE
    return wrapped - _UINT64_RANGE if wrapped > INT64_MAX else wrapped


class ValueCodec:
    """Bidirectional Value ↔ native converter.

    Stateless apart from ``fallback_count``, the number of native values that
    hit the text fallback since construction.
    """

    def __init__(self, name: str = "generic"):
        self.name = name
        self.fallback_count = 0

    # -- Encoding -----------------------------------------------------------

    def encode(self, value: Value) -> Any:
        match value:
            case Null():
                return None
            case Text(s):
                return s
            case Bytes(b):
                return b
            case Int64(i):
                return i
            case Float64(f):
                return f
            case Bool(b):
                return b
            case Date(d):
                return d
            case TimeOfDay(t):
                return t
            case Timestamp(ts):
                return ts
        raise TypeError(f"not a Value: {value!r}")

    def encode_many(self, values: Iterable[Value]) -> tuple[Any, ...]:
        return tuple(self.encode(v) for v in values)

    # -- Decoding -----------------------------------------------------------

    def decode(self, native: Any) -> Value:
        if native is None:
            return NULL
        # SqlChar must be checked before str; bool before int; datetime before date.
        if isinstance(native, SqlChar):
            # "char" stores NUL as the empty string
            return Int64(ord(native) if native else 0)
        if isinstance(native, str):
            return Text(str(native))
        if isinstance(native, bool):
            return Bool(native)
        if isinstance(native, int):
            return Int64(to_int64(native))
        if isinstance(native, float):
            return Float64(native)
        if isinstance(native, (Decimal, Fraction)):
            return Float64(float(native))
        if isinstance(native, (bytes, bytearray, memoryview)):
            return Bytes(bytes(native))
        if isinstance(native, dt.datetime):
            return Timestamp(native)
        if isinstance(native, dt.date):
            return Date(native)
        if isinstance(native, dt.time):
            return TimeOfDay(native.replace(tzinfo=None))
        return self._fallback(native)

    def decode_row(self, row: Sequence[Any]) -> tuple[Value, ...]:
        return tuple(self.decode(cell) for cell in row)

    def _fallback(self, native: Any) -> Text:
        self.fallback_count += 1
        type_name = type(native).__name__
        logger.warning("decode_fallback", codec=self.name, native_type=type_name)
        warnings.warn(
            f"{self.name} codec has no Value mapping for {type_name}; decoded as Text",
            DecodeFallbackWarning,
            stacklevel=3,
        )
        return Text(str(native))


__all__ = [
    "SqlChar",
    "ValueCodec",
    "to_int64",
]
