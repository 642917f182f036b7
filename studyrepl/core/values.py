"""
StudyREPL Value Model

Runtime values are a single tagged type: a ValueKind plus the Python payload
for that kind. Values are immutable; record payloads are the one exception,
and their sharing rules live in records.py.
"""

from dataclasses import dataclass
from typing import Any, Iterable
from enum import Enum


class ValueKind(Enum):
    """Tags of the value domain. The enum value is the user-facing type name."""
    INT = "Int"
    FLOAT = "Float"
    STR = "String"
    BOOL = "Bool"
    LIST = "Array"
    OPTIONAL = "Optional"
    RECORD = "Record"


@dataclass(frozen=True)
class Value:
    """Runtime value representation

    Payload per kind:
      INT -> int, FLOAT -> float, STR -> str, BOOL -> bool,
      LIST -> tuple of Value, OPTIONAL -> Value or None (absent),
      RECORD -> RecordInstance
    """
    kind: ValueKind
    data: Any

    @property
    def is_optional(self) -> bool:
        return self.kind == ValueKind.OPTIONAL

    @property
    def is_present(self) -> bool:
        """True for a present Optional. Only meaningful on OPTIONAL values."""
        return self.kind == ValueKind.OPTIONAL and self.data is not None

    @property
    def is_absent(self) -> bool:
        return self.kind == ValueKind.OPTIONAL and self.data is None

    @property
    def is_number(self) -> bool:
        return self.kind in (ValueKind.INT, ValueKind.FLOAT)

    @property
    def type_name(self) -> str:
        if self.kind == ValueKind.RECORD:
            return self.data.record_type.name
        if self.kind == ValueKind.OPTIONAL and self.data is not None:
            return f"{self.data.type_name}?"
        return self.kind.value

    def __repr__(self):
        return f"Value({self.kind.name}, {describe(self)})"


# Int is a signed 64-bit integer
INT_MIN = -2 ** 63
INT_MAX = 2 ** 63 - 1


def fits_int(n: int) -> bool:
    return INT_MIN <= n <= INT_MAX


def int_value(n: int) -> Value:
    n = int(n)
    if not fits_int(n):
        raise ValueError("Int value out of 64-bit range")
    return Value(ValueKind.INT, n)


def float_value(x: float) -> Value:
    return Value(ValueKind.FLOAT, float(x))


def str_value(s: str) -> Value:
    return Value(ValueKind.STR, s)


def bool_value(b: bool) -> Value:
    return Value(ValueKind.BOOL, bool(b))


def list_value(items: Iterable[Value]) -> Value:
    return Value(ValueKind.LIST, tuple(items))


def some(inner: Value) -> Value:
    """Wrap a value in a present Optional.

    Wrapping an Optional nests it; nothing is flattened here.
    """
    if not isinstance(inner, Value):
        raise ValueError(f"Optional must wrap a Value, got {inner!r}")
    return Value(ValueKind.OPTIONAL, inner)


NIL = Value(ValueKind.OPTIONAL, None)


def record_value(instance) -> Value:
    return Value(ValueKind.RECORD, instance)


def from_python(obj: Any) -> Value:
    """Convert a plain Python object into a Value.

    None becomes nil; lists and tuples become arrays. Values pass through.
    """
    # Imported here to keep values.py free of record dependencies at load time
    from .records import RecordInstance

    if isinstance(obj, Value):
        return obj
    if obj is None:
        return NIL
    if isinstance(obj, bool):
        return bool_value(obj)
    if isinstance(obj, int):
        return int_value(obj)
    if isinstance(obj, float):
        return float_value(obj)
    if isinstance(obj, str):
        return str_value(obj)
    if isinstance(obj, (list, tuple)):
        return list_value(from_python(item) for item in obj)
    if isinstance(obj, RecordInstance):
        return record_value(obj)
    raise ValueError(f"No StudyREPL value for {type(obj).__name__}: {obj!r}")


def to_python(value: Value) -> Any:
    """Inverse of from_python. Records are returned as their instance."""
    if value.kind == ValueKind.LIST:
        return [to_python(item) for item in value.data]
    if value.kind == ValueKind.OPTIONAL:
        return None if value.data is None else to_python(value.data)
    return value.data


def _format_float(x: float) -> str:
    if x != x:
        return "nan"
    if x in (float("inf"), float("-inf")):
        return "inf" if x > 0 else "-inf"
    return repr(x)


def _quote(s: str) -> str:
    escaped = s.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n").replace("\t", "\\t")
    return f'"{escaped}"'


def describe(value: Value) -> str:
    """Render a value the way the REPL echoes it (strings quoted)."""
    kind = value.kind
    if kind == ValueKind.INT:
        return str(value.data)
    if kind == ValueKind.FLOAT:
        return _format_float(value.data)
    if kind == ValueKind.STR:
        return _quote(value.data)
    if kind == ValueKind.BOOL:
        return "true" if value.data else "false"
    if kind == ValueKind.LIST:
        return "[" + ", ".join(describe(item) for item in value.data) + "]"
    if kind == ValueKind.OPTIONAL:
        if value.data is None:
            return "nil"
        return f"Optional({describe(value.data)})"
    if kind == ValueKind.RECORD:
        instance = value.data
        fields = ", ".join(f"{name}: {describe(field)}" for name, field in instance.items())
        return f"{instance.record_type.name}({fields})"
    raise ValueError(f"Unknown value kind: {kind}")


def to_text(value: Value) -> str:
    """Render a value the way print() and string interpolation show it."""
    if value.kind == ValueKind.STR:
        return value.data
    return describe(value)