"""
StudyREPL Record Store

Records are fixed-shape bundles of named fields. A record type fixes the
field names and which of them are mutable ('var') or constant ('let').
Each instance is created with a RecordKind:

  VALUE      copy-on-bind; binding the record to another name copies it
  REFERENCE  binding aliases it; mutation is visible through every alias

The store keeps the registry of known record types and implements every
mutation, so a mutability check always runs before any field changes.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union
from enum import Enum

from .values import Value, ValueKind, from_python, list_value, record_value
from ..errors.exceptions import ImmutableFieldError, EvalTypeError

logger = logging.getLogger(__name__)

FORTIFY_MESSAGE = "Defenses increased!"


class RecordKind(Enum):
    """Sharing semantics of a record instance"""
    VALUE = "struct"
    REFERENCE = "class"


@dataclass(frozen=True)
class FieldSpec:
    """A declared field of a record type"""
    name: str
    mutable: bool


@dataclass(frozen=True)
class RecordType:
    """Shape of a record: ordered fields with fixed mutability"""
    name: str
    fields: Tuple[FieldSpec, ...]
    default_kind: RecordKind = RecordKind.VALUE

    def field(self, name: str) -> Optional[FieldSpec]:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None

    @property
    def field_names(self) -> List[str]:
        return [spec.name for spec in self.fields]

    def __str__(self):
        body = "; ".join(f"{'var' if f.mutable else 'let'} {f.name}" for f in self.fields)
        return f"{self.default_kind.value} {self.name} {{ {body} }}"


class RecordInstance:
    """A live record. Field values are Values; the field dict is private."""

    def __init__(self, record_type: RecordType, kind: RecordKind, fields: Dict[str, Value]):
        self.record_type = record_type
        self.kind = kind
        self._fields = dict(fields)

    @property
    def is_reference(self) -> bool:
        return self.kind == RecordKind.REFERENCE

    def get(self, name: str) -> Value:
        if name not in self._fields:
            raise EvalTypeError(
                f"Value of type '{self.record_type.name}' has no member '{name}'"
            )
        return self._fields[name]

    def items(self) -> Iterator[Tuple[str, Value]]:
        for spec in self.record_type.fields:
            yield spec.name, self._fields[spec.name]

    def copy(self) -> 'RecordInstance':
        """Independent copy. Nested value records are copied too."""
        return RecordInstance(
            self.record_type,
            self.kind,
            {name: copy_on_bind(value) for name, value in self._fields.items()}
        )

    def __eq__(self, other):
        if not isinstance(other, RecordInstance):
            return NotImplemented
        if self.is_reference or other.is_reference:
            return self is other
        return (self.record_type == other.record_type and
                self._fields == other._fields)

    __hash__ = None

    def __repr__(self):
        return f"<{self.kind.value} {self.record_type.name} {self._fields!r}>"


def copy_on_bind(value: Value) -> Value:
    """Apply binding semantics: value records are copied, everything else is shared.

    Arrays and optionals are themselves immutable, but may hold value records
    that still need their own copy.
    """
    if value.kind == ValueKind.RECORD:
        instance = value.data
        if instance.is_reference:
            return value
        return record_value(instance.copy())
    if value.kind == ValueKind.LIST:
        return list_value(copy_on_bind(item) for item in value.data)
    if value.kind == ValueKind.OPTIONAL and value.data is not None:
        return Value(ValueKind.OPTIONAL, copy_on_bind(value.data))
    return value


TOWN = RecordType(
    name="Town",
    fields=(FieldSpec("name", mutable=False), FieldSpec("citizens", mutable=True)),
    default_kind=RecordKind.VALUE
)

# Town declared with 'let citizens': appending is refused
FROZEN_TOWN = RecordType(
    name="FrozenTown",
    fields=(FieldSpec("name", mutable=False), FieldSpec("citizens", mutable=False)),
    default_kind=RecordKind.VALUE
)

ENEMY = RecordType(
    name="Enemy",
    fields=(FieldSpec("health", mutable=True), FieldSpec("attackStrength", mutable=False)),
    default_kind=RecordKind.REFERENCE
)

BUILTIN_TYPES = (TOWN, FROZEN_TOWN, ENEMY)


class RecordStore:
    """Registry of record types and the operations that build and mutate records"""

    def __init__(self):
        self.types: Dict[str, RecordType] = {}
        for record_type in BUILTIN_TYPES:
            self.types[record_type.name] = record_type

    def define_type(self, name: str, fields: Iterable[Union[FieldSpec, Tuple[str, bool]]],
                    default_kind: RecordKind = RecordKind.VALUE) -> RecordType:
        """Declare (or redeclare) a record type"""
        specs = tuple(
            spec if isinstance(spec, FieldSpec) else FieldSpec(spec[0], bool(spec[1]))
            for spec in fields
        )
        seen = set()
        for spec in specs:
            if spec.name in seen:
                raise EvalTypeError(f"Invalid redeclaration of '{spec.name}' in '{name}'")
            seen.add(spec.name)

        record_type = RecordType(name, specs, default_kind)
        self.types[name] = record_type
        logger.debug("Defined record type %s", record_type)
        return record_type

    def get_type(self, name: str) -> Optional[RecordType]:
        return self.types.get(name)

    def create_record(self, record_type: RecordType, fields: Dict[str, object],
                      kind: Optional[RecordKind] = None) -> RecordInstance:
        """Build an instance; every declared field must be supplied, nothing else"""
        kind = kind or record_type.default_kind

        missing = [name for name in record_type.field_names if name not in fields]
        if missing:
            raise EvalTypeError(
                f"Missing argument for parameter '{missing[0]}' in call to {record_type.name}"
            )
        extra = [name for name in fields if record_type.field(name) is None]
        if extra:
            raise EvalTypeError(f"Extra argument '{extra[0]}' in call to {record_type.name}")

        values = {name: copy_on_bind(from_python(value)) for name, value in fields.items()}
        instance = RecordInstance(record_type, kind, values)
        logger.debug("Created %r", instance)
        return instance

    def create(self, name: Union[str, Value], citizens: Iterable[Union[str, Value]],
               kind: RecordKind = RecordKind.VALUE,
               mutable_citizens: bool = True) -> RecordInstance:
        """Build a Town. With mutable_citizens=False the FrozenTown shape is used."""
        record_type = TOWN if mutable_citizens else FROZEN_TOWN
        name_value = from_python(name)
        if name_value.kind != ValueKind.STR:
            raise EvalTypeError(f"Town name must be a String, got {name_value.type_name}", "String")
        citizen_values = [self._citizen(c) for c in citizens]
        return self.create_record(
            record_type, {"name": name_value, "citizens": list_value(citizen_values)}, kind
        )

    def bind(self, instance: RecordInstance) -> RecordInstance:
        """What a new binding receives: a copy for value records, the same object otherwise"""
        if instance.is_reference:
            return instance
        return instance.copy()

    def get_field(self, instance: RecordInstance, name: str) -> Value:
        return instance.get(name)

    def set_field(self, instance: RecordInstance, name: str, value: Union[Value, object]):
        """Replace a mutable field's value"""
        spec = self._mutable_field(instance, name)
        new_value = copy_on_bind(from_python(value))
        instance._fields[spec.name] = new_value
        logger.debug("Set %s.%s = %r", instance.record_type.name, name, new_value)

    def append_to_field(self, instance: RecordInstance, name: str, item: Union[Value, object]):
        """Append to a mutable array field, keeping existing order"""
        spec = self._mutable_field(instance, name)
        current = instance.get(spec.name)
        if current.kind != ValueKind.LIST:
            raise EvalTypeError(
                f"Value of type '{current.type_name}' has no member 'append'", "Array"
            )
        item_value = copy_on_bind(from_python(item))
        instance._fields[spec.name] = list_value(current.data + (item_value,))
        logger.debug("Appended %r to %s.%s", item_value, instance.record_type.name, name)

    def append_citizen(self, instance: RecordInstance, new_citizen: Union[str, Value]):
        """Add a citizen at the end of the town's citizens"""
        citizen = self._citizen(new_citizen)
        self.append_to_field(instance, "citizens", citizen)

    def fortify(self, instance: RecordInstance) -> str:
        """Pure method: reports without touching any field"""
        return FORTIFY_MESSAGE

    def _mutable_field(self, instance: RecordInstance, name: str) -> FieldSpec:
        spec = instance.record_type.field(name)
        if spec is None:
            raise EvalTypeError(
                f"Value of type '{instance.record_type.name}' has no member '{name}'"
            )
        if not spec.mutable:
            raise ImmutableFieldError(name, instance.record_type.name)
        return spec

    @staticmethod
    def _citizen(citizen: Union[str, Value]) -> Value:
        value = from_python(citizen)
        if value.kind != ValueKind.STR:
            raise EvalTypeError(f"Citizens must be Strings, got {value.type_name}", "String")
        return value
