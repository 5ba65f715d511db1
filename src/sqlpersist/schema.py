"""Entity definitions — the schema input of the operation generator.

An ``EntityDefinition`` names a table and lists its fields in column order.
Definitions are produced once (by hand or by whatever parses an entity
syntax) and are immutable; structurally equal definitions compare and hash
equal, which is what makes generated SQL reproducible.

Examples:
    >>> from sqlpersist.schema import EntityDefinition
    >>> from sqlpersist.values import ValueKind
    >>> person = EntityDefinition.of(
    ...     "person",
    ...     {"name": ValueKind.TEXT, "age": ValueKind.INT64},
    ...     nullable={"age"},
    ... )
    >>> person.columns
    ('name', 'age')
    >>> person.field("age").nullable
    True
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from sqlpersist.errors import SchemaError
from sqlpersist.values import ValueKind

ID_COLUMN = "id"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class FieldDefinition:
    """One column of an entity: name, value kind, nullability."""

    name: str
    kind: ValueKind
    nullable: bool = False


@dataclass(frozen=True)
class EntityDefinition:
    """A table name plus its ordered fields (the ``id`` column is implicit)."""

    name: str
    fields: tuple[FieldDefinition, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.fields, tuple):
            object.__setattr__(self, "fields", tuple(self.fields))

    @classmethod
    def of(
        cls,
        name: str,
        fields: Mapping[str, ValueKind | str],
        *,
        nullable: Iterable[str] = (),
    ) -> EntityDefinition:
        """Build a definition from a ``{field: kind}`` mapping (insertion order kept)."""
        optional = set(nullable)
        return cls(
            name=name,
            fields=tuple(
                FieldDefinition(n, ValueKind(kind), n in optional) for n, kind in fields.items()
            ),
        )

    @property
    def table(self) -> str:
        return self.name

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    def field(self, name: str) -> FieldDefinition:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(name)

    def validate(self) -> None:
        """Check the definition before any SQL is generated from it.

        Raises:
            SchemaError: bad identifier, duplicate or ``id``-colliding field,
                ``NULL`` field kind, column named like the table, or no fields.
        """
        if not _IDENTIFIER.match(self.name):
            raise SchemaError(f"invalid entity name: {self.name!r}").with_context(entity=self.name)
        if not self.fields:
            raise SchemaError(f"entity {self.name} has no fields").with_context(entity=self.name)

        seen: set[str] = set()
        for f in self.fields:
            if not _IDENTIFIER.match(f.name):
                raise SchemaError(f"invalid field name: {f.name!r}").with_context(entity=self.name)
            folded = f.name.lower()
            if folded == ID_COLUMN:
                raise SchemaError(
                    f"field {f.name!r} collides with the identifier column"
                ).with_context(entity=self.name)
            if folded == self.name.lower():
                raise SchemaError(
                    f"field {f.name!r} collides with the table name"
                ).with_context(entity=self.name)
            if folded in seen:
                raise SchemaError(f"duplicate field: {f.name!r}").with_context(entity=self.name)
            if not isinstance(f.kind, ValueKind) or f.kind is ValueKind.NULL:
                raise SchemaError(
                    f"field {f.name!r} has no storable kind: {f.kind!r}"
                ).with_context(entity=self.name)
            seen.add(folded)


__all__ = [
    "ID_COLUMN",
    "FieldDefinition",
    "EntityDefinition",
]
