"""Types describing catalog metadata and generated classes."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal, NamedTuple, TypedDict

from sqlalchemy.types import TypeEngine

# Referenced (target) column -> referencing (owner) column
type ColumnMapping = Mapping[str, str]

type RelationshipKind = Literal["belongs_to", "has_many"]


class TableDescriptor(NamedTuple):
    """Columns and primary key of one catalog table."""

    name: str  # As listed by the driver, possibly "schema.table"
    columns: tuple[str, ...]
    primary_key: tuple[str, ...] = ()
    column_types: tuple[TypeEngine[Any], ...] = ()  # Parallel to columns

    @property
    def types(self) -> dict[str, TypeEngine[Any]]:
        """Return column types keyed by column name."""
        return dict(zip(self.columns, self.column_types, strict=False))


class ForeignKeyEdge(NamedTuple):
    """One referencing column pointing at a column of another table."""

    table: str  # Referenced table
    column: str  # Referenced column
    foreign_column: str  # Referencing column


class Relationship(NamedTuple):
    """A relationship declared on a generated class."""

    kind: RelationshipKind
    accessor: str
    owner: type
    target: type
    mapping: ColumnMapping  # Target column -> owner column
    back_populates: str | None = None


class RelationshipSummary(TypedDict):
    """Serializable view of a declared relationship."""

    kind: RelationshipKind
    accessor: str
    target: str
    columns: dict[str, str]


class ClassSummary(TypedDict):
    """Serializable view of a generated class."""

    moniker: str
    table: str
    columns: list[str]
    primary_key: list[str]
    relationships: list[RelationshipSummary]


class SchemaSummary(TypedDict):
    """Serializable view of a loaded schema."""

    name: str
    classes: list[ClassSummary]
