"""Infer belongs-to/has-many pairs from foreign keys."""

from __future__ import annotations

from collections import defaultdict
from logging import getLogger
from typing import TYPE_CHECKING
from warnings import warn

from sqlalchemy.exc import SQLAlchemyError

from loader.errors import (
    LoaderError,
    NamingCollisionError,
    RelationshipDeclarationWarning,
)
from loader.naming import relationship_name, storage_name

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from loader.config import LoaderConfig
    from loader.drivers import Driver
    from loader.orm import Schema
    from loader.types import ColumnMapping, ForeignKeyEdge

logger = getLogger(__name__)


def group_edges(
    edges: Iterable[ForeignKeyEdge],
    *,
    drop_db_schema: bool = False,
) -> dict[str, list[ForeignKeyEdge]]:
    """Group foreign key edges by lower-cased referenced table, in listed order."""
    groups: defaultdict[str, list[ForeignKeyEdge]] = defaultdict(list)
    for edge in edges:
        table = storage_name(edge.table, drop_db_schema=drop_db_schema).lower()
        groups[table].append(edge)
    return dict(groups)


def column_mapping(table: str, edges: Iterable[ForeignKeyEdge]) -> dict[str, str]:
    """Map referenced columns to referencing columns.

    Raises:
        NamingCollisionError: One referenced column is referenced by two columns

    """
    mapping: dict[str, str] = {}
    for edge in edges:
        column = mapping.setdefault(edge.column, edge.foreign_column)
        if column != edge.foreign_column:
            msg = (
                f"{edge.table}.{edge.column} is referenced by both {column} "
                f"and {edge.foreign_column}"
            )
            raise NamingCollisionError(msg, table=table)
    return mapping


def accessor_names(
    table: str,
    other: str,
    mapping: ColumnMapping,
    overrides: Mapping[str, str] | None = None,
) -> tuple[str, str]:
    """Name the belongs-to and has-many accessors of a relationship pair.

    A single-column relationship is named after its referencing column on the
    belongs-to side so the column accessor yields the related row.

    Args:
        table: Referencing table
        other: Referenced table
        mapping: Referenced column -> referencing column
        overrides: Table name -> accessor name, bypassing pluralization

    Returns:
        Belongs-to accessor on table, has-many accessor on other

    """
    if len(mapping) == 1:
        (belongs_to,) = mapping.values()
    else:
        belongs_to = relationship_name(other, overrides)
    return belongs_to, relationship_name(table, overrides)


class RelationshipResolver:
    """Declares relationship pairs between the classes of a loaded schema."""

    def __init__(self, driver: Driver, schema: Schema, config: LoaderConfig) -> None:
        """Initialize the resolver over a schema whose classes are built."""
        self.driver = driver
        self.schema = schema
        self.config = config
        self.registry = schema.class_registry

    def trace(self, message: str, *args: object) -> None:
        """Log a declaration when debugging is enabled."""
        if self.config.debug:
            logger.info(message, *args)

    def make_relations(self, table: str, other: str, mapping: ColumnMapping) -> None:
        """Declare the belongs-to/has-many pair between two registered tables."""
        table_class = self.registry.table_class(table)
        other_class = self.registry.table_class(other)
        if table_class is None or other_class is None:
            msg = f"Table {other if table_class else table} is not loaded"
            raise LoaderError(msg, table=table)

        belongs_to, has_many = accessor_names(
            table,
            other,
            mapping,
            self.config.inflect,
        )
        reverse = {column: other_column for other_column, column in mapping.items()}
        if table_class is other_class and belongs_to == has_many:
            msg = f"Both sides of the relationship are named {belongs_to}"
            raise NamingCollisionError(msg, table=table)
        self.schema.check_relationship(other_class, has_many, table_class, reverse)

        self.trace("# Belongs_to relationship")
        self.trace(
            "%s.belongs_to(%r, %s, %r)",
            table_class.__name__,
            belongs_to,
            other_class.__name__,
            dict(mapping),
        )
        self.schema.belongs_to(
            table_class,
            belongs_to,
            other_class,
            mapping,
            back_populates=has_many,
        )

        self.trace("# Has_many relationship")
        self.trace(
            "%s.has_many(%r, %s, %r)",
            other_class.__name__,
            has_many,
            table_class.__name__,
            reverse,
        )
        self.schema.has_many(
            other_class,
            has_many,
            table_class,
            reverse,
            back_populates=belongs_to,
        )

    def resolve(self, table: str) -> int:
        """Declare the relationships of one table's foreign keys.

        Returns:
            Number of relationship pairs declared

        """
        descriptor = self.registry.descriptor(table)
        if descriptor is None:
            return 0
        edges = self.driver.list_foreign_keys(self.config.db_schema, descriptor.name)
        groups = group_edges(edges, drop_db_schema=self.config.drop_db_schema)

        declared = 0
        for other, other_edges in groups.items():
            if other not in self.registry:
                self.trace("# Skipping %s -> %s, table is not loaded", table, other)
                continue
            try:
                mapping = column_mapping(table, other_edges)
                self.make_relations(table, other, mapping)
            except (LoaderError, SQLAlchemyError) as err:
                warn(
                    f'belongs_to/has_many between "{table}" and "{other}" '
                    f"failed: {err}",
                    RelationshipDeclarationWarning,
                    stacklevel=2,
                )
            else:
                declared += 1
        return declared


def resolve_relationships(driver: Driver, schema: Schema, config: LoaderConfig) -> int:
    """Declare relationship pairs for every loaded table, in sorted order.

    Failed pairs warn and are skipped; they never abort the load.

    Returns:
        Number of relationship pairs declared

    """
    resolver = RelationshipResolver(driver, schema, config)
    return sum(resolver.resolve(table) for table in schema.class_registry.tables())
