"""Build one generated class per catalog table."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING
from warnings import warn

from loader.errors import MissingPrimaryKeyWarning
from loader.naming import split_table_name, storage_name, table_to_moniker
from loader.orm import Row, Schema, resolve_classes

if TYPE_CHECKING:
    from loader.config import LoaderConfig
    from loader.drivers import Driver
    from loader.registry import ClassRegistry

logger = getLogger(__name__)


class SchemaBuilder:
    """Creates and registers the generated classes of a schema."""

    def __init__(self, driver: Driver, schema: Schema, config: LoaderConfig) -> None:
        """Initialize the builder and import the configured extra classes."""
        self.driver = driver
        self.schema = schema
        self.config = config
        self.mixins = resolve_classes(config.additional_classes)
        self.base_classes = resolve_classes(config.additional_base_classes)
        self.left_base_classes = resolve_classes(config.left_base_classes)

    def trace(self, message: str, *args: object) -> None:
        """Log a declaration when debugging is enabled."""
        if self.config.debug:
            logger.info(message, *args)

    def tables(self) -> list[str]:
        """List the catalog tables passing the include and exclude patterns."""
        return [
            table
            for table in self.driver.list_tables(self.config.db_schema)
            if self.config.includes(table)
        ]

    def build(self, table: str) -> type[Row]:
        """Build, register and return the class of one listed table."""
        registry = self.schema.class_registry
        drop_db_schema = self.config.drop_db_schema

        db_schema, name = split_table_name(table)
        table_name = storage_name(table, drop_db_schema=drop_db_schema)
        moniker = table_to_moniker(db_schema, name, qualify=not drop_db_schema)
        registry.check(table_name, moniker)

        table_class = self.schema.table_class(
            moniker,
            name,
            None if drop_db_schema else db_schema,
        )
        self.trace(
            '# Initializing table "%s" as "%s.%s"',
            table_name,
            self.schema.namespace,
            moniker,
        )
        table_class.add_mixins(self.mixins)

        descriptor = self.driver.describe_table(self.config.db_schema, table)
        if not descriptor.primary_key:
            warn(f"{table} has no primary key", MissingPrimaryKeyWarning, stacklevel=2)
        table_class.add_columns(descriptor.columns, descriptor.types)
        self.trace("%s.add_columns(%s)", moniker, ", ".join(descriptor.columns))
        if descriptor.primary_key:
            table_class.set_primary_key(descriptor.primary_key)
            self.trace(
                "%s.set_primary_key(%s)",
                moniker,
                ", ".join(descriptor.primary_key),
            )

        table_class.add_base_classes(self.base_classes)
        table_class.add_left_base_classes(self.left_base_classes)
        generated = table_class.build()
        self.trace(
            "class %s(%s)",
            moniker,
            ", ".join(base.__name__ for base in table_class.bases),
        )

        self.schema.register_class(moniker, generated)
        registry.add(table_name, moniker, generated, descriptor)
        return generated


def build_classes(
    driver: Driver,
    schema: Schema,
    config: LoaderConfig,
) -> ClassRegistry:
    """Create one class per table, in the driver's listing order.

    Any failure here aborts the load; a missing primary key only warns.

    Returns:
        The schema's class registry, frozen

    """
    builder = SchemaBuilder(driver, schema, config)
    for table in builder.tables():
        builder.build(table)
    schema.class_registry.freeze()
    return schema.class_registry
