"""Catalog drivers normalizing engine introspection into table descriptors."""

from abc import ABC, abstractmethod
from typing import ClassVar

from sqlalchemy import Connection, Inspector, inspect
from sqlalchemy.engine.interfaces import ReflectedForeignKeyConstraint
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError

from loader.errors import IntrospectionError
from loader.naming import split_table_name
from loader.types import ForeignKeyEdge, TableDescriptor


class Driver(ABC):
    """Catalog access for one database engine."""

    @abstractmethod
    def list_tables(self, db_schema: str | None = None) -> list[str]:
        """List tables visible under an optional schema, without quoting."""

    @abstractmethod
    def describe_table(self, db_schema: str | None, table: str) -> TableDescriptor:
        """Return the ordered columns and primary key columns of a table."""

    @abstractmethod
    def list_foreign_keys(
        self,
        db_schema: str | None,
        table: str,
    ) -> list[ForeignKeyEdge]:
        """Return the foreign key edges leaving a table."""


class InspectorDriver(Driver):
    """Driver for any dialect SQLAlchemy can inspect.

    Tables outside the connection's default schema are reported schema-qualified,
    as "schema.table".
    """

    dialects: ClassVar[tuple[str, ...]] = ()
    quote_chars: ClassVar[str] = '"'

    def __init__(self, connection: Connection) -> None:
        """Initialize the driver with an open catalog connection."""
        self.connection = connection
        self.inspector: Inspector = inspect(connection)

    def strip_quotes(self, name: str) -> str:
        """Remove engine-specific identifier quoting from a name."""
        return name.translate(str.maketrans("", "", self.quote_chars))

    def _schema(self, db_schema: str | None) -> str | None:
        """Return the schema to pass to the inspector, None for the default."""
        if not db_schema or db_schema == self.inspector.default_schema_name:
            return None
        return db_schema

    def _qualify(self, db_schema: str | None, table: str) -> str:
        table = self.strip_quotes(table)
        if schema := self._schema(db_schema):
            return f"{self.strip_quotes(schema)}.{table}"
        return table

    def _locate(self, db_schema: str | None, table: str) -> tuple[str | None, str]:
        """Resolve a listed table name into inspector schema and table name."""
        table_schema, name = split_table_name(table)
        return self._schema(table_schema or db_schema), name

    def list_tables(self, db_schema: str | None = None) -> list[str]:
        """List tables visible under an optional schema, without quoting."""
        try:
            names = self.inspector.get_table_names(schema=self._schema(db_schema))
        except SQLAlchemyError as err:
            msg = f"Could not list tables: {err}"
            raise IntrospectionError(msg) from err
        return [self._qualify(db_schema, name) for name in names]

    def describe_table(self, db_schema: str | None, table: str) -> TableDescriptor:
        """Return the ordered columns and primary key columns of a table."""
        schema, name = self._locate(db_schema, table)
        try:
            columns = self.inspector.get_columns(name, schema=schema)
            if not columns and not self.inspector.has_table(name, schema=schema):
                raise NoSuchTableError(table)
            primary_key = self.inspector.get_pk_constraint(name, schema=schema)
        except NoSuchTableError as err:
            msg = "Table does not exist"
            raise IntrospectionError(msg, table=table) from err
        except SQLAlchemyError as err:
            msg = f"Could not describe table: {err}"
            raise IntrospectionError(msg, table=table) from err

        return TableDescriptor(
            name=table,
            columns=tuple(self.strip_quotes(column["name"]) for column in columns),
            primary_key=tuple(
                self.strip_quotes(column)
                for column in primary_key["constrained_columns"]
            ),
            column_types=tuple(column["type"] for column in columns),
        )

    def _edges(
        self,
        foreign_key: ReflectedForeignKeyConstraint,
    ) -> list[ForeignKeyEdge]:
        target = self._qualify(
            foreign_key["referred_schema"],
            foreign_key["referred_table"],
        )
        return [
            ForeignKeyEdge(
                table=target,
                column=self.strip_quotes(referred_column),
                foreign_column=self.strip_quotes(constrained_column),
            )
            for constrained_column, referred_column in zip(
                foreign_key["constrained_columns"],
                foreign_key["referred_columns"],
                strict=True,
            )
        ]

    def list_foreign_keys(
        self,
        db_schema: str | None,
        table: str,
    ) -> list[ForeignKeyEdge]:
        """Return the foreign key edges leaving a table.

        Dialects that cannot reflect foreign keys yield no edges.
        """
        schema, name = self._locate(db_schema, table)
        try:
            foreign_keys = self.inspector.get_foreign_keys(name, schema=schema)
        except NotImplementedError:
            return []
        except SQLAlchemyError as err:
            msg = f"Could not list foreign keys: {err}"
            raise IntrospectionError(msg, table=table) from err
        return [
            edge for foreign_key in foreign_keys for edge in self._edges(foreign_key)
        ]


class SQLiteDriver(InspectorDriver):
    """SQLite catalog, attached databases act as schemas next to "main"."""

    dialects = ("sqlite",)
    quote_chars = "\"'`[]"


class PostgresDriver(InspectorDriver):
    """PostgreSQL catalog, tables outside "public" are schema-qualified."""

    dialects = ("postgresql",)


class MySQLDriver(InspectorDriver):
    """MySQL and MariaDB catalog, databases act as schemas."""

    dialects = ("mysql", "mariadb")
    quote_chars = "`"


DRIVERS: dict[str, type[InspectorDriver]] = {
    dialect: driver
    for driver in (SQLiteDriver, PostgresDriver, MySQLDriver)
    for dialect in driver.dialects
}


def driver_for(connection: Connection) -> InspectorDriver:
    """Create the driver matching the connection's dialect."""
    return DRIVERS.get(connection.dialect.name, InspectorDriver)(connection)
