"""Shared fixtures for schema loader tests."""

from collections.abc import Callable, Mapping, Sequence

import pytest

from loader.drivers import Driver
from loader.errors import IntrospectionError
from loader.types import ForeignKeyEdge, TableDescriptor


class FakeDriver(Driver):
    """In-memory catalog listing tables in insertion order."""

    def __init__(
        self,
        tables: Sequence[TableDescriptor],
        foreign_keys: Mapping[str, list[ForeignKeyEdge]] | None = None,
    ) -> None:
        """Initialize the catalog from descriptors and foreign keys per table."""
        self.tables = {table.name: table for table in tables}
        self.foreign_keys = foreign_keys or {}
        self.calls: list[tuple[str, str | None]] = []

    def list_tables(self, db_schema: str | None = None) -> list[str]:
        """List tables in insertion order."""
        self.calls.append(("list_tables", db_schema))
        return list(self.tables)

    def describe_table(self, db_schema: str | None, table: str) -> TableDescriptor:
        """Return the descriptor of a known table."""
        self.calls.append(("describe_table", table))
        try:
            return self.tables[table]
        except KeyError as err:
            msg = "Table does not exist"
            raise IntrospectionError(msg, table=table) from err

    def list_foreign_keys(
        self,
        db_schema: str | None,
        table: str,
    ) -> list[ForeignKeyEdge]:
        """Return the edges registered for a table."""
        self.calls.append(("list_foreign_keys", table))
        return self.foreign_keys.get(table, [])


type DriverFactory = Callable[..., FakeDriver]


@pytest.fixture(name="make_driver")
def fake_driver_factory() -> DriverFactory:
    """Return a factory for in-memory catalogs."""
    return FakeDriver


@pytest.fixture(name="library_driver")
def library_catalog() -> FakeDriver:
    """Catalog with authors and their books."""
    return FakeDriver(
        [
            TableDescriptor("author", ("id", "name"), ("id",)),
            TableDescriptor("book", ("id", "title", "author_id"), ("id",)),
        ],
        {"book": [ForeignKeyEdge("author", "id", "author_id")]},
    )
