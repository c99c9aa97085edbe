"""Registry of the classes generated during one schema load."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loader.errors import NamingCollisionError

if TYPE_CHECKING:
    from loader.types import TableDescriptor


class ClassRegistry:
    """Maps lower-cased table names to generated classes, monikers and descriptors.

    Filled while classes are built, frozen before relationships are resolved.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._classes: dict[str, type] = {}
        self._monikers: dict[str, str] = {}
        self._descriptors: dict[str, TableDescriptor] = {}
        self.frozen = False

    def add(
        self,
        table: str,
        moniker: str,
        table_class: type,
        descriptor: TableDescriptor,
    ) -> None:
        """Record a generated class under its table name."""
        if self.frozen:
            msg = "Registry is frozen after class construction"
            raise RuntimeError(msg)
        self.check(table, moniker)
        key = table.lower()
        self._classes[key] = table_class
        self._monikers[key] = moniker
        self._descriptors[key] = descriptor

    def check(self, table: str, moniker: str) -> None:
        """Raise if a table or moniker is already taken."""
        key = table.lower()
        if key in self._classes:
            msg = f"Table is already loaded as {self._monikers[key]}"
            raise NamingCollisionError(msg, table=table)
        for other, other_moniker in self._monikers.items():
            if other_moniker == moniker:
                msg = f"Moniker {moniker} is already used by table {other}"
                raise NamingCollisionError(msg, table=table)

    def freeze(self) -> None:
        """Refuse further additions."""
        self.frozen = True

    def table_class(self, table: str) -> type | None:
        """Return the class generated for a table."""
        return self._classes.get(table.lower())

    def moniker(self, table: str) -> str | None:
        """Return the moniker generated for a table."""
        return self._monikers.get(table.lower())

    def descriptor(self, table: str) -> TableDescriptor | None:
        """Return the descriptor a table's class was built from."""
        return self._descriptors.get(table.lower())

    def tables(self) -> list[str]:
        """Return the registered table names, sorted."""
        return sorted(self._classes)

    def __contains__(self, table: object) -> bool:
        """Check whether a table is registered."""
        return isinstance(table, str) and table.lower() in self._classes
