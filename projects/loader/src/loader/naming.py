"""Naming rules for generated classes and relationship accessors."""

from collections.abc import Mapping
from functools import cache
from re import split

from inflect import engine

_inflector = engine()


def split_table_name(table: str) -> tuple[str | None, str]:
    """Split a possibly schema-qualified table name into schema and table."""
    db_schema, dot, name = table.partition(".")
    return (db_schema, name) if dot else (None, table)


def storage_name(table: str, *, drop_db_schema: bool = False) -> str:
    """Return the name a table is stored under, without schema when dropped."""
    db_schema, name = split_table_name(table)
    return name if db_schema is None or drop_db_schema else f"{db_schema}.{name}"


def pascal_case(name: str) -> str:
    """Convert a lower-cased name with any separators to PascalCase."""
    words = split(r"[\W_]+", name)
    return "".join(word[0].upper() + word[1:] for word in words if word)


def table_to_moniker(
    db_schema: str | None,
    table: str,
    *,
    qualify: bool = True,
) -> str:
    """Make a class moniker from a table name.

    Examples:
        (None, "order_items") -> "OrderItems"
        ("sales", "order_items") -> "SalesOrderItems"
        ("sales", "order_items"), qualify=False -> "OrderItems"

    """
    moniker = pascal_case(table.lower())
    if db_schema and qualify:
        return db_schema.lower().capitalize() + moniker
    return moniker


@cache
def pluralize(word: str) -> str:
    """Return the English plural of a word."""
    return _inflector.plural_noun(word) or word


def relationship_name(table: str, overrides: Mapping[str, str] | None = None) -> str:
    """Name the accessor for a relationship pointing at rows of a table.

    Overrides are looked up with the lower-cased table name first, then with the
    table part of a schema-qualified name. Without an override the table part
    is pluralized.
    """
    name = table.lower()
    _db_schema, bare_name = split_table_name(name)
    if overrides:
        for key in (name, bare_name):
            if key in overrides:
                return overrides[key]
    return pluralize(bare_name)
