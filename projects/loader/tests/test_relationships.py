"""Tests for inferring relationships from foreign keys."""

import pytest
from sqlalchemy import inspect

from loader.builder import build_classes
from loader.config import make_config
from loader.drivers import Driver
from loader.errors import NamingCollisionError, RelationshipDeclarationWarning
from loader.orm import Schema
from loader.relationships import (
    accessor_names,
    column_mapping,
    group_edges,
    resolve_relationships,
)
from loader.types import ForeignKeyEdge, Relationship, TableDescriptor


def load(driver: Driver, **options: object) -> Schema:
    """Build classes and relationships over a catalog."""
    config = make_config({"relationships": True, **options})
    schema = Schema()
    build_classes(driver, schema, config)
    resolve_relationships(driver, schema, config)
    return schema


def relationships_by_accessor(schema: Schema, moniker: str) -> dict[str, Relationship]:
    """Return the relationships of a class keyed by accessor."""
    return {
        relationship.accessor: relationship
        for relationship in schema.relationships(schema.classes[moniker])
    }


def test_group_edges_by_referenced_table() -> None:
    """Test grouping edges into column mappings per referenced table."""
    edges = [
        ForeignKeyEdge("Edition", "book_id", "book_id"),
        ForeignKeyEdge("edition", "number", "edition_number"),
        ForeignKeyEdge("sales.author", "id", "author_id"),
    ]
    groups = group_edges(edges)
    assert list(groups) == ["edition", "sales.author"]
    assert column_mapping("printing", groups["edition"]) == {
        "book_id": "book_id",
        "number": "edition_number",
    }
    assert column_mapping("printing", groups["sales.author"]) == {"id": "author_id"}
    assert "author" in group_edges(edges, drop_db_schema=True)


def test_single_column_accessor_uses_referencing_column() -> None:
    """Test the single-column shorthand for belongs-to accessors."""
    assert accessor_names("book", "author", {"id": "author_id"}) == (
        "author_id",
        "books",
    )


def test_multi_column_accessor_uses_referenced_table() -> None:
    """Test that multi-column belongs-to accessors name the referenced table."""
    mapping = {"book_id": "book_id", "number": "edition_number"}
    assert accessor_names("printing", "edition", mapping) == ("editions", "printings")
    overrides = {"edition": "release", "printing": "runs"}
    assert accessor_names("printing", "edition", mapping, overrides) == (
        "release",
        "runs",
    )


def test_library_relationships(library_driver: Driver) -> None:
    """Test the belongs-to/has-many pair between books and authors."""
    schema = load(library_driver)
    author = schema.classes["Author"]
    book = schema.classes["Book"]

    belongs_to = relationships_by_accessor(schema, "Book")["author_id"]
    assert belongs_to.kind == "belongs_to"
    assert belongs_to.target is author
    assert belongs_to.mapping == {"id": "author_id"}
    assert belongs_to.back_populates == "books"

    has_many = relationships_by_accessor(schema, "Author")["books"]
    assert has_many.kind == "has_many"
    assert has_many.target is book
    assert has_many.mapping == {"author_id": "id"}
    assert has_many.back_populates == "author_id"


def test_override_renames_has_many(library_driver: Driver) -> None:
    """Test that the override mapping replaces the pluralized name."""
    schema = load(library_driver, inflect={"Book": "publications"})
    assert list(relationships_by_accessor(schema, "Author")) == ["publications"]


def test_pairs_are_symmetric(make_driver: type) -> None:
    """Test that every belongs-to has a has-many with the reversed mapping."""
    driver = make_driver(
        [
            TableDescriptor("edition", ("book_id", "number"), ("book_id", "number")),
            TableDescriptor("printing", ("id", "book_id", "edition_number"), ("id",)),
            TableDescriptor("category", ("id", "parent_id"), ("id",)),
        ],
        {
            "printing": [
                ForeignKeyEdge("edition", "book_id", "book_id"),
                ForeignKeyEdge("edition", "number", "edition_number"),
            ],
            "category": [ForeignKeyEdge("category", "id", "parent_id")],
        },
    )
    schema = load(driver)

    belongs_to = [
        relationship
        for table_class in schema.classes.values()
        for relationship in schema.relationships(table_class)
        if relationship.kind == "belongs_to"
    ]
    assert {relationship.accessor for relationship in belongs_to} == {
        "editions",
        "parent_id",
    }
    for relationship in belongs_to:
        inverse = relationships_by_accessor(
            schema,
            relationship.target.__name__,
        )[relationship.back_populates]
        assert inverse.kind == "has_many"
        assert inverse.target is relationship.owner
        assert inverse.mapping == {v: k for k, v in relationship.mapping.items()}


def test_failed_pair_warns_and_continues(make_driver: type) -> None:
    """Test that a broken relationship does not stop the others."""
    driver = make_driver(
        [
            TableDescriptor("author", ("id",), ("id",)),
            TableDescriptor("book", ("id", "author_id"), ("id",)),
            TableDescriptor("review", ("id", "book_id"), ("id",)),
        ],
        {
            "book": [ForeignKeyEdge("author", "missing", "author_id")],
            "review": [ForeignKeyEdge("book", "id", "book_id")],
        },
    )
    with pytest.warns(RelationshipDeclarationWarning, match='"book" and "author"'):
        schema = load(driver)

    assert schema.relationships(schema.classes["Author"]) == []
    assert list(relationships_by_accessor(schema, "Book")) == ["reviews"]
    assert list(relationships_by_accessor(schema, "Review")) == ["book_id"]
    schema.map_classes()


def test_accessor_collision_skips_second_pair(make_driver: type) -> None:
    """Test that two relationships claiming one accessor do not overwrite."""
    driver = make_driver(
        [
            TableDescriptor("author", ("id",), ("id",)),
            TableDescriptor("book", ("id", "author_id"), ("id",)),
            TableDescriptor("magazine", ("id", "author_id"), ("id",)),
        ],
        {
            "book": [ForeignKeyEdge("author", "id", "author_id")],
            "magazine": [ForeignKeyEdge("author", "id", "author_id")],
        },
    )
    with pytest.warns(RelationshipDeclarationWarning, match="already declared"):
        schema = load(driver, inflect={"book": "works", "magazine": "works"})

    works = relationships_by_accessor(schema, "Author")["works"]
    assert works.target is schema.classes["Book"]
    assert schema.relationships(schema.classes["Magazine"]) == []


def test_foreign_keys_to_unloaded_tables_are_skipped(library_driver: Driver) -> None:
    """Test that excluded tables take no part in relationships."""
    schema = load(library_driver, exclude="^author$")
    assert schema.relationships(schema.classes["Book"]) == []
    assert ("list_foreign_keys", "author") not in library_driver.calls


def test_tables_resolved_in_sorted_order(make_driver: type) -> None:
    """Test that foreign keys are fetched in sorted table order."""
    driver = make_driver(
        [
            TableDescriptor("zebra", ("id",), ("id",)),
            TableDescriptor("apple", ("id",), ("id",)),
        ],
    )
    load(driver)
    fetched = [table for call, table in driver.calls if call == "list_foreign_keys"]
    assert fetched == ["apple", "zebra"]


def test_column_mapping_rejects_shared_referenced_column() -> None:
    """Test that two columns referencing one column do not overwrite each other."""
    edges = [
        ForeignKeyEdge("user", "id", "created_by"),
        ForeignKeyEdge("user", "id", "updated_by"),
    ]
    with pytest.raises(NamingCollisionError, match="created_by and updated_by"):
        column_mapping("post", edges)


def test_shared_referenced_column_warns(make_driver: type) -> None:
    """Test that foreign keys sharing a referenced column are reported."""
    driver = make_driver(
        [
            TableDescriptor("user", ("id",), ("id",)),
            TableDescriptor("post", ("id", "created_by", "updated_by"), ("id",)),
        ],
        {
            "post": [
                ForeignKeyEdge("user", "id", "created_by"),
                ForeignKeyEdge("user", "id", "updated_by"),
            ],
        },
    )
    with pytest.warns(RelationshipDeclarationWarning, match='"post" and "user"'):
        schema = load(driver)

    assert schema.relationships(schema.classes["Post"]) == []
    assert schema.relationships(schema.classes["User"]) == []
    schema.map_classes()


def test_shadowed_column_gets_free_attribute(make_driver: type) -> None:
    """Test that a column hidden by an accessor does not take an existing name."""
    driver = make_driver(
        [
            TableDescriptor("author", ("id",), ("id",)),
            TableDescriptor("book", ("id", "author_id", "_author_id"), ("id",)),
        ],
        {"book": [ForeignKeyEdge("author", "id", "author_id")]},
    )
    schema = load(driver)
    schema.map_classes()

    author = schema.classes["Author"](id=1)
    book = schema.classes["Book"](id=2, author_id=author, _author_id=7)
    assert book.author_id is author
    assert book._author_id == 7
    assert "__author_id" in inspect(schema.classes["Book"]).attrs
    assert book.get_columns() == {"id": 2, "author_id": None, "_author_id": 7}
