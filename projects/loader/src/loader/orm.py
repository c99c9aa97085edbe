"""Generated table classes on top of SQLAlchemy's ORM.

Classes are composed by a ``TableClass`` builder and registered on a ``Schema``.
Relationships are recorded on the schema and every class is mapped imperatively
once all of them are known, see ``Schema.map_classes``.
"""

from __future__ import annotations

from collections import defaultdict
from importlib import import_module
from typing import TYPE_CHECKING, Any, ClassVar, Self

from sqlalchemy import (
    Column,
    Engine,
    MetaData,
    PrimaryKeyConstraint,
    Select,
    Table,
    and_,
    func,
    inspect,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, registry, relationship
from sqlalchemy.types import NullType

from loader.errors import ConfigurationError, ConstructionError, NamingCollisionError
from loader.registry import ClassRegistry
from loader.types import ColumnMapping, Relationship, RelationshipKind

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from sqlalchemy.orm import RelationshipProperty
    from sqlalchemy.types import TypeEngine

type ClassRef = type | str


def resolve_class(reference: ClassRef) -> type:
    """Import a class given as "package.module:Class" or "package.module.Class"."""
    if isinstance(reference, type):
        return reference

    module_name, colon, attribute = reference.partition(":")
    if not colon:
        module_name, _, attribute = reference.rpartition(".")
    try:
        found = getattr(import_module(module_name), attribute)
    except (ImportError, AttributeError, ValueError) as err:
        msg = f'Couldn\'t load additional class "{reference}": {err}'
        raise ConstructionError(msg) from err
    if not isinstance(found, type):
        msg = f'"{reference}" is not a class'
        raise ConstructionError(msg)
    return found


def resolve_classes(references: Iterable[ClassRef]) -> list[type]:
    """Import every class of a list of class references."""
    return [resolve_class(reference) for reference in references]


class Row:
    """Behavior shared by every generated table class."""

    __table__: ClassVar[Table]
    __moniker__: ClassVar[str]

    def __init__(self, **values: Any) -> None:  # noqa: ANN401
        """Initialize a row from mapped attribute values."""
        for key, value in values.items():
            if not hasattr(type(self), key):
                msg = f"{type(self).__name__} has no attribute {key!r}"
                raise TypeError(msg)
            setattr(self, key, value)

    def get_columns(self) -> dict[str, Any]:
        """Return the raw column values keyed by column name."""
        mapper = inspect(self).mapper
        return {
            column.name: getattr(self, mapper.get_property_by_column(column).key)
            for column in self.__table__.columns
        }

    def __repr__(self) -> str:
        """Show the class moniker and primary key values."""
        values = self.get_columns()
        keys = ", ".join(
            f"{column.name}={values[column.name]!r}"
            for column in inspect(type(self)).primary_key
        )
        return f"{type(self).__name__}({keys})"


class TableClass:
    """Builder collecting the ancestry and columns of one generated class.

    The resolution order of the built class is::

        Generated -> left bases -> mixins -> Row -> additional bases
    """

    def __init__(
        self,
        schema: Schema,
        moniker: str,
        table: str,
        db_schema: str | None = None,
    ) -> None:
        """Initialize a builder for a table stored under an optional schema."""
        self.schema = schema
        self.moniker = moniker
        self.table = table
        self.db_schema = db_schema
        self.columns: dict[str, TypeEngine[Any]] = {}
        self.primary_key: list[str] = []
        self.mixins: list[type] = []
        self.base_classes: list[type] = []
        self.left_base_classes: list[type] = []

    @property
    def fullname(self) -> str:
        """Return the storage name, schema-qualified when a schema is set."""
        return f"{self.db_schema}.{self.table}" if self.db_schema else self.table

    def add_mixins(self, mixins: Iterable[type]) -> Self:
        """Attach mixin classes, in declared order."""
        self.mixins.extend(mixins)
        return self

    def add_columns(
        self,
        names: Sequence[str],
        types: Mapping[str, TypeEngine[Any]] | None = None,
    ) -> Self:
        """Declare columns in order, untyped columns get NullType."""
        types = types or {}
        self.columns.update((name, types.get(name, NullType())) for name in names)
        return self

    def set_primary_key(self, names: Sequence[str]) -> Self:
        """Declare the primary key columns."""
        if missing := [name for name in names if name not in self.columns]:
            msg = f"Primary key columns are not declared: {', '.join(missing)}"
            raise ConstructionError(msg, table=self.fullname)
        self.primary_key = list(names)
        return self

    def add_base_classes(self, bases: Iterable[type]) -> Self:
        """Add base classes resolved after the row behavior."""
        self.base_classes.extend(bases)
        return self

    def add_left_base_classes(self, bases: Iterable[type]) -> Self:
        """Add base classes resolved before the row behavior."""
        self.left_base_classes.extend(bases)
        return self

    @property
    def bases(self) -> tuple[type, ...]:
        """Return the bases of the generated class, highest priority first."""
        ordered = (*self.left_base_classes, *self.mixins, Row, *self.base_classes)
        return tuple(dict.fromkeys(ordered))

    def build(self) -> type[Row]:
        """Create the table and the generated class."""
        columns = [Column(name, sql_type) for name, sql_type in self.columns.items()]
        if self.primary_key:
            columns.append(PrimaryKeyConstraint(*self.primary_key))
        try:
            table = Table(
                self.table,
                self.schema.metadata,
                *columns,
                schema=self.db_schema,
            )
        except SQLAlchemyError as err:
            msg = f"Couldn't declare table: {err}"
            raise ConstructionError(msg, table=self.fullname) from err

        namespace = {
            "__module__": self.schema.namespace,
            "__qualname__": f"{self.schema.namespace}.{self.moniker}",
            "__doc__": f"Generated class for the {self.fullname} table.",
            "__table__": table,
            "__moniker__": self.moniker,
        }
        try:
            return type(self.moniker, self.bases, namespace)
        except TypeError as err:
            msg = f"Couldn't compose class {self.moniker}: {err}"
            raise ConstructionError(msg, table=self.fullname) from err


class ResultSet:
    """Query handle for the rows of one generated class."""

    def __init__(self, schema: Schema, table_class: type[Row]) -> None:
        """Initialize the handle for a registered class."""
        self.schema = schema
        self.table_class = table_class

    def select(self) -> Select[tuple[Row]]:
        """Return a select statement over the class."""
        return select(self.table_class)

    def all(self) -> list[Row]:
        """Load every row."""
        with self.schema.session() as session:
            return list(session.scalars(self.select()))

    def count(self) -> int:
        """Count the rows."""
        statement = select(func.count()).select_from(self.table_class.__table__)
        with self.schema.session() as session:
            return session.scalar(statement) or 0

    def find(self, *key: Any) -> Row | None:  # noqa: ANN401
        """Load one row by primary key values."""
        with self.schema.session() as session:
            return session.get(self.table_class, key)


class Schema:
    """Owner of the classes generated for one database."""

    def __init__(self, engine: Engine | None = None, namespace: str = "Schema") -> None:
        """Initialize an empty schema bound to an optional engine."""
        self.engine = engine
        self.namespace = namespace
        self.metadata = MetaData()
        self.mapper_registry = registry(metadata=self.metadata)
        self.class_registry = ClassRegistry()
        self.classes: dict[str, type[Row]] = {}
        self._relationships: defaultdict[type, dict[str, Relationship]] = defaultdict(
            dict,
        )
        self.mapped = False

    def table_class(
        self,
        moniker: str,
        table: str,
        db_schema: str | None = None,
    ) -> TableClass:
        """Start building the class of a table."""
        return TableClass(self, moniker, table, db_schema)

    def register_class(self, moniker: str, table_class: type[Row]) -> None:
        """Make a generated class reachable under its moniker."""
        if moniker in self.classes:
            msg = f"Moniker {moniker} is already registered"
            raise NamingCollisionError(msg, table=table_class.__table__.fullname)
        self.classes[moniker] = table_class

    def resultset(self, moniker: str) -> ResultSet:
        """Return the result set handle of a moniker."""
        try:
            return ResultSet(self, self.classes[moniker])
        except KeyError:
            msg = f"No class registered under moniker {moniker!r}"
            raise KeyError(msg) from None

    def moniker(self, table: str) -> str | None:
        """Return the moniker of a literal table name."""
        return self.class_registry.moniker(table)

    def tables(self) -> list[str]:
        """Return the loaded table names, sorted."""
        return self.class_registry.tables()

    def relationships(self, table_class: type) -> list[Relationship]:
        """Return the relationships declared on a class, in declaration order."""
        return list(self._relationships.get(table_class, {}).values())

    def check_relationship(
        self,
        owner: type,
        accessor: str,
        target: type,
        mapping: ColumnMapping,
    ) -> None:
        """Raise if a relationship cannot be declared on a class."""
        registered = set(self.classes.values())
        for table_class in (owner, target):
            if table_class not in registered:
                msg = f"{table_class.__name__} is not a class of this schema"
                raise ConstructionError(msg)
        if self.mapped:
            msg = "Classes are already mapped"
            raise ConstructionError(msg, table=owner.__table__.fullname)
        if not mapping:
            msg = f"Relationship {accessor} has no columns"
            raise ConstructionError(msg, table=owner.__table__.fullname)
        if accessor in self._relationships[owner]:
            msg = f"Relationship {accessor} is already declared on {owner.__name__}"
            raise NamingCollisionError(msg, table=owner.__table__.fullname)
        sides = ((target, mapping.keys()), (owner, mapping.values()))
        for table_class, columns in sides:
            table = table_class.__table__
            if missing := [column for column in columns if column not in table.c]:
                msg = f"Unknown columns: {', '.join(missing)}"
                raise ConstructionError(msg, table=table.fullname)

    def _declare(
        self,
        kind: RelationshipKind,
        owner: type,
        accessor: str,
        target: type,
        mapping: ColumnMapping,
        back_populates: str | None,
    ) -> None:
        self.check_relationship(owner, accessor, target, mapping)
        self._relationships[owner][accessor] = Relationship(
            kind=kind,
            accessor=accessor,
            owner=owner,
            target=target,
            mapping=dict(mapping),
            back_populates=back_populates,
        )

    def belongs_to(
        self,
        owner: type,
        accessor: str,
        target: type,
        mapping: ColumnMapping,
        *,
        back_populates: str | None = None,
    ) -> None:
        """Declare a many-to-one relationship from owner to target.

        Args:
            owner: Class of the referencing table
            accessor: Attribute name of the relationship on owner
            target: Class of the referenced table
            mapping: Referenced column -> referencing column
            back_populates: Accessor of the inverse relationship on target

        """
        self._declare("belongs_to", owner, accessor, target, mapping, back_populates)

    def has_many(
        self,
        owner: type,
        accessor: str,
        target: type,
        mapping: ColumnMapping,
        *,
        back_populates: str | None = None,
    ) -> None:
        """Declare a one-to-many relationship from owner to target.

        Args:
            owner: Class of the referenced table
            accessor: Attribute name of the relationship on owner
            target: Class of the referencing table
            mapping: Referencing column -> referenced column
            back_populates: Accessor of the inverse relationship on target

        """
        self._declare("has_many", owner, accessor, target, mapping, back_populates)

    @staticmethod
    def _relationship_property(declared: Relationship) -> RelationshipProperty[Any]:
        """Build the SQLAlchemy relationship for a declared relationship."""
        owner_table = declared.owner.__table__
        target_table = declared.target.__table__
        owner_columns = [owner_table.c[c] for c in declared.mapping.values()]
        target_columns = [target_table.c[c] for c in declared.mapping]
        join = and_(
            *(
                target == owner
                for target, owner in zip(target_columns, owner_columns, strict=True)
            ),
        )
        options: dict[str, Any] = {"back_populates": declared.back_populates}
        if declared.kind == "belongs_to":
            options["foreign_keys"] = owner_columns
            options["uselist"] = False
            if declared.owner is declared.target:
                options["remote_side"] = target_columns
        else:
            options["foreign_keys"] = target_columns
        return relationship(declared.target, primaryjoin=join, **options)

    def map_classes(self) -> None:
        """Map every registered class with its columns and relationships.

        Columns named like a relationship accessor are mapped as "_<column>",
        with more leading underscores while that key is taken.
        Tables without a primary key use all of their columns as identity.
        """
        for table_class in self.classes.values():
            table = table_class.__table__
            relationships = self._relationships.get(table_class, {})
            properties: dict[str, Any] = {
                accessor: self._relationship_property(declared)
                for accessor, declared in relationships.items()
            }
            taken = set(properties) | set(table.columns.keys())
            for column in table.columns:
                if column.key in properties:
                    key = f"_{column.key}"
                    while key in taken:
                        key = f"_{key}"
                    taken.add(key)
                    properties[key] = column

            options: dict[str, Any] = {}
            if not table.primary_key.columns:
                options["primary_key"] = list(table.columns)
            try:
                self.mapper_registry.map_imperatively(
                    table_class,
                    table,
                    properties=properties,
                    **options,
                )
            except SQLAlchemyError as err:
                msg = f"Couldn't map {table_class.__name__}: {err}"
                raise ConstructionError(msg, table=table.fullname) from err

        try:
            self.mapper_registry.configure()
        except SQLAlchemyError as err:
            msg = f"Couldn't configure mappers: {err}"
            raise ConstructionError(msg) from err
        self.mapped = True

    def session(self) -> Session:
        """Open an ORM session on the schema's engine."""
        if self.engine is None:
            msg = "Schema has no engine"
            raise ConfigurationError(msg)
        return Session(self.engine, expire_on_commit=False)

    def dispose(self) -> None:
        """Release the connections held by the engine pool."""
        if self.engine is not None:
            self.engine.dispose()
