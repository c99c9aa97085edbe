"""Schema loading module generating ORM classes from database catalogs."""

from loader.config import LoaderConfig, LoaderOptions, make_config, read_config
from loader.drivers import Driver, InspectorDriver, driver_for
from loader.errors import (
    ConfigurationError,
    ConstructionError,
    IntrospectionError,
    LoaderError,
    MissingPrimaryKeyWarning,
    NamingCollisionError,
    RelationshipDeclarationWarning,
)
from loader.main import connect, load_schema, summarize_schema
from loader.naming import relationship_name, table_to_moniker
from loader.orm import ResultSet, Row, Schema
from loader.types import ForeignKeyEdge, TableDescriptor

__all__ = [
    "ConfigurationError",
    "ConstructionError",
    "Driver",
    "ForeignKeyEdge",
    "InspectorDriver",
    "IntrospectionError",
    "LoaderConfig",
    "LoaderError",
    "LoaderOptions",
    "MissingPrimaryKeyWarning",
    "NamingCollisionError",
    "RelationshipDeclarationWarning",
    "ResultSet",
    "Row",
    "Schema",
    "TableDescriptor",
    "connect",
    "driver_for",
    "load_schema",
    "make_config",
    "read_config",
    "relationship_name",
    "summarize_schema",
    "table_to_moniker",
]
