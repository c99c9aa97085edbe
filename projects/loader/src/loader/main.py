"""Main module for loading a schema from a database catalog."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any

from sqlalchemy import Engine, create_engine, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from loader.builder import build_classes
from loader.config import LoaderConfig, LoaderOptions, make_config
from loader.drivers import driver_for
from loader.errors import ConfigurationError, IntrospectionError
from loader.orm import Schema
from loader.relationships import resolve_relationships

if TYPE_CHECKING:
    from collections.abc import Mapping

    from loader.types import ClassSummary, SchemaSummary

logger = getLogger(__name__)


def connect(
    dsn: str,
    user: str | None = None,
    password: str | None = None,
    options: Mapping[str, Any] | None = None,
) -> Engine:
    """Create an engine for a database URL and credentials.

    Raises:
        ConfigurationError: The URL, dialect or DBAPI driver is unusable

    """
    try:
        url = make_url(dsn)
        if user is not None:
            url = url.set(username=user)
        if password is not None:
            url = url.set(password=password)
        return create_engine(url, connect_args=dict(options or {}))
    except (ArgumentError, ImportError) as err:
        msg = f"Invalid connection parameters: {err}"
        raise ConfigurationError(msg) from err


def load_schema(
    options: LoaderOptions | LoaderConfig,
    *,
    engine: Engine | None = None,
) -> Schema:
    """Load a schema, generating one class per table of the database.

    Args:
        options: Loader options, see ``LoaderOptions``
        engine: Engine to load from instead of connecting to ``options["dsn"]``

    Returns:
        Schema holding the generated, mapped classes

    Raises:
        ConfigurationError: Missing or invalid options
        IntrospectionError: A catalog query failed
        ConstructionError: A generated class could not be composed

    """
    config = options if isinstance(options, LoaderConfig) else make_config(options)
    if engine is None:
        if config.dsn is None:
            msg = "A dsn is required to connect"
            raise ConfigurationError(msg)
        engine = connect(config.dsn, config.user, config.password, config.options)

    schema = Schema(engine, namespace=config.namespace)
    if config.debug:
        logger.info("### START schema loader dump ###")
    try:
        with engine.connect() as connection:
            driver = driver_for(connection)
            build_classes(driver, schema, config)
            if config.relationships:
                resolve_relationships(driver, schema, config)
        schema.map_classes()
    except SQLAlchemyError as err:
        schema.dispose()
        msg = f"Catalog query failed: {err}"
        raise IntrospectionError(msg) from err
    except Exception:
        schema.dispose()
        raise
    if config.debug:
        logger.info("### END schema loader dump ###")

    return schema


def _class_summary(schema: Schema, moniker: str) -> ClassSummary:
    """Derive a ClassSummary from a generated class."""
    table_class = schema.classes[moniker]
    table = table_class.__table__
    return {
        "moniker": moniker,
        "table": table.fullname,
        "columns": [column.name for column in table.columns],
        "primary_key": [column.name for column in table.primary_key.columns],
        "relationships": [
            {
                "kind": relationship.kind,
                "accessor": relationship.accessor,
                "target": relationship.target.__name__,
                "columns": dict(relationship.mapping),
            }
            for relationship in schema.relationships(table_class)
        ],
    }


def summarize_schema(schema: Schema) -> SchemaSummary:
    """Describe the generated classes of a schema, sorted by table name."""
    monikers = (schema.moniker(table) for table in schema.tables())
    name = schema.engine.url.database if schema.engine is not None else None
    return {
        "name": name or schema.namespace,
        "classes": [
            _class_summary(schema, moniker) for moniker in monikers if moniker
        ],
    }
