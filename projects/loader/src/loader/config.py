"""Loader options and their validation."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from tomllib import TOMLDecodeError, load
from typing import Any, TypedDict

from loader.errors import ConfigurationError
from loader.orm import ClassRef


class LoaderOptions(TypedDict, total=False):
    """Options recognized by ``load_schema``."""

    dsn: str
    user: str
    password: str
    options: dict[str, Any]  # Passed to the DBAPI connect call
    db_schema: str
    constraint: str  # Only load tables matching this regex
    exclude: str  # Skip tables matching this regex
    drop_db_schema: bool
    relationships: bool
    inflect: dict[str, str]  # Table name -> relationship accessor
    additional_classes: ClassRef | list[ClassRef]
    additional_base_classes: ClassRef | list[ClassRef]
    left_base_classes: ClassRef | list[ClassRef]
    namespace: str
    debug: bool


@dataclass(frozen=True)
class LoaderConfig:
    """Validated loader options."""

    dsn: str | None = None
    user: str | None = None
    password: str | None = None
    options: Mapping[str, Any] = field(default_factory=dict)
    db_schema: str | None = None
    constraint: re.Pattern[str] = re.compile(".*")
    exclude: re.Pattern[str] | None = None
    drop_db_schema: bool = False
    relationships: bool = False
    inflect: Mapping[str, str] = field(default_factory=dict)
    additional_classes: tuple[ClassRef, ...] = ()
    additional_base_classes: tuple[ClassRef, ...] = ()
    left_base_classes: tuple[ClassRef, ...] = ()
    namespace: str = "Schema"
    debug: bool = False

    def includes(self, table: str) -> bool:
        """Check a table name against the constraint and exclude patterns."""
        if not self.constraint.search(table):
            return False
        return self.exclude is None or not self.exclude.search(table)


def _compile(option: str, pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as err:
        msg = f"Invalid {option} pattern {pattern!r}: {err}"
        raise ConfigurationError(msg) from err


def _class_list(value: ClassRef | Iterable[ClassRef] | None) -> tuple[ClassRef, ...]:
    """Normalize a single class reference or a list of them."""
    if value is None:
        return ()
    if isinstance(value, (str, type)):
        return (value,)
    return tuple(value)


def make_config(options: LoaderOptions) -> LoaderConfig:
    """Validate loader options.

    Raises:
        ConfigurationError: Unknown options or invalid patterns

    """
    if unknown := set(options) - set(LoaderOptions.__annotations__):
        msg = f"Unknown loader options: {', '.join(sorted(unknown))}"
        raise ConfigurationError(msg)

    if (dsn := options.get("dsn")) is not None and not isinstance(dsn, str):
        msg = f"dsn must be a string, got {type(dsn).__name__}"
        raise ConfigurationError(msg)

    exclude = options.get("exclude")

    return LoaderConfig(
        dsn=dsn or None,
        user=options.get("user"),
        password=options.get("password"),
        options=dict(options.get("options") or {}),
        db_schema=options.get("db_schema") or None,
        constraint=_compile("constraint", options.get("constraint") or ".*"),
        exclude=_compile("exclude", exclude) if exclude else None,
        drop_db_schema=bool(options.get("drop_db_schema")),
        relationships=bool(options.get("relationships")),
        inflect={
            table.lower(): name
            for table, name in (options.get("inflect") or {}).items()
        },
        additional_classes=_class_list(options.get("additional_classes")),
        additional_base_classes=_class_list(options.get("additional_base_classes")),
        left_base_classes=_class_list(options.get("left_base_classes")),
        namespace=options.get("namespace") or "Schema",
        debug=bool(options.get("debug")),
    )


def read_config(config_location: Path) -> LoaderOptions:
    """Load loader options from the [loader] table of a TOML file."""
    try:
        with config_location.open("rb") as f:
            options: LoaderOptions = load(f).get("loader", {})
    except (OSError, TOMLDecodeError) as err:
        msg = f"Couldn't read config {config_location}: {err}"
        raise ConfigurationError(msg) from err
    return options
