"""Errors and warnings raised while loading a schema."""


class LoaderError(Exception):
    """Base class for fatal schema loading errors."""

    def __init__(self, message: str, *, table: str | None = None) -> None:
        """Initialize the error with an optional table for context."""
        super().__init__(message)
        self.table = table

    def __str__(self) -> str:
        """Prefix the message with the table it concerns."""
        message = super().__str__()
        return f"{self.table}: {message}" if self.table else message


class ConfigurationError(LoaderError):
    """Missing or invalid loader options; the load never starts."""


class IntrospectionError(LoaderError):
    """A catalog query failed while enumerating tables or columns."""


class ConstructionError(LoaderError):
    """A generated class could not be composed."""


class NamingCollisionError(ConstructionError):
    """Two tables or two relationships claim the same name."""


class MissingPrimaryKeyWarning(UserWarning):
    """A table was loaded without a primary key."""


class RelationshipDeclarationWarning(UserWarning):
    """A belongs-to/has-many pair could not be declared."""
