"""Connector exceptions."""

from __future__ import annotations

from pymongo.errors import PyMongoError

# Native command failures (duplicate key, malformed query, ...) surface
# unchanged as driver errors.
OperationError = PyMongoError


class ConnectorError(Exception):
    """Root exception for the MongoDB connector."""


class PersistenceError(ConnectorError):
    """Base class for storage-related errors."""


class MongoConnectionError(PersistenceError):
    """Raised when connection to MongoDB fails."""


class MongoQueryError(PersistenceError):
    """Raised when a filter, sort or update cannot be compiled."""


class ModelNotFoundError(ConnectorError):
    """Raised when a model name is not registered."""

    def __init__(self, model: str) -> None:
        self.model = model
        super().__init__(f"Model {model!r} is not defined")


class NotFoundError(ConnectorError):
    """Raised when a write targets a document that does not exist."""

    status_code = 404


class EntityNotFoundError(NotFoundError):
    """Raised when a specific document cannot be found by id."""

    def __init__(self, model: str, entity_id: object) -> None:
        self.model = model
        self.entity_id = entity_id
        super().__init__(f"No {model} found for id {entity_id!r}")


class CoercionError(ConnectorError):
    """Base class for value coercion failures."""


class FormatError(CoercionError, ValueError):
    """Raised when a value cannot be coerced to its declared storage type."""


class TypeMismatchError(FormatError):
    """Raised when a declared ObjectID property receives a non ObjectID value."""
