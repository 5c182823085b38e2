"""MongoDB connector for model-framework persistence.

Translates abstract filters, sorts and update payloads into native MongoDB
documents, coerces identifiers and decimals to BSON types, and exposes the
CRUD operation set over Motor.
"""

from __future__ import annotations

from .connection import MongoConnectionManager
from .connector import MongoConnector
from .dispatcher import LEGACY_COMMAND_NAMES, CommandDispatcher
from .exceptions import (
    CoercionError,
    ConnectorError,
    EntityNotFoundError,
    FormatError,
    ModelNotFoundError,
    MongoConnectionError,
    MongoQueryError,
    NotFoundError,
    OperationError,
    PersistenceError,
    TypeMismatchError,
)
from .hooks import ExecuteContext, HookResult, ObserverRegistry
from .ports import IIncludeResolver, IModelRegistry
from .query_builder import MongoQueryBuilder
from .schema import (
    ModelDescriptor,
    ModelRegistry,
    ModelSettings,
    PropertyDefinition,
    PropertyKind,
)
from .settings import ConnectorSettings, generate_mongodb_url, resolve_setting
from .transaction import MongoTransaction, MongoTransactionError
from .update_builder import parse_update_data

__all__ = [
    # Core
    "MongoConnector",
    "MongoConnectionManager",
    "CommandDispatcher",
    "LEGACY_COMMAND_NAMES",
    "MongoTransaction",
    # Configuration and schema
    "ConnectorSettings",
    "generate_mongodb_url",
    "resolve_setting",
    "ModelDescriptor",
    "ModelRegistry",
    "ModelSettings",
    "PropertyDefinition",
    "PropertyKind",
    # Utilities
    "MongoQueryBuilder",
    "parse_update_data",
    # Hooks and ports
    "ExecuteContext",
    "HookResult",
    "ObserverRegistry",
    "IIncludeResolver",
    "IModelRegistry",
    # Exceptions
    "ConnectorError",
    "PersistenceError",
    "MongoConnectionError",
    "MongoQueryError",
    "MongoTransactionError",
    "ModelNotFoundError",
    "NotFoundError",
    "EntityNotFoundError",
    "CoercionError",
    "FormatError",
    "TypeMismatchError",
    "OperationError",
]
