"""Command dispatch: collection resolution, observer notification, execution."""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any

from .hooks import ExecuteContext, ObserverRegistry

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .connection import MongoConnectionManager

logger = logging.getLogger("ormbridge.mongo.dispatcher")

# Observers written against the older driver API see the legacy verbs.
LEGACY_COMMAND_NAMES: dict[str, str] = {
    "insert_one": "insert",
    "update_one": "save",
    "find_one_and_update": "findAndModify",
    "delete_one": "delete",
    "delete_many": "delete",
    "replace_one": "update",
    "update_many": "update",
    "count_documents": "count",
    "estimated_document_count": "count",
}


def legacy_command_name(command: str) -> str:
    return LEGACY_COMMAND_NAMES.get(command, command)


class CommandDispatcher:
    """Run native collection commands for a model.

    ``collection_resolver`` maps a model name to its collection handle;
    it runs after the connection is ensured and before any observer, so
    resolution failures never reach the server.
    """

    def __init__(
        self,
        connection: MongoConnectionManager,
        collection_resolver: Callable[[str], Any],
        observers: ObserverRegistry | None = None,
    ) -> None:
        self._connection = connection
        self._resolve_collection = collection_resolver
        self.observers = observers or ObserverRegistry()

    async def execute(self, model: str, command: str, *args: Any, **kwargs: Any) -> Any:
        """Execute ``collection.<command>(*args, **kwargs)`` for ``model``."""
        await self._connection.ensure_connected()
        collection = self._resolve_collection(model)

        async def work() -> Any:
            result = getattr(collection, command)(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
            return result

        logger.debug("execute %s.%s %r", model, command, args)
        return await self._around(model, collection, command, list(args), kwargs, work)

    async def run_command(self, model: str, command: str, **kwargs: Any) -> Any:
        """Run the database command ``command`` against the model's collection.

        Used for commands whose full reply matters, e.g. ``findAndModify``
        with its ``lastErrorObject``.
        """
        await self._connection.ensure_connected()
        collection = self._resolve_collection(model)

        async def work() -> Any:
            return await collection.database.command(command, collection.name, **kwargs)

        params = [v for k, v in kwargs.items() if k != "session"]
        logger.debug("command %s %s %r", model, command, params)
        return await self._around(model, collection, command, params, kwargs, work)

    async def _around(
        self,
        model: str,
        collection: Any,
        command: str,
        params: list[Any],
        options: dict[str, Any],
        work: Callable[[], Awaitable[Any]],
    ) -> Any:
        context = ExecuteContext(
            model=model,
            collection=collection,
            req={"command": legacy_command_name(command), "params": params},
            options=dict(options),
        )
        return await self.observers.notify_around("execute", context, work)
