"""MongoConnector: the CRUD operation set exposed to the model framework."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from bson import ObjectId
from pymongo import ReturnDocument

from .coercion import coerce_document, coerce_value, object_id
from .connection import MongoConnectionManager
from .dispatcher import CommandDispatcher
from .exceptions import EntityNotFoundError
from .hooks import ObserverRegistry
from .query_builder import ID_FIELD, MongoQueryBuilder, id_included
from .schema import ModelRegistry
from .serialization import from_storage, to_storage
from .settings import ConnectorSettings
from .transaction import session_from_options
from .update_builder import parse_update_data, update_to_storage

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection

    from .hooks import Observer
    from .ports import IIncludeResolver, IModelRegistry
    from .schema import ModelDescriptor

logger = logging.getLogger("ormbridge.mongo.connector")


def _session_kwargs(options: Mapping[str, Any] | None) -> dict[str, Any]:
    """Driver keyword arguments carrying the call's session, if it has one."""
    session = session_from_options(options)
    return {"session": session} if session is not None else {}


def _is_new_instance(result: Any) -> bool | None:
    """Read ``isNewInstance`` from an upsert result."""
    if getattr(result, "acknowledged", False) is not True:
        logger.warning("save result format not recognized: %r", result)
        return None
    if getattr(result, "upserted_id", None) is not None:
        return True
    if getattr(result, "matched_count", None) is not None:
        return False
    logger.warning("save result format not recognized: %r", result)
    return None


class MongoConnector:
    """
    MongoDB connector for one datasource.

    Every operation is a coroutine taking the model name first and an
    optional ``options`` mapping last. Options may carry ``transaction``
    (a :class:`~ormbridge_mongo.transaction.MongoTransaction` or a Motor
    session), ``strict_object_id_coercion``, ``allow_extended_operators``
    and ``disable_default_sort``.

    Errors are raised; driver failures propagate unchanged as
    :class:`~pymongo.errors.PyMongoError`.
    """

    name = "mongodb"

    def __init__(
        self,
        settings: ConnectorSettings | Mapping[str, Any] | None = None,
        registry: IModelRegistry | None = None,
        *,
        include_resolver: IIncludeResolver | None = None,
        connection: MongoConnectionManager | None = None,
    ) -> None:
        if isinstance(settings, ConnectorSettings):
            self.settings = settings
        else:
            self.settings = ConnectorSettings.model_validate(settings or {})
        self.registry: IModelRegistry = (
            registry if registry is not None else ModelRegistry()
        )
        self.connection = connection or MongoConnectionManager(self.settings)
        self.query_builder = MongoQueryBuilder(self.settings)
        self.observers = ObserverRegistry()
        self.dispatcher = CommandDispatcher(
            self.connection, self.collection, self.observers
        )
        self._include_resolver = include_resolver

    # -- lifecycle -----------------------------------------------------------

    async def connect(self) -> AsyncIOMotorClient[Any]:
        return await self.connection.connect()

    def disconnect(self) -> None:
        self.connection.disconnect()

    async def ping(self) -> bool:
        return await self.connection.ping()

    def observe(self, event: str, observer: Observer) -> None:
        """Register an observer, e.g. ``"before execute"``."""
        self.observers.observe(event, observer)

    def get_default_id_type(self) -> Callable[[Any], Any]:
        return object_id

    # -- model helpers -------------------------------------------------------

    def model(self, model_name: str) -> ModelDescriptor:
        return self.registry.get(model_name)

    def collection_name(self, model_name: str) -> str:
        return self.model(model_name).collection_name()

    def collection(self, model_name: str) -> AsyncIOMotorCollection[Any]:
        """Collection handle for ``model_name``; raises for unknown models."""
        return self.connection.database.get_collection(
            self.collection_name(model_name)
        )

    async def execute(
        self, model_name: str, command: str, *args: Any, **kwargs: Any
    ) -> Any:
        """Run a native collection command through the dispatcher."""
        return await self.dispatcher.execute(model_name, command, *args, **kwargs)

    def _coerce_id(
        self, model: ModelDescriptor, id_value: Any, options: Mapping[str, Any] | None
    ) -> Any:
        strict = self.query_builder.strict_coercion(model, options)
        return coerce_value(model.id_property(), id_value, strict)

    def _to_document(
        self,
        model: ModelDescriptor,
        data: Mapping[str, Any],
        options: Mapping[str, Any] | None,
    ) -> dict[str, Any]:
        """Coerce ``data`` and map it to storage fields, without the id."""
        id_name = model.id_name()
        payload = {k: v for k, v in data.items() if k != id_name}
        strict = self.query_builder.strict_coercion(model, options)
        return to_storage(model, coerce_document(payload, model, strict))

    def _to_update(
        self,
        model: ModelDescriptor,
        data: Mapping[str, Any],
        options: Mapping[str, Any] | None,
    ) -> dict[str, Any]:
        """Update document for ``data``, in storage field names, without the id."""
        id_name = model.id_name()
        payload = {k: v for k, v in data.items() if k != id_name}
        update = parse_update_data(model, payload, self.settings, options)
        strict = self.query_builder.strict_coercion(model, options)
        return update_to_storage(model, update, strict)

    def _id_from(
        self,
        model: ModelDescriptor,
        data: Mapping[str, Any],
        options: Mapping[str, Any] | None,
    ) -> Any:
        """Coerced id of ``data``; a new ObjectId when none is given."""
        id_value = data.get(model.id_name())
        if id_value is None:
            return ObjectId()
        return self._coerce_id(model, id_value, options)

    # -- writes --------------------------------------------------------------

    async def create(
        self,
        model_name: str,
        data: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        """Insert ``data``; return the stored id."""
        model = self.model(model_name)
        logger.debug("create %s %r", model_name, data)
        doc = self._to_document(model, data, options)
        id_value = data.get(model.id_name())
        if id_value is not None:
            doc[ID_FIELD] = self._coerce_id(model, id_value, options)
        result = await self.execute(
            model_name, "insert_one", doc, **_session_kwargs(options)
        )
        logger.debug("create.callback %s %r", model_name, result.inserted_id)
        return result.inserted_id

    async def save(
        self,
        model_name: str,
        data: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        """Upsert ``data`` by id; return it with ``{"isNewInstance": ...}``."""
        model = self.model(model_name)
        logger.debug("save %s %r", model_name, data)
        oid = self._id_from(model, data, options)
        doc = self._to_document(model, data, options)
        update = {"$set": doc} if doc else {"$setOnInsert": {ID_FIELD: oid}}
        result = await self.execute(
            model_name,
            "update_one",
            {ID_FIELD: oid},
            update,
            upsert=True,
            **_session_kwargs(options),
        )
        saved = dict(data)
        saved[model.id_name()] = oid
        return saved, {"isNewInstance": _is_new_instance(result)}

    async def update_or_create(
        self,
        model_name: str,
        data: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        """Upsert by id and return the stored document with ``isNewInstance``.

        Runs a single ``findAndModify`` so the post-update document and the
        ``updatedExisting`` flag come from the same server operation.
        """
        model = self.model(model_name)
        logger.debug("updateOrCreate %s %r", model_name, data)
        oid = self._id_from(model, data, options)
        reply = await self.dispatcher.run_command(
            model_name,
            "findAndModify",
            query={ID_FIELD: oid},
            update=self._to_update(model, data, options),
            upsert=True,
            new=True,
            **_session_kwargs(options),
        )
        stored = reply.get("value")
        if stored is None:
            raise EntityNotFoundError(model_name, oid)
        last_error = reply.get("lastErrorObject") or {}
        is_new = not last_error.get("updatedExisting", False)
        return from_storage(model, stored), {"isNewInstance": is_new}

    async def replace_or_create(
        self,
        model_name: str,
        data: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        model = self.model(model_name)
        oid = self._id_from(model, data, options)
        return await self._replace(model_name, oid, data, options, upsert=True)

    async def replace_by_id(
        self,
        model_name: str,
        id_value: Any,
        data: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        model = self.model(model_name)
        oid = self._coerce_id(model, id_value, options)
        return await self._replace(model_name, oid, data, options, upsert=False)

    async def _replace(
        self,
        model_name: str,
        oid: Any,
        data: Mapping[str, Any],
        options: Mapping[str, Any] | None,
        *,
        upsert: bool,
    ) -> dict[str, Any]:
        model = self.model(model_name)
        logger.debug("replace %s %r %r upsert=%s", model_name, oid, data, upsert)
        doc = self._to_document(model, data, options)
        result = await self.execute(
            model_name,
            "replace_one",
            {ID_FIELD: oid},
            doc,
            upsert=upsert,
            **_session_kwargs(options),
        )
        if result.matched_count == 0 and result.upserted_id is None:
            raise EntityNotFoundError(model_name, oid)
        doc[ID_FIELD] = oid
        return from_storage(model, doc)

    async def update_attributes(
        self,
        model_name: str,
        id_value: Any,
        data: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Apply a partial update to one document; return it updated."""
        model = self.model(model_name)
        logger.debug("updateAttributes %s %r %r", model_name, id_value, data)
        oid = self._coerce_id(model, id_value, options)
        update = self._to_update(model, data, options)
        result = await self.execute(
            model_name,
            "find_one_and_update",
            {ID_FIELD: oid},
            update,
            upsert=False,
            return_document=ReturnDocument.AFTER,
            **_session_kwargs(options),
        )
        if result is None:
            raise EntityNotFoundError(model_name, id_value)
        return from_storage(model, result)

    async def update_all(
        self,
        model_name: str,
        where: Mapping[str, Any] | None,
        data: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> dict[str, int]:
        """Update every matching document; return ``{"count": matched}``."""
        model = self.model(model_name)
        logger.debug("updateAll %s %r %r", model_name, where, data)
        query = self.query_builder.build_where(model, dict(where or {}), options)
        update = self._to_update(model, data, options)
        result = await self.execute(
            model_name, "update_many", query, update, **_session_kwargs(options)
        )
        return {"count": result.matched_count}

    async def destroy(
        self,
        model_name: str,
        id_value: Any,
        options: Mapping[str, Any] | None = None,
    ) -> dict[str, int]:
        model = self.model(model_name)
        logger.debug("destroy %s %r", model_name, id_value)
        oid = self._coerce_id(model, id_value, options)
        result = await self.execute(
            model_name, "delete_one", {ID_FIELD: oid}, **_session_kwargs(options)
        )
        return {"count": result.deleted_count}

    async def destroy_all(
        self,
        model_name: str,
        where: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> dict[str, int]:
        model = self.model(model_name)
        logger.debug("destroyAll %s %r", model_name, where)
        query = self.query_builder.build_where(model, dict(where or {}), options)
        result = await self.execute(
            model_name, "delete_many", query, **_session_kwargs(options)
        )
        return {"count": result.deleted_count}

    async def optimized_find_or_create(
        self,
        model_name: str,
        filter: Mapping[str, Any] | None,
        data: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> tuple[dict[str, Any], bool]:
        """Atomically find a match or insert ``data``; return ``(doc, created)``.

        Needs ``enable_optimised_find_or_create`` on the datasource.
        """
        if not self.settings.enable_optimised_find_or_create:
            raise NotImplementedError(
                "optimized_find_or_create requires enable_optimised_find_or_create"
            )
        model = self.model(model_name)
        filter = dict(filter or {})
        logger.debug("findOrCreate %s %r %r", model_name, filter, data)
        query = self.query_builder.build_where(model, filter.get("where"), options)
        doc = self._to_document(model, data, options)
        doc[ID_FIELD] = self._id_from(model, data, options)
        kwargs: dict[str, Any] = {}
        projection = self.query_builder.build_projection(model, filter.get("fields"))
        if projection is not None:
            kwargs["projection"] = projection
        sort = self.query_builder.build_sort(model, filter.get("order"), options)
        if sort:
            kwargs["sort"] = sort
        existing = await self.execute(
            model_name,
            "find_one_and_update",
            query,
            {"$setOnInsert": doc},
            upsert=True,
            return_document=ReturnDocument.BEFORE,
            **kwargs,
            **_session_kwargs(options),
        )
        created = existing is None
        stored = doc if created else existing
        include_id = id_included(filter.get("fields"), model.id_name())
        document = from_storage(model, stored, include_id=include_id)
        if filter.get("include"):
            [document] = await self._include(
                model_name, [document], filter["include"], options
            )
        return document, created

    # -- reads ---------------------------------------------------------------

    async def exists(
        self,
        model_name: str,
        id_value: Any,
        options: Mapping[str, Any] | None = None,
    ) -> bool:
        model = self.model(model_name)
        oid = self._coerce_id(model, id_value, options)
        doc = await self.execute(
            model_name,
            "find_one",
            {ID_FIELD: oid},
            {ID_FIELD: 1},
            **_session_kwargs(options),
        )
        return doc is not None

    async def find(
        self,
        model_name: str,
        id_value: Any,
        options: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Fetch one document by id; ``None`` when it does not exist."""
        model = self.model(model_name)
        oid = self._coerce_id(model, id_value, options)
        doc = await self.execute(
            model_name, "find_one", {ID_FIELD: oid}, **_session_kwargs(options)
        )
        return from_storage(model, doc) if doc is not None else None

    async def all(
        self,
        model_name: str,
        filter: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Find documents matching a filter.

        ``filter`` keys: ``where``, ``fields``, ``order``, ``limit``,
        ``skip`` (or ``offset``), ``collation`` and ``include``.
        """
        model = self.model(model_name)
        filter = dict(filter or {})
        logger.debug("all %s %r", model_name, filter)
        query = self.query_builder.build_where(model, filter.get("where"), options)
        fields = filter.get("fields")
        projection = self.query_builder.build_projection(model, fields)

        cursor = await self.execute(
            model_name, "find", query, projection, **_session_kwargs(options)
        )
        sort = self.query_builder.build_sort(model, filter.get("order"), options)
        if sort:
            cursor = cursor.sort(sort)
        if filter.get("limit"):
            cursor = cursor.limit(int(filter["limit"]))
        skip = filter.get("skip") or filter.get("offset")
        if skip:
            cursor = cursor.skip(int(skip))
        if filter.get("collation"):
            cursor = cursor.collation(filter["collation"])
        docs = [doc async for doc in cursor]

        include_id = id_included(fields, model.id_name())
        results = [from_storage(model, doc, include_id=include_id) for doc in docs]
        if filter.get("include"):
            results = await self._include(
                model_name, results, filter["include"], options
            )
        return results

    async def count(
        self,
        model_name: str,
        where: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> int:
        """Count matching documents.

        An empty filter uses the collection metadata estimate, except inside
        a session where only an exact count is allowed.
        """
        model = self.model(model_name)
        query = self.query_builder.build_where(model, dict(where or {}), options)
        session = _session_kwargs(options)
        if not query and not session:
            return await self.execute(model_name, "estimated_document_count")
        return await self.execute(model_name, "count_documents", query, **session)

    async def _include(
        self,
        model_name: str,
        documents: list[dict[str, Any]],
        include: Any,
        options: Mapping[str, Any] | None,
    ) -> list[dict[str, Any]]:
        if self._include_resolver is None:
            logger.warning(
                "include %r ignored for %s: no include resolver configured",
                include,
                model_name,
            )
            return documents
        return await self._include_resolver.include(
            model_name, documents, include, options
        )
