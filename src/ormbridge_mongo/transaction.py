"""
Optional transaction context for connector writes.

CRUD operations accept a :class:`MongoTransaction` (or a raw Motor session)
through ``options["transaction"]`` and pass its session to every native
command unchanged. Multi-document transactions need MongoDB 4.0+ running
as a replica set.
"""

from __future__ import annotations

import inspect
import logging
import uuid
from types import TracebackType
from typing import TYPE_CHECKING, Any

from .exceptions import ConnectorError
from .hooks import ObserverRegistry

if TYPE_CHECKING:
    from collections.abc import Mapping

    from motor.motor_asyncio import AsyncIOMotorClientSession

    from .connection import MongoConnectionManager

logger = logging.getLogger("ormbridge.mongo.transaction")

_REPLICA_SET_REQUIRED_MSG = (
    "Transactions need a Replica Set; "
    "the server is a standalone instance. "
    "Set require_replica_set=False to use a session without a transaction."
)


class MongoTransactionError(ConnectorError):
    """Raised on transaction misuse (no session, conflicting arguments)."""


def session_in_transaction(session: Any) -> bool:
    """Return whether the session is in an active transaction.

    Motor's ClientSession uses ``in_transaction`` as a property; mocks may use a method.
    """
    in_txn = getattr(session, "in_transaction", False)
    return in_txn() if callable(in_txn) else bool(in_txn)


def session_from_options(options: Mapping[str, Any] | None) -> Any:
    """Extract the Motor session carried by call options, if any."""
    if not options:
        return None
    transaction = options.get("transaction")
    if isinstance(transaction, MongoTransaction):
        return transaction.session
    if transaction is not None:
        return transaction
    return options.get("session")


class MongoTransaction:
    """
    Transaction backed by a Motor client session.

    Usage::

        async with MongoTransaction(connector.connection) as tx:
            await connector.create("Post", data, {"transaction": tx})

    Commits on a clean exit and rolls back on an exception. Observers can
    watch ``before commit``, ``after commit``, ``before rollback`` and
    ``after rollback``.
    """

    def __init__(
        self,
        connection: MongoConnectionManager | None = None,
        *,
        session: AsyncIOMotorClientSession | None = None,
        require_replica_set: bool = True,
    ) -> None:
        if session is not None and connection is not None:
            raise MongoTransactionError(
                "Cannot provide both 'session' and 'connection'."
            )
        self.id = uuid.uuid4().hex
        self._connection = connection
        self._session = session
        self._owns_session = session is None
        self._require_replica_set = require_replica_set
        self.observers = ObserverRegistry()

    @property
    def session(self) -> AsyncIOMotorClientSession:
        """The session for this transaction; raises before :meth:`begin`."""
        if self._session is None:
            raise MongoTransactionError(
                "Session not available. Call begin() or use the transaction "
                "as a context manager first."
            )
        return self._session

    def observe(self, event: str, observer: Any) -> None:
        self.observers.observe(event, observer)

    async def _check_replica_set(self) -> None:
        client = getattr(self._session, "client", None)
        if client is None and self._connection is not None:
            client = self._connection.client
        if client is None:
            return
        try:
            result = await client.admin.command("replSetGetStatus")
        except Exception as e:
            raise MongoTransactionError(_REPLICA_SET_REQUIRED_MSG) from e
        if result.get("ok") != 1:
            raise MongoTransactionError(_REPLICA_SET_REQUIRED_MSG)

    async def begin(self) -> MongoTransaction:
        """Open the session and start the transaction."""
        if self._session is None:
            if self._connection is None:
                raise MongoTransactionError("No connection to open a session on")
            client = await self._connection.connect()
            self._session = await client.start_session()
        if self._require_replica_set:
            await self._check_replica_set()
            if not session_in_transaction(self._session):
                self._session.start_transaction()
        logger.debug("Transaction %s started", self.id)
        return self

    async def commit(self) -> None:
        """Commit; a no-op for sessions without an active transaction."""
        if self._session is None:
            return
        await self.observers.notify("before commit", self)
        if session_in_transaction(self._session):
            await self._session.commit_transaction()
        else:
            logger.debug("Transaction %s has nothing to commit", self.id)
        await self.observers.notify("after commit", self)

    async def rollback(self) -> None:
        """Abort; a no-op for sessions without an active transaction."""
        if self._session is None:
            return
        await self.observers.notify("before rollback", self)
        if session_in_transaction(self._session):
            await self._session.abort_transaction()
        else:
            logger.debug("Transaction %s has nothing to roll back", self.id)
        await self.observers.notify("after rollback", self)

    async def end(self) -> None:
        """Release an owned session."""
        if self._owns_session and self._session is not None:
            result = self._session.end_session()
            if inspect.isawaitable(result):
                await result
            self._session = None

    async def __aenter__(self) -> MongoTransaction:
        return await self.begin()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._session is None:
            return
        try:
            if exc_type is None:
                try:
                    await self.commit()
                except Exception:
                    await self.rollback()
                    raise
            else:
                await self.rollback()
        finally:
            await self.end()
