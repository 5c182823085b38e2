"""MongoConnectionManager: Motor client lifecycle, stale-handle recovery, ping."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .exceptions import MongoConnectionError
from .settings import ConnectorSettings

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

logger = logging.getLogger("ormbridge.mongo.connection")


class MongoConnectionManager:
    """Wrap the Motor client for one datasource.

    The client is created lazily on first use or explicit :meth:`connect`
    and shared by every model of the datasource. Reconnection is not
    serialised; concurrent callers may briefly see the old handle.
    """

    def __init__(self, settings: ConnectorSettings | None = None) -> None:
        self._settings = settings or ConnectorSettings()
        self._url = self._settings.resolved_url
        self._database = self._settings.database
        self._client: AsyncIOMotorClient[Any] | None = None

    @property
    def url(self) -> str:
        return self._url

    async def connect(self) -> AsyncIOMotorClient[Any]:
        """Create and cache the Motor client. Idempotent."""
        if self._client is not None:
            return self._client
        try:
            from motor.motor_asyncio import AsyncIOMotorClient
        except ImportError as e:
            raise MongoConnectionError(
                "The motor driver is not installed"
            ) from e
        try:
            self._client = AsyncIOMotorClient(
                self._url,
                serverSelectionTimeoutMS=self._settings.server_selection_timeout_ms,
                connectTimeoutMS=self._settings.connect_timeout_ms,
                **self._settings.client_options,
            )
        except Exception as e:
            logger.error("MongoDB connection failed: %s", self._url)
            raise MongoConnectionError(str(e)) from e
        logger.debug("MongoDB client created for %s", self._url)
        return self._client

    @property
    def client(self) -> AsyncIOMotorClient[Any]:
        """The cached client. Raises until :meth:`connect` has run."""
        if self._client is None:
            raise MongoConnectionError("Not connected; call connect() first")
        return self._client

    @property
    def database(self) -> AsyncIOMotorDatabase[Any]:
        """The datasource database: configured name, else the URL's default."""
        if self._database:
            return self.client.get_database(self._database)
        try:
            return self.client.get_default_database()
        except Exception as e:
            raise MongoConnectionError(
                "Database name must be set in the settings or the URL"
            ) from e

    def is_stale(self) -> bool:
        """True when the client's topology has been closed underneath us."""
        if self._client is None:
            return False
        delegate = getattr(self._client, "delegate", self._client)
        return bool(getattr(delegate, "_closed", False))

    async def ensure_connected(self) -> AsyncIOMotorClient[Any]:
        """Connect if needed; drop and recreate a stale client."""
        if self.is_stale():
            logger.warning("MongoDB topology was destroyed; reconnecting")
            self.disconnect()
        return await self.connect()

    def disconnect(self) -> None:
        """Close and forget the client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    async def ping(self) -> bool:
        """Ping the server; return True if reachable, raise otherwise."""
        client = await self.connect()
        try:
            await client.admin.command("ping")
        except Exception as e:
            raise MongoConnectionError(str(e)) from e
        return True

    async def health_check(self) -> bool:
        """Report reachability without raising."""
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
            return True
        except Exception:  # noqa: BLE001
            return False
