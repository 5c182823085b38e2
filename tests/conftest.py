"""Test configuration for the MongoDB connector."""

import pytest

from ormbridge_mongo import (
    ConnectorSettings,
    ModelRegistry,
    MongoConnectionManager,
    MongoConnector,
)

pytest_plugins = ["pytest_asyncio"]


class MockSession:
    """Mock MongoDB session for testing with mongomock.

    Motor's ClientSession uses sync start_transaction() and end_session();
    commit_transaction/abort_transaction are async.
    """

    def __init__(self):
        self._in_transaction = False
        self.committed = False
        self.aborted = False
        self.ended = False

    def in_transaction(self):
        """Check if session is in a transaction."""
        return self._in_transaction

    def start_transaction(self):
        """Start a transaction (sync like Motor)."""
        self._in_transaction = True

    async def commit_transaction(self):
        """Commit the transaction."""
        self._in_transaction = False
        self.committed = True

    async def abort_transaction(self):
        """Abort the transaction."""
        self._in_transaction = False
        self.aborted = True

    def end_session(self):
        """End the session (sync like Motor)."""
        self._in_transaction = False
        self.ended = True


def _mock_connection(client):
    connection = MongoConnectionManager.__new__(MongoConnectionManager)
    connection._settings = ConnectorSettings(database="test_db")
    connection._client = client
    connection._database = "test_db"
    connection._url = "mongodb://mock:27017/test_db"

    # Make connect() return the client and mark as "connected"
    async def _mock_connect():
        return connection._client

    connection.connect = _mock_connect
    connection.ensure_connected = _mock_connect
    return connection


@pytest.fixture
async def mongo_connection():
    """Create a MongoDB connection for testing."""
    # Use mongomock for unit tests to avoid real database dependency
    try:
        from mongomock_motor import AsyncMongoMockClient
    except ImportError:
        pytest.skip("mongomock-motor not installed")

    yield _mock_connection(AsyncMongoMockClient(default_database_name="test_db"))


@pytest.fixture
async def mongo_connection_with_mock_session():
    """Create a MongoDB connection whose client hands out MockSessions."""
    try:
        from mongomock_motor import AsyncMongoMockClient
    except ImportError:
        pytest.skip("mongomock-motor not installed")

    client = AsyncMongoMockClient(default_database_name="test_db")
    connection = _mock_connection(client)

    # Mock start_session to return our MockSession
    async def _mock_start_session():
        return MockSession()

    client.start_session = _mock_start_session

    yield connection


@pytest.fixture
def registry():
    """Models used across connector tests."""
    registry = ModelRegistry()
    registry.define(
        "Post",
        {
            "title": {"type": "string"},
            "content": {"type": "string"},
            "rating": {"type": "number"},
            "authorId": {"type": "string", "mongodb": {"dataType": "ObjectID"}},
        },
        {"mongodb": {"collection": "posts"}},
    )
    registry.define(
        "Product",
        {
            "name": {"type": "string", "mongodb": {"fieldName": "product_name"}},
            "price": {"type": "number"},
            "tax": {"type": "string", "mongodb": {"dataType": "Decimal128"}},
            "location": {"type": "GeoPoint"},
        },
    )
    registry.define(
        "Order",
        {
            "summary": {
                "type": {
                    "totalValue": {
                        "type": "string",
                        "mongodb": {"dataType": "Decimal128"},
                    },
                },
            },
            "lines": [
                {
                    "unitPrice": {
                        "type": "string",
                        "mongodb": {"dataType": "Decimal128"},
                    },
                    "productId": {"type": "string", "mongodb": {"dataType": "ObjectID"}},
                },
            ],
        },
    )
    registry.define(
        "Bookmark",
        {"id": {"type": "string", "id": True}, "url": {"type": "string"}},
        {"strictObjectIDCoercion": True},
    )
    return registry


@pytest.fixture
async def connector(mongo_connection, registry):
    """Connector over the mongomock connection."""
    return MongoConnector(
        ConnectorSettings(database="test_db"),
        registry,
        connection=mongo_connection,
    )


@pytest.fixture
def mock_session():
    """A standalone MockSession."""
    return MockSession()


@pytest.fixture
def replica_set_session():
    """A MockSession whose client reports a replica set."""
    from unittest.mock import AsyncMock, MagicMock

    session = MockSession()
    session.client = MagicMock()
    session.client.admin.command = AsyncMock(return_value={"ok": 1})
    return session
