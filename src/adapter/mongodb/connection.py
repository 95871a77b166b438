import logging
from datetime import timezone

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, PyMongoError

logger = logging.getLogger(__name__)

USERS_COLLECTION_NAME = 'users'


class MongoConnection:
    """Long-lived MongoDB connection shared by all requests.

    Lifecycle: constructed once at startup, connects lazily on first use,
    reused afterwards, closed explicitly at shutdown. PyMongo's client is
    thread-safe and serializes individual operations itself.
    """

    def __init__(self, url: str, database_name: str, timeout_ms: int = 5000):
        self.url = url
        self.database_name = database_name
        self.timeout_ms = timeout_ms
        self._client: MongoClient | None = None

    def client(self) -> MongoClient:
        """Return the shared client, creating it on first call."""
        if self._client is None:
            self._client = MongoClient(
                self.url,
                serverSelectionTimeoutMS=self.timeout_ms,
                connectTimeoutMS=self.timeout_ms,
                socketTimeoutMS=self.timeout_ms * 6,
                maxPoolSize=10,
                minPoolSize=0,
                maxIdleTimeMS=30000,
                waitQueueTimeoutMS=self.timeout_ms * 2,
                retryWrites=True,
                retryReads=True,
                tz_aware=True,
                tzinfo=timezone.utc,
            )
            logger.info(f"[MONGODB] Client created for database {self.database_name}")
        return self._client

    def database(self) -> Database:
        return self.client()[self.database_name]

    def ping(self) -> bool:
        """Return True if the server answers a ping."""
        try:
            self.client().admin.command('ping')
            return True
        except (ConnectionFailure, PyMongoError) as e:
            logger.error(f"[MONGODB] Ping failed: {str(e)[:200]}")
            return False

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("[MONGODB] Connection closed")
