"""
MongoDB connection management.

The caller owns the manager (usually as a context manager) and hands the jobs
collection to TimelineStorage.
"""
import logging
from typing import Optional

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from cv_timeline.config import Settings, get_settings

LOGGER = logging.getLogger(__name__)


class MongoDBManager:
    """Owns one MongoClient for the configured database."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.client: Optional[MongoClient] = None
        self.db: Optional[Database] = None

    def connect(self) -> Database:
        """
        Open the client (idempotent) and verify the server is reachable.

        Returns:
            The configured database.

        Raises:
            PyMongoError: If the server cannot be reached.
        """
        if self.db is not None:
            return self.db

        self.client = MongoClient(
            self.settings.mongodb_uri,
            serverSelectionTimeoutMS=self.settings.mongodb_timeout_ms,
        )
        try:
            self.client.admin.command("ping")
        except PyMongoError:
            self.client.close()
            self.client = None
            raise

        self.db = self.client[self.settings.mongodb_database]
        LOGGER.info("Connected to MongoDB database '%s'", self.settings.mongodb_database)
        return self.db

    def get_collection(self, name: Optional[str] = None) -> Collection:
        """Collection by name; the jobs collection by default."""
        db = self.connect()
        return db[name or self.settings.mongodb_collection_jobs]

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            LOGGER.debug("MongoDB connection closed")
        self.client = None
        self.db = None

    def __enter__(self) -> "MongoDBManager":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
