"""
MongoDB connection for the audience service.

A single MongoClient is created lazily on first use and shared by the whole
process (pymongo pools connections internally). The API layer receives the
database through the get_database dependency so tests can override it.
"""

import logging
import threading
from typing import Optional

from pymongo import MongoClient
from pymongo.database import Database

import config

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None
_client_lock = threading.Lock()


def get_client() -> MongoClient:
    global _client
    with _client_lock:
        if _client is None:
            logger.info(f"Connecting to MongoDB database '{config.MONGO_DB_NAME}'")
            _client = MongoClient(
                config.MONGO_URI,
                serverSelectionTimeoutMS=config.MONGO_TIMEOUT_MS,
                connectTimeoutMS=config.MONGO_TIMEOUT_MS,
                tz_aware=True,
            )
        return _client


def get_database() -> Database:
    return get_client()[config.MONGO_DB_NAME]


def close_client() -> None:
    global _client
    with _client_lock:
        if _client is not None:
            _client.close()
            _client = None
            logger.info("MongoDB client closed")
