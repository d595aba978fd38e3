"""
Shared test fixtures for the Creator Audience Region test suite.

`fake_db` builds a MagicMock standing in for a pymongo Database: indexing it
by collection name returns a per-collection MagicMock, so tests can set
`aggregate`, `find` and `find_one` return values (or side effects) on the
collection they care about without touching a real MongoDB.
"""

import os
import sys

import pytest
from unittest.mock import MagicMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import config


@pytest.fixture
def fake_db():
    """
    MagicMock database with independent collection mocks.

    Returns (db, collections) where collections maps name → MagicMock.
    The users and snapshot collections start out empty.
    """
    collections: dict[str, MagicMock] = {}

    def _collection(name):
        if name not in collections:
            coll = MagicMock(name=f"collection[{name}]")
            coll.find.return_value = []
            coll.aggregate.return_value = []
            coll.find_one.return_value = None
            collections[name] = coll
        return collections[name]

    db = MagicMock(name="database")
    db.__getitem__.side_effect = _collection

    _collection(config.USER_COLLECTION)
    _collection(config.SNAPSHOT_COLLECTION)
    return db, collections
