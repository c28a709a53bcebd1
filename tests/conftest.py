"""
tests/conftest.py — Shared Test Fixtures
=========================================
The module-level database handle is swapped for an in-memory mongomock
database, so actions and routes run without a MongoDB server.
"""

from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from bson import ObjectId

import database
from schemas import THREAD_COLLECTION, USER_COLLECTION

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def mongo_db(monkeypatch):
    """A fresh in-memory database installed as database.db."""
    test_db = mongomock.MongoClient()["threads_test"]
    monkeypatch.setattr(database, "db", test_db)
    return test_db


@pytest.fixture
def client(mongo_db):
    """Create a FastAPI TestClient with raise_server_exceptions=False."""
    from fastapi.testclient import TestClient

    from main import app

    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def make_user(mongo_db):
    """Factory inserting a user; ``minutes`` offsets created_at from a fixed base time."""

    def _make_user(external_id, username=None, name=None, onboarded=True, minutes=0, **extra):
        doc = {
            "id": external_id,
            "username": username or external_id,
            "name": name or external_id.title(),
            "bio": None,
            "image": f"https://img.example.com/{external_id}.png",
            "onboarded": onboarded,
            "threads": [],
            "created_at": BASE_TIME + timedelta(minutes=minutes),
            **extra,
        }
        return mongo_db[USER_COLLECTION].insert_one(doc).inserted_id

    return _make_user


@pytest.fixture
def make_thread(mongo_db):
    """Factory inserting a thread and wiring it to its parent or author like the actions do."""

    def _make_thread(text, author: ObjectId, parent_id: ObjectId = None, minutes=0):
        thread_id = mongo_db[THREAD_COLLECTION].insert_one({
            "text": text,
            "author": author,
            "parent_id": parent_id,
            "children": [],
            "created_at": BASE_TIME + timedelta(minutes=minutes),
        }).inserted_id
        if parent_id is None:
            mongo_db[USER_COLLECTION].update_one({"_id": author}, {"$push": {"threads": thread_id}})
        else:
            mongo_db[THREAD_COLLECTION].update_one({"_id": parent_id}, {"$push": {"children": thread_id}})
        return thread_id

    return _make_thread
