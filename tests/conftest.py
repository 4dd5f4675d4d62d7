from __future__ import annotations

import copy
import pathlib
import sys
from types import SimpleNamespace

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from database import get_db
from main import app


def _matches(doc, filter):
    return all(doc.get(key) == value for key, value in filter.items())


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, key, direction):
        present = [d for d in self._docs if d.get(key) is not None]
        missing = [d for d in self._docs if d.get(key) is None]
        present.sort(key=lambda d: d[key], reverse=direction < 0)
        # MongoDB orders missing values lowest
        self._docs = present + missing if direction < 0 else missing + present
        return self

    async def to_list(self, length=None):
        return self._docs if length is None else self._docs[:length]


class FakeCollection:
    """In-memory stand-in for the async collection methods the app calls."""

    def __init__(self):
        self.docs = []

    async def insert_one(self, document):
        document.setdefault("_id", ObjectId())
        self.docs.append(copy.deepcopy(document))
        return SimpleNamespace(inserted_id=document["_id"])

    def find(self, filter=None):
        return FakeCursor([copy.deepcopy(d) for d in self.docs if _matches(d, filter or {})])

    async def find_one(self, filter):
        for doc in self.docs:
            if _matches(doc, filter):
                return copy.deepcopy(doc)
        return None

    async def find_one_and_update(self, filter, update, return_document=None):
        for doc in self.docs:
            if _matches(doc, filter):
                doc.update(update["$set"])
                return copy.deepcopy(doc)
        return None

    async def find_one_and_delete(self, filter):
        for i, doc in enumerate(self.docs):
            if _matches(doc, filter):
                return self.docs.pop(i)
        return None


class FakeDatabase:
    name = "financials_test"

    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        return self.collections.setdefault(name, FakeCollection())

    async def list_collection_names(self):
        return list(self.collections)


class BrokenCollection:
    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise RuntimeError("connection reset by peer")
        return fail


class BrokenDatabase:
    name = "financials_test"

    def __getitem__(self, name):
        return BrokenCollection()


@pytest.fixture()
def fake_db():
    return FakeDatabase()


@pytest.fixture()
def client(fake_db):
    app.dependency_overrides[get_db] = lambda: fake_db
    # No context manager: the lifespan would try to reach a real MongoDB
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def broken_client():
    app.dependency_overrides[get_db] = lambda: BrokenDatabase()
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()
