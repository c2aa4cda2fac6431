"""
Shared fixtures: settings, an in-memory document store and a running app.

FakeCollection implements the handful of async collection calls the stores
make (find_one, insert_one, update_one, count_documents, create_index) with
equality, ``$in``, ``$or`` and ``$set`` semantics, including unique indexes.
"""

import copy
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Tuple

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import DuplicateKeyError

from chatserver.auth import passwords
from chatserver.auth.session import mint_token
from chatserver.config import Settings
from chatserver.main import create_application
from chatserver.models import User

USER_A = ObjectId("a" * 24)
USER_B = ObjectId("b" * 24)

TEST_JWT_SECRET = "test-jwt-secret-0123456789abcdef0123456789"


# ============================================================================
# In-memory document store
# ============================================================================

def _matches(document: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for key, condition in query.items():
        if key == "$or":
            if not any(_matches(document, sub) for sub in condition):
                return False
            continue

        value = document.get(key)
        if isinstance(condition, dict) and "$in" in condition:
            if value not in condition["$in"]:
                return False
        elif value != condition:
            return False
    return True


class FakeCollection:
    def __init__(self, name: str):
        self.name = name
        self.docs: List[Dict[str, Any]] = []
        self.unique_keys: List[Tuple[str, ...]] = []
        self.indexes: List[Tuple[Tuple[str, ...], bool]] = []

    async def create_index(self, keys, unique: bool = False, **kwargs) -> str:
        if isinstance(keys, str):
            fields = (keys,)
        else:
            fields = tuple(field for field, _ in keys)
        self.indexes.append((fields, unique))
        if unique:
            self.unique_keys.append(fields)
        return "_".join(fields)

    async def find_one(self, query: Dict[str, Any]):
        for document in self.docs:
            if _matches(document, query):
                return copy.deepcopy(document)
        return None

    async def count_documents(self, query: Dict[str, Any]) -> int:
        return sum(1 for document in self.docs if _matches(document, query))

    async def insert_one(self, document: Dict[str, Any]):
        for fields in self.unique_keys:
            key = tuple(document.get(field) for field in fields)
            if any(tuple(d.get(field) for field in fields) == key for d in self.docs):
                raise DuplicateKeyError(f"E11000 duplicate key error collection: {self.name}")
        self.docs.append(copy.deepcopy(document))
        return SimpleNamespace(inserted_id=document.get("_id"), acknowledged=True)

    async def update_one(self, query: Dict[str, Any], update: Dict[str, Any]):
        for document in self.docs:
            if _matches(document, query):
                document.update(update.get("$set", {}))
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)


class FakeDatabase:
    def __init__(self):
        self.collections: Dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


def make_user(user_id: ObjectId, username: str, verified: bool = True) -> User:
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return User(
        id=user_id,
        email=f"{username}@example.com",
        username=username,
        password=passwords.hash_password("Passw0rdA"),
        verifiedEmail=verified,
        createdAt=now,
        updatedAt=now,
    )


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Keep hashing cheap in tests."""
    monkeypatch.setattr(passwords, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        JWT_SECRET=TEST_JWT_SECRET,
        MONGODB_URI="mongodb://unused:27017",
        STORE_TIMEOUT_SECONDS=5.0,
    )


@pytest.fixture
def database():
    """In-memory store with users A and B already registered."""
    db = FakeDatabase()
    db["user"].docs.extend(
        [
            make_user(USER_A, "alice").to_document(),
            make_user(USER_B, "bob").to_document(),
        ]
    )
    return db


@pytest.fixture
def app(settings, database):
    return create_application(settings=settings, database=database)


@pytest.fixture
def client(app):
    """Test client with the lifespan (hub, stores, indexes) running."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def token_for(settings):
    def _token_for(user_id: ObjectId) -> str:
        return mint_token(user_id, settings)

    return _token_for
