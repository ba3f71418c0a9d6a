# tests/conftest.py
# Fixtures communes : base MongoDB en mémoire (mongomock-motor), services, client HTTP, jetons JWT.
import os
import tempfile
import uuid

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="ecotrack-logs-"))

import datetime as dt

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient
from pymongo import ReturnDocument

from ecotrack.core.security import create_access_token
from ecotrack.core.utils import utcnow
from ecotrack.db.mongodb import get_db
from ecotrack.db.seed_indexes import ensure_indexes
from ecotrack.main import app
from ecotrack.services.participation.kinds import CHALLENGES, EVENTS
from ecotrack.services.participation.service import ResourceService


class PositionalCollection:
    """Collection mongomock-motor dont `find_one_and_update` applique le filtre complet.

    Description:
        mongomock réduit le filtre à `{_id}` avant d’appliquer la mise à jour :
        `participants.$` vise alors le premier élément du tableau et non celui
        retenu par `$elemMatch`. Ici la mise à jour passe par `update_one` avec le
        filtre d’origine. Les appels mongomock-motor ne rendent jamais la main à
        la boucle : lecture, écriture et relecture restent indivisibles pour les
        coroutines concurrentes, comme côté serveur.
    """

    def __init__(self, collection):
        self._collection = collection

    def __getattr__(self, name):
        return getattr(self._collection, name)

    async def find_one_and_update(self, filter, update, return_document=ReturnDocument.BEFORE, **kwargs):
        before = await self._collection.find_one(filter)
        if before is None:
            return None
        await self._collection.update_one({**filter, "_id": before["_id"]}, update)
        if return_document is ReturnDocument.AFTER:
            return await self._collection.find_one({"_id": before["_id"]})
        return before


class PositionalDatabase:
    def __init__(self, database):
        self._database = database

    def __getitem__(self, name):
        return PositionalCollection(self._database[name])

    def __getattr__(self, name):
        return getattr(self._database, name)


@pytest.fixture
async def db():
    """Base isolée par test, index créés (slug unique compris)."""
    database = PositionalDatabase(AsyncMongoMockClient()[f"ecotrack_test_{uuid.uuid4().hex[:12]}"])
    await ensure_indexes(database)
    return database


@pytest.fixture
def challenges(db):
    return ResourceService(db, CHALLENGES)


@pytest.fixture
def events(db):
    return ResourceService(db, EVENTS)


# ---- TestClient branché sur la base en mémoire (dependency override) ----
@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    c = TestClient(app)
    yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    """Fabrique d’en-têtes `Authorization` pour un identifiant utilisateur."""
    def _auth(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}
    return _auth


@pytest.fixture
def challenge_data():
    def _make(**overrides) -> dict:
        now = utcnow()
        data = {
            "title": "Cold Shower Week",
            "category": "Energy Conservation",
            "description": "Take only cold showers for a whole week.",
            "duration": 7,
            "target": "7 cold showers",
            "start_date": now + dt.timedelta(days=1),
            "end_date": now + dt.timedelta(days=8),
            "difficulty": "Intermediate",
            "instructions": ["Turn the dial to cold", "Stay under for 3 minutes"],
            "capacity": 3,
        }
        data.update(overrides)
        return data
    return _make


@pytest.fixture
def event_data():
    def _make(**overrides) -> dict:
        now = utcnow()
        data = {
            "title": "Beach Cleanup Day",
            "description": "Join us to clean the local beach together.",
            "date": now + dt.timedelta(days=7),
            "location": {"address": "1 Ocean Drive", "city": "Brighton"},
            "max_participants": 3,
            "category": "Environmental",
            "organizer_name": "Green Team",
        }
        data.update(overrides)
        return data
    return _make

