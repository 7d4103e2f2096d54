from __future__ import annotations

import asyncio
import os
import tempfile
from datetime import date, datetime, timedelta
from pathlib import Path

os.environ.setdefault("MEDTRACK_DB_FILE", str(Path(tempfile.gettempdir()) / "medtrack-test.db"))

import pytest
import httpx
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from main import app
from models import Medicine
from services.fingerprints import ProcessedFingerprints
from services.storage import KeyValueStore
from services.tracker import MedicineTracker, get_tracker

TEST_ENGINE = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

NOW = datetime(2026, 3, 10, 9, 30)


class FixedClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def make_medicine(medicine_id: str = "m1", **overrides) -> Medicine:
    data = {
        "id": medicine_id,
        "name": "Vitamin C",
        "dosage": "500mg",
        "frequency": "Once daily",
        "total_quantity": 100,
        "current_quantity": 100,
        "expiry_date": date(2027, 1, 1),
        "created_at": NOW,
    }
    data.update(overrides)
    return Medicine(**data)


def medicine_fields(**overrides) -> dict:
    data = {
        "name": "Vitamin C",
        "dosage": "500mg",
        "frequency": "Once daily",
        "total_quantity": 100,
        "current_quantity": 100,
        "expiry_date": date(2027, 1, 1),
    }
    data.update(overrides)
    return data


@pytest.fixture(autouse=True)
def reset_db():
    SQLModel.metadata.drop_all(TEST_ENGINE)
    SQLModel.metadata.create_all(TEST_ENGINE)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def processed():
    return ProcessedFingerprints()


@pytest.fixture
def store():
    return KeyValueStore(TEST_ENGINE)


@pytest.fixture
def tracker(store, clock):
    return MedicineTracker(store, clock=clock)


@pytest.fixture
def client(tracker):
    asyncio.run(tracker.load())
    app.dependency_overrides[get_tracker] = lambda: tracker
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(tracker):
    await tracker.load()
    app.dependency_overrides[get_tracker] = lambda: tracker
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


def create_medicine(client: TestClient, **overrides) -> dict:
    body = {
        "name": "Vitamin C",
        "dosage": "500mg",
        "frequency": "Once daily",
        "totalQuantity": 100,
        "currentQuantity": 100,
        "expiryDate": "2027-01-01",
    }
    body.update(overrides)
    response = client.post("/medicines", json=body)
    assert response.status_code == 201, response.text
    return response.json()
