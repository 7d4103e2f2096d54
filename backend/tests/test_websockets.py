import asyncio

import pytest
from fastapi.testclient import TestClient

from main import app
from services.tracker import get_tracker
from ws import manager
from tests.conftest import create_medicine


@pytest.fixture
def broadcasting_client(tracker):
    tracker.notify = manager.broadcast_alerts
    asyncio.run(tracker.load())
    app.dependency_overrides[get_tracker] = lambda: tracker
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_alert_channel_receives_generated_alerts(broadcasting_client):
    with broadcasting_client.websocket_connect("/ws/alerts") as ws:
        created = create_medicine(broadcasting_client, name="Aspirin", currentQuantity=2)

        message = ws.receive_json()
        assert message["event"] == "alerts_generated"
        assert [alert["id"] for alert in message["alerts"]] == [f"stock:{created['id']}:2"]
