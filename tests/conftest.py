"""
Pytest fixtures for the myPlant handlers.

Provides:
- In-memory stand-ins for the Firestore collections
- A recording FCM sender and a scripted LLM client
- A Flask test client wired to those fakes
"""

from datetime import datetime

import pytest

from app import create_app
from config import Settings
from fakes import FakeCollection, FakeLLM, RecordingSender
from repositories import Repositories


@pytest.fixture
def now():
    return datetime(2025, 6, 10, 12, 0, 0).astimezone()


@pytest.fixture
def repos():
    return Repositories(
        profiles=FakeCollection(
            [
                {"id": "admin-1", "role": "admin"},
                {"id": "viewer-1", "role": "viewer"},
            ]
        ),
        devices=FakeCollection(
            [
                {"id": "esp32-a", "name": "Greenhouse A", "status": "online", "lastSeen": "2025-06-10T11:50:00+00:00"},
                {"id": "esp32-b", "name": "Field B", "status": "offline", "lastSeen": "2025-06-08T09:00:00+00:00"},
            ]
        ),
        readings=FakeCollection(
            [
                {"id": "r3", "deviceId": "esp32-a", "timestamp": "2025-06-10T11:55:00+00:00", "temperature": 24.5, "humidity": 61, "moisture": 2100, "rain": 0},
                {"id": "r2", "deviceId": "esp32-b", "timestamp": "2025-06-10T11:40:00+00:00", "temperature": 22.1, "moisture": 4100, "rain": 1},
                {"id": "r1", "deviceId": "esp32-a", "timestamp": "2025-06-10T10:00:00+00:00", "temperature": 23.0},
            ]
        ),
        events=FakeCollection(
            [
                {"id": "e1", "deviceId": "esp32-b", "timestamp": "2025-06-10T11:41:00+00:00", "type": "rain", "message": "Rain detected", "priority": "low"},
            ]
        ),
    )


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def settings():
    return Settings(encryption_admin_key="s3cret", admin_api_token="trigger-token")


@pytest.fixture
def client(settings, repos, sender, llm):
    tokens = {"admin-token": "admin-1", "viewer-token": "viewer-1", "ghost-token": "ghost-1"}
    app = create_app(settings, repos=repos, send=sender, llm=llm, verify=tokens.get)
    app.config["TESTING"] = True
    return app.test_client()
