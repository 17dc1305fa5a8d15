# tests/conftest.py
import os
import sys
from datetime import datetime, timedelta

import pytest

# Add the project root to sys.path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

from app import create_app
from config import TestConfig
from models import db

START = datetime(2024, 3, 1, 9, 30)


class Clock:
    """Settable stand-in for the request clock."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, days=0, hours=0):
        self.now += timedelta(days=days, hours=hours)


class MemoryConfig(TestConfig):
    STORAGE_BACKEND = "memory"


@pytest.fixture
def clock():
    return Clock(START)


@pytest.fixture(params=["sql", "memory"])
def app(request, clock):
    config = TestConfig if request.param == "sql" else MemoryConfig
    app = create_app(config)
    app.config["CLOCK"] = clock
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def store(app):
    return app.extensions["habit_store"]


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session_headers(client):
    resp = client.post("/api/sessions", json={"name": "Tester"})
    assert resp.status_code == 201
    return {"X-Session-Id": resp.get_json()["id"]}


@pytest.fixture
def create_habit(client, session_headers):
    def _create(name="Morning run", category="Health & Fitness", headers=None):
        resp = client.post("/api/habits", json={"name": name, "category": category}, headers=headers or session_headers)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()
    return _create
