"""
Tests for the health check endpoints.

Run with: pytest test_health.py -v
"""

from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from routers import health
from services.forfeit import ForfeitScheduler
from sessions import SessionDirectory


@pytest.fixture
def client():
    app = FastAPI()
    app.include_router(health.router)
    yield TestClient(app)
    health.set_health_dependencies()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_ready_with_redis(client):
    health.set_health_dependencies(redis_client=AsyncMock())
    response = client.get("/ready")
    assert response.status_code == 200
    assert response.json()["checks"]["redis"]["status"] == "ok"


def test_ready_redis_down(client):
    redis_client = AsyncMock()
    redis_client.ping.side_effect = ConnectionError("refused")
    health.set_health_dependencies(redis_client=redis_client)
    response = client.get("/ready")
    assert response.status_code == 503
    assert response.json()["status"] == "degraded"


def test_ready_without_redis(client):
    assert client.get("/ready").status_code == 503


def test_metrics(client):
    sessions = SessionDirectory()
    sessions.register(1, object())
    sessions.register(2, object())
    sessions.join_group(10, 1)
    sessions.join_group(10, 2)
    health.set_health_dependencies(
        sessions=sessions,
        forfeits=ForfeitScheduler(games=None, sessions=sessions),
    )

    data = client.get("/metrics").json()
    assert data["connected_players"] == 2
    assert data["active_rooms"] == 1
    assert data["players_in_rooms"] == 2
    assert data["pending_forfeits"] == 0
