from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from goalify.db import make_session_factory
from goalify.dependencies import get_gateway
from goalify.gateway import DatabaseGateway, OfflineGateway
from goalify.main import app


@pytest.fixture
def sqlite_engine(monkeypatch):
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    monkeypatch.setattr("goalify.main.get_engine", lambda: engine)
    yield engine
    app.dependency_overrides.clear()
    engine.dispose()


def test_health_endpoint_reports_persistence_mode() -> None:
    client = TestClient(app)
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["persistence_mode"] in {"hybrid", "local"}


def test_database_health_endpoint_success(sqlite_engine) -> None:
    app.dependency_overrides[get_gateway] = lambda: DatabaseGateway(make_session_factory(sqlite_engine))
    client = TestClient(app)
    response = client.get("/healthz/database")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert "pool" in payload
    assert "persistence_mode" in payload


def test_database_health_endpoint_failure(sqlite_engine) -> None:
    app.dependency_overrides[get_gateway] = lambda: OfflineGateway("missing database url")
    client = TestClient(app)
    response = client.get("/healthz/database")
    assert response.status_code == 503
    assert response.json()["detail"] == "missing database url"
