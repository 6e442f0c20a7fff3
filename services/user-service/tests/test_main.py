from __future__ import annotations

from contextlib import asynccontextmanager

import pytest
from fastapi.testclient import TestClient

from app import main
from app.domain.account import ApprovalStatus, Role


@asynccontextmanager
async def _no_database(_app):
    yield


@pytest.fixture
def service_client(monkeypatch, repository):
    """Client for the real application object with the Postgres lifespan swapped out."""
    monkeypatch.setattr(main.app.router, "lifespan_context", _no_database)
    main.attach_services(main.app, repository)
    with TestClient(main.app) as client:
        yield client


def test_health_and_metrics_endpoints(service_client):
    health = service_client.get("/healthz")
    assert health.status_code == 200
    assert health.json() == {"status": "ok"}

    metrics = service_client.get("/metrics")
    assert metrics.status_code == 200
    assert metrics.headers["content-type"].startswith("text/plain")


def test_application_mounts_account_routes():
    paths = {route.path for route in main.app.routes}

    assert {
        "/v1/auth/register",
        "/v1/auth/login",
        "/v1/users/{account_id}",
        "/v1/users/{account_id}/approve",
        "/v1/users/{account_id}/reject",
        "/v1/users/{account_id}/restrict",
        "/v1/audit/logs",
    } <= paths


def test_path_routes_receive_actor_headers(service_client, seed):
    target = seed("prof", Role.FACULTY, ApprovalStatus.PENDING)

    response = service_client.post(
        f"/v1/users/{target.account_id}/approve",
        headers={"X-User-Role": "ADMIN", "X-User-Id": "admin-1"},
    )

    assert response.status_code == 200
    assert response.json()["id"] == target.account_id
    assert response.json()["approval_status"] == "APPROVED"
