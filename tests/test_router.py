"""
Tests for the monitoring HTTP API.

The poller dependency is overridden with one wired to a scripted client
and a manual timer, so requests never reach a real status service.
"""

import pytest
from fastapi.testclient import TestClient

from compliance_console.core.config import Settings
from compliance_console.main import app
from compliance_console.processing import router as router_module
from compliance_console.processing.clients import MockStatusClient
from compliance_console.processing.models import ProcessingState
from compliance_console.processing.notifications import NotificationFeed
from compliance_console.processing.poller import (
    ProcessingStatusPoller,
    get_notification_feed,
    get_poller,
)
from tests.fixtures.status_fakes import ScriptedStatusClient, make_snapshot


@pytest.fixture
def feed():
    return NotificationFeed(max_size=10)


@pytest.fixture
def api(timer, monitor_config, feed):
    """Test client plus the poller it talks to."""
    poller = ProcessingStatusPoller(
        client=ScriptedStatusClient(
            [make_snapshot(ProcessingState.PROCESSING, matched=["Rapid Velocity"])]
        ),
        config=monitor_config,
        notifier=feed,
        timer=timer,
    )
    app.dependency_overrides[get_poller] = lambda: poller
    app.dependency_overrides[get_notification_feed] = lambda: feed
    with TestClient(app) as client:
        yield client, poller
    app.dependency_overrides.clear()


def test_health(api):
    client, _ = api

    assert client.get("/").json() == {"status": "ok"}
    assert client.get("/healthz").json()["status"] == "healthy"


def test_start_runs_first_query(api):
    client, poller = api

    response = client.post("/monitoring/start", json={"transaction_id": 42})

    assert response.status_code == 200
    body = response.json()
    assert body["started"] is True
    assert body["result"] == "started"
    assert body["message"] == "Started monitoring transaction #42"
    assert body["status"]["polling"] is True
    assert body["status"]["attempts"] == 1
    assert body["status"]["snapshot"]["processing_state"] == 1
    assert poller.client.calls == ["42"]


def test_start_with_options(api):
    client, poller = api

    response = client.post(
        "/monitoring/start",
        json={"transaction_id": "42", "poll_interval_ms": 500, "max_attempts": 3},
    )

    status = response.json()["status"]
    assert status["poll_interval_ms"] == 500
    assert status["max_attempts"] == 3


def test_start_twice_is_noop(api):
    client, poller = api
    client.post("/monitoring/start", json={"transaction_id": 42})

    response = client.post("/monitoring/start", json={"transaction_id": 99})

    body = response.json()
    assert body["started"] is False
    assert body["result"] == "already_active"
    assert body["message"] == "Monitoring already active"
    assert body["status"]["target_id"] == "42"
    assert poller.client.calls == ["42"]


@pytest.mark.parametrize("payload", [{}, {"transaction_id": "  "}])
def test_start_invalid_target(api, payload):
    client, poller = api

    response = client.post("/monitoring/start", json=payload)

    assert response.status_code == 400
    assert poller.client.calls == []


def test_start_rejects_bad_options(api):
    client, _ = api

    response = client.post(
        "/monitoring/start", json={"transaction_id": 42, "poll_interval_ms": 0}
    )

    assert response.status_code == 422


def test_mock_client_refused_outside_development(timer, monitor_config, monkeypatch):
    poller = ProcessingStatusPoller(
        client=MockStatusClient(latency_ms=0), config=monitor_config, timer=timer
    )
    monkeypatch.setattr(
        router_module, "get_settings", lambda: Settings(ENV="production")
    )
    app.dependency_overrides[get_poller] = lambda: poller
    try:
        with TestClient(app) as client:
            response = client.post("/monitoring/start", json={"transaction_id": 42})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503
    assert not poller.is_polling


def test_stop(api):
    client, poller = api
    client.post("/monitoring/start", json={"transaction_id": 42})

    response = client.post("/monitoring/stop")

    body = response.json()
    assert body["stopped"] is True
    assert body["status"]["state"] == "idle"
    assert body["status"]["last_outcome"] == "cancelled"
    assert not poller.is_polling

    assert client.post("/monitoring/stop").json()["stopped"] is False


def test_status_idle(api):
    client, _ = api

    body = client.get("/monitoring/status").json()

    assert body["state"] == "idle"
    assert body["polling"] is False
    assert body["snapshot"] is None
    assert body["source"] == "scripted"


def test_metrics(api):
    client, _ = api
    client.post("/monitoring/start", json={"transaction_id": 42})
    client.post("/monitoring/stop")

    body = client.get("/monitoring/metrics").json()

    assert body["aggregate"]["total_sessions"] == 1
    assert body["aggregate"]["cancelled_sessions"] == 1
    assert body["completion_rate"] == 0.0
    assert body["recent_sessions"][0]["target_id"] == "42"


def test_notifications(api):
    client, _ = api
    client.post("/monitoring/start", json={})
    client.post("/monitoring/start", json={"transaction_id": 42})

    body = client.get("/monitoring/notifications").json()

    assert [n["title"] for n in body] == [
        "Rule Matches Detected",
        "Invalid Transaction ID",
    ]
    assert body[0]["description"] == "1 rule(s) matched: Rapid Velocity"

    limited = client.get("/monitoring/notifications", params={"limit": 1}).json()
    assert len(limited) == 1


@pytest.mark.parametrize("limit", [0, -5])
def test_notifications_rejects_nonpositive_limit(api, limit):
    client, _ = api

    response = client.get("/monitoring/notifications", params={"limit": limit})

    assert response.status_code == 422
