import importlib.util
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from incident_sla import main
from incident_sla.config import settings
from incident_sla.escalation.interfaces.controllers import (
    get_escalation_repository, get_user_directory
)
from incident_sla.infrastructure import database
from incident_sla.main import app
from incident_sla.sla.infrastructure import SlackNotifier
from incident_sla.sla.interfaces.controllers import get_notifier, get_ticket_repository

SERVERLESS_ENTRY = Path(__file__).resolve().parents[1] / "api" / "index.py"


@pytest.fixture
def client(ticket_repo, notifier, directory, escalation_repo):
    app.dependency_overrides[get_ticket_repository] = lambda: ticket_repo
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_user_directory] = lambda: directory
    app.dependency_overrides[get_escalation_repository] = lambda: escalation_repo
    yield TestClient(app)
    app.dependency_overrides.clear()


def _create(client, ticket_id="INC-1", priority="critical"):
    return client.post("/sla/tickets", json={
        "id": ticket_id,
        "organization_id": "org-acme",
        "priority": priority,
        "created_at": "2025-01-01T00:00:00Z",
    })


def test_create_ticket(client):
    response = _create(client)

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "open"
    assert body["sla_target_ack"] == "2025-01-01T00:15:00Z"
    assert body["sla_target_resolve"] == "2025-01-01T04:00:00Z"


def test_create_with_existing_id_returns_409(client):
    assert _create(client).status_code == 201

    response = _create(client, priority="low")

    assert response.status_code == 409
    assert response.json()["error_type"] == "DuplicateTicketError"


def test_create_without_priority_returns_422(client):
    response = client.post("/sla/tickets", json={"organization_id": "org-acme"})

    assert response.status_code == 422
    assert response.json()["error_type"] == "InvalidPriorityError"


def test_milestones_and_status(client):
    _create(client)

    ack = client.post("/sla/tickets/INC-1/acknowledge", json={"at": "2025-01-01T00:05:00Z"})
    assert ack.status_code == 200
    assert ack.json()["status"] == "acknowledged"

    view = client.get("/sla/tickets/INC-1").json()
    assert view["ack"]["state"] == "met"
    assert view["ack"]["met_at"] == "2025-01-01T00:05:00Z"
    assert view["ack"]["time_remaining"] == "0s"


def test_resolve_before_acknowledge_returns_409(client):
    _create(client)

    response = client.post("/sla/tickets/INC-1/resolve")

    assert response.status_code == 409
    assert response.json()["error_type"] == "InvalidTransitionError"


def test_unknown_ticket_returns_404(client):
    assert client.get("/sla/tickets/missing").status_code == 404
    assert client.post("/sla/tickets/missing/acknowledge").status_code == 404


def test_breach_scan_reports_each_ticket_once(client):
    _create(client)

    first = client.post("/sla/scans/breach").json()
    second = client.post("/sla/scans/breach").json()

    assert first["breach_count"] == 1
    assert first["breaches"][0]["ticket_id"] == "INC-1"
    assert first["breaches"][0]["sla_type"] == "ack"
    assert second["breach_count"] == 0


def test_near_breach_sweep_validates_lookahead(client):
    assert client.post("/sla/scans/near-breach", params={"lookahead_minutes": 0}).status_code == 422

    response = client.post("/sla/scans/near-breach", params={"lookahead_minutes": 30})
    assert response.status_code == 200
    assert response.json()["lookahead_minutes"] == 30


def test_compliance_with_no_tickets_is_100(client):
    body = client.get("/sla/compliance", params={"organization_id": "org-acme"}).json()

    assert body["total_tickets"] == 0
    assert body["compliance_percentage"] == 100


def test_compliance_rate(client):
    for ticket_id in ("INC-1", "INC-2"):
        _create(client, ticket_id)
    client.post("/sla/tickets/INC-1/acknowledge", json={"at": "2025-01-01T00:05:00Z"})
    client.post("/sla/tickets/INC-1/resolve", json={"at": "2025-01-01T01:00:00Z"})

    body = client.get("/sla/compliance").json()

    assert body["total_tickets"] == 2
    assert body["resolved_within_sla"] == 1
    assert body["compliance_percentage"] == 50


def test_escalate_ticket(client, escalation_repo):
    _create(client)

    response = client.post(
        "/escalations/tickets/INC-1",
        json={"escalated_to_email": "bob@acme.test", "reason": "needs IC"},
        headers={"X-User-Id": "u-alice"},
    )

    assert response.status_code == 201
    assert response.json()["escalated_to_role"] == "incident_commander"

    history = client.get("/escalations/tickets/INC-1").json()
    assert history["total_count"] == 1
    assert history["escalations"][0]["status"] == "PENDING"


def test_escalate_across_organizations_returns_403(client, escalation_repo):
    _create(client)

    response = client.post(
        "/escalations/tickets/INC-1",
        json={"escalated_to_email": "eve@globex.test"},
        headers={"X-User-Id": "u-alice"},
    )

    assert response.status_code == 403
    assert escalation_repo.records == []


def test_escalate_without_principal_returns_403(client):
    _create(client)

    response = client.post("/escalations/tickets/INC-1", json={"escalated_to_email": "bob@acme.test"})

    assert response.status_code == 403


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"


def test_correlation_id_is_echoed(client):
    response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})
    assert response.headers["X-Correlation-ID"] == "abc-123"


def test_serverless_entry_loads_rule_table_and_notifier(tmp_path, monkeypatch, ticket_repo):
    config_path = tmp_path / "sla_config.yaml"
    config_path.write_text(
        "sla_rules:\n"
        "  critical:\n"
        "    acknowledgment: 1\n"
        "    resolution: 60\n"
    )
    logging_calls = []
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("SCHEDULER_ENABLED", "false")
    monkeypatch.setattr(settings, "sla_config_path", config_path)
    monkeypatch.setattr(settings, "slack_webhook_url", "https://hooks.slack.test/T000/B000")
    monkeypatch.setattr(settings, "database_url", f"sqlite+aiosqlite:///{tmp_path / 'sla.db'}")
    monkeypatch.setattr(database, "_engine", None)
    monkeypatch.setattr(database, "_session_maker", None)
    monkeypatch.setattr(main, "setup_logging", lambda *args: logging_calls.append(args))
    for attr in ("sla_config", "notifier", "scheduler"):
        monkeypatch.setattr(app.state, attr, None, raising=False)

    spec = importlib.util.spec_from_file_location("serverless_index", SERVERLESS_ENTRY)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    assert logging_calls == [(settings.log_level, settings.environment)]
    assert database.get_session_maker() is not None
    assert isinstance(module.app.state.notifier, SlackNotifier)

    app.dependency_overrides[get_ticket_repository] = lambda: ticket_repo
    try:
        response = _create(TestClient(app))
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 201
    assert response.json()["sla_target_ack"] == "2025-01-01T00:01:00Z"
    assert response.json()["sla_target_resolve"] == "2025-01-01T01:00:00Z"
