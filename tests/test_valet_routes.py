from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.dependencies import valet as valet_deps
from app.main import create_app
from app.metrics import MetricsRegistry
from app.valet.errors import (
    ConfigurationError,
    DispatchNotFoundError,
    InvalidTicketTransitionError,
    TicketNotFoundError,
    ValidationError,
)
from app.valet.models import Dispatch, Gate, GateScore, InferenceResult, SensorObservation, Ticket
from app.valet.state import TicketStatus

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _make_ticket(*, status: TicketStatus = TicketStatus.PARKED) -> Ticket:
    return Ticket(id=1, user_id="u1", car_info="Red Civic", status=status, created_at=NOW, updated_at=NOW)


def _make_dispatch(*, status: str = "pending") -> Dispatch:
    return Dispatch(id=7, ticket_id=1, gate="B", score=95.0, status=status, dispatched_at=NOW, updated_at=NOW)


@pytest.fixture
def valet_client():
    app = create_app()
    services = {
        "tickets": AsyncMock(),
        "sensors": AsyncMock(),
        "engine": AsyncMock(),
        "dispatches": AsyncMock(),
        "gates": AsyncMock(),
    }

    app.dependency_overrides[valet_deps.get_ticket_service] = lambda: services["tickets"]
    app.dependency_overrides[valet_deps.get_sensor_service] = lambda: services["sensors"]
    app.dependency_overrides[valet_deps.get_dispatch_engine] = lambda: services["engine"]
    app.dependency_overrides[valet_deps.get_dispatch_service] = lambda: services["dispatches"]
    app.dependency_overrides[valet_deps.get_gate_registry] = lambda: services["gates"]

    client = TestClient(app)
    try:
        yield client, services
    finally:
        app.dependency_overrides.clear()


def test_create_ticket_accepts_camel_case_payload(valet_client):
    client, services = valet_client
    services["tickets"].create_ticket = AsyncMock(return_value=_make_ticket())

    response = client.post("/api/tickets", json={"userId": "u1", "carInfo": "Red Civic"})

    assert response.status_code == 201
    body = response.json()
    assert body["id"] == 1
    assert body["status"] == "parked"
    services["tickets"].create_ticket.assert_awaited_once_with(user_id="u1", car_info="Red Civic")


def test_create_ticket_missing_fields_returns_400(valet_client):
    client, services = valet_client
    services["tickets"].create_ticket = AsyncMock(side_effect=ValidationError("userId and carInfo required"))

    response = client.post("/api/tickets", json={"userId": "u1"})

    assert response.status_code == 400
    assert response.json()["detail"] == "userId and carInfo required"


def test_get_unknown_ticket_returns_404(valet_client):
    client, services = valet_client
    services["tickets"].get_ticket = AsyncMock(side_effect=TicketNotFoundError(99))

    response = client.get("/api/tickets/99")

    assert response.status_code == 404
    assert response.json()["detail"] == "Ticket 99 not found"


def test_request_retrieval_maps_errors(valet_client):
    client, services = valet_client
    services["tickets"].request_retrieval = AsyncMock(
        side_effect=[
            _make_ticket(status=TicketStatus.REQUESTED),
            InvalidTicketTransitionError("Ticket 1 is already dispatched"),
            TicketNotFoundError(2),
        ]
    )

    ok = client.post("/api/tickets/1/request")
    conflict = client.post("/api/tickets/1/request")
    missing = client.post("/api/tickets/2/request")

    assert ok.status_code == 200
    assert ok.json()["status"] == "requested"
    assert conflict.status_code == 409
    assert missing.status_code == 404


def test_sensor_payload_uses_signal_aliases(valet_client):
    client, services = valet_client
    services["sensors"].record_observation = AsyncMock()

    response = client.post(
        "/api/tickets/1/sensor",
        json={"ble": {"A": -40}, "wifi": [{"gate": "A", "rssi": -55}], "gps": {"lat": 1, "lon": 2}},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True}
    services["sensors"].record_observation.assert_awaited_once_with(
        1,
        proximity={"A": -40},
        wireless=[{"gate": "A", "rssi": -55}],
        motion=None,
        location={"lat": 1, "lon": 2},
        timestamp=None,
    )


def test_sensor_for_unknown_ticket_returns_404(valet_client):
    client, services = valet_client
    services["sensors"].record_observation = AsyncMock(side_effect=TicketNotFoundError(5))

    response = client.post("/api/tickets/5/sensor", json={})

    assert response.status_code == 404


def test_list_observations_endpoint(valet_client):
    client, services = valet_client
    services["sensors"].list_observations = AsyncMock(
        return_value=[
            SensorObservation(
                id=3, ticket_id=1, proximity={"A": -40}, wireless=None, motion=None, location=None, timestamp=NOW
            )
        ]
    )

    response = client.get("/api/tickets/1/sensor")

    assert response.status_code == 200
    assert response.json()[0]["proximity"] == {"A": -40}


def test_infer_returns_scores_and_dispatch(valet_client):
    client, services = valet_client
    scores = [GateScore("A", 20.0), GateScore("B", 95.0), GateScore("C", 20.0), GateScore("D", 20.0)]
    services["engine"].run_inference = AsyncMock(
        return_value=InferenceResult(scores=scores, dispatched=True, dispatch=_make_dispatch(), created=True)
    )

    response = client.post("/api/tickets/1/infer")

    assert response.status_code == 200
    body = response.json()
    assert body["dispatched"] is True
    assert [item["gate"] for item in body["scores"]] == ["A", "B", "C", "D"]
    assert body["dispatch"]["gate"] == "B"
    assert body["dispatch"]["status"] == "pending"


def test_infer_below_threshold_has_no_dispatch(valet_client):
    client, services = valet_client
    services["engine"].run_inference = AsyncMock(
        return_value=InferenceResult(scores=[GateScore("A", 42.0)], dispatched=False)
    )

    response = client.post("/api/tickets/1/infer")

    assert response.status_code == 200
    assert response.json()["dispatched"] is False
    assert response.json()["dispatch"] is None


def test_infer_maps_missing_ticket_and_gates(valet_client):
    client, services = valet_client
    services["engine"].run_inference = AsyncMock(
        side_effect=[TicketNotFoundError(9), ConfigurationError("No gates registered; cannot run inference")]
    )

    assert client.post("/api/tickets/9/infer").status_code == 404
    assert client.post("/api/tickets/1/infer").status_code == 503


def test_dispatch_status_endpoint(valet_client):
    client, services = valet_client
    services["dispatches"].set_status = AsyncMock(
        side_effect=[_make_dispatch(status="completed"), DispatchNotFoundError(8), ValidationError("status required")]
    )

    ok = client.post("/api/dispatches/7/status", json={"status": "completed"})
    missing = client.post("/api/dispatches/8/status", json={"status": "completed"})
    blank = client.post("/api/dispatches/7/status", json={})

    assert ok.status_code == 200
    assert ok.json()["status"] == "completed"
    assert missing.status_code == 404
    assert blank.status_code == 400
    services["dispatches"].set_status.assert_any_await(7, None)


def test_list_gates_and_dispatches(valet_client):
    client, services = valet_client
    services["gates"].list_gates = AsyncMock(return_value=[Gate(1, "A"), Gate(2, "B")])
    services["dispatches"].list_dispatches = AsyncMock(return_value=[_make_dispatch()])

    gates = client.get("/api/gates")
    dispatches = client.get("/api/dispatches")

    assert [gate["name"] for gate in gates.json()] == ["A", "B"]
    assert dispatches.json()[0]["id"] == 7


def test_unconfigured_services_return_503():
    client = TestClient(create_app())

    response = client.get("/api/gates")

    assert response.status_code == 503


def test_health_reports_database_state():
    app = create_app()
    client = TestClient(app)

    assert client.get("/health").json() == {"status": "ok", "database": "unconfigured"}

    database = AsyncMock()
    database.test_connection = AsyncMock(side_effect=OSError("connection refused"))
    app.state.database = database
    assert client.get("/health").json() == {"status": "degraded", "database": "unavailable"}

    database.test_connection = AsyncMock(return_value=True)
    assert client.get("/health").json() == {"status": "ok", "database": "ok"}


def test_metrics_endpoint_exposes_registry():
    app = create_app()
    registry = MetricsRegistry()
    registry.counter("valet_inference_runs_total", description="Total number of gate inference runs.").inc(3)
    app.state.metrics_registry = registry
    client = TestClient(app)

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "valet_inference_runs_total 3.0" in response.text


def test_dispatch_status_passes_long_text_through(valet_client):
    client, services = valet_client
    note = "Handed to runner at the north ramp, customer asked for the roof rack. " * 3
    services["dispatches"].set_status = AsyncMock(return_value=_make_dispatch(status=note))

    response = client.post("/api/dispatches/7/status", json={"status": note})

    assert response.status_code == 200
    assert response.json()["status"] == note
    services["dispatches"].set_status.assert_awaited_once_with(7, note)


def test_get_dispatch_endpoint(valet_client):
    client, services = valet_client
    services["dispatches"].get_dispatch = AsyncMock(side_effect=[_make_dispatch(), DispatchNotFoundError(8)])

    found = client.get("/api/dispatches/7")
    missing = client.get("/api/dispatches/8")

    assert found.status_code == 200
    assert found.json()["gate"] == "B"
    assert missing.status_code == 404


def test_cors_preflight_allows_any_origin_by_default():
    client = TestClient(create_app(Settings(_env_file=None)))

    response = client.options(
        "/api/tickets",
        headers={"Origin": "http://dashboard.local", "Access-Control-Request-Method": "POST"},
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"


def test_cors_preflight_honours_configured_origins():
    settings = Settings(_env_file=None, cors_allow_origins=["https://valet.example.com"])
    client = TestClient(create_app(settings))

    allowed = client.options(
        "/api/tickets/1/infer",
        headers={"Origin": "https://valet.example.com", "Access-Control-Request-Method": "POST"},
    )
    blocked = client.options(
        "/api/tickets/1/infer",
        headers={"Origin": "https://elsewhere.example.com", "Access-Control-Request-Method": "POST"},
    )

    assert allowed.headers["access-control-allow-origin"] == "https://valet.example.com"
    assert "access-control-allow-origin" not in blocked.headers
