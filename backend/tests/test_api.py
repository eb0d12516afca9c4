from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient

from conftest import RIVERSIDE, FakePlaceProvider, north_of
from courtguardian.main import app, build_services

ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
MODERATOR = {"X-User-Id": "mod-1", "X-User-Role": "moderator"}
USER = {"X-User-Id": "user-1"}

API = "/api/v1"


@pytest.fixture
def provider(make_candidate) -> FakePlaceProvider:
    return FakePlaceProvider({"tennis": [
        make_candidate(),
        make_candidate("Grant Park Tennis", lat=north_of(RIVERSIDE[0], 3000)),
    ]})


@pytest.fixture
def client(session_factory, provider, fake_geocoder):
    build_services(app, session_factory, provider=provider, geocoder=fake_geocoder)
    with TestClient(app) as test_client:
        yield test_client


def test_health(client: TestClient) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_job_routes_require_admin(client: TestClient) -> None:
    assert client.get(f"{API}/jobs/status").status_code == 401
    assert client.get(f"{API}/jobs/status", headers=USER).status_code == 403
    assert client.get(f"{API}/jobs/status", headers=MODERATOR).status_code == 403
    assert client.get(f"{API}/jobs/status", headers={"X-User-Id": "x", "X-User-Role": "root"}).status_code == 403


def test_trigger_with_zero_radius_is_rejected(client: TestClient) -> None:
    response = client.post(
        f"{API}/jobs/trigger-discovery",
        json={"latitude": RIVERSIDE[0], "longitude": RIVERSIDE[1], "radius": 0, "sport_type": "tennis"},
        headers=ADMIN,
    )

    assert response.status_code == 400
    assert "Radius" in response.json()["detail"]
    assert client.get(f"{API}/jobs/status", headers=ADMIN).json()["queue"]["waiting"] == 0


def test_trigger_run_and_inspect_job(client: TestClient) -> None:
    response = client.post(
        f"{API}/jobs/trigger-discovery",
        json={"latitude": RIVERSIDE[0], "longitude": RIVERSIDE[1], "radius": 5000, "sport_type": "tennis"},
        headers=ADMIN,
    )
    assert response.status_code == 200
    job_id = response.json()["job_id"]

    status = client.get(f"{API}/jobs/status", headers=ADMIN).json()
    assert status["queue"]["waiting"] == 1
    assert status["scheduler"]["running"] is False

    control = client.post(f"{API}/jobs/scheduler/start", headers=ADMIN).json()
    assert control == {"running": True, "message": "Scheduler started"}
    app.state.orchestrator.wait_for_job(job_id, timeout=5)

    job = client.get(f"{API}/jobs/{job_id}", headers=ADMIN).json()
    assert job["status"] == "completed"
    assert job["request"]["radius"] == 5000
    assert job["result"]["new_courts"] == 2

    recent = client.get(f"{API}/jobs/recent", params={"status": "completed"}, headers=ADMIN).json()
    assert [j["id"] for j in recent] == [job_id]

    area = client.get(f"{API}/discovery/courts", params={"lat": RIVERSIDE[0], "lng": RIVERSIDE[1], "radius": 5000}).json()
    assert area["total"] == 2
    assert area["courts"][0]["name"] == "Riverside Tennis Courts"
    assert area["courts"][0]["distance_km"] == 0
    assert area["courts"][0]["needs_verification"] is True

    stats = client.get(f"{API}/discovery/stats", params={"lat": RIVERSIDE[0], "lng": RIVERSIDE[1]}).json()
    assert stats["by_sport"] == [{"sport": "tennis", "total": 2, "verified": 0, "discovered": 2}]

    assert client.get(f"{API}/jobs/cache/stats", headers=ADMIN).json()["total_entries"] == 1
    assert client.delete(f"{API}/jobs/cache", headers=ADMIN).json() == {"cleared": 1}

    assert client.post(f"{API}/jobs/scheduler/stop", headers=ADMIN).json()["running"] is False


def test_scheduler_control_rejects_unknown_action(client: TestClient) -> None:
    assert client.post(f"{API}/jobs/scheduler/pause", headers=ADMIN).status_code == 400


def test_unknown_job_is_404(client: TestClient) -> None:
    assert client.get(f"{API}/jobs/discovery-nope", headers=ADMIN).status_code == 404
    assert client.post(f"{API}/jobs/discovery-nope/resubmit", headers=ADMIN).status_code == 404


def test_cleanup_jobs(client: TestClient) -> None:
    response = client.delete(f"{API}/jobs/cleanup", params={"days": 30}, headers=ADMIN)
    assert response.json() == {"removed": 0, "message": "Removed 0 jobs older than 30 days"}


def test_verification_flow(client: TestClient, make_candidate) -> None:
    court = app.state.store.insert(make_candidate(surface_type="clay"))

    assert client.post(f"{API}/verifications/submit", json={
        "court_id": court.id, "field_name": "lighting", "new_value": "yes", "kind": "addition",
    }).status_code == 401

    wrong_kind = client.post(f"{API}/verifications/submit", json={
        "court_id": court.id, "field_name": "lighting", "new_value": "yes", "kind": "correction",
    }, headers=USER)
    assert wrong_kind.status_code == 409

    created = client.post(f"{API}/verifications/submit", json={
        "court_id": court.id, "field_name": "surface_type", "old_value": "clay",
        "new_value": "hard", "kind": "correction", "note": "Resurfaced last spring",
    }, headers=USER)
    assert created.status_code == 201
    proposal_id = created.json()["proposal_id"]

    assert client.get(f"{API}/verifications/admin/pending", headers=USER).status_code == 403
    pending = client.get(f"{API}/verifications/admin/pending", headers=MODERATOR).json()
    assert [p["id"] for p in pending] == [proposal_id]
    assert pending[0]["court_name"] == "Riverside Tennis Courts"

    reviewed = client.patch(f"{API}/verifications/admin/{proposal_id}", json={"decision": "approve"}, headers=MODERATOR)
    assert reviewed.status_code == 200
    body = reviewed.json()
    assert body["surface_type"] == "hard"
    assert body["verification_status"] == "partially_verified"
    assert body["verification_count"] == 1

    again = client.patch(f"{API}/verifications/admin/{proposal_id}", json={"decision": "approve"}, headers=MODERATOR)
    assert again.status_code == 409

    view = client.get(f"{API}/verifications/court/{court.id}").json()
    assert view["recent_verifications"][0]["status"] == "approved"
    assert "surface_type" not in view["missing_fields"]

    stats = client.get(f"{API}/verifications/stats").json()
    assert stats["approved_count"] == 1


def test_suggestion_flow(client: TestClient) -> None:
    created = client.post(f"{API}/courts/suggestions", json={
        "name": "Piedmont Park Tennis Center",
        "address": "1 Piedmont Park, Atlanta, GA",
        "sport_type": "tennis",
    }, headers=USER)
    assert created.status_code == 201
    suggestion_id = created.json()["id"]

    listed = client.get(f"{API}/courts/suggestions", headers=MODERATOR).json()
    assert listed["total"] == 1

    reviewed = client.patch(
        f"{API}/courts/suggestions/{suggestion_id}",
        json={"status": "approved", "create_court": True},
        headers=MODERATOR,
    ).json()
    assert reviewed["court_created"] is True
    assert reviewed["suggestion"]["court_id"] == reviewed["court_id"]

    court = client.get(f"{API}/courts/{reviewed['court_id']}").json()
    assert court["provenance"] == "user_suggested"
    assert client.get(f"{API}/courts/999").status_code == 404


def test_suggestion_with_unknown_address_is_rejected(client: TestClient) -> None:
    response = client.post(f"{API}/courts/suggestions", json={
        "name": "Mystery Courts", "address": "Nowhere", "sport_type": "tennis",
    }, headers=USER)
    assert response.status_code == 400


def test_geocode_endpoints(client: TestClient) -> None:
    found = client.get(f"{API}/discovery/geocode", params={"address": "100 Riverside Dr, Atlanta, GA"}).json()
    assert (found["latitude"], found["longitude"]) == RIVERSIDE

    assert client.get(f"{API}/discovery/geocode", params={"address": "Nowhere"}).status_code == 404

    reverse = client.get(f"{API}/discovery/reverse-geocode", params={"lat": RIVERSIDE[0], "lng": RIVERSIDE[1]}).json()
    assert reverse["address"] == "100 Riverside Dr, Atlanta, GA"

    assert client.get(f"{API}/discovery/reverse-geocode", params={"lat": 95, "lng": 0}).status_code == 400


def test_area_query_validates_radius(client: TestClient) -> None:
    params: dict[str, Any] = {"lat": RIVERSIDE[0], "lng": RIVERSIDE[1], "radius": 0}
    assert client.get(f"{API}/discovery/courts", params=params).status_code == 400
