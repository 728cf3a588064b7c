"""HTTP API tests.

The app's session factory, clock and policy are swapped through
app.dependency_overrides so every request runs against the per-test database.
"""

from contextlib import contextmanager
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import InterfaceError

from run_tracker.api.dependencies.services import get_clock, get_policy, get_session_factory
from run_tracker.main import app


@pytest.fixture
def client(session_factory, clock, policy, roster):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_policy] = lambda: policy
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(client, directory, roster) -> dict[str, str]:
    directory.set_admin_status(roster["5568"].id, True, "correct-horse")
    response = client.post("/auth/admin/login", json={"service_number": "5568", "password": "correct-horse"})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def _submit(client, png_bytes: bytes, service_number: str = "1234", distance: str = "6.00", run_date: str = "2025-03-14"):
    return client.post(
        "/runs",
        data={"service_number": service_number, "date": run_date, "distance_km": distance},
        files={"evidence": ("run.png", png_bytes, "image/png")},
    )


def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_roster_lookup(client) -> None:
    response = client.get("/roster/12-34")

    assert response.status_code == 200
    assert response.json()["name"] == "Aishath Rasheed"


def test_roster_lookup_unknown(client) -> None:
    assert client.get("/roster/9999").status_code == 404


def test_submit_admitted(client, png) -> None:
    response = _submit(client, png())

    assert response.status_code == 201
    body = response.json()
    assert body["outcome"] == "admitted"
    assert body["entry_id"]
    assert Decimal(body["remaining_km"]) == Decimal("4.00")
    assert body["daily_state"]["count"] == 1


def test_submit_would_exceed_maps_to_conflict(client, png) -> None:
    _submit(client, png())

    response = _submit(client, png(), distance="5.00")

    assert response.status_code == 409
    assert response.json()["outcome"] == "rejected_would_exceed_ceiling"
    assert Decimal(response.json()["remaining_km"]) == Decimal("4.00")


def test_submit_duplicate_evidence(client, png) -> None:
    evidence = png(3)
    _submit(client, evidence, service_number="5568", distance="2.00")

    response = _submit(client, evidence, distance="2.00")

    assert response.status_code == 409
    assert response.json()["outcome"] == "rejected_duplicate_evidence"
    assert response.json()["duplicate_of"]["submitter_id"] == "5568"


def test_submit_wrong_date(client, png) -> None:
    response = _submit(client, png(), run_date="2025-03-13")

    assert response.status_code == 422
    assert response.json()["outcome"] == "rejected_date_invalid"


def test_submit_unknown_submitter(client, png) -> None:
    response = _submit(client, png(), service_number="9999")

    assert response.status_code == 404
    assert response.json()["outcome"] == "rejected_unknown_submitter"


def test_submit_without_evidence(client) -> None:
    response = client.post("/runs", data={"service_number": "1234", "date": "2025-03-14", "distance_km": "3.00"})

    assert response.status_code == 422
    assert response.json()["outcome"] == "rejected_evidence_invalid"
    assert response.json()["message"] == "Evidence image is required"


def test_submit_non_image_evidence(client) -> None:
    response = client.post(
        "/runs",
        data={"service_number": "1234", "date": "2025-03-14", "distance_km": "3.00"},
        files={"evidence": ("run.pdf", b"%PDF-1.7", "application/pdf")},
    )

    assert response.status_code == 422
    assert response.json()["message"] == "Please select an image file"


def test_daily_state(client, png) -> None:
    _submit(client, png())

    response = client.get("/runs/daily-state", params={"service_number": "1234"})

    assert response.status_code == 200
    body = response.json()
    assert body["run_date"] == "2025-03-14"
    assert body["count"] == 1
    assert Decimal(body["total_distance_km"]) == Decimal("6.00")
    assert Decimal(body["remaining_km"]) == Decimal("4.00")
    assert body["can_submit"] is True
    assert body["admission"] is None


def test_daily_state_admission_preview(client, png) -> None:
    _submit(client, png())

    response = client.get("/runs/daily-state", params={"service_number": "1234", "distance_km": "5.00"})

    assert response.json()["admission"]["outcome"] == "rejected_would_exceed_ceiling"


def test_daily_state_unknown_submitter(client) -> None:
    assert client.get("/runs/daily-state", params={"service_number": "9999"}).status_code == 404


def test_list_runs_for_submitter(client, png) -> None:
    _submit(client, png())
    _submit(client, png(), service_number="5568", distance="2.00")

    response = client.get("/runs", params={"service_number": "12 34"})

    assert [run["submitter_id"] for run in response.json()] == ["1234"]


def test_admin_login_rejected(client, directory, roster) -> None:
    directory.set_admin_status(roster["5568"].id, True, "correct-horse")

    response = client.post("/auth/admin/login", json={"service_number": "5568", "password": "wrong"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid password"


def test_admin_login_non_admin(client) -> None:
    response = client.post("/auth/admin/login", json={"service_number": "1234", "password": "anything"})

    assert response.status_code == 401
    assert response.json()["detail"] == "User does not have admin privileges"


def test_admin_login_store_unavailable(client) -> None:
    @contextmanager
    def closed_connection():
        raise InterfaceError("SELECT 1", {}, Exception("connection already closed"))
        yield

    app.dependency_overrides[get_session_factory] = lambda: closed_connection

    response = client.post("/auth/admin/login", json={"service_number": "5568", "password": "correct-horse"})

    assert response.status_code == 503


@pytest.mark.parametrize(
    ("method", "path"),
    [
        ("get", "/admin/runs"),
        ("put", "/admin/runs/some-id"),
        ("delete", "/admin/runs/some-id"),
        ("patch", "/admin/runs/some-id/status"),
        ("get", "/admin/runs/some-id/evidence"),
        ("get", "/admin/roster"),
        ("post", "/admin/roster"),
        ("put", "/admin/roster/some-id/admin"),
    ],
)
def test_admin_routes_require_token(client, method: str, path: str) -> None:
    response = client.request(method, path, json={})

    assert response.status_code == 401


def test_admin_routes_reject_invalid_token(client) -> None:
    response = client.get("/admin/runs", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


def test_admin_review_flow(client, admin_headers, png) -> None:
    evidence = png(11)
    entry_id = _submit(client, evidence).json()["entry_id"]

    response = client.patch(
        f"/admin/runs/{entry_id}/status",
        json={"status": "rejected", "rejection_reason": "Screenshot is cropped"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["reviewed_by"] == "5568"

    rejected = client.get("/admin/runs", params={"status": "rejected"}, headers=admin_headers)
    assert [run["id"] for run in rejected.json()] == [entry_id]

    image = client.get(f"/admin/runs/{entry_id}/evidence", headers=admin_headers)
    assert image.status_code == 200
    assert image.content == evidence
    assert image.headers["content-type"] == "image/png"

    state = client.get("/runs/daily-state", params={"service_number": "1234"}).json()
    assert state["count"] == 0


def test_admin_edit_and_delete(client, admin_headers, png) -> None:
    entry_id = _submit(client, png()).json()["entry_id"]

    edited = client.put(f"/admin/runs/{entry_id}", json={"distance_km": "11.50"}, headers=admin_headers)
    assert edited.status_code == 200
    assert Decimal(edited.json()["distance_km"]) == Decimal("11.50")

    assert client.delete(f"/admin/runs/{entry_id}", headers=admin_headers).status_code == 204
    assert client.delete(f"/admin/runs/{entry_id}", headers=admin_headers).status_code == 404


def test_admin_roster_management(client, admin_headers) -> None:
    created = client.post(
        "/admin/roster",
        json={"service_number": "c-77", "name": "Mariyam Ali", "station": "Fuvahmulah"},
        headers=admin_headers,
    )
    assert created.status_code == 201
    member = created.json()
    assert member["service_number"] == "C77"
    assert "admin_password_hash" not in member

    duplicate = client.post(
        "/admin/roster",
        json={"service_number": "C77", "name": "Someone Else", "station": "Male"},
        headers=admin_headers,
    )
    assert duplicate.status_code == 409

    promoted = client.put(f"/admin/roster/{member['id']}/admin", json={"is_admin": True, "password": "new-admin-pass"}, headers=admin_headers)
    assert promoted.json()["is_admin"] is True

    login = client.post("/auth/admin/login", json={"service_number": "C77", "password": "new-admin-pass"})
    assert login.status_code == 200

    assert client.delete(f"/admin/roster/{member['id']}", headers=admin_headers).status_code == 204
    assert client.get(f"/admin/roster/{member['id']}", headers=admin_headers).status_code == 404
