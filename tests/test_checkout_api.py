from datetime import datetime, timedelta

import pytz

from housing_admin.config import settings

from conftest import make_contract, make_room, make_user


def _create(client, auth_headers, user_id, **overrides):
    body = {
        "userId": user_id,
        "startDate": "2025-01-10",
        "endDate": "2025-01-15",
        "reason": "Family visit",
    }
    body.update(overrides)
    return client.post("/checkout-requests", json=body, headers=auth_headers)


def test_create_and_read_back(client, baas, auth_headers):
    student = make_user(baas, name="Aisha", email="aisha@example.com")
    r = _create(client, auth_headers, student["$id"])
    assert r.status_code == 201
    created = r.json()
    assert created["status"] == "pending"
    assert created["durationDays"] == 5
    assert created["requestId"].startswith("CR")

    fetched = client.get(f"/checkout-requests/{created['$id']}", headers=auth_headers).json()
    assert fetched["studentName"] == "Aisha"
    assert fetched["studentEmail"] == "aisha@example.com"


def test_create_rejects_inverted_dates(client, baas, auth_headers):
    r = _create(client, auth_headers, "u1", startDate="2025-01-15", endDate="2025-01-10")
    assert r.status_code == 422
    assert "dateRange" in r.json()["detail"]["errors"]


def test_reject_needs_a_reason(client, baas, auth_headers):
    student = make_user(baas)
    request_id = _create(client, auth_headers, student["$id"]).json()["$id"]

    r = client.post(f"/checkout-requests/{request_id}/reject", json={"reason": ""}, headers=auth_headers)
    assert r.status_code == 422
    assert baas.get_document(settings.checkout_requests_collection_id, request_id)["status"] == "pending"

    r = client.post(f"/checkout-requests/{request_id}/reject", json={"reason": "schedule conflict"}, headers=auth_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "rejected"
    assert body["actionNotes"] == "schedule conflict"
    assert body["actionBy"] == "Test Admin"
    assert body["actionAt"]


def test_approve_complete_and_status_change(client, baas, auth_headers):
    student = make_user(baas)
    request_id = _create(client, auth_headers, student["$id"]).json()["$id"]

    approved = client.post(f"/checkout-requests/{request_id}/approve", json={}, headers=auth_headers).json()
    assert approved["status"] == "approved"
    assert approved["actionNotes"] == ""

    completed = client.post(f"/checkout-requests/{request_id}/complete", headers=auth_headers).json()
    assert completed["actionNotes"] == "Marked as completed by admin"

    r = client.post(f"/checkout-requests/{request_id}/status", json={"status": "pending"}, headers=auth_headers)
    assert r.json()["actionNotes"] == "Status changed back to pending by admin"

    r = client.post(f"/checkout-requests/{request_id}/status", json={"status": "archived"}, headers=auth_headers)
    assert r.status_code == 422


def test_unknown_request_is_404(client, auth_headers):
    r = client.post("/checkout-requests/nope/approve", json={}, headers=auth_headers)
    assert r.status_code == 404


def test_listing_sweeps_expired_approvals(client, baas, auth_headers):
    past = (datetime.now(pytz.UTC) - timedelta(days=1)).isoformat()
    expired = baas.create_document(settings.checkout_requests_collection_id, {
        "requestId": "CR1", "userId": "u1", "status": "approved", "reason": "Trip",
        "startDate": "2025-01-01T00:00:00Z", "endDate": past, "createdAt": "2025-01-01T00:00:00Z",
    })

    listing = client.get("/checkout-requests", params={"status": "completed"}, headers=auth_headers).json()
    assert listing["total"] == 1
    assert listing["documents"][0]["$id"] == expired["$id"]
    assert listing["documents"][0]["actionBy"] == "System"


def test_student_details(client, baas, auth_headers):
    student = make_user(baas, name="Omar")
    room = make_room(baas, roomNumber="205")
    make_contract(baas, student["$id"], [room["$id"]])
    make_contract(baas, student["$id"], [], status="expired")

    students = client.get("/checkout-requests/students", headers=auth_headers).json()
    assert [s["name"] for s in students["documents"]] == ["Omar"]

    details = client.get(f"/checkout-requests/students/{student['$id']}", headers=auth_headers).json()
    assert details["hasActiveContract"] is True
    assert len(details["contracts"]) == 2
    assert [r["roomNumber"] for r in details["rooms"]] == ["205"]
