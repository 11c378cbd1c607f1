from housing_admin.config import settings

from conftest import make_contract, make_room, make_user


ROOM_BODY = {
    "roomNumber": "301",
    "building": "C",
    "floor": 3,
    "type": "double",
    "capacity": 2,
    "rentAmount": 180,
}


def test_requires_authentication(client):
    assert client.get("/rooms").status_code == 401
    assert client.get("/rooms", headers={"Authorization": "Bearer junk"}).status_code == 401


def test_students_cannot_use_the_console(client, baas):
    student = make_user(baas)
    token = baas.issue_token(student["$id"])
    assert client.get("/rooms", headers={"Authorization": f"Bearer {token}"}).status_code == 403


def test_inactive_staff_is_rejected(client, baas):
    staff = make_user(baas, role="staff", isActive=False)
    token = baas.issue_token(staff["$id"])
    assert client.get("/rooms", headers={"Authorization": f"Bearer {token}"}).status_code == 401


def test_create_and_list_with_derived_status(client, baas, auth_headers):
    r = client.post("/rooms", json=dict(ROOM_BODY, status="full"), headers=auth_headers)
    assert r.status_code == 201
    room = r.json()
    assert room["status"] == "not_occupied"
    assert room["storedStatus"] is None

    student = make_user(baas)
    make_contract(baas, student["$id"], [room["$id"]])

    listing = client.get("/rooms", headers=auth_headers).json()
    assert listing["total"] == 1
    assert listing["documents"][0]["status"] == "remaining_space"
    assert listing["stats"]["remaining_space"] == 1

    filtered = client.get("/rooms", params={"status": "full"}, headers=auth_headers).json()
    assert filtered["total"] == 0


def test_create_validation_errors(client, auth_headers):
    r = client.post("/rooms", json={"roomNumber": "", "capacity": 0}, headers=auth_headers)
    assert r.status_code == 422
    assert "roomNumber" in r.json()["detail"]["errors"]


def test_non_finite_numbers_are_validation_errors(client, auth_headers):
    r = client.post("/rooms", json=dict(ROOM_BODY, capacity="nan"), headers=auth_headers)
    assert r.status_code == 422
    assert "capacity" in r.json()["detail"]["errors"]

    r = client.post("/rooms", json=dict(ROOM_BODY, rentAmount="nan"), headers=auth_headers)
    assert r.status_code == 422
    assert "rentAmount" in r.json()["detail"]["errors"]

    r = client.post("/rooms", json=dict(ROOM_BODY, capacity="inf"), headers=auth_headers)
    assert r.status_code == 422
    assert client.get("/rooms", headers=auth_headers).json()["total"] == 0


def test_delete_refused_with_active_contract(client, baas, auth_headers):
    room = make_room(baas)
    make_contract(baas, "student-1", [room["$id"]])

    r = client.delete(f"/rooms/{room['$id']}", headers=auth_headers)
    assert r.status_code == 409
    assert r.json()["detail"] == "Room has 1 active contract and cannot be deleted."
    assert baas.get_document(settings.rooms_collection_id, room["$id"]).get("isDeleted") is False


def test_delete_is_soft(client, baas, auth_headers, admin):
    room = make_room(baas)
    r = client.delete(f"/rooms/{room['$id']}", headers=auth_headers)
    assert r.status_code == 200

    stored = baas.get_document(settings.rooms_collection_id, room["$id"])
    assert stored["isDeleted"] is True
    assert stored["deletedBy"] == admin["$id"]
    assert client.get(f"/rooms/{room['$id']}", headers=auth_headers).status_code == 404
    assert client.get("/rooms", headers=auth_headers).json()["total"] == 0


def test_maintenance_refused_while_occupied(client, baas, auth_headers):
    room = make_room(baas, roomNumber="301", building="C", floor=3)
    make_contract(baas, "student-1", [room["$id"]])

    r = client.put(f"/rooms/{room['$id']}", json=dict(ROOM_BODY, status="maintenance"), headers=auth_headers)
    assert r.status_code == 409

    empty = make_room(baas, roomNumber="302")
    r = client.put(f"/rooms/{empty['$id']}", json=dict(ROOM_BODY, status="maintenance"), headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "maintenance"


def test_history_merges_sources(client, baas, auth_headers):
    room = make_room(baas)
    student = make_user(baas, name="Maryam")
    contract = make_contract(baas, student["$id"], [room["$id"]], createdAt="2025-01-01T00:00:00Z")
    baas.create_document(settings.payments_collection_id, {
        "contractId": contract["$id"], "status": "paid", "amount": 150, "createdAt": "2025-01-05T00:00:00Z",
    })
    baas.create_document(settings.food_orders_collection_id, {
        "roomId": room["$id"], "totalAmount": 3, "status": "delivered", "createdAt": "2025-01-07T00:00:00Z",
    })

    items = client.get(f"/rooms/{room['$id']}/history", headers=auth_headers).json()["items"]
    assert sorted(i["type"] for i in items) == ["contract", "food", "payment"]
    by_type = {i["type"]: i for i in items}
    assert by_type["contract"]["details"] == "Maryam - Lease active"
    assert by_type["payment"]["details"].startswith("OMR 150.000")
    created = [i["$createdAt"] for i in items]
    assert created == sorted(created, reverse=True)


def test_qr_code_png(client, baas, auth_headers):
    room = make_room(baas)
    r = client.get(f"/rooms/{room['$id']}/qr", headers=auth_headers)
    assert r.status_code == 200
    assert r.headers["content-type"] == "image/png"
    assert r.content.startswith(b"\x89PNG")
