import io

from PIL import Image

from housing_admin.config import settings

from conftest import make_user


def _png(size=(1600, 800)):
    buffer = io.BytesIO()
    Image.new("RGBA", size, (200, 10, 10, 128)).save(buffer, format="PNG")
    return buffer.getvalue()


def test_upload_then_attach_images(client, baas, auth_headers):
    files = [("files", (f"photo{i}.png", _png(), "image/png")) for i in range(2)]
    r = client.post("/files/images", files=files, headers=auth_headers)
    assert r.status_code == 200
    images = r.json()["images"]
    assert len(images) == 2

    # Stored as downscaled JPEG and served back by the local provider
    served = client.get(images[0]["url"].replace(settings.public_base_url, ""))
    assert served.status_code == 200
    assert Image.open(io.BytesIO(served.content)).size == (1024, 512)

    student = make_user(baas, name="Omar")
    r = client.post("/compliance", json={
        "title": "Broken window",
        "description": "Cracked pane in 101",
        "priority": "high",
        "paidBy": "student",
        "paidByUserId": student["$id"],
        "workCost": "20",
        "toolsCost": 5.5,
        "imageUrls": images,
    }, headers=auth_headers)
    assert r.status_code == 201
    record = r.json()
    assert record["totalCost"] == 25.5
    assert record["paidByUserName"] == "Omar"
    assert record["reportedByName"] == "Test Admin"
    assert [i["id"] for i in record["imageUrls"]] == [i["id"] for i in images]


def test_too_many_images(client, auth_headers):
    files = [("files", (f"p{i}.png", _png((10, 10)), "image/png")) for i in range(6)]
    assert client.post("/files/images", files=files, headers=auth_headers).status_code == 422


def test_unreadable_image(client, auth_headers):
    files = [("files", ("notes.png", b"not an image", "image/png"))]
    assert client.post("/files/images", files=files, headers=auth_headers).status_code == 422


def test_student_payer_required(client, auth_headers):
    r = client.post("/compliance", json={"title": "Leak", "description": "Sink", "paidBy": "student"}, headers=auth_headers)
    assert r.status_code == 422
    assert "paidByUserId" in r.json()["detail"]["errors"]


def test_list_stats_and_delete(client, baas, auth_headers):
    for title, status in [("Lamp", "pending"), ("Door", "completed")]:
        client.post("/compliance", json={"title": title, "description": "x", "status": status, "workCost": 10}, headers=auth_headers)

    listing = client.get("/compliance", params={"status": "completed"}, headers=auth_headers).json()
    assert listing["total"] == 1
    assert listing["documents"][0]["completedDate"]
    assert listing["stats"]["total"] == 2
    assert listing["stats"]["totalCost"] == 20

    record_id = listing["documents"][0]["$id"]
    assert client.delete(f"/compliance/{record_id}", headers=auth_headers).status_code == 200
    assert client.get(f"/compliance/{record_id}", headers=auth_headers).status_code == 404


def test_update_keeps_reporter(client, baas, auth_headers):
    created = client.post("/compliance", json={"title": "Lamp", "description": "x"}, headers=auth_headers).json()
    r = client.put(f"/compliance/{created['$id']}", json={"title": "Lamp", "description": "y", "status": "in_progress"}, headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["reportedByName"] == "Test Admin"
    assert r.json()["description"] == "y"


def test_non_finite_costs_count_as_zero(client, auth_headers):
    r = client.post("/compliance", json={"title": "Lamp", "description": "x", "workCost": "nan", "toolsCost": "inf"}, headers=auth_headers)
    assert r.status_code == 201
    assert r.json()["totalCost"] == 0
    assert r.json()["workCost"] == 0

    listing = client.get("/compliance", headers=auth_headers)
    assert listing.status_code == 200
    assert listing.json()["stats"]["totalCost"] == 0


def test_total_cost_follows_cost_edits(client, auth_headers):
    body = {"title": "Door", "description": "Hinge", "workCost": 10, "toolsCost": 4}
    created = client.post("/compliance", json=body, headers=auth_headers).json()
    assert created["totalCost"] == 14

    r = client.put(f"/compliance/{created['$id']}", json=dict(body, toolsCost="6.5"), headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["totalCost"] == 16.5
    assert client.get(f"/compliance/{created['$id']}", headers=auth_headers).json()["totalCost"] == 16.5


def test_unknown_payer_is_refused(client, auth_headers):
    r = client.post("/compliance", json={"title": "Leak", "description": "Sink", "paidBy": "bogus"}, headers=auth_headers)
    assert r.status_code == 422
    assert r.json()["detail"]["errors"] == {"paidBy": "Invalid payer"}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok", "provider": "local"}
