from datetime import datetime, timedelta

import pytz

from housing_admin.config import settings
from housing_admin.services import dashboard

from conftest import make_contract, make_room, make_user


NOW = datetime(2025, 6, 15, 8, 0, tzinfo=pytz.UTC)


def test_month_buckets_cover_twelve_months():
    spans = dashboard.buckets("month", NOW, "Asia/Muscat")
    assert len(spans) == 12
    assert spans[-1][2] == "Jun"
    assert spans[0][2] == "Jul"
    # Local midnight on the 1st in Muscat (UTC+4)
    assert spans[-1][0] == datetime(2025, 5, 31, 20, 0, tzinfo=pytz.UTC)
    for (_, end, _), (start, _, _) in zip(spans, spans[1:]):
        assert end == start


def test_other_bucket_shapes():
    week = dashboard.buckets("week", NOW, "UTC")
    assert len(week) == 7
    assert week[-1][2] == "Sun"

    quarter = dashboard.buckets("quarter", NOW, "UTC")
    assert [label for _, _, label in quarter] == ["Q3 2024", "Q4 2024", "Q1 2025", "Q2 2025"]

    year = dashboard.buckets("year", NOW, "UTC")
    assert [label for _, _, label in year] == ["2021", "2022", "2023", "2024", "2025"]


def test_revenue_prefers_final_amount_and_paid_date():
    spans = dashboard.buckets("year", NOW, "UTC")
    payments = [
        {"status": "paid", "amount": 100, "finalAmount": 90, "paidDate": "2025-02-01T00:00:00Z", "createdAt": "2024-12-30T00:00:00Z"},
        {"status": "paid", "amount": 50, "createdAt": "2024-06-01T00:00:00Z"},
        {"status": "pending", "amount": 500, "createdAt": "2025-01-05T00:00:00Z"},
    ]
    assert dashboard.revenue_series(payments, spans) == [0.0, 0.0, 0.0, 50.0, 90.0]


def test_occupancy_series_counts_overlapping_contracts():
    spans = dashboard.buckets("year", NOW, "UTC")
    contracts = [
        {"status": "active", "startDate": "2024-09-01", "endDate": "2025-08-31"},
        {"status": "expired", "startDate": "2024-09-01", "endDate": "2025-08-31"},
    ]
    assert dashboard.occupancy_series(contracts, 4, spans) == [0, 0, 0, 25, 25]
    assert dashboard.occupancy_series(contracts, 0, spans) == [0, 0, 0, 0, 0]


def test_time_ago():
    assert dashboard.time_ago(NOW - timedelta(seconds=20), NOW) == "Just now"
    assert dashboard.time_ago(NOW - timedelta(minutes=5), NOW) == "5 min ago"
    assert dashboard.time_ago(NOW - timedelta(hours=1), NOW) == "1 hour ago"
    assert dashboard.time_ago(NOW - timedelta(days=3), NOW) == "3 days ago"
    assert dashboard.time_ago(NOW - timedelta(days=30), NOW) == "May 16, 2025"


def test_recent_activities_mix_and_order():
    recent = {
        "payments": [
            {"$id": "p1", "amount": 120, "createdAt": "2025-06-15T07:00:00Z"},
            {"$id": "p2", "amount": 80, "finalAmount": 75.5, "createdAt": "2025-06-10T07:00:00Z"},
            {"$id": "p3", "amount": 10, "createdAt": "2025-06-01T07:00:00Z"},
        ],
        "contracts": [{"$id": "c1", "studentName": "Omar", "createdAt": "2025-06-14T07:00:00Z"}],
        "foodOrders": [{"$id": "f1", "totalAmount": 4.5, "createdAt": "2025-06-15T07:55:00Z"}],
        "checkoutRequests": [],
    }
    activities = dashboard.recent_activities(recent, NOW)
    assert [a["id"] for a in activities] == ["food_f1", "payment_p1", "contract_c1", "payment_p2"]
    assert activities[1]["description"] == "Payment of OMR 120 received"
    assert activities[3]["description"] == "Payment of OMR 75.5 received"
    assert activities[2]["description"] == "Omar signed a new contract"
    assert activities[0]["time"] == "5 min ago"


def test_load_dashboard_end_to_end(baas):
    student = make_user(baas)
    make_user(baas, name="Another student")
    full = make_room(baas, roomNumber="101", capacity=1)
    partial = make_room(baas, roomNumber="102", capacity=2)
    make_room(baas, roomNumber="103", capacity=2, status="maintenance")
    make_room(baas, roomNumber="104", capacity=1, isDeleted=True)
    make_contract(baas, student["$id"], [full["$id"]], createdAt="2025-06-01T00:00:00Z")
    make_contract(baas, student["$id"], [partial["$id"]], createdAt="2025-06-02T00:00:00Z")

    c = settings.collections
    baas.create_document(c["payments"], {"status": "paid", "amount": 100, "createdAt": "2025-06-10T00:00:00Z"})
    baas.create_document(c["payments"], {"status": "pending", "amount": 100, "createdAt": "2025-06-11T00:00:00Z"})
    baas.create_document(c["payments"], {"status": "failed", "amount": 100, "createdAt": "2025-06-12T00:00:00Z"})
    baas.create_document(c["checkoutRequests"], {"status": "pending", "createdAt": "2025-06-13T00:00:00Z"})

    result = dashboard.load_dashboard(baas, "month", NOW)
    stats = result["stats"]
    assert stats["totalStudents"] == 2
    assert stats["totalCapacity"] == 5
    assert stats["occupiedCapacity"] == 2
    assert stats["occupancyRate"] == 40
    assert stats["fullRooms"] == 1
    assert stats["remainingSpaceRooms"] == 1
    assert stats["maintenanceRooms"] == 1
    assert stats["availableRooms"] == 1
    assert stats["totalRevenue"] == 100
    assert stats["pendingPayments"] == 1
    assert stats["activeCheckoutRequests"] == 1
    assert result["charts"]["paymentStatus"] == {"paid": 1, "pending": 1, "failed": 1}
    assert result["charts"]["revenue"][-1] == 100
    # Two payments, two contracts, one checkout request
    assert len(result["recentActivities"]) == 5


def test_dashboard_endpoint(client, auth_headers):
    r = client.get("/dashboard", params={"time_range": "week"}, headers=auth_headers)
    assert r.status_code == 200
    assert len(r.json()["charts"]["labels"]) == 7
    assert client.get("/dashboard", params={"time_range": "decade"}, headers=auth_headers).status_code == 422
