"""
Seed the local backend with a small housing complex and print an admin token.

Usage:
    python scripts/seed_local_data.py [--reset]

Only works against the local provider (DATABASE_URL / LOCAL_STORAGE_DIR).
"""
import argparse
import os
import sys
from datetime import datetime, timedelta

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
os.environ.setdefault("BAAS_PROVIDER", "local")

import pytz  # noqa: E402

from housing_admin.baas.local_provider import LocalProvider  # noqa: E402
from housing_admin.config import settings  # noqa: E402
from housing_admin.db import SessionLocal  # noqa: E402
from housing_admin.models.models import StoredDocument  # noqa: E402
from housing_admin.services.checkout import build_request  # noqa: E402


def _iso(dt: datetime) -> str:
    return dt.isoformat(timespec="milliseconds")


def reset() -> None:
    db = SessionLocal()
    try:
        deleted = db.query(StoredDocument).delete()
        db.commit()
        print(f"Removed {deleted} documents")
    finally:
        db.close()


def seed(baas: LocalProvider) -> str:
    c = settings.collections
    now = datetime.now(pytz.UTC)

    admin = baas.create_document(c["users"], {
        "name": "Local Admin",
        "email": "admin@example.com",
        "phone": "+96890000000",
        "role": "admin",
        "isActive": True,
        "isDeleted": False,
        "createdAt": _iso(now),
    })

    students = []
    for i, name in enumerate(["Aisha Al-Harthy", "Omar Al-Balushi", "Maryam Al-Rashdi"], start=1):
        students.append(baas.create_document(c["users"], {
            "name": name,
            "email": f"student{i}@example.com",
            "phone": f"+9689100000{i}",
            "role": "student",
            "isActive": True,
            "isDeleted": False,
            "createdAt": _iso(now),
        }))

    rooms = []
    for number, building, floor, room_type, capacity, rent in [
        ("101", "A", 1, "single", 1, 120),
        ("102", "A", 1, "double", 2, 180),
        ("201", "B", 2, "suite", 3, 300),
        ("202", "B", 2, "double", 2, 180),
    ]:
        rooms.append(baas.create_document(c["rooms"], {
            "roomNumber": number,
            "building": building,
            "floor": floor,
            "type": room_type,
            "capacity": capacity,
            "rentAmount": rent,
            "status": "maintenance" if number == "202" else None,
            "isDeleted": False,
            "createdAt": _iso(now),
            "updatedAt": _iso(now),
            "createdBy": admin["$id"],
        }))

    contracts = []
    for student, room in [(students[0], rooms[0]), (students[1], rooms[1]), (students[2], rooms[2])]:
        contracts.append(baas.create_document(c["contracts"], {
            "userId": student["$id"],
            "studentName": student["name"],
            "roomIds": [room["$id"]],
            "status": "active",
            "startDate": _iso(now - timedelta(days=60)),
            "endDate": _iso(now + timedelta(days=300)),
            "createdAt": _iso(now - timedelta(days=60)),
        }))

    for i, contract in enumerate(contracts):
        baas.create_document(c["payments"], {
            "contractId": contract["$id"],
            "status": "paid" if i < 2 else "pending",
            "amount": 180,
            "finalAmount": 170 if i == 0 else None,
            "paidDate": _iso(now - timedelta(days=10 * (i + 1))) if i < 2 else None,
            "paymentType": "rent",
            "paymentMethod": "card",
            "createdAt": _iso(now - timedelta(days=10 * (i + 1))),
        })

    service = baas.create_document(c["services"], {
        "nameEn": "Deep Cleaning",
        "nameAr": "تنظيف عميق",
        "descriptionEn": "Full room cleaning",
        "descriptionAr": "تنظيف كامل للغرفة",
        "type": "cleaning",
        "price": 15,
        "duration": 2,
        "isAvailable": True,
        "createdAt": _iso(now),
    })
    baas.create_document(c["serviceOrders"], {
        "roomId": rooms[1]["$id"],
        "serviceId": service["$id"],
        "status": "completed",
        "totalAmount": 15,
        "createdAt": _iso(now - timedelta(days=3)),
    })
    baas.create_document(c["foodOrders"], {
        "roomId": rooms[0]["$id"],
        "totalAmount": 4.5,
        "status": "delivered",
        "createdAt": _iso(now - timedelta(hours=5)),
    })

    baas.create_document(c["checkoutRequests"], build_request({
        "userId": students[0]["$id"],
        "startDate": _iso(now + timedelta(days=2)),
        "endDate": _iso(now + timedelta(days=5)),
        "reason": "Family visit",
        "accompaniedBy": "",
    }, now))

    print(f"Seeded {len(students)} students, {len(rooms)} rooms, {len(contracts)} contracts")
    return baas.issue_token(admin["$id"], admin["email"], admin["name"])


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the local backend")
    parser.add_argument("--reset", action="store_true", help="Remove existing documents first")
    args = parser.parse_args()

    if settings.baas_provider != "local":
        print("ERROR: BAAS_PROVIDER must be 'local' to seed data")
        sys.exit(1)

    baas = LocalProvider()
    if args.reset:
        reset()
    token = seed(baas)
    print("Admin token (send as 'Authorization: Bearer <token>'):")
    print(token)


if __name__ == "__main__":
    main()
