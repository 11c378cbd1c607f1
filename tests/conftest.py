import os

os.environ.setdefault("BAAS_PROVIDER", "local")
os.environ.setdefault("CHECKOUT_SWEEP_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT", "10000/minute")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite:///./var/test.db")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from housing_admin.baas.client import get_baas  # noqa: E402
from housing_admin.baas.local_provider import LocalProvider  # noqa: E402
from housing_admin.config import settings  # noqa: E402
from housing_admin.main import app  # noqa: E402


@pytest.fixture
def baas(tmp_path):
    # File-backed so the dashboard's worker threads share one database
    engine = create_engine(
        f"sqlite:///{tmp_path / 'baas.db'}",
        future=True,
        connect_args={"check_same_thread": False},
    )
    sessions = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    provider = LocalProvider(session_factory=sessions, storage_dir=str(tmp_path / "storage"))
    yield provider
    engine.dispose()


@pytest.fixture
def admin(baas):
    return baas.create_document(settings.users_collection_id, {
        "name": "Test Admin",
        "email": "admin@example.com",
        "phone": "+96890000000",
        "role": "admin",
        "isActive": True,
        "isDeleted": False,
    })


@pytest.fixture
def auth_headers(baas, admin):
    token = baas.issue_token(admin["$id"], admin["email"], admin["name"])
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(baas):
    app.dependency_overrides[get_baas] = lambda: baas
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.pop(get_baas, None)


def make_user(baas, role="student", **fields):
    data = {
        "name": fields.pop("name", f"{role.title()} User"),
        "email": fields.pop("email", f"{role}-{len(baas.list_all(settings.users_collection_id))}@example.com"),
        "phone": "+96891111111",
        "role": role,
        "isActive": True,
        "isDeleted": False,
    }
    data.update(fields)
    return baas.create_document(settings.users_collection_id, data)


def make_room(baas, **fields):
    data = {
        "roomNumber": "101",
        "building": "A",
        "floor": 1,
        "type": "double",
        "capacity": 2,
        "rentAmount": 150,
        "status": None,
        "isDeleted": False,
    }
    data.update(fields)
    return baas.create_document(settings.rooms_collection_id, data)


def make_contract(baas, user_id, room_ids, status="active", **fields):
    data = {
        "userId": user_id,
        "studentName": fields.pop("studentName", "Student"),
        "roomIds": list(room_ids),
        "status": status,
    }
    data.update(fields)
    return baas.create_document(settings.contracts_collection_id, data)
