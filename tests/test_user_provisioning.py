import json

import pytest

from housing_admin.config import settings
from housing_admin.services import user_provisioning as provisioning

from conftest import make_user


NEW_USER = {
    "name": "Front Desk",
    "email": "desk@example.com",
    "phone": "+96892222222",
    "role": "staff",
    "password": "longenough",
    "confirmPassword": "longenough",
}


def test_validate():
    errors = provisioning.validate({"email": "nope", "phone": "9999", "role": "student", "password": "short"}, creating=True)
    assert errors["name"] == "Name is required"
    assert errors["email"] == "Email is invalid"
    assert errors["phone"] == "Phone must start with a country code (+)"
    assert errors["role"] == "Invalid role"
    assert errors["password"] == "Password must be at least 8 characters"
    assert errors["confirmPassword"] == "Passwords do not match"

    # Passwords are not asked for on update
    assert provisioning.validate({k: v for k, v in NEW_USER.items() if "assword" not in k}, creating=False) == {}


@pytest.mark.parametrize("email", ["a b@c.d x", "<x>@y.z", "desk@", "@example.com"])
def test_validate_rejects_malformed_email(email):
    errors = provisioning.validate(dict(NEW_USER, email=email), creating=True)
    assert errors == {"email": "Email is invalid"}


def test_create_user_writes_profile_and_sends_reset(baas):
    user = provisioning.create_user(baas, NEW_USER, actor_id="admin1")

    stored = baas.get_document(settings.users_collection_id, user["$id"])
    assert stored["role"] == "staff"
    assert stored["createdBy"] == "admin1"
    assert "password" not in stored
    assert baas.recoveries[-1]["email"] == "desk@example.com"
    assert baas.recoveries[-1]["url"] == settings.password_reset_url


def test_failed_function_writes_nothing(baas):
    make_user(baas, role="staff", email="desk@example.com")
    before = baas.list_documents(settings.users_collection_id)["total"]

    with pytest.raises(provisioning.ProvisioningError) as exc:
        provisioning.create_user(baas, NEW_USER, actor_id="admin1")
    assert "already exists" in str(exc.value)
    assert baas.list_documents(settings.users_collection_id)["total"] == before
    assert baas.recoveries == []


def test_run_function_rejects_bad_envelopes(baas):
    baas.register_function("broken", lambda provider, payload: {"success": False})
    with pytest.raises(provisioning.ProvisioningError):
        provisioning.run_function(baas, "broken", {})

    baas.register_function("echo", lambda provider, payload: {"success": True, "got": payload})
    assert provisioning.run_function(baas, "echo", {"a": 1})["got"] == {"a": 1}


def test_run_function_checks_execution_status():
    class Stub:
        def execute_function(self, function_id, body):
            assert json.loads(json.loads(body)["body"]) == {"userId": "u1"}
            return {"status": "failed", "responseBody": ""}

    with pytest.raises(provisioning.ProvisioningError) as exc:
        provisioning.run_function(Stub(), "fn", {"userId": "u1"})
    assert "failed" in str(exc.value)


def test_update_and_delete(baas):
    user = make_user(baas, role="staff", name="Old Name")
    data = dict(NEW_USER, name="New Name", isActive=False)
    updated = provisioning.update_user(baas, user["$id"], data, actor_id="admin1")
    assert updated["name"] == "New Name"
    assert updated["isActive"] is False
    assert updated["updatedBy"] == "admin1"

    provisioning.delete_user(baas, user["$id"], actor_id="admin1")
    deleted = baas.get_document(settings.users_collection_id, user["$id"])
    assert deleted["isDeleted"] is True
    assert deleted["deletedBy"] == "admin1"


def test_role_analytics(baas):
    make_user(baas, role="staff")
    make_user(baas, role="staff", isActive=False)
    make_user(baas, role="admin")
    make_user(baas, role="service", isDeleted=True)
    analytics = provisioning.role_analytics(baas)
    assert analytics["staff"] == {"total": 2, "active": 1, "inactive": 1}
    assert analytics["admin"]["total"] == 1
    assert "service" not in analytics
