"""
System user management.

Auth identities live on the hosted platform and can only be created,
changed or removed by its serverless functions. Each function takes a JSON
body wrapped in a JSON string and answers with a ``{success, message, ...}``
envelope inside the execution's ``responseBody``.
"""
import json
from datetime import datetime
from typing import Any, Dict, Optional

import pytz
import structlog
from email_validator import EmailNotValidError, validate_email

from ..baas.provider import BaaSProvider
from ..baas.query import Query
from ..config import settings


logger = structlog.get_logger(__name__)

SYSTEM_USER_ROLES = ("admin", "staff", "service", "restaurant")
MIN_PASSWORD_LENGTH = 8


class ProvisioningError(Exception):
    """A user function ran but did not do what was asked."""


def _now_iso() -> str:
    return datetime.now(pytz.UTC).isoformat(timespec="milliseconds")


def validate(data: Dict[str, Any], creating: bool) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not str(data.get("name") or "").strip():
        errors["name"] = "Name is required"

    email = str(data.get("email") or "").strip()
    if not email:
        errors["email"] = "Email is required"
    else:
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError:
            errors["email"] = "Email is invalid"

    phone = str(data.get("phone") or "").strip()
    if not phone:
        errors["phone"] = "Phone is required"
    elif not phone.startswith("+"):
        errors["phone"] = "Phone must start with a country code (+)"

    if not data.get("role"):
        errors["role"] = "Role is required"
    elif data["role"] not in SYSTEM_USER_ROLES:
        errors["role"] = "Invalid role"

    if creating:
        password = data.get("password") or ""
        if not password:
            errors["password"] = "Password is required"
        elif len(password) < MIN_PASSWORD_LENGTH:
            errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        if password != (data.get("confirmPassword") or ""):
            errors["confirmPassword"] = "Passwords do not match"
    return errors


def run_function(baas: BaaSProvider, function_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Execute a user function and unwrap its envelope. Raises ProvisioningError on failure."""
    execution = baas.execute_function(function_id, json.dumps({"body": json.dumps(payload)}))

    status = execution.get("status")
    if status != "completed":
        raise ProvisioningError(f"Function execution status: {status}")
    try:
        result = json.loads(execution.get("responseBody") or "")
    except ValueError as e:
        raise ProvisioningError("Invalid response format from function") from e
    if not isinstance(result, dict) or not result.get("success"):
        message = result.get("message") if isinstance(result, dict) else None
        raise ProvisioningError(message or "Function reported a failure")
    return result


def create_user(baas: BaaSProvider, data: Dict[str, Any], actor_id: str) -> Dict[str, Any]:
    email = data["email"].strip()
    result = run_function(baas, settings.create_user_function_id, {
        "email": email,
        "password": data["password"],
        "name": data["name"],
    })
    user_id = result.get("userId")
    if not user_id:
        raise ProvisioningError("Function did not return a user id")

    now = _now_iso()
    user = baas.create_document(settings.users_collection_id, {
        "name": data["name"],
        "email": email,
        "phone": data.get("phone") or "",
        "role": data["role"],
        "isActive": bool(data.get("isActive", True)),
        "isDeleted": False,
        "createdAt": now,
        "updatedAt": now,
        "createdBy": actor_id,
    }, document_id=user_id)
    logger.info("system_user_created", user_id=user_id, role=data["role"], created_by=actor_id)

    baas.create_recovery(email, settings.password_reset_url)
    return user


def update_user(baas: BaaSProvider, user_id: str, data: Dict[str, Any], actor_id: str) -> Dict[str, Any]:
    run_function(baas, settings.update_user_function_id, {
        "userId": user_id,
        "name": data["name"],
        "email": data["email"].strip(),
        "phone": data.get("phone") or "",
        "role": data["role"],
        "databaseId": baas.database_id,
        "collectionId": settings.users_collection_id,
        "updatedBy": actor_id,
    })
    logger.info("system_user_updated", user_id=user_id, updated_by=actor_id)
    if data.get("isActive") is not None:
        return baas.update_document(settings.users_collection_id, user_id, {"isActive": bool(data["isActive"])})
    return baas.get_document(settings.users_collection_id, user_id)


def delete_user(baas: BaaSProvider, user_id: str, actor_id: str) -> None:
    run_function(baas, settings.delete_user_function_id, {
        "userId": user_id,
        "databaseId": baas.database_id,
        "collectionId": settings.users_collection_id,
        "deletedBy": actor_id,
    })
    logger.info("system_user_deleted", user_id=user_id, deleted_by=actor_id)


def list_queries(
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = 0,
    page_size: int = 10,
):
    queries = [Query.not_equal("isDeleted", True), Query.not_equal("role", "student")]
    if role and role != "all":
        queries.append(Query.equal("role", role))
    if is_active is not None:
        queries.append(Query.equal("isActive", is_active))
    if search:
        queries.append(Query.search("name", search))
    queries += [Query.order_desc("$createdAt"), Query.limit(page_size), Query.offset(page * page_size)]
    return queries


def role_analytics(baas: BaaSProvider) -> Dict[str, Dict[str, int]]:
    users = baas.list_all(settings.users_collection_id, [
        Query.not_equal("isDeleted", True),
        Query.select(["role", "isActive", "createdAt"]),
    ])
    analytics: Dict[str, Dict[str, int]] = {}
    for user in users:
        role = user.get("role")
        if not role:
            continue
        bucket = analytics.setdefault(role, {"total": 0, "active": 0, "inactive": 0})
        bucket["total"] += 1
        if user.get("isActive") is not False:
            bucket["active"] += 1
        else:
            bucket["inactive"] += 1
    return analytics
