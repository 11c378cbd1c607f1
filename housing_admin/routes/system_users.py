from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException

from ..auth.security import require_roles
from ..baas.client import get_baas
from ..baas.provider import BaaSProvider
from ..config import settings
from ..errors import surface_errors, validation_error
from ..schemas.users import SystemUserIn
from ..services import user_provisioning as provisioning


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/system-users", tags=["system-users"])


def _failed(message: str, e: provisioning.ProvisioningError) -> HTTPException:
    logger.warning("user_function_failed", reason=message, error=str(e))
    return HTTPException(status_code=400, detail=f"{message}: {e}")


@router.get("")
def list_users(
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = 0,
    page_size: int = 10,
    baas: BaaSProvider = Depends(get_baas),
    _=Depends(require_roles("admin")),
):
    queries = provisioning.list_queries(role=role, is_active=is_active, search=search, page=page, page_size=page_size)
    with surface_errors("Error fetching system users"):
        return baas.list_documents(settings.users_collection_id, queries)


@router.get("/analytics")
def get_role_analytics(baas: BaaSProvider = Depends(get_baas), _=Depends(require_roles("admin"))):
    with surface_errors("Failed to fetch user roles"):
        analytics = provisioning.role_analytics(baas)
    return {"roles": sorted(analytics), "analytics": analytics}


@router.post("", status_code=201)
def create_user(
    payload: SystemUserIn,
    baas: BaaSProvider = Depends(get_baas),
    admin: Dict[str, Any] = Depends(require_roles("admin")),
):
    data = payload.model_dump()
    errors = provisioning.validate(data, creating=True)
    if errors:
        raise validation_error(errors)
    try:
        with surface_errors("Error creating user"):
            return provisioning.create_user(baas, data, actor_id=admin["$id"])
    except provisioning.ProvisioningError as e:
        raise _failed("Failed to create user", e) from e


@router.put("/{user_id}")
def update_user(
    user_id: str,
    payload: SystemUserIn,
    baas: BaaSProvider = Depends(get_baas),
    admin: Dict[str, Any] = Depends(require_roles("admin")),
):
    data = payload.model_dump()
    errors = provisioning.validate(data, creating=False)
    if errors:
        raise validation_error(errors)
    try:
        with surface_errors("Error updating user", user_id=user_id):
            return provisioning.update_user(baas, user_id, data, actor_id=admin["$id"])
    except provisioning.ProvisioningError as e:
        raise _failed("Failed to update user", e) from e


@router.delete("/{user_id}")
def delete_user(
    user_id: str,
    baas: BaaSProvider = Depends(get_baas),
    admin: Dict[str, Any] = Depends(require_roles("admin")),
):
    if user_id == admin["$id"]:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    try:
        with surface_errors("Error deleting user", user_id=user_id):
            provisioning.delete_user(baas, user_id, actor_id=admin["$id"])
    except provisioning.ProvisioningError as e:
        raise _failed("Failed to delete user", e) from e
    return {"status": "ok"}
