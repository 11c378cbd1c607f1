from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..baas.client import get_baas
from ..baas.provider import BaaSError, BaaSProvider
from ..config import settings


SYSTEM_ROLES = {"admin", "staff", "service", "restaurant"}

http_bearer = HTTPBearer(auto_error=False)


def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    baas: BaaSProvider = Depends(get_baas),
) -> Dict[str, Any]:
    """Resolve the session token to the caller's user document."""
    if creds is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        account = baas.get_account(creds.credentials)
    except BaaSError as e:
        if e.code in (401, 403):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session") from e
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Could not verify session") from e

    try:
        user = baas.get_document(settings.users_collection_id, account["$id"])
    except BaaSError as e:
        if e.code == 404:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User profile not found") from e
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Could not load user profile") from e

    if user.get("isDeleted") or user.get("isActive") is False:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not active")
    if user.get("role") not in SYSTEM_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    if not user.get("name"):
        user["name"] = account.get("name")
    return user


def require_roles(*required_roles: str):
    def _dep(user: Dict[str, Any] = Depends(get_current_user)):
        if user.get("role") not in required_roles:
            raise HTTPException(status_code=403, detail="Forbidden")
        return user

    return _dep


def actor_name(user: Dict[str, Any]) -> str:
    """Name stamped into audit fields: the display name, else the id."""
    return user.get("name") or user.get("$id") or "Unknown"
