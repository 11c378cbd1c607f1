from datetime import datetime
from typing import Optional

import pytz
from fastapi import APIRouter, Depends

from ..auth.security import get_current_user
from ..baas.client import get_baas
from ..baas.provider import BaaSProvider
from ..config import settings
from ..errors import surface_errors, validation_error
from ..schemas.catalog import ServiceIn
from ..services.catalog import build_service, list_queries, validate


router = APIRouter(prefix="/services", tags=["services"])


def _now_iso() -> str:
    return datetime.now(pytz.UTC).isoformat(timespec="milliseconds")


@router.get("")
def list_services(
    type: Optional[str] = None,
    available: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = 0,
    page_size: int = 10,
    baas: BaaSProvider = Depends(get_baas),
    _=Depends(get_current_user),
):
    queries = list_queries(service_type=type, available=available, search=search, page=page, page_size=page_size)
    with surface_errors("Error fetching services"):
        return baas.list_documents(settings.services_collection_id, queries)


@router.get("/{service_id}")
def get_service(service_id: str, baas: BaaSProvider = Depends(get_baas), _=Depends(get_current_user)):
    with surface_errors("Service not found", service_id=service_id):
        return baas.get_document(settings.services_collection_id, service_id)


@router.post("", status_code=201)
def create_service(payload: ServiceIn, baas: BaaSProvider = Depends(get_baas), _=Depends(get_current_user)):
    errors = validate(payload.model_dump())
    if errors:
        raise validation_error(errors)
    data = build_service(payload.model_dump())
    now = _now_iso()
    data["createdAt"] = now
    data["updatedAt"] = now
    with surface_errors("Error saving service"):
        return baas.create_document(settings.services_collection_id, data)


@router.put("/{service_id}")
def update_service(
    service_id: str,
    payload: ServiceIn,
    baas: BaaSProvider = Depends(get_baas),
    _=Depends(get_current_user),
):
    errors = validate(payload.model_dump())
    if errors:
        raise validation_error(errors)
    data = build_service(payload.model_dump())
    data["updatedAt"] = _now_iso()
    with surface_errors("Error saving service", service_id=service_id):
        return baas.update_document(settings.services_collection_id, service_id, data)


@router.delete("/{service_id}")
def delete_service(service_id: str, baas: BaaSProvider = Depends(get_baas), _=Depends(get_current_user)):
    with surface_errors("Error deleting service", service_id=service_id):
        baas.delete_document(settings.services_collection_id, service_id)
    return {"status": "ok"}
