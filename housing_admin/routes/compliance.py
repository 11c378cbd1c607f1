from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends

from ..auth.security import get_current_user
from ..baas.client import get_baas
from ..baas.provider import BaaSProvider
from ..baas.query import Query
from ..config import settings
from ..errors import surface_errors, validation_error
from ..schemas.compliance import ComplianceIn
from ..services import compliance as tickets


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/compliance", tags=["compliance"])


def _normalized(record: Dict[str, Any], baas: BaaSProvider) -> Dict[str, Any]:
    out = dict(record)
    out["imageUrls"] = tickets.normalize_image_urls(record.get("imageUrls"), baas.file_view_url)
    return out


def _prepare(payload: ComplianceIn, baas: BaaSProvider) -> Dict[str, Any]:
    data = payload.model_dump()
    images = tickets.normalize_image_urls(data.get("imageUrls"), baas.file_view_url)
    errors = tickets.validate(data, image_count=len(images))
    if errors:
        raise validation_error(errors)

    with surface_errors("Failed to load users"):
        data["assignedToName"] = tickets.resolve_user_name(baas, data.get("assignedTo"))
        if data.get("paidBy") == "student":
            data["paidByUserName"] = tickets.resolve_user_name(baas, data.get("paidByUserId"))
    data["images"] = images
    return data


@router.get("")
def list_records(
    search: Optional[str] = None,
    priority: Optional[str] = None,
    status: Optional[str] = None,
    baas: BaaSProvider = Depends(get_baas),
    _=Depends(get_current_user),
):
    with surface_errors("Error fetching compliance records"):
        response = baas.list_documents(settings.compliance_collection_id, [
            Query.order_desc("$createdAt"),
            Query.limit(100),
        ])
    records = [_normalized(r, baas) for r in response.get("documents") or []]
    filtered = tickets.filter_records(records, search=search, priority=priority, status=status)
    return {
        "total": len(filtered),
        "documents": filtered,
        "stats": tickets.stats(records),
    }


@router.get("/{record_id}")
def get_record(record_id: str, baas: BaaSProvider = Depends(get_baas), _=Depends(get_current_user)):
    with surface_errors("Compliance record not found", record_id=record_id):
        return _normalized(baas.get_document(settings.compliance_collection_id, record_id), baas)


@router.post("", status_code=201)
def create_record(
    payload: ComplianceIn,
    baas: BaaSProvider = Depends(get_baas),
    user: Dict[str, Any] = Depends(get_current_user),
):
    data = _prepare(payload, baas)
    record = tickets.build_record(data, reporter=user, images=data["images"])
    with surface_errors("Error saving compliance record"):
        created = baas.create_document(settings.compliance_collection_id, record)
    logger.info("compliance_record_created", record_id=created["$id"], priority=record["priority"])
    return _normalized(created, baas)


@router.put("/{record_id}")
def update_record(
    record_id: str,
    payload: ComplianceIn,
    baas: BaaSProvider = Depends(get_baas),
    user: Dict[str, Any] = Depends(get_current_user),
):
    with surface_errors("Compliance record not found", record_id=record_id):
        previous = baas.get_document(settings.compliance_collection_id, record_id)
    data = _prepare(payload, baas)
    record = tickets.build_record(data, reporter=user, images=data["images"], previous=previous)
    with surface_errors("Error saving compliance record", record_id=record_id):
        updated = baas.update_document(settings.compliance_collection_id, record_id, record)
    return _normalized(updated, baas)


@router.delete("/{record_id}")
def delete_record(record_id: str, baas: BaaSProvider = Depends(get_baas), _=Depends(get_current_user)):
    with surface_errors("Error deleting compliance record", record_id=record_id):
        baas.delete_document(settings.compliance_collection_id, record_id)
    logger.info("compliance_record_deleted", record_id=record_id)
    return {"status": "ok"}
