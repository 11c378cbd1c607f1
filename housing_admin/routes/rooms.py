from datetime import datetime
from typing import Any, Dict, List, Optional

import pytz
import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from ..auth.security import actor_name, get_current_user
from ..baas.client import get_baas
from ..baas.provider import BaaSProvider
from ..baas.query import Query
from ..config import settings
from ..errors import surface_errors, validation_error
from ..schemas.rooms import RoomIn
from ..services.images import room_qr_png
from ..services.room_history import room_history
from ..services.room_status import (
    MAINTENANCE,
    deletion_refusal,
    maintenance_refusal,
    status_counts,
    stored_status_for,
    validate_room,
    with_derived_status,
)


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/rooms", tags=["rooms"])


def _now_iso() -> str:
    return datetime.now(pytz.UTC).isoformat(timespec="milliseconds")


def _active_contracts(baas: BaaSProvider) -> List[Dict[str, Any]]:
    with surface_errors("Failed to load contracts"):
        return baas.list_all(settings.contracts_collection_id, [Query.equal("status", "active")])


def _get_room(baas: BaaSProvider, room_id: str) -> Dict[str, Any]:
    with surface_errors("Room not found", room_id=room_id):
        room = baas.get_document(settings.rooms_collection_id, room_id)
    if room.get("isDeleted"):
        raise HTTPException(status_code=404, detail="Room not found")
    return room


def _room_fields(payload: RoomIn) -> Dict[str, Any]:
    return {
        "roomNumber": str(payload.roomNumber).strip(),
        "building": payload.building,
        "floor": int(float(payload.floor)),
        "type": payload.type,
        "capacity": int(float(payload.capacity)),
        "rentAmount": float(payload.rentAmount),
        "status": stored_status_for(payload.status),
        "description": (payload.description or "").strip(),
    }


@router.get("")
def list_rooms(
    type: Optional[str] = None,
    building: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 0,
    page_size: int = 10,
    baas: BaaSProvider = Depends(get_baas),
    _=Depends(get_current_user),
):
    queries = [Query.not_equal("isDeleted", True)]
    if type and type != "all":
        queries.append(Query.equal("type", type))
    if building and building != "all":
        queries.append(Query.equal("building", building))
    if search:
        queries.append(Query.search("roomNumber", search))
    queries.append(Query.order_asc("roomNumber"))

    with surface_errors("Failed to load rooms"):
        rooms = baas.list_all(settings.rooms_collection_id, queries)
    contracts = _active_contracts(baas)

    derived = [with_derived_status(room, contracts) for room in rooms]
    stats = status_counts(derived)
    if status and status != "all":
        derived = [r for r in derived if r["status"] == status]

    start = max(page, 0) * page_size
    return {
        "total": len(derived),
        "documents": derived[start:start + page_size],
        "stats": stats,
    }


@router.get("/{room_id}")
def get_room(room_id: str, baas: BaaSProvider = Depends(get_baas), _=Depends(get_current_user)):
    return with_derived_status(_get_room(baas, room_id), _active_contracts(baas))


@router.post("", status_code=201)
def create_room(
    payload: RoomIn,
    baas: BaaSProvider = Depends(get_baas),
    user: Dict[str, Any] = Depends(get_current_user),
):
    errors = validate_room(payload.model_dump())
    if errors:
        raise validation_error(errors)

    now = _now_iso()
    data = _room_fields(payload)
    data.update({
        "isDeleted": False,
        "createdAt": now,
        "updatedAt": now,
        "createdBy": user.get("$id"),
        "updatedBy": user.get("$id"),
    })
    with surface_errors("Failed to create room"):
        room = baas.create_document(settings.rooms_collection_id, data)
    logger.info("room_created", room_id=room["$id"], room_number=data["roomNumber"])
    return with_derived_status(room, [])


@router.put("/{room_id}")
def update_room(
    room_id: str,
    payload: RoomIn,
    baas: BaaSProvider = Depends(get_baas),
    user: Dict[str, Any] = Depends(get_current_user),
):
    errors = validate_room(payload.model_dump())
    if errors:
        raise validation_error(errors)

    room = _get_room(baas, room_id)
    contracts = _active_contracts(baas)
    if payload.status == MAINTENANCE and room.get("status") != MAINTENANCE:
        reason = maintenance_refusal(room, contracts)
        if reason:
            raise HTTPException(status_code=409, detail=reason)

    data = _room_fields(payload)
    data.update({"updatedAt": _now_iso(), "updatedBy": user.get("$id")})
    with surface_errors("Failed to update room", room_id=room_id):
        updated = baas.update_document(settings.rooms_collection_id, room_id, data)
    return with_derived_status(updated, contracts)


@router.delete("/{room_id}")
def delete_room(
    room_id: str,
    baas: BaaSProvider = Depends(get_baas),
    user: Dict[str, Any] = Depends(get_current_user),
):
    room = _get_room(baas, room_id)
    reason = deletion_refusal(room, _active_contracts(baas))
    if reason:
        raise HTTPException(status_code=409, detail=reason)

    now = _now_iso()
    with surface_errors("Failed to delete room", room_id=room_id):
        baas.update_document(settings.rooms_collection_id, room_id, {
            "isDeleted": True,
            "deletedAt": now,
            "deletedBy": user.get("$id"),
            "updatedAt": now,
            "updatedBy": user.get("$id"),
        })
    logger.info("room_deleted", room_id=room_id, deleted_by=actor_name(user))
    return {"status": "ok"}


@router.get("/{room_id}/history")
def get_room_history(room_id: str, baas: BaaSProvider = Depends(get_baas), _=Depends(get_current_user)):
    _get_room(baas, room_id)
    with surface_errors("Failed to load room history", room_id=room_id):
        return {"items": room_history(baas, room_id)}


@router.get("/{room_id}/qr")
def get_room_qr(room_id: str, baas: BaaSProvider = Depends(get_baas), _=Depends(get_current_user)):
    room = _get_room(baas, room_id)
    return Response(
        content=room_qr_png(room),
        media_type="image/png",
        headers={"Content-Disposition": f'inline; filename="room-{room.get("roomNumber") or room_id}.png"'},
    )
