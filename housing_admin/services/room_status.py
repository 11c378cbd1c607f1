"""
Room occupancy derivation and the guards built on it.

A room's stored status only matters when it is the manual ``maintenance``
override. Every other status is derived from the active contracts whose
``roomIds`` reference the room.
"""
import math
from typing import Any, Dict, Iterable, List, Optional


MAINTENANCE = "maintenance"
NOT_OCCUPIED = "not_occupied"
REMAINING_SPACE = "remaining_space"
FULL = "full"

ROOM_STATUSES = (NOT_OCCUPIED, REMAINING_SPACE, FULL, MAINTENANCE)
ROOM_TYPES = ("single", "double", "suite")
BUILDINGS = ("A", "B", "C", "D")


def _as_number(value: Any, default: float = 0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def room_capacity(room: Dict[str, Any]) -> int:
    return int(_as_number(room.get("capacity"), 0))


def count_active_contracts(room_id: str, active_contracts: Iterable[Dict[str, Any]]) -> int:
    count = 0
    for contract in active_contracts:
        room_ids = contract.get("roomIds") or []
        if isinstance(room_ids, str):
            room_ids = [room_ids]
        if room_id in room_ids:
            count += 1
    return count


def derive_room_status(room: Dict[str, Any], active_contracts: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    capacity = room_capacity(room)
    if room.get("status") == MAINTENANCE:
        return {"status": MAINTENANCE, "activeContracts": 0, "remainingSpace": capacity}

    active = count_active_contracts(room.get("$id"), active_contracts)
    if active == 0:
        status = NOT_OCCUPIED
    elif active >= capacity:
        status = FULL
    else:
        status = REMAINING_SPACE
    return {
        "status": status,
        "activeContracts": active,
        "remainingSpace": max(0, capacity - active),
    }


def with_derived_status(room: Dict[str, Any], active_contracts: List[Dict[str, Any]]) -> Dict[str, Any]:
    out = dict(room)
    out["storedStatus"] = room.get("status")
    out.update(derive_room_status(room, active_contracts))
    return out


def deletion_refusal(room: Dict[str, Any], active_contracts: List[Dict[str, Any]]) -> Optional[str]:
    """Reason the room cannot be deleted, or None when deleting is allowed."""
    if room.get("status") == MAINTENANCE:
        return "Room is currently under maintenance and cannot be deleted."

    active = count_active_contracts(room.get("$id"), active_contracts)
    if active > 0:
        plural = "s" if active > 1 else ""
        return f"Room has {active} active contract{plural} and cannot be deleted."

    if derive_room_status(room, active_contracts)["status"] in (REMAINING_SPACE, FULL):
        return "Room is currently occupied and cannot be deleted."
    return None


def maintenance_refusal(room: Dict[str, Any], active_contracts: List[Dict[str, Any]]) -> Optional[str]:
    active = count_active_contracts(room.get("$id"), active_contracts)
    if active > 0:
        plural = "s" if active > 1 else ""
        return f"Room has {active} active contract{plural} and cannot be set to maintenance."
    return None


def stored_status_for(requested: Optional[str]) -> Optional[str]:
    # Anything but the manual override is recomputed on read
    return MAINTENANCE if requested == MAINTENANCE else None


def validate_room(data: Dict[str, Any]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not str(data.get("roomNumber") or "").strip():
        errors["roomNumber"] = "Room number is required"
    if data.get("type") not in ROOM_TYPES:
        errors["type"] = "Room type is required"
    if _as_number(data.get("capacity"), 0) < 1:
        errors["capacity"] = "Capacity must be at least 1"
    if _as_number(data.get("rentAmount"), 0) <= 0:
        errors["rentAmount"] = "Rent amount must be greater than 0"
    if data.get("building") not in BUILDINGS:
        errors["building"] = "Building is required"
    if _as_number(data.get("floor"), 0) < 1:
        errors["floor"] = "Floor must be at least 1"
    return errors


def status_counts(rooms: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    counts = {"total": 0}
    counts.update({s: 0 for s in ROOM_STATUSES})
    for room in rooms:
        counts["total"] += 1
        counts[room["status"]] = counts.get(room["status"], 0) + 1
    return counts
