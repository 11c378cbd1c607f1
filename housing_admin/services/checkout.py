"""
Checkout request workflow.
Handles validation, status transitions and the auto-complete sweep.
"""
import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import pytz
import structlog

from ..baas.provider import BaaSError, BaaSProvider
from ..baas.query import Query
from ..config import settings
from .formatting import parse_datetime, to_local


logger = structlog.get_logger(__name__)

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
COMPLETED = "completed"
CHECKOUT_STATUSES = (PENDING, APPROVED, REJECTED, COMPLETED)

SYSTEM_ACTOR = "System"
AUTO_COMPLETE_NOTES = "Automatically completed - checkout period ended"
COMPLETED_BY_ADMIN_NOTES = "Marked as completed by admin"
STATUS_CHANGE_NOTES = {
    APPROVED: "Status changed to approved by admin",
    REJECTED: "Status changed to rejected by admin",
    PENDING: "Status changed back to pending by admin",
    COMPLETED: "Status changed to completed by admin",
}


def _now() -> datetime:
    return datetime.now(pytz.UTC)


def _iso(dt: datetime) -> str:
    return dt.isoformat(timespec="milliseconds")


def generate_request_id(now: Optional[datetime] = None) -> str:
    """
    Build a human-readable request number.

    Format: CR + local yyyymmdd + last four digits of the millisecond timestamp.
    """
    now = now or _now()
    millis = str(int(now.timestamp() * 1000))
    return f"CR{to_local(now).strftime('%Y%m%d')}{millis[-4:]}"


def duration_days(start: Any, end: Any) -> Optional[int]:
    start_dt, end_dt = parse_datetime(start), parse_datetime(end)
    if start_dt is None or end_dt is None:
        return None
    return math.ceil(abs((end_dt - start_dt).total_seconds()) / timedelta(days=1).total_seconds())


def validate_create(data: Dict[str, Any]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not data.get("userId"):
        errors["userId"] = "Please select a student"

    start = parse_datetime(data.get("startDate"))
    end = parse_datetime(data.get("endDate"))
    if start is None:
        errors["startDate"] = "Start date is required"
    if end is None:
        errors["endDate"] = "End date is required"
    if start is not None and end is not None and start >= end:
        errors["endDate"] = "End date must be after start date"
        errors["dateRange"] = "End date must be after start date"

    if not str(data.get("reason") or "").strip():
        errors["reason"] = "Reason is required"
    return errors


def build_request(data: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or _now()
    return {
        "requestId": generate_request_id(now),
        "userId": data["userId"],
        "startDate": _iso(parse_datetime(data["startDate"])),
        "endDate": _iso(parse_datetime(data["endDate"])),
        "reason": str(data["reason"]).strip(),
        "accompaniedBy": str(data.get("accompaniedBy") or "").strip(),
        "status": PENDING,
        "createdAt": _iso(now),
        "updatedAt": _iso(now),
    }


def transition(status: str, actor: str, notes: str = "", now: Optional[datetime] = None) -> Dict[str, Any]:
    """Fields written for any status change, with the audit trail."""
    now = now or _now()
    return {
        "status": status,
        "actionNotes": notes,
        "actionBy": actor,
        "actionAt": _iso(now),
        "updatedAt": _iso(now),
    }


def approval(actor: str, notes: Optional[str] = None) -> Dict[str, Any]:
    return transition(APPROVED, actor, notes or "")


def rejection(actor: str, reason: Optional[str]) -> Dict[str, Any]:
    reason = (reason or "").strip()
    if not reason:
        raise ValueError("A rejection reason is required")
    return transition(REJECTED, actor, reason)


def completion(actor: str) -> Dict[str, Any]:
    return transition(COMPLETED, actor, COMPLETED_BY_ADMIN_NOTES)


def status_change(new_status: str, actor: str) -> Dict[str, Any]:
    if new_status not in CHECKOUT_STATUSES:
        raise ValueError(f"Unknown status: {new_status}")
    return transition(new_status, actor, STATUS_CHANGE_NOTES[new_status])


def auto_complete_expired(baas: BaaSProvider, now: Optional[datetime] = None) -> int:
    """Mark approved requests whose end date has passed as completed. Returns how many changed."""
    now = now or _now()
    approved = baas.list_all(settings.checkout_requests_collection_id, [Query.equal("status", APPROVED)])
    expired = []
    for request in approved:
        end = parse_datetime(request.get("endDate"))
        if end is not None and end < now:
            expired.append(request)

    fields = transition(COMPLETED, SYSTEM_ACTOR, AUTO_COMPLETE_NOTES, now)
    for request in expired:
        baas.update_document(settings.checkout_requests_collection_id, request["$id"], fields)
    if expired:
        logger.info("checkout_requests_auto_completed", count=len(expired))
    return len(expired)


def load_students(baas: BaaSProvider, user_ids: List[str]) -> Dict[str, Dict[str, Any]]:
    users: Dict[str, Dict[str, Any]] = {}
    for user_id in user_ids:
        try:
            users[user_id] = baas.get_document(settings.users_collection_id, user_id)
        except BaaSError as e:
            if e.code != 404:
                raise
            logger.warning("checkout_student_missing", user_id=user_id)
    return users


def with_student(request: Dict[str, Any], user: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    user = user or {}
    out = dict(request)
    out["studentName"] = user.get("name") or user.get("firstName") or "Unknown Student"
    out["studentEmail"] = user.get("email") or ""
    out["studentPhone"] = user.get("phone") or ""
    out["reason"] = request.get("reason") or ""
    out["accompaniedBy"] = request.get("accompaniedBy") or ""
    out["status"] = request.get("status") or PENDING
    out["durationDays"] = duration_days(request.get("startDate"), request.get("endDate"))
    return out


def list_requests(
    baas: BaaSProvider,
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 0,
    page_size: int = 10,
) -> Dict[str, Any]:
    queries = []
    if search:
        queries.append(Query.search("reason", search))
    if status and status != "all":
        queries.append(Query.equal("status", status))
    queries += [
        Query.order_desc("createdAt"),
        Query.limit(page_size),
        Query.offset(page * page_size),
    ]
    response = baas.list_documents(settings.checkout_requests_collection_id, queries)
    documents = response.get("documents") or []
    user_ids = list(dict.fromkeys(d.get("userId") for d in documents if d.get("userId")))
    users = load_students(baas, user_ids)
    return {
        "total": response.get("total", len(documents)),
        "documents": [with_student(d, users.get(d.get("userId"))) for d in documents],
    }


def student_details(baas: BaaSProvider, user_id: str) -> Dict[str, Any]:
    """Student document with their contracts, the active one and its rooms."""
    student = baas.get_document(settings.users_collection_id, user_id)
    contracts = baas.list_all(settings.contracts_collection_id, [Query.equal("userId", user_id)])
    active = next((c for c in contracts if c.get("status") == "active"), None)

    rooms = []
    for room_id in (active or {}).get("roomIds") or []:
        try:
            rooms.append(baas.get_document(settings.rooms_collection_id, room_id))
        except BaaSError as e:
            if e.code != 404:
                raise
            logger.warning("checkout_room_missing", room_id=room_id)

    out = dict(student)
    out.update({
        "contracts": contracts,
        "rooms": rooms,
        "hasActiveContract": active is not None,
        "activeContract": active,
    })
    return out
