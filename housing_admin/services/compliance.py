"""
Compliance / maintenance tickets.
Cost arithmetic, payer rules, image reference normalization and list statistics.
"""
import json
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

import pytz
import structlog

from ..baas.provider import BaaSError, BaaSProvider
from ..config import settings
from .formatting import as_amount


logger = structlog.get_logger(__name__)

COMPLIANCE_STATUSES = ("pending", "in_progress", "completed", "rejected")
PRIORITIES = ("low", "medium", "high", "critical")
CATEGORIES = ("maintenance", "electrical", "plumbing", "cleaning", "safety", "other")
PAYERS = ("management", "student")


def legacy_endpoints() -> List[str]:
    return [e.strip() for e in settings.baas_legacy_endpoints.split(",") if e.strip()]


def normalize_image_urls(
    value: Any,
    view_url: Callable[[str], str],
    endpoint: Optional[str] = None,
    legacy: Optional[Iterable[str]] = None,
) -> List[Dict[str, str]]:
    """
    Read stored image references in any of the formats written over time.

    Accepts a JSON string or a list holding plain file ids, URLs, or objects
    with ``id``/``$id``/``fileId`` and ``url``/``href`` keys. Returns a list of
    ``{"id", "url"}`` pairs; unreadable input yields an empty list.
    """
    if not value:
        return []
    endpoint = endpoint or settings.baas_endpoint
    legacy = list(legacy) if legacy is not None else legacy_endpoints()

    raw = value
    if isinstance(value, str):
        try:
            raw = json.loads(value)
        except ValueError:
            logger.warning("compliance_images_unreadable", value=value[:200])
            return []
    if not isinstance(raw, list):
        return []

    def _url(u: str) -> str:
        if not u:
            return ""
        if "://" not in u:
            return view_url(u)
        for old in legacy:
            u = u.replace(old, endpoint)
        return u

    out: List[Dict[str, str]] = []
    for item in raw:
        if not item:
            continue
        if isinstance(item, dict):
            file_id = item.get("id") or item.get("$id") or item.get("fileId") or ""
            url = _url(item.get("url") or item.get("href") or "")
        else:
            file_id = ""
            url = _url(str(item))
        if url:
            out.append({"id": str(file_id), "url": url})
    return out


def compute_total_cost(work_cost: Any, tools_cost: Any) -> float:
    return as_amount(work_cost) + as_amount(tools_cost)


def validate(data: Dict[str, Any], image_count: int = 0) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not str(data.get("title") or "").strip():
        errors["title"] = "Title is required"
    if not str(data.get("description") or "").strip():
        errors["description"] = "Description is required"
    if data.get("paidBy") and data["paidBy"] not in PAYERS:
        errors["paidBy"] = "Invalid payer"
    if data.get("paidBy") == "student" and not data.get("paidByUserId"):
        errors["paidByUserId"] = "Student selection is required when paid by student"
    if data.get("status") and data["status"] not in COMPLIANCE_STATUSES:
        errors["status"] = "Invalid status"
    if data.get("priority") and data["priority"] not in PRIORITIES:
        errors["priority"] = "Invalid priority"
    if data.get("category") and data["category"] not in CATEGORIES:
        errors["category"] = "Invalid category"
    if image_count > settings.max_ticket_images:
        errors["imageUrls"] = f"Maximum {settings.max_ticket_images} images allowed"
    return errors


def _display_name(user: Dict[str, Any]) -> str:
    if user.get("name"):
        return user["name"]
    return f"{user.get('firstName') or ''} {user.get('lastName') or ''}".strip()


def resolve_user_name(baas: BaaSProvider, user_id: Optional[str]) -> str:
    if not user_id:
        return ""
    try:
        return _display_name(baas.get_document(settings.users_collection_id, user_id))
    except BaaSError as e:
        if e.code != 404:
            raise
        return ""


def build_record(
    data: Dict[str, Any],
    reporter: Dict[str, Any],
    images: List[Dict[str, str]],
    previous: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Flatten form data into the stored ticket shape."""
    now_iso = (now or datetime.now(pytz.UTC)).isoformat(timespec="milliseconds")
    paid_by = data.get("paidBy") or "management"
    by_student = paid_by == "student"

    record = {
        "title": str(data.get("title") or "").strip(),
        "description": str(data.get("description") or "").strip(),
        "priority": data.get("priority") or "medium",
        "status": data.get("status") or "pending",
        "category": data.get("category") or "maintenance",
        "location": str(data.get("location") or "").strip(),
        "roomNumber": str(data.get("roomNumber") or "").strip(),
        "apartmentNumber": str(data.get("apartmentNumber") or "").strip(),
        "paidBy": paid_by,
        "paidByUserId": (data.get("paidByUserId") or "") if by_student else "",
        "paidByUserName": (data.get("paidByUserName") or "") if by_student else "",
        "assignedTo": data.get("assignedTo") or "",
        "assignedToName": data.get("assignedToName") or "",
        "workCost": as_amount(data.get("workCost")),
        "toolsCost": as_amount(data.get("toolsCost")),
        "totalCost": compute_total_cost(data.get("workCost"), data.get("toolsCost")),
        "notes": str(data.get("notes") or "").strip(),
        "imageUrls": json.dumps(images),
        "updatedAt": now_iso,
    }

    if previous is None:
        record["reportedBy"] = reporter.get("$id") or ""
        record["reportedByName"] = _display_name(reporter)
        record["createdAt"] = now_iso

    if record["status"] == "completed":
        if previous is not None and previous.get("status") == "completed":
            record["completedDate"] = previous.get("completedDate") or now_iso
        else:
            record["completedDate"] = now_iso
    return record


def filter_records(
    records: List[Dict[str, Any]],
    search: Optional[str] = None,
    priority: Optional[str] = None,
    status: Optional[str] = None,
) -> List[Dict[str, Any]]:
    out = records
    if search:
        needle = search.lower()
        out = [
            r for r in out
            if needle in (r.get("title") or "").lower() or needle in (r.get("description") or "").lower()
        ]
    if priority and priority != "all":
        out = [r for r in out if r.get("priority") == priority]
    if status and status != "all":
        out = [r for r in out if r.get("status") == status]
    return out


def stats(records: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "total": len(records),
        "pending": sum(1 for r in records if r.get("status") == "pending"),
        "inProgress": sum(1 for r in records if r.get("status") == "in_progress"),
        "completed": sum(1 for r in records if r.get("status") == "completed"),
        "totalCost": sum(as_amount(r.get("totalCost")) for r in records),
    }
