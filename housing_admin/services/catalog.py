from typing import Any, Dict, List, Optional

from ..baas.query import Query
from .formatting import as_amount


SERVICE_TYPES = ("maintenance", "cleaning", "laundry", "transportation", "other")


def validate(data: Dict[str, Any]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for field, label in (
        ("nameEn", "English name"),
        ("nameAr", "Arabic name"),
        ("descriptionEn", "English description"),
        ("descriptionAr", "Arabic description"),
    ):
        if not str(data.get(field) or "").strip():
            errors[field] = f"{label} is required"
    if data.get("type") and data["type"] not in SERVICE_TYPES:
        errors["type"] = "Invalid service type"
    if as_amount(data.get("price")) < 0:
        errors["price"] = "Price must be zero or more"
    if as_amount(data.get("duration")) < 0:
        errors["duration"] = "Duration must be zero or more"
    return errors


def build_service(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "nameEn": data.get("nameEn"),
        "nameAr": data.get("nameAr"),
        "descriptionEn": data.get("descriptionEn"),
        "descriptionAr": data.get("descriptionAr"),
        "type": data.get("type") or "maintenance",
        "price": as_amount(data.get("price")),
        "duration": as_amount(data.get("duration")),
        "isAvailable": bool(data.get("isAvailable", True)),
        "imageUrl": data.get("imageUrl") or "",
        "providerName": data.get("providerName") or "",
        "providerContact": data.get("providerContact") or "",
    }


def list_queries(
    service_type: Optional[str] = None,
    available: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = 0,
    page_size: int = 10,
) -> List[Query]:
    queries = []
    if service_type and service_type != "all":
        queries.append(Query.equal("type", service_type))
    if available is not None:
        queries.append(Query.equal("isAvailable", available))
    if search:
        queries.append(Query.search("nameEn", search))
    queries += [Query.limit(page_size), Query.offset(page * page_size)]
    return queries
