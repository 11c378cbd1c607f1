from typing import Any, Dict, List

import structlog

from ..baas.provider import BaaSError, BaaSProvider
from ..baas.query import Query
from ..config import settings
from .formatting import format_currency, parse_datetime


logger = structlog.get_logger(__name__)

_CONTRACT_DETAILS = {
    "active": "Lease active",
    "terminated": "Lease terminated",
    "expired": "Lease expired",
}
_CONTRACT_ACTIONS = {"active": "started", "terminated": "ended"}


def _contract_entry(contract: Dict[str, Any], student: Dict[str, Any]) -> Dict[str, Any]:
    status = contract.get("status")
    entry = dict(contract)
    entry["type"] = "contract"
    entry["action"] = f"Contract {_CONTRACT_ACTIONS.get(status, status or 'created')}"
    if student:
        detail = _CONTRACT_DETAILS.get(status, f"Status: {status}")
        entry["details"] = f"{student.get('name')} - {detail}"
        entry["studentName"] = student.get("name")
        entry["studentEmail"] = student.get("email")
    else:
        entry["details"] = f"Contract {status or 'created'} - User ID: {contract.get('userId')}"
    return entry


def _payment_entry(payment: Dict[str, Any]) -> Dict[str, Any]:
    entry = dict(payment)
    entry["type"] = "payment"
    entry["action"] = f"Payment {payment.get('status') or 'processed'}"
    label = payment.get("description") or payment.get("paymentType") or "Payment"
    amount = payment.get("finalAmount") or payment.get("amount") or 0
    entry["details"] = f"{format_currency(amount)} - {label} ({payment.get('paymentMethod') or 'unknown method'})"
    return entry


def _service_entry(order: Dict[str, Any], service: Dict[str, Any]) -> Dict[str, Any]:
    entry = dict(order)
    entry["type"] = "service"
    entry["action"] = f"Service Order {order.get('status') or 'placed'}"
    name = service.get("nameEn") or service.get("nameAr") or order.get("serviceName") or "Service"
    note = order.get("specialInstructions") or service.get("descriptionEn") or "Service order"
    entry["details"] = f"{name} - {note} ({format_currency(order.get('totalAmount') or 0)})"
    return entry


def _food_entry(order: Dict[str, Any]) -> Dict[str, Any]:
    entry = dict(order)
    entry["type"] = "food"
    entry["action"] = f"Food Order {order.get('status') or 'placed'}"
    entry["details"] = f"Food order - {format_currency(order.get('totalAmount') or 0)} ({order.get('paymentStatus') or 'payment pending'})"
    return entry


def _lookup(baas: BaaSProvider, collection_id: str, document_id: Any) -> Dict[str, Any]:
    if not document_id:
        return {}
    try:
        return baas.get_document(collection_id, document_id)
    except BaaSError as e:
        if e.code != 404:
            raise
        return {}


def _created_ts(entry: Dict[str, Any]) -> float:
    dt = parse_datetime(entry.get("$createdAt"))
    return dt.timestamp() if dt else 0.0


def room_history(baas: BaaSProvider, room_id: str) -> List[Dict[str, Any]]:
    """Newest-first feed of contracts, payments, service and food orders for a room."""
    history: List[Dict[str, Any]] = []

    # roomIds is an array attribute, so filter the contracts here
    contracts = [
        c for c in baas.list_all(settings.contracts_collection_id, [Query.order_desc("$createdAt")])
        if room_id in (c.get("roomIds") or [])
    ]
    for contract in contracts:
        student = _lookup(baas, settings.users_collection_id, contract.get("userId"))
        history.append(_contract_entry(contract, student))

    for contract in contracts:
        payments = baas.list_all(settings.payments_collection_id, [
            Query.equal("contractId", contract["$id"]),
            Query.order_desc("$createdAt"),
        ])
        history.extend(_payment_entry(p) for p in payments)

    services: Dict[str, Dict[str, Any]] = {}
    orders = baas.list_all(settings.service_orders_collection_id, [
        Query.equal("roomId", room_id),
        Query.order_desc("$createdAt"),
    ])
    for order in orders:
        service_id = order.get("serviceId")
        if service_id not in services:
            services[service_id] = _lookup(baas, settings.services_collection_id, service_id)
        history.append(_service_entry(order, services[service_id]))

    food_orders = baas.list_all(settings.food_orders_collection_id, [
        Query.equal("roomId", room_id),
        Query.order_desc("$createdAt"),
    ])
    history.extend(_food_entry(o) for o in food_orders)

    history.sort(key=_created_ts, reverse=True)
    logger.info("room_history_loaded", room_id=room_id, items=len(history))
    return history
