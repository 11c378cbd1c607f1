"""
Dashboard aggregation.

Fetches the collections the overview needs in three concurrent groups
(headline counts, the selected window, recent activity) and reduces them
into KPIs, chart series and an activity feed.
"""
import calendar
import math
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytz
import structlog

from ..baas.provider import BaaSProvider
from ..baas.query import Query
from ..config import settings
from .formatting import as_amount, format_date, parse_datetime
from .room_status import FULL, MAINTENANCE, NOT_OCCUPIED, REMAINING_SPACE, derive_room_status, room_capacity


logger = structlog.get_logger(__name__)

TIME_RANGES = ("week", "month", "quarter", "year")

Bucket = Tuple[datetime, datetime, str]


def _add_months(dt: datetime, months: int) -> datetime:
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def _round_percent(part: float, whole: float) -> int:
    if whole <= 0:
        return 0
    return int(math.floor(part / whole * 100 + 0.5))


def window_start(time_range: str, now: datetime) -> datetime:
    if time_range == "week":
        return now - timedelta(days=7)
    if time_range == "quarter":
        return _add_months(now, -3)
    if time_range == "year":
        return _add_months(now, -12)
    return _add_months(now, -1)


def buckets(time_range: str, now: datetime, timezone_str: Optional[str] = None) -> List[Bucket]:
    """
    Sub-periods of the selected window, oldest first.

    Boundaries are local midnights; each bucket is [start, end) in UTC,
    paired with its chart label.
    """
    tz = pytz.timezone(timezone_str or settings.tz_default)
    local_now = now.astimezone(tz)
    today = local_now.replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None)
    first_of_month = today.replace(day=1)

    spans: List[Tuple[datetime, datetime, str]] = []
    if time_range == "week":
        for i in range(6, -1, -1):
            start = today - timedelta(days=i)
            spans.append((start, start + timedelta(days=1), start.strftime("%a")))
    elif time_range == "quarter":
        for i in range(3, -1, -1):
            start = _add_months(first_of_month, -3 * i)
            label = f"Q{math.ceil(start.month / 3)} {start.year}"
            spans.append((start, _add_months(start, 3), label))
    elif time_range == "year":
        for i in range(4, -1, -1):
            start = today.replace(year=today.year - i, month=1, day=1)
            spans.append((start, start.replace(year=start.year + 1), str(start.year)))
    else:
        for i in range(11, -1, -1):
            start = _add_months(first_of_month, -i)
            spans.append((start, _add_months(start, 1), start.strftime("%b")))

    return [
        (tz.localize(start).astimezone(pytz.UTC), tz.localize(end).astimezone(pytz.UTC), label)
        for start, end, label in spans
    ]


def time_ago(value: Any, now: Optional[datetime] = None) -> str:
    dt = parse_datetime(value)
    if dt is None:
        return ""
    now = now or datetime.now(pytz.UTC)
    minutes = math.floor((now - dt).total_seconds() / 60)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes} min ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    days = hours // 24
    if days < 7:
        return f"{days} day{'s' if days > 1 else ''} ago"
    return format_date(dt)


def _plain(value: Any) -> str:
    amount = as_amount(value)
    return str(int(amount)) if amount == int(amount) else str(amount)


def payment_amount(payment: Dict[str, Any]) -> float:
    return as_amount(payment.get("finalAmount") or payment.get("amount") or 0)


def revenue_series(payments: List[Dict[str, Any]], spans: List[Bucket]) -> List[float]:
    series = []
    for start, end, _ in spans:
        total = 0.0
        for payment in payments:
            if payment.get("status") != "paid":
                continue
            when = parse_datetime(payment.get("paidDate") or payment.get("createdAt"))
            if when is not None and start <= when < end:
                total += payment_amount(payment)
        series.append(total)
    return series


def occupancy_series(contracts: List[Dict[str, Any]], total_capacity: int, spans: List[Bucket]) -> List[int]:
    series = []
    for start, end, _ in spans:
        overlapping = 0
        for contract in contracts:
            if contract.get("status") != "active":
                continue
            c_start = parse_datetime(contract.get("startDate"))
            c_end = parse_datetime(contract.get("endDate"))
            if c_start is not None and c_end is not None and c_start < end and c_end >= start:
                overlapping += 1
        series.append(_round_percent(overlapping, total_capacity))
    return series


def recent_activities(recent: Dict[str, List[Dict[str, Any]]], now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    activities = []
    for payment in recent.get("payments", [])[:2]:
        activities.append({
            "id": f"payment_{payment.get('$id')}",
            "type": "payment",
            "title": "Payment Received",
            "description": f"Payment of {settings.currency} {_plain(payment.get('finalAmount') or payment.get('amount'))} received",
            "createdAt": payment.get("createdAt"),
        })
    for contract in recent.get("contracts", [])[:2]:
        activities.append({
            "id": f"contract_{contract.get('$id')}",
            "type": "contract",
            "title": "New Contract",
            "description": f"{contract.get('studentName')} signed a new contract",
            "createdAt": contract.get("createdAt"),
        })
    for order in recent.get("foodOrders", [])[:1]:
        activities.append({
            "id": f"food_{order.get('$id')}",
            "type": "food",
            "title": "Food Order",
            "description": f"New food order for {settings.currency} {_plain(order.get('totalAmount'))}",
            "createdAt": order.get("createdAt"),
        })
    for request in recent.get("checkoutRequests", [])[:1]:
        activities.append({
            "id": f"checkout_{request.get('$id')}",
            "type": "checkout",
            "title": "Checkout Request",
            "description": "New checkout request submitted",
            "createdAt": request.get("createdAt"),
        })

    for activity in activities:
        activity["time"] = time_ago(activity["createdAt"], now)

    def _ts(activity: Dict[str, Any]) -> float:
        dt = parse_datetime(activity.get("createdAt"))
        return dt.timestamp() if dt else 0.0

    activities.sort(key=_ts, reverse=True)
    return activities


def aggregate(fetched: Dict[str, Any], time_range: str, now: datetime) -> Dict[str, Any]:
    """Reduce fetched collections into the dashboard payload."""
    rooms = fetched["rooms"]
    active_contracts = fetched["activeContracts"]
    derived = [derive_room_status(room, active_contracts) for room in rooms]

    breakdown = {s: 0 for s in (NOT_OCCUPIED, REMAINING_SPACE, FULL, MAINTENANCE)}
    for d in derived:
        breakdown[d["status"]] += 1
    total_capacity = sum(room_capacity(room) for room in rooms)
    occupied_capacity = sum(d["activeContracts"] for d in derived)

    stats = {
        "totalStudents": fetched["studentsTotal"],
        "occupancyRate": _round_percent(occupied_capacity, total_capacity),
        "availableRooms": breakdown[NOT_OCCUPIED] + breakdown[REMAINING_SPACE],
        "activeContracts": len(active_contracts),
        "pendingPayments": fetched["pendingPaymentsTotal"],
        "totalRevenue": sum(payment_amount(p) for p in fetched["paidInWindow"]),
        "recentFoodOrders": fetched["foodOrdersInWindowTotal"],
        "activeCheckoutRequests": fetched["pendingCheckoutsTotal"],
        "totalCapacity": total_capacity,
        "occupiedCapacity": occupied_capacity,
        "notOccupiedRooms": breakdown[NOT_OCCUPIED],
        "remainingSpaceRooms": breakdown[REMAINING_SPACE],
        "fullRooms": breakdown[FULL],
        "maintenanceRooms": breakdown[MAINTENANCE],
    }

    spans = buckets(time_range, now)
    charts = {
        "labels": [label for _, _, label in spans],
        "revenue": revenue_series(fetched["paidPayments"], spans),
        "occupancyTrend": occupancy_series(fetched["allContracts"], total_capacity, spans),
        "roomStatus": breakdown,
        "paymentStatus": {
            "paid": len(fetched["paidPayments"]),
            "pending": fetched["pendingPaymentsTotal"],
            "failed": fetched["failedPaymentsTotal"],
        },
    }

    return {
        "timeRange": time_range,
        "windowStart": window_start(time_range, now).isoformat(),
        "stats": stats,
        "charts": charts,
        "recentActivities": recent_activities(fetched["recent"], now),
    }


def _total(baas: BaaSProvider, collection_id: str, queries: List[Query]) -> int:
    return int(baas.list_documents(collection_id, queries + [Query.limit(1)]).get("total") or 0)


def _latest(baas: BaaSProvider, collection_id: str, n: int) -> List[Dict[str, Any]]:
    return baas.list_documents(collection_id, [Query.order_desc("createdAt"), Query.limit(n)]).get("documents") or []


def _fetch_groups(baas: BaaSProvider, start: datetime) -> List[Dict[str, Callable[[], Any]]]:
    c = settings.collections
    since = start.isoformat()
    basic = {
        "studentsTotal": lambda: _total(baas, c["users"], [Query.equal("role", "student")]),
        "rooms": lambda: baas.list_all(c["rooms"], [Query.not_equal("isDeleted", True)]),
        "activeContracts": lambda: baas.list_all(c["contracts"], [Query.equal("status", "active")]),
        "pendingPaymentsTotal": lambda: _total(baas, c["payments"], [Query.equal("status", "pending")]),
        "pendingCheckoutsTotal": lambda: _total(baas, c["checkoutRequests"], [Query.equal("status", "pending")]),
    }
    windowed = {
        "paidInWindow": lambda: baas.list_all(c["payments"], [
            Query.greater_than("createdAt", since),
            Query.equal("status", "paid"),
        ]),
        "foodOrdersInWindowTotal": lambda: _total(baas, c["foodOrders"], [Query.greater_than("createdAt", since)]),
        "paidPayments": lambda: baas.list_all(c["payments"], [Query.equal("status", "paid")]),
        "failedPaymentsTotal": lambda: _total(baas, c["payments"], [Query.equal("status", "failed")]),
        "allContracts": lambda: baas.list_all(c["contracts"]),
    }
    recent = {
        "payments": lambda: _latest(baas, c["payments"], 5),
        "contracts": lambda: _latest(baas, c["contracts"], 3),
        "foodOrders": lambda: _latest(baas, c["foodOrders"], 3),
        "checkoutRequests": lambda: _latest(baas, c["checkoutRequests"], 3),
    }
    return [basic, windowed, recent]


def load_dashboard(baas: BaaSProvider, time_range: str = "month", now: Optional[datetime] = None) -> Dict[str, Any]:
    if time_range not in TIME_RANGES:
        time_range = "month"
    now = now or datetime.now(pytz.UTC)
    basic, windowed, recent = _fetch_groups(baas, window_start(time_range, now))

    with ThreadPoolExecutor(max_workers=8) as pool:
        futures = {
            name: pool.submit(fn)
            for group in (basic, windowed)
            for name, fn in group.items()
        }
        recent_futures = {name: pool.submit(fn) for name, fn in recent.items()}
        fetched = {name: f.result() for name, f in futures.items()}
        fetched["recent"] = {name: f.result() for name, f in recent_futures.items()}

    logger.info("dashboard_loaded", time_range=time_range, rooms=len(fetched["rooms"]))
    return aggregate(fetched, time_range, now)
