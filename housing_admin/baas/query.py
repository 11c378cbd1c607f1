"""
Query objects for document listing.

Serialized to the platform's JSON query strings for the REST provider and
evaluated in memory by the local provider.
"""
import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple


class Query:
    def __init__(self, method: str, attribute: Optional[str] = None, values: Optional[Sequence[Any]] = None):
        self.method = method
        self.attribute = attribute
        self.values = list(values) if values is not None else []

    def __repr__(self) -> str:
        return f"Query({self.to_string()})"

    def to_string(self) -> str:
        payload: Dict[str, Any] = {"method": self.method}
        if self.attribute is not None:
            payload["attribute"] = self.attribute
        if self.values:
            payload["values"] = self.values
        return json.dumps(payload, separators=(",", ":"), default=str)

    # ----- builders -----
    @staticmethod
    def _as_list(value: Any) -> List[Any]:
        return list(value) if isinstance(value, (list, tuple, set)) else [value]

    @classmethod
    def equal(cls, attribute: str, value: Any) -> "Query":
        return cls("equal", attribute, cls._as_list(value))

    @classmethod
    def not_equal(cls, attribute: str, value: Any) -> "Query":
        return cls("notEqual", attribute, cls._as_list(value))

    @classmethod
    def search(cls, attribute: str, value: str) -> "Query":
        return cls("search", attribute, [value])

    @classmethod
    def greater_than(cls, attribute: str, value: Any) -> "Query":
        return cls("greaterThan", attribute, [value])

    @classmethod
    def order_asc(cls, attribute: str) -> "Query":
        return cls("orderAsc", attribute)

    @classmethod
    def order_desc(cls, attribute: str) -> "Query":
        return cls("orderDesc", attribute)

    @classmethod
    def limit(cls, n: int) -> "Query":
        return cls("limit", None, [int(n)])

    @classmethod
    def offset(cls, n: int) -> "Query":
        return cls("offset", None, [int(n)])

    @classmethod
    def select(cls, attributes: Iterable[str]) -> "Query":
        return cls("select", None, list(attributes))


DEFAULT_LIMIT = 25

_FILTERS = {"equal", "notEqual", "search", "greaterThan"}


def _comparable(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return value


def _compare(left: Any, right: Any) -> Optional[int]:
    if left is None or right is None:
        return None
    a, b = _comparable(left), _comparable(right)
    if isinstance(a, datetime) and isinstance(b, datetime):
        if (a.tzinfo is None) != (b.tzinfo is None):
            a, b = a.replace(tzinfo=None), b.replace(tzinfo=None)
    try:
        return (a > b) - (a < b)
    except TypeError:
        sa, sb = str(left), str(right)
        return (sa > sb) - (sa < sb)


def _matches(doc: Dict[str, Any], q: Query) -> bool:
    value = doc.get(q.attribute)
    if q.method == "equal":
        if isinstance(value, list):
            return any(v in value for v in q.values)
        return value in q.values
    if q.method == "notEqual":
        return value not in q.values
    if q.method == "search":
        needle = str(q.values[0] if q.values else "").strip().lower()
        if not needle:
            return True
        haystack = str(value or "").lower()
        return all(term in haystack for term in needle.split())
    if q.method == "greaterThan":
        cmp = _compare(value, q.values[0])
        return cmp is not None and cmp > 0
    return True


def _sort_key(value: Any) -> Tuple[int, Any]:
    comparable = _comparable(value)
    if comparable is None:
        return (0, "")
    if isinstance(comparable, datetime):
        if comparable.tzinfo is None:
            comparable = comparable.replace(tzinfo=timezone.utc)
        return (1, comparable.timestamp())
    if isinstance(comparable, bool):
        return (2, int(comparable))
    if isinstance(comparable, (int, float)):
        return (2, comparable)
    return (3, str(comparable))


def apply_queries(documents: List[Dict[str, Any]], queries: Sequence[Query]) -> Tuple[List[Dict[str, Any]], int]:
    """Filter, order and paginate documents. Returns (page, total_before_pagination)."""
    rows = [d for d in documents if all(_matches(d, q) for q in queries if q.method in _FILTERS)]
    total = len(rows)

    # Later orders are secondary keys, so apply them in reverse on a stable sort
    orders = [q for q in queries if q.method in ("orderAsc", "orderDesc")]
    for q in reversed(orders):
        rows.sort(key=lambda d: _sort_key(d.get(q.attribute)), reverse=q.method == "orderDesc")

    limit = DEFAULT_LIMIT
    offset = 0
    selected: Optional[List[str]] = None
    for q in queries:
        if q.method == "limit" and q.values:
            limit = int(q.values[0])
        elif q.method == "offset" and q.values:
            offset = int(q.values[0])
        elif q.method == "select":
            selected = list(q.values)

    page = rows[offset:offset + limit]
    if selected is not None:
        keep = set(selected)
        page = [{k: v for k, v in d.items() if k in keep or k.startswith("$")} for d in page]
    return page, total
