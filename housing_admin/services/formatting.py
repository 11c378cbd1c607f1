"""
Date parsing and presentation helpers shared by the routers.
Dates arrive from the backend as ISO strings, sometimes with a trailing Z,
sometimes date-only.
"""
import math
from datetime import date, datetime
from typing import Any, Optional

import pytz

from ..config import settings


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse an ISO date/datetime into an aware UTC datetime.

    Args:
        value: ISO string, date or datetime (naive values are taken as UTC)

    Returns:
        Aware datetime, or None when the value is empty or unparseable
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        try:
            dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=pytz.UTC)
    return dt.astimezone(pytz.UTC)


def to_local(dt: datetime, timezone_str: Optional[str] = None) -> datetime:
    tz = pytz.timezone(timezone_str or settings.tz_default)
    return dt.astimezone(tz)


def format_date(value: Any) -> str:
    dt = parse_datetime(value)
    if dt is None:
        return ""
    return to_local(dt).strftime("%b %d, %Y")


def as_amount(value: Any) -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    # "nan" and "inf" parse as floats but are not amounts
    return amount if math.isfinite(amount) else 0.0


def format_currency(amount: Any) -> str:
    # Omani rial has three minor digits
    return f"{settings.currency} {as_amount(amount):,.3f}"
