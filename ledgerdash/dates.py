# ledgerdash/dates.py
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from ledgerdash.errors import InvalidArgument


# === Date helpers ===
def parse_any_date(value) -> Optional[date]:
    """
    Best-effort conversion to a calendar date. Accepts ``date``/``datetime``,
    'YYYY-MM-DD', 'MM/DD/YYYY', full ISO timestamps ('2025-03-05T10:00:00Z').
    Returns None when nothing matches.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    for fmt in ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y"):
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            pass
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def require_date(value, name: str) -> date:
    d = parse_any_date(value)
    if d is None:
        raise InvalidArgument(f"Invalid date for {name}: {value!r}")
    return d


def from_unix(ts) -> date:
    """Payments API timestamps are unix seconds; bucket them by UTC day."""
    try:
        return datetime.fromtimestamp(int(ts), tz=timezone.utc).date()
    except (TypeError, ValueError, OverflowError, OSError):
        raise InvalidArgument(f"Invalid unix timestamp: {ts!r}")


def start_of_week(d: date) -> date:
    # weeks start on Sunday
    return d - timedelta(days=(d.weekday() + 1) % 7)


def months_between(a: date, b: date) -> int:
    """Whole calendar months from a's month to b's month (day ignored)."""
    return (b.year - a.year) * 12 + (b.month - a.month)
