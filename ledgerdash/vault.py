# ledgerdash/vault.py
# Corporate vault: first-filing tax clock, calendar event status, domain expiry.
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from dateutil.relativedelta import relativedelta

from ledgerdash import ledger_config as lc
from ledgerdash.dates import parse_any_date, require_date


def _band(days: int, bands: Dict[str, int]) -> str:
    if days < 0:
        return "overdue"
    if days <= bands["urgent"]:
        return "urgent"
    if days <= bands["warning"]:
        return "warning"
    return "ok"


@dataclass(frozen=True)
class TaxClock:
    incorporation_date: date
    deadline: date
    days_remaining: int
    months_remaining: int
    status: str
    progress: float

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["incorporation_date"] = self.incorporation_date.isoformat()
        d["deadline"] = self.deadline.isoformat()
        return d


def tax_clock(incorporation_date, today: date) -> TaxClock:
    """First corporate filing falls due 15 months after incorporation."""
    inc = require_date(incorporation_date, "incorporation_date")
    deadline = inc + relativedelta(months=lc.TAX_CLOCK_MONTHS)
    days = (deadline - today).days
    rd = relativedelta(deadline, today)
    months = rd.years * 12 + rd.months

    horizon = lc.TAX_CLOCK_HORIZON_DAYS
    progress = max(0.0, min(100.0, (horizon - days) / horizon * 100))
    return TaxClock(
        incorporation_date=inc,
        deadline=deadline,
        days_remaining=days,
        months_remaining=months,
        status=_band(days, lc.TAX_CLOCK_BANDS),
        progress=round(progress, 1),
    )


def event_status(event_date, today: date) -> Dict[str, Any]:
    d = require_date(event_date, "event_date")
    days = (d - today).days
    status = _band(days, lc.EVENT_BANDS)
    return {
        "status": status,
        "days_until": days,
        "label": "Overdue" if status == "overdue" else f"{days}d",
        "tone": "destructive" if status in ("overdue", "urgent") else ("warning" if status == "warning" else "success"),
    }


def split_events(events: Iterable[Dict[str, Any]], today: date) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """(upcoming, past), each ascending by date. Today's events are upcoming."""
    ordered = sorted(events, key=lambda e: require_date(e.get("event_date"), "event_date"))
    upcoming: List[Dict[str, Any]] = []
    past: List[Dict[str, Any]] = []
    for ev in ordered:
        d = require_date(ev.get("event_date"), "event_date")
        row = {**ev, **event_status(d, today)}
        (upcoming if d >= today else past).append(row)
    return upcoming, past


def domain_expiry(domain: Dict[str, Any], today: date) -> Dict[str, Any]:
    exp: Optional[date] = parse_any_date(domain.get("expiration_date"))
    if exp is None:
        return {"days_until_expiry": None, "status": "unknown"}
    days = (exp - today).days
    if days < 0:
        status = "expired"
    elif days <= lc.EVENT_BANDS["warning"]:
        status = "expiring"
    else:
        status = "active"
    return {"days_until_expiry": days, "status": status}


def preset_event(preset: Dict[str, str], on: date) -> Dict[str, Any]:
    """A new calendar event pre-filled from one of the filing presets."""
    return {
        "title": preset["name"],
        "description": f"Form {preset['form']}",
        "event_date": on.isoformat(),
        "event_type": preset["type"],
        "is_reminder": True,
        "reminder_days": lc.PRESET_REMINDER_DAYS,
    }
