# ledgerdash/formatters.py
# Display helpers shared by statement rows, the Jinja statement template and JSON payloads.
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from ledgerdash import ledger_config as lc

_CURRENCY_SYMBOLS = {
    "CAD": "$",
    "USD": "US$",
    "EUR": "€",
    "GBP": "£",
}


def format_currency(amount_minor: int, currency: str = lc.DEFAULT_CURRENCY) -> str:
    """Minor units -> '$1,234.56' (negative as '-$1,234.56')."""
    code = (currency or lc.DEFAULT_CURRENCY).upper()
    symbol = _CURRENCY_SYMBOLS.get(code, f"{code} ")
    sign = "-" if amount_minor < 0 else ""
    return f"{sign}{symbol}{abs(amount_minor) / 100:,.2f}"


def format_date(value) -> str:
    """'Mar 5, 2025'. Accepts a date/datetime or unix seconds."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = datetime.fromtimestamp(value, tz=timezone.utc)
    return f"{value:%b} {value.day}, {value.year}"


def format_date_time(value: datetime) -> str:
    return f"{value:%b} {value.day}, {value.year}, {value:%H:%M}"


def status_tone(status: Optional[str]) -> str:
    return lc.STATUS_TONES.get((status or "").lower(), "muted")


def transaction_type_label(kind: Optional[str]) -> str:
    k = kind or ""
    if k in lc.TRANSACTION_TYPE_LABELS:
        return lc.TRANSACTION_TYPE_LABELS[k]
    return (k[:1].upper() + k[1:]).replace("_", " ")
