# web_app/services.py
# Request-scoped accessors shared by the app and its blueprints.
from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any, Dict, Tuple

from flask import current_app, g, request

from ledgerdash.errors import InvalidArgument, NotAuthenticated
from ledgerdash.occurrences import DateWindow
from ledgerdash.settings import Settings
from ledgerdash.stripe_client import StripeClient
from ledgerdash.store import Store

EXTENSION_KEY = "ledgerdash"


def settings() -> Settings:
    return current_app.extensions[EXTENSION_KEY]["settings"]


def store() -> Store:
    return current_app.extensions[EXTENSION_KEY]["store"]


def payments() -> StripeClient:
    return current_app.extensions[EXTENSION_KEY]["payments"]


def owner_id() -> str:
    ident = getattr(g, "identity", None)
    if ident is None:
        raise NotAuthenticated("No identity on request")
    return ident.subject


def json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidArgument("Request body must be a JSON object")
    return data


def window_from_args(default_days: int = 30) -> DateWindow:
    """?start=YYYY-MM-DD&end=YYYY-MM-DD; defaults to the last ``default_days`` days."""
    end = request.args.get("end") or date.today().isoformat()
    start = request.args.get("start")
    if not start:
        end_d = DateWindow.parse(end, end).end
        start = date.fromordinal(end_d.toordinal() - default_days + 1)
    return DateWindow.parse(start, end)


def unix_bounds(window: DateWindow) -> Tuple[int, int]:
    """Whole-day UTC bounds of the window as unix seconds (inclusive)."""
    start = datetime.combine(window.start, time.min, tzinfo=timezone.utc)
    end = datetime.combine(window.end, time.max, tzinfo=timezone.utc)
    return int(start.timestamp()), int(end.timestamp())
