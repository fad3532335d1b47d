# web_app/recurring_api.py
from __future__ import annotations

from datetime import date

from flask import Blueprint, jsonify

from ledgerdash.occurrences import RecurringRule, next_occurrence, recurring_totals
from ledgerdash.errors import InvalidArgument
from web_app import services

recurring_api = Blueprint("recurring_api", __name__, url_prefix="/api/recurring")


def _with_next_due(row: dict, today: date) -> dict:
    rule = RecurringRule.from_record(row)
    nxt = next_occurrence(rule, today) if rule.active else None
    return {**row, "frequency_label": rule.frequency.label, "next_due": nxt.isoformat() if nxt else None}


@recurring_api.get("")
def list_recurring():
    today = date.today()
    rows = services.store().recurring.list(services.owner_id())
    return jsonify({"ok": True, "transactions": [_with_next_due(r, today) for r in rows]})


@recurring_api.post("")
def create_recurring():
    row = services.store().recurring.create(services.owner_id(), services.json_body())
    return jsonify({"ok": True, "transaction": row}), 201


@recurring_api.patch("/<rule_id>")
def update_recurring(rule_id: str):
    row = services.store().recurring.update(services.owner_id(), rule_id, services.json_body())
    return jsonify({"ok": True, "transaction": row})


@recurring_api.post("/<rule_id>/toggle")
def toggle_recurring(rule_id: str):
    body = services.json_body()
    if "is_active" not in body:
        raise InvalidArgument("is_active is required")
    row = services.store().recurring.toggle(services.owner_id(), rule_id, bool(body["is_active"]))
    return jsonify({"ok": True, "transaction": row})


@recurring_api.delete("/<rule_id>")
def delete_recurring(rule_id: str):
    services.store().recurring.delete(services.owner_id(), rule_id)
    return jsonify({"ok": True})


@recurring_api.get("/totals")
def recurring_window_totals():
    window = services.window_from_args()
    rules = services.store().recurring.rules(services.owner_id())
    totals = recurring_totals(rules, window)
    return jsonify({
        "ok": True,
        "window": {"start": window.start.isoformat(), "end": window.end.isoformat()},
        **totals.to_dict(),
    })
