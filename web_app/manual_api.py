# web_app/manual_api.py
from __future__ import annotations

from flask import Blueprint, jsonify, request

from ledgerdash import ledger_config as lc
from ledgerdash.dates import require_date
from web_app import services

manual_api = Blueprint("manual_api", __name__, url_prefix="/api/manual")


@manual_api.get("")
def list_manual():
    start = request.args.get("start")
    end = request.args.get("end")
    rows = services.store().manual.list(
        services.owner_id(),
        require_date(start, "start") if start else None,
        require_date(end, "end") if end else None,
    )
    return jsonify({"ok": True, "transactions": rows})


@manual_api.post("")
def create_manual():
    row = services.store().manual.create(services.owner_id(), services.json_body())
    return jsonify({"ok": True, "transaction": row}), 201


@manual_api.patch("/<tx_id>")
def update_manual(tx_id: str):
    row = services.store().manual.update(services.owner_id(), tx_id, services.json_body())
    return jsonify({"ok": True, "transaction": row})


@manual_api.delete("/<tx_id>")
def delete_manual(tx_id: str):
    services.store().manual.delete(services.owner_id(), tx_id)
    return jsonify({"ok": True})


@manual_api.get("/options")
def manual_options():
    return jsonify({"ok": True, "kinds": lc.MANUAL_KINDS, "categories": lc.MANUAL_CATEGORIES})
