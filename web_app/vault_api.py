# web_app/vault_api.py
# Business entity, domain portfolio and corporate calendar.
from __future__ import annotations

from datetime import date

from flask import Blueprint, jsonify, request

from ledgerdash import ledger_config as lc
from ledgerdash.dates import require_date
from ledgerdash.errors import NotFound
from ledgerdash.vault import domain_expiry, preset_event, split_events, tax_clock
from web_app import services

vault_api = Blueprint("vault_api", __name__, url_prefix="/api/vault")


def _today() -> date:
    on = request.args.get("today")
    return require_date(on, "today") if on else date.today()


# ---- Business entity ----
@vault_api.get("/entity")
def get_entity():
    return jsonify({"ok": True, "entity": services.store().entity.get(services.owner_id())})


@vault_api.put("/entity")
def save_entity():
    row = services.store().entity.save(services.owner_id(), services.json_body())
    return jsonify({"ok": True, "entity": row})


@vault_api.get("/tax-clock")
def get_tax_clock():
    entity = services.store().entity.get(services.owner_id())
    if not entity or not entity.get("incorporation_date"):
        raise NotFound("No incorporation date on file")
    return jsonify({"ok": True, "tax_clock": tax_clock(entity["incorporation_date"], _today()).to_dict()})


# ---- Domains ----
@vault_api.get("/domains")
def list_domains():
    today = _today()
    rows = services.store().domains.list(services.owner_id())
    return jsonify({"ok": True, "domains": [{**d, **domain_expiry(d, today)} for d in rows]})


@vault_api.post("/domains")
def create_domain():
    row = services.store().domains.create(services.owner_id(), services.json_body())
    return jsonify({"ok": True, "domain": row}), 201


@vault_api.patch("/domains/<domain_id>")
def update_domain(domain_id: str):
    row = services.store().domains.update(services.owner_id(), domain_id, services.json_body())
    return jsonify({"ok": True, "domain": row})


@vault_api.delete("/domains/<domain_id>")
def delete_domain(domain_id: str):
    services.store().domains.delete(services.owner_id(), domain_id)
    return jsonify({"ok": True})


# ---- Corporate calendar ----
@vault_api.get("/events")
def list_events():
    rows = services.store().events.list(services.owner_id())
    upcoming, past = split_events(rows, _today())
    return jsonify({"ok": True, "upcoming": upcoming, "past": past})


@vault_api.post("/events")
def create_event():
    body = services.json_body()
    form = body.get("preset")
    if form:
        preset = next((p for p in lc.DEADLINE_PRESETS if p["form"] == form), None)
        if preset is None:
            raise NotFound(f"Unknown deadline preset: {form}")
        on = require_date(body["event_date"], "event_date") if body.get("event_date") else date.today()
        body = {**preset_event(preset, on), **{k: v for k, v in body.items() if k != "preset"}}
    row = services.store().events.create(services.owner_id(), body)
    return jsonify({"ok": True, "event": row}), 201


@vault_api.patch("/events/<event_id>")
def update_event(event_id: str):
    row = services.store().events.update(services.owner_id(), event_id, services.json_body())
    return jsonify({"ok": True, "event": row})


@vault_api.delete("/events/<event_id>")
def delete_event(event_id: str):
    services.store().events.delete(services.owner_id(), event_id)
    return jsonify({"ok": True})


@vault_api.get("/deadline-presets")
def deadline_presets():
    return jsonify({"ok": True, "presets": lc.DEADLINE_PRESETS, "event_types": lc.EVENT_TYPES})
