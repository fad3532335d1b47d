from datetime import datetime, timezone

import pytest

from fakes import FakeResponse, FakeSession
from ledgerdash.auth import Identity
from ledgerdash.errors import NotAuthenticated, NotFound, UpstreamFailure
from ledgerdash.occurrences import RecurringRule
from ledgerdash.settings import Settings
from ledgerdash.stripe_client import StripeClient
from web_app.app import create_app

OWNER = "auth0|owner"
AUTH = {"Authorization": "Bearer good"}


def ts(y, m, d):
    return int(datetime(y, m, d, 12, tzinfo=timezone.utc).timestamp())


# ---- in-memory collaborators ----
class MemoryRepo:
    def __init__(self, rows=None):
        self.rows = [dict(r, user_id=r.get("user_id", OWNER)) for r in rows or []]
        self.fail = None

    def list(self, owner, *args):
        if self.fail:
            raise self.fail
        return [r for r in self.rows if r["user_id"] == owner]

    def create(self, owner, data):
        row = {**data, "id": f"id{len(self.rows) + 1}", "user_id": owner}
        self.rows.append(row)
        return row

    def _find(self, owner, entity_id):
        for r in self.rows:
            if r["id"] == entity_id and r["user_id"] == owner:
                return r
        raise NotFound(f"{entity_id} not found", owner=owner, entity_id=entity_id)

    def update(self, owner, entity_id, data):
        row = self._find(owner, entity_id)
        row.update(data)
        return row

    def delete(self, owner, entity_id):
        self.rows.remove(self._find(owner, entity_id))


class MemoryRecurring(MemoryRepo):
    def toggle(self, owner, entity_id, active):
        return self.update(owner, entity_id, {"is_active": active})

    def rules(self, owner):
        return [RecurringRule.from_record(r) for r in self.list(owner)]


class MemoryEntity:
    def __init__(self, row=None):
        self.row = row

    def get(self, owner):
        return self.row

    def save(self, owner, data):
        self.row = {**(self.row or {}), **data}
        return self.row


class MemoryStore:
    def __init__(self):
        self.manual = MemoryRepo([
            {"id": "m1", "transaction_date": "2025-03-20", "amount": 2500, "currency": "CAD",
             "type": "expense", "category": "Software/Tools", "description": "Plugins"},
        ])
        self.recurring = MemoryRecurring([
            {"id": "r1", "name": "Rent", "amount": 500, "type": "expense", "frequency": "monthly",
             "start_date": "2025-01-15", "end_date": None, "is_active": True},
        ])
        self.domains = MemoryRepo([{"id": "d1", "domain_name": "xz1.example", "expiration_date": "2025-03-20"}])
        self.events = MemoryRepo([{"id": "e1", "title": "File N-30", "event_date": "2025-04-20"}])
        self.entity = MemoryEntity({"company_name": "XZ1", "incorporation_date": "2024-12-01"})


class FakeIdentityProvider:
    def resolve(self, token):
        if token == "good":
            return Identity(OWNER, "owner@example.com")
        if token == "stranger":
            return Identity("auth0|other", "other@example.com")
        raise NotAuthenticated("Invalid or expired token")


CHARGE = {
    "id": "ch_1", "amount": 10000, "currency": "cad", "status": "succeeded",
    "created": ts(2025, 3, 5), "description": "Beat license",
    "balance_transaction": {"fee": 300, "net": 9700},
}


def stripe_responder(method, url, kwargs):
    if url.endswith("/balance"):
        return FakeResponse(200, {"available": [{"amount": 7000, "currency": "cad"}], "pending": []})
    if url.endswith("/charges"):
        return FakeResponse(200, {"data": [CHARGE, {**CHARGE, "id": "ch_2", "status": "failed"}], "has_more": False})
    if url.endswith("/payouts"):
        return FakeResponse(200, {"data": [{"id": "po_1", "status": "paid"}], "has_more": False})
    return FakeResponse(200, {"data": [{"id": "txn_1", "type": "stripe_fee"}], "has_more": False})


@pytest.fixture
def store():
    return MemoryStore()


def build_app(store, settings=None, responder=stripe_responder):
    settings = settings or Settings(allowed_emails=("owner@example.com",), stripe_secret_key="sk_test")
    payments = StripeClient("sk_test", session=FakeSession(responder))
    app = create_app(settings=settings, store=store, payments=payments, identity_provider=FakeIdentityProvider())
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(store):
    return build_app(store).test_client()


# ---- gate ----
def test_healthz_is_open(client):
    assert client.get("/healthz").get_json() == {"ok": True}


def test_missing_token_is_401(client):
    r = client.get("/api/manual")
    assert r.status_code == 401
    assert r.get_json()["ok"] is False


def test_unlisted_identity_is_403(client):
    r = client.get("/api/manual", headers={"Authorization": "Bearer stranger"})
    assert r.status_code == 403


def test_auth_disabled_uses_dev_owner(store):
    app = build_app(store, Settings(auth_disabled=True, dev_owner_id=OWNER))
    r = app.test_client().get("/api/manual")
    assert r.status_code == 200
    assert [t["id"] for t in r.get_json()["transactions"]] == ["m1"]


# ---- dashboard ----
def test_dashboard_month_bucket(client):
    r = client.get("/api/dashboard?start=2025-03-01&end=2025-03-31&group_by=month", headers=AUTH)
    assert r.status_code == 200
    body = r.get_json()
    assert body["errors"] == []
    [bucket] = body["chart"]
    assert bucket["key"] == "2025-03"
    assert (bucket["income"], bucket["expense"], bucket["fees"], bucket["net"]) == (10000, 2500, 300, 7200)
    assert body["stats"]["successful_payments"] == 1
    assert body["stats"]["available_balance"] == 7000
    assert body["categories"][0] == {"category": "Stripe Payments", "total": 10000, "count": 1}
    assert body["recurring"]["total_expense"] == 500
    assert body["payouts"][0]["tone"] == "success"
    assert body["activity"][0]["label"] == "Stripe Fee"


def test_dashboard_partial_failure_keeps_other_sources(store):
    def down(method, url, kwargs):
        return FakeResponse(503, {"error": {"message": "maintenance"}})

    c = build_app(store, responder=down).test_client()
    body = c.get("/api/dashboard?start=2025-03-01&end=2025-03-31&group_by=month", headers=AUTH).get_json()
    assert body["ok"] is False
    assert [e["source"] for e in body["errors"]] == ["payments"]
    assert body["chart"][0]["expense"] == 2500
    assert "recurring" in body


def test_dashboard_store_failure_reported(store, client):
    store.manual.fail = UpstreamFailure("Store error 500 on manual_transactions")
    r = client.get("/api/dashboard?start=2025-03-01&end=2025-03-31", headers=AUTH)
    assert r.status_code == 200
    body = r.get_json()
    assert body["ok"] is False
    assert body["errors"] == [{"source": "manual", "error": "Store error 500 on manual_transactions"}]
    assert body["chart"][0]["income"] == 10000


def test_dashboard_bad_group_by(client):
    r = client.get("/api/dashboard?group_by=quarter", headers=AUTH)
    assert r.status_code == 400


def test_dashboard_bad_window(client):
    r = client.get("/api/dashboard?start=2025-04-01&end=2025-03-01", headers=AUTH)
    assert r.status_code == 400


# ---- CRUD ----
def test_manual_create_and_delete(client, store):
    r = client.post("/api/manual", json={"transaction_date": "2025-03-21", "amount": 100, "type": "income"}, headers=AUTH)
    assert r.status_code == 201
    new_id = r.get_json()["transaction"]["id"]
    assert client.delete(f"/api/manual/{new_id}", headers=AUTH).get_json() == {"ok": True}
    assert client.delete("/api/manual/missing", headers=AUTH).status_code == 404


def test_recurring_list_has_next_due(client):
    rows = client.get("/api/recurring", headers=AUTH).get_json()["transactions"]
    assert rows[0]["id"] == "r1"
    assert rows[0]["next_due"] is not None
    assert rows[0]["frequency_label"] == "Monthly"


def test_recurring_toggle_requires_flag(client, store):
    assert client.post("/api/recurring/r1/toggle", json={}, headers=AUTH).status_code == 400
    r = client.post("/api/recurring/r1/toggle", json={"is_active": False}, headers=AUTH)
    assert r.get_json()["transaction"]["is_active"] is False


def test_recurring_totals(client):
    body = client.get("/api/recurring/totals?start=2025-01-01&end=2025-04-30", headers=AUTH).get_json()
    assert body["total_expense"] == 2000
    assert body["net"] == -2000
    assert body["lines"][0]["occurrences"] == 4
    assert body["lines"][0]["name"] == "Rent"


# ---- vault ----
def test_tax_clock(client):
    body = client.get("/api/vault/tax-clock?today=2025-12-01", headers=AUTH).get_json()
    assert body["tax_clock"]["deadline"] == "2026-03-01"
    assert body["tax_clock"]["status"] == "warning"


def test_tax_clock_without_entity(store, client):
    store.entity.row = None
    assert client.get("/api/vault/tax-clock", headers=AUTH).status_code == 404


def test_domains_carry_expiry(client):
    body = client.get("/api/vault/domains?today=2025-03-01", headers=AUTH).get_json()
    assert body["domains"][0]["status"] == "expiring"


def test_events_split(client):
    body = client.get("/api/vault/events?today=2025-05-01", headers=AUTH).get_json()
    assert body["upcoming"] == []
    assert body["past"][0]["id"] == "e1"


def test_create_event_from_preset(client, store):
    r = client.post("/api/vault/events", json={"preset": "1120", "event_date": "2026-04-15"}, headers=AUTH)
    assert r.status_code == 201
    ev = r.get_json()["event"]
    assert ev["title"] == "IRS Form 1120 (Corporate Tax)"
    assert ev["reminder_days"] == 30
    assert "preset" not in ev


def test_entity_save(client):
    r = client.put("/api/vault/entity", json={"irs_ein": "99-1234567"}, headers=AUTH)
    assert r.get_json()["entity"]["irs_ein"] == "99-1234567"


# ---- payments proxy ----
def test_stripe_proxy_dispatch(client):
    r = client.post("/api/stripe", json={"action": "getPayouts", "params": {"limit": 5}}, headers=AUTH)
    assert r.status_code == 200
    assert r.get_json()["data"][0]["id"] == "po_1"


def test_stripe_proxy_unknown_action(client):
    r = client.post("/api/stripe", json={"action": "dropTables"}, headers=AUTH)
    assert r.status_code == 400
    assert r.get_json() == {"ok": False, "error": "Unknown action: dropTables"}


def test_stripe_proxy_get(client):
    r = client.get("/api/stripe/getBalance", headers=AUTH)
    assert r.get_json()["available"][0]["amount"] == 7000


# ---- statements ----
def test_statement_json(client):
    body = client.get("/api/statement?start=2025-03-01&end=2025-03-31&currency=CAD", headers=AUTH).get_json()
    st = body["statement"]
    assert st["summary"]["net_revenue"] == 7200
    assert st["header"]["file_name"] == "XZ1_Statement_CAD_2025-03-01_to_2025-03-31"
    assert len(st["charge_rows"]) == 1


def test_statement_document_is_attachment(client):
    r = client.get("/statement?start=2025-03-01&end=2025-03-31&currency=USD", headers=AUTH)
    assert r.status_code == 200
    assert "XZ1_Statement_USD_2025-03-01_to_2025-03-31.html" in r.headers["Content-Disposition"]
    html = r.get_data(as_text=True)
    assert "Net Revenue" in html
    assert "Beat license" in html


def test_royalty_statement(client):
    r = client.post("/api/statement/royalty", json={
        "artist_name": "Jane Doe",
        "statement_date": "2025-04-01",
        "entries": [{"date": "2025-03-01", "partner": "DistroKid", "gross": 10000}],
    }, headers=AUTH)
    body = r.get_json()["statement"]
    assert body["artist_total"] == 3000
    assert body["label_total"] == 7000


def test_royalty_statement_bad_date(client):
    r = client.post("/api/statement/royalty", json={
        "artist_name": "Jane Doe",
        "statement_date": "April-ish",
        "entries": [],
    }, headers=AUTH)
    assert r.status_code == 400
    assert "statement_date" in r.get_json()["error"]


def test_manual_options(client):
    body = client.get("/api/manual/options", headers=AUTH).get_json()
    assert "royalty" in body["kinds"]
    assert "Marketing" in body["categories"]
