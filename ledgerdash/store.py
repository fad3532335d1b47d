# ledgerdash/store.py
"""
Owner-scoped repositories over the Supabase REST (PostgREST) endpoint.

Every call takes the owner id explicitly and every query is filtered on
``user_id``, so one owner can never read or touch another owner's rows.
Update/delete of an id the owner does not have raises NotFound.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests

from ledgerdash import ledger_config as lc
from ledgerdash.aggregation import EventKind
from ledgerdash.dates import require_date
from ledgerdash.errors import InvalidArgument, InvalidRule, NotFound, UpstreamFailure
from ledgerdash.occurrences import RecurringRule

log = logging.getLogger(__name__)

Params = List[Tuple[str, str]]


# ==============================
# Transport
# ==============================
class SupabaseBackend:
    def __init__(self, url: str, service_key: str, session: Optional[requests.Session] = None, timeout: float = 20.0):
        self.url = (url or "").rstrip("/")
        self.service_key = service_key or ""
        self.session = session or requests.Session()
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings, session: Optional[requests.Session] = None) -> "SupabaseBackend":
        return cls(settings.supabase_url, settings.supabase_service_key, session=session, timeout=settings.http_timeout)

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        h = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            h["Prefer"] = prefer
        return h

    def request(
        self,
        method: str,
        table: str,
        params: Optional[Params] = None,
        payload: Any = None,
        prefer: Optional[str] = None,
        owner: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        if not self.url or not self.service_key:
            raise UpstreamFailure("Store is not configured (SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY)", action=table)
        try:
            r = self.session.request(
                method,
                f"{self.url}/rest/v1/{table}",
                params=params or [],
                json=payload,
                headers=self._headers(prefer),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            log.error("Store %s %s failed for owner=%s: %s", method, table, owner, e.__class__.__name__)
            raise UpstreamFailure(f"Store unreachable ({e.__class__.__name__})", owner=owner, action=table)

        if r.status_code not in (200, 201, 204):
            log.error("Store %s %s error for owner=%s: %s - %s", method, table, owner, r.status_code, r.text[:200])
            raise UpstreamFailure(f"Store error {r.status_code} on {table}", owner=owner, action=table)
        if r.status_code == 204 or not r.content:
            return []
        try:
            data = r.json()
        except ValueError:
            raise UpstreamFailure(f"Store returned invalid JSON for {table}", owner=owner, action=table)
        return data if isinstance(data, list) else [data]


def _owner_filter(owner: str) -> Params:
    if not owner:
        raise InvalidArgument("Owner id is required")
    return [("user_id", f"eq.{owner}")]


def _clean(data: Dict[str, Any], columns: Iterable[str]) -> Dict[str, Any]:
    """Keep writable columns only; id/user_id/timestamps never come from the client."""
    allowed = set(columns)
    return {k: v for k, v in (data or {}).items() if k in allowed}


# ==============================
# Repositories
# ==============================
class Repository:
    table = ""
    columns: Tuple[str, ...] = ()
    order = "created_at.desc"

    def __init__(self, backend: SupabaseBackend):
        self.backend = backend

    def list(self, owner: str) -> List[Dict[str, Any]]:
        return self.backend.request(
            "GET", self.table,
            params=[("select", "*")] + _owner_filter(owner) + [("order", self.order)],
            owner=owner,
        )

    def get(self, owner: str, entity_id: str) -> Dict[str, Any]:
        rows = self.backend.request(
            "GET", self.table,
            params=[("select", "*"), ("id", f"eq.{entity_id}")] + _owner_filter(owner),
            owner=owner,
        )
        if not rows:
            raise NotFound(f"{self.table} {entity_id} not found", owner=owner, entity_id=entity_id)
        return rows[0]

    def validate(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return data

    def create(self, owner: str, data: Dict[str, Any]) -> Dict[str, Any]:
        row = self.validate(_clean(data, self.columns))
        _owner_filter(owner)
        log.info("Creating %s for owner=%s", self.table, owner)
        rows = self.backend.request(
            "POST", self.table,
            payload={**row, "user_id": owner},
            prefer="return=representation",
            owner=owner,
        )
        return rows[0] if rows else {**row, "user_id": owner}

    def update(self, owner: str, entity_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        # merged row must still pass validate (e.g. end_date moved before start_date)
        changes = _clean(data, self.columns)
        if not changes:
            raise InvalidArgument("Nothing to update", owner=owner, entity_id=entity_id)
        current = self.get(owner, entity_id)
        validated = self.validate({**_clean(current, self.columns), **changes})
        return self._patch(owner, entity_id, {k: validated[k] for k in changes})

    def _patch(self, owner: str, entity_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        log.info("Updating %s id=%s owner=%s", self.table, entity_id, owner)
        rows = self.backend.request(
            "PATCH", self.table,
            params=[("id", f"eq.{entity_id}")] + _owner_filter(owner),
            payload=changes,
            prefer="return=representation",
            owner=owner,
        )
        if not rows:
            raise NotFound(f"{self.table} {entity_id} not found", owner=owner, entity_id=entity_id)
        return rows[0]

    def delete(self, owner: str, entity_id: str) -> None:
        log.info("Deleting %s id=%s owner=%s", self.table, entity_id, owner)
        rows = self.backend.request(
            "DELETE", self.table,
            params=[("id", f"eq.{entity_id}")] + _owner_filter(owner),
            prefer="return=representation",
            owner=owner,
        )
        if not rows:
            raise NotFound(f"{self.table} {entity_id} not found", owner=owner, entity_id=entity_id)


class ManualTransactions(Repository):
    table = "manual_transactions"
    columns = ("transaction_date", "amount", "currency", "type", "category", "description", "notes")
    order = "transaction_date.desc"

    def list(self, owner: str, start: Optional[date] = None, end: Optional[date] = None) -> List[Dict[str, Any]]:
        params: Params = [("select", "*")] + _owner_filter(owner)
        if start:
            params.append(("transaction_date", f"gte.{start.isoformat()}"))
        if end:
            params.append(("transaction_date", f"lte.{end.isoformat()}"))
        params.append(("order", self.order))
        return self.backend.request("GET", self.table, params=params, owner=owner)

    def validate(self, data: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(data)
        row["type"] = EventKind.from_string(row.get("type")).value
        row["transaction_date"] = require_date(row.get("transaction_date"), "transaction_date").isoformat()
        try:
            amount = int(row.get("amount"))
        except (TypeError, ValueError):
            raise InvalidArgument(f"Invalid amount: {row.get('amount')!r}")
        if amount < 0:
            raise InvalidArgument("Amount must be non-negative minor units")
        row["amount"] = amount
        row["currency"] = (row.get("currency") or lc.DEFAULT_CURRENCY).upper()
        row["category"] = row.get("category") or "Uncategorized"
        return row


class RecurringTransactions(Repository):
    table = "recurring_transactions"
    columns = ("name", "amount", "currency", "type", "frequency", "start_date", "end_date", "category", "is_active")
    order = "created_at.desc"

    def validate(self, data: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(data)
        if not (row.get("name") or "").strip():
            raise InvalidRule("name is required")
        row.setdefault("currency", lc.DEFAULT_CURRENCY)
        row.setdefault("is_active", True)
        rule = RecurringRule.from_record(row)
        row.update(
            amount=rule.amount,
            type=rule.kind.value,
            frequency=rule.frequency.value,
            start_date=rule.start_date.isoformat(),
            end_date=rule.end_date.isoformat() if rule.end_date else None,
            currency=rule.currency,
        )
        return row

    def toggle(self, owner: str, entity_id: str, active: bool) -> Dict[str, Any]:
        return self._patch(owner, entity_id, {"is_active": bool(active)})

    def rules(self, owner: str) -> List[RecurringRule]:
        return [RecurringRule.from_record(r) for r in self.list(owner)]


class Domains(Repository):
    table = "domains"
    columns = ("domain_name", "registrar", "expiration_date", "auto_renew", "primary_use", "notes")
    order = "expiration_date.asc.nullslast"

    def validate(self, data: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(data)
        if not (row.get("domain_name") or "").strip():
            raise InvalidArgument("domain_name is required")
        if row.get("expiration_date"):
            row["expiration_date"] = require_date(row["expiration_date"], "expiration_date").isoformat()
        row.setdefault("auto_renew", False)
        return row


class CorporateEvents(Repository):
    table = "corporate_events"
    columns = ("title", "description", "event_date", "event_type", "is_reminder", "reminder_days")
    order = "event_date.asc"

    def validate(self, data: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(data)
        if not (row.get("title") or "").strip():
            raise InvalidArgument("title is required")
        row["event_date"] = require_date(row.get("event_date"), "event_date").isoformat()
        row["event_type"] = row.get("event_type") or "general"
        if row["event_type"] not in lc.EVENT_TYPES:
            raise InvalidArgument(f"Unknown event type: {row['event_type']!r}")
        row.setdefault("is_reminder", True)
        row.setdefault("reminder_days", lc.DEFAULT_REMINDER_DAYS)
        return row


class BusinessEntityRepo:
    table = "business_entity"
    columns = (
        "company_name", "entity_type", "state_of_incorporation", "incorporation_date",
        "fiscal_year_end", "hawaii_business_id", "irs_ein",
        "registered_agent_name", "registered_agent_address", "registered_agent_phone",
    )

    def __init__(self, backend: SupabaseBackend):
        self.backend = backend

    def get(self, owner: str) -> Optional[Dict[str, Any]]:
        rows = self.backend.request(
            "GET", self.table,
            params=[("select", "*")] + _owner_filter(owner) + [("limit", "1")],
            owner=owner,
        )
        return rows[0] if rows else None

    def save(self, owner: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Update the owner's entity when one exists, insert it otherwise."""
        row = _clean(data, self.columns)
        if row.get("incorporation_date"):
            row["incorporation_date"] = require_date(row["incorporation_date"], "incorporation_date").isoformat()
        existing = self.get(owner)
        log.info("Saving business entity for owner=%s (%s)", owner, "update" if existing else "insert")
        if existing:
            rows = self.backend.request(
                "PATCH", self.table,
                params=_owner_filter(owner),
                payload=row,
                prefer="return=representation",
                owner=owner,
            )
        else:
            rows = self.backend.request(
                "POST", self.table,
                payload={**row, "user_id": owner},
                prefer="return=representation",
                owner=owner,
            )
        return rows[0] if rows else {**(existing or {}), **row}


class Store:
    """All repositories over one backend."""

    def __init__(self, backend: SupabaseBackend):
        self.backend = backend
        self.manual = ManualTransactions(backend)
        self.recurring = RecurringTransactions(backend)
        self.domains = Domains(backend)
        self.events = CorporateEvents(backend)
        self.entity = BusinessEntityRepo(backend)

    @classmethod
    def from_settings(cls, settings, session: Optional[requests.Session] = None) -> "Store":
        return cls(SupabaseBackend.from_settings(settings, session=session))
