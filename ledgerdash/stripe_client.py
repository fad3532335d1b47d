# ledgerdash/stripe_client.py
"""
Read-only proxy over the Stripe REST API.

Each method returns Stripe's own JSON (amounts in minor units, unix
timestamps in seconds). ``dispatch`` accepts the action names the dashboard
sends (``getBalance``, ``getCharges``, ...) with camelCase params.

No retries. Every request carries a timeout.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

import requests

from ledgerdash.errors import InvalidArgument, UpstreamFailure

log = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.stripe.com/v1"
DEFAULT_LIMIT = 100


def _log_step(step: str, **details) -> None:
    if details:
        log.info("[STRIPE-DATA] %s %s", step, details)
    else:
        log.info("[STRIPE-DATA] %s", step)


def _flatten_params(params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Stripe takes nested filters in bracket form: {"created": {"gte": 1}}
    becomes {"created[gte]": 1}; lists go out as repeated ``key[]``.
    """
    out: Dict[str, Any] = {}
    for k, v in params.items():
        if v is None:
            continue
        if isinstance(v, dict):
            for sub_k, sub_v in v.items():
                if sub_v is not None:
                    out[f"{k}[{sub_k}]"] = sub_v
        elif isinstance(v, (list, tuple)):
            out[f"{k}[]"] = list(v)
        elif isinstance(v, bool):
            out[k] = "true" if v else "false"
        else:
            out[k] = v
    return out


class StripeClient:
    def __init__(
        self,
        secret_key: str,
        session: Optional[requests.Session] = None,
        base_url: str = DEFAULT_API_BASE,
        timeout: float = 20.0,
    ):
        self.secret_key = secret_key or ""
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings, session: Optional[requests.Session] = None) -> "StripeClient":
        return cls(
            settings.stripe_secret_key,
            session=session,
            base_url=settings.stripe_api_base,
            timeout=settings.http_timeout,
        )

    # ---- transport ----
    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not self.secret_key:
            raise UpstreamFailure("STRIPE_SECRET_KEY is not set", action=path)
        try:
            r = self.session.get(
                f"{self.base_url}/{path}",
                params=_flatten_params(params or {}),
                headers={"Authorization": f"Bearer {self.secret_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            _log_step("ERROR", path=path, error=e.__class__.__name__)
            raise UpstreamFailure(f"Payments API unreachable ({e.__class__.__name__})", action=path)

        if r.status_code >= 400:
            msg = ""
            try:
                msg = ((r.json() or {}).get("error") or {}).get("message") or ""
            except ValueError:
                pass
            _log_step("ERROR", path=path, status=r.status_code)
            raise UpstreamFailure(
                f"Payments API error {r.status_code}" + (f": {msg}" if msg else ""),
                action=path,
            )
        try:
            return r.json()
        except ValueError:
            raise UpstreamFailure("Payments API returned invalid JSON", action=path)

    def _list(self, path: str, step: str, params: Dict[str, Any]) -> Dict[str, Any]:
        result = self._get(path, params)
        _log_step(step, count=len(result.get("data") or []))
        return result

    # ---- actions ----
    def get_balance(self) -> Dict[str, Any]:
        result = self._get("balance")
        _log_step("Balance retrieved")
        return result

    def get_payment_intents(self, limit: int = DEFAULT_LIMIT, starting_after=None, created=None) -> Dict[str, Any]:
        return self._list("payment_intents", "Payment intents retrieved", {
            "limit": limit,
            "expand": ["data.customer"],
            "starting_after": starting_after,
            "created": created,
        })

    def get_charges(self, limit: int = DEFAULT_LIMIT, starting_after=None, created=None) -> Dict[str, Any]:
        return self._list("charges", "Charges retrieved", {
            "limit": limit,
            "expand": ["data.customer", "data.balance_transaction"],
            "starting_after": starting_after,
            "created": created,
        })

    def get_payouts(self, limit: int = DEFAULT_LIMIT, starting_after=None, created=None) -> Dict[str, Any]:
        return self._list("payouts", "Payouts retrieved", {
            "limit": limit,
            "starting_after": starting_after,
            "created": created,
        })

    def get_balance_transactions(
        self, limit: int = DEFAULT_LIMIT, starting_after=None, created=None, type=None
    ) -> Dict[str, Any]:
        return self._list("balance_transactions", "Balance transactions retrieved", {
            "limit": limit,
            "starting_after": starting_after,
            "created": created,
            "type": type,
        })

    def get_customers(self, limit: int = DEFAULT_LIMIT, starting_after=None) -> Dict[str, Any]:
        return self._list("customers", "Customers retrieved", {
            "limit": limit,
            "starting_after": starting_after,
        })

    def get_subscriptions(self, limit: int = DEFAULT_LIMIT, status: str = "all") -> Dict[str, Any]:
        return self._list("subscriptions", "Subscriptions retrieved", {
            "limit": limit,
            "status": status or "all",
        })

    def get_invoices(self, limit: int = DEFAULT_LIMIT, starting_after=None, status=None) -> Dict[str, Any]:
        return self._list("invoices", "Invoices retrieved", {
            "limit": limit,
            "starting_after": starting_after,
            "status": status,
        })

    def get_products(self, limit: int = DEFAULT_LIMIT) -> Dict[str, Any]:
        return self._list("products", "Products retrieved", {"limit": limit, "active": True})

    def get_dashboard_summary(self) -> Dict[str, Any]:
        """Balance, recent charges, payouts and balance transactions, fetched in parallel."""
        with ThreadPoolExecutor(max_workers=4) as pool:
            balance = pool.submit(self._get, "balance")
            charges = pool.submit(self._get, "charges", {"limit": 100, "expand": ["data.balance_transaction"]})
            payouts = pool.submit(self._get, "payouts", {"limit": 50})
            txns = pool.submit(self._get, "balance_transactions", {"limit": 100})
            result = {
                "balance": balance.result(),
                "charges": charges.result().get("data") or [],
                "payouts": payouts.result().get("data") or [],
                "balanceTransactions": txns.result().get("data") or [],
            }
        _log_step("Dashboard summary retrieved", charges=len(result["charges"]))
        return result

    # ---- wire dispatch ----
    def dispatch(self, action: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        p = params or {}
        _log_step("Received request", action=action)
        paging = {"limit": p.get("limit") or DEFAULT_LIMIT}

        if action == "getBalance":
            return self.get_balance()
        if action == "getPaymentIntents":
            return self.get_payment_intents(starting_after=p.get("startingAfter"), created=p.get("created"), **paging)
        if action == "getCharges":
            return self.get_charges(starting_after=p.get("startingAfter"), created=p.get("created"), **paging)
        if action == "getPayouts":
            return self.get_payouts(starting_after=p.get("startingAfter"), created=p.get("created"), **paging)
        if action == "getBalanceTransactions":
            return self.get_balance_transactions(
                starting_after=p.get("startingAfter"), created=p.get("created"), type=p.get("type"), **paging
            )
        if action == "getCustomers":
            return self.get_customers(starting_after=p.get("startingAfter"), **paging)
        if action == "getSubscriptions":
            return self.get_subscriptions(status=p.get("status") or "all", **paging)
        if action == "getInvoices":
            return self.get_invoices(starting_after=p.get("startingAfter"), status=p.get("status"), **paging)
        if action == "getProducts":
            return self.get_products(**paging)
        if action == "getDashboardSummary":
            return self.get_dashboard_summary()
        raise InvalidArgument(f"Unknown action: {action}", action=action)


def charges_in_window(client: StripeClient, start_ts: int, end_ts: int) -> List[Dict[str, Any]]:
    """All charges created within [start_ts, end_ts], following pagination."""
    out: List[Dict[str, Any]] = []
    after = None
    while True:
        page = client.get_charges(limit=DEFAULT_LIMIT, starting_after=after, created={"gte": start_ts, "lte": end_ts})
        data = page.get("data") or []
        out.extend(data)
        if not page.get("has_more") or not data:
            return out
        after = data[-1].get("id")
