# web_app/app.py
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from flask import Flask, Response, g, jsonify, render_template, request
from werkzeug.exceptions import HTTPException

from ledgerdash import formatters as fmt
from ledgerdash.aggregation import (
    GroupBy,
    aggregate,
    category_breakdown,
    collect_events,
    filter_window,
    summarize,
)
from ledgerdash.auth import IdentityProvider, authorize, bearer_token, dev_identity
from ledgerdash.dates import require_date
from ledgerdash.errors import InvalidArgument, LedgerError
from ledgerdash.occurrences import recurring_totals
from ledgerdash.settings import Settings, configure_logging
from ledgerdash.statement import Statement, prepare_royalty_statement, prepare_statement
from ledgerdash.store import Store
from ledgerdash.stripe_client import StripeClient, charges_in_window
from web_app import services
from web_app.manual_api import manual_api
from web_app.recurring_api import recurring_api
from web_app.vault_api import vault_api

EXEMPT_PATHS = {"/healthz"}
EXEMPT_PREFIXES = ("/static/",)


# ---- Concurrent fetches: one failure never blocks the rest ----
def fan_out(jobs: Dict[str, Callable[[], Any]]) -> Tuple[Dict[str, Any], List[Dict[str, str]]]:
    results: Dict[str, Any] = {}
    errors: List[Dict[str, str]] = []
    with ThreadPoolExecutor(max_workers=max(1, len(jobs))) as pool:
        futures = {name: pool.submit(fn) for name, fn in jobs.items()}
        for name, fut in futures.items():
            try:
                results[name] = fut.result()
            except LedgerError as e:
                logging.getLogger(__name__).warning("Dashboard source %s failed: %s", name, e.message)
                errors.append({"source": name, "error": e.message})
    return results, errors


def _balance_amount(balance: Optional[dict], bucket: str, currency: str) -> int:
    if not balance:
        return 0
    return sum(int(b.get("amount") or 0) for b in balance.get(bucket) or [] if (b.get("currency") or "").upper() == currency)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[Store] = None,
    payments: Optional[StripeClient] = None,
    identity_provider: Optional[IdentityProvider] = None,
) -> Flask:
    if settings is None:
        settings = Settings.from_env()
        configure_logging(settings)

    app = Flask(__name__)
    app.secret_key = settings.secret_key
    app.extensions[services.EXTENSION_KEY] = {
        "settings": settings,
        "store": store or Store.from_settings(settings),
        "payments": payments or StripeClient.from_settings(settings),
        "identity": identity_provider or IdentityProvider.from_settings(settings),
    }

    # ---- Template helpers ----
    app.jinja_env.filters["money"] = fmt.format_currency
    app.jinja_env.filters["day"] = fmt.format_date
    app.jinja_env.filters["stamp"] = fmt.format_date_time

    app.register_blueprint(manual_api)
    app.register_blueprint(recurring_api)
    app.register_blueprint(vault_api)

    # ------------------ IDENTITY GATE ------------------
    @app.before_request
    def identity_gate():
        p = request.path
        if request.method in ("HEAD", "OPTIONS") or p in EXEMPT_PATHS or p.startswith(EXEMPT_PREFIXES):
            return
        if settings.auth_disabled:
            g.identity = dev_identity(settings.dev_owner_id)
            return
        provider = app.extensions[services.EXTENSION_KEY]["identity"]
        ident = provider.resolve(bearer_token(request.headers.get("Authorization")))
        g.identity = authorize(ident, settings.allowed_emails, settings.required_role)

    # ------------------ ERRORS ------------------
    @app.errorhandler(LedgerError)
    def handle_ledger_error(e: LedgerError):
        ident = getattr(g, "identity", None)
        app.logger.warning(
            "%s %s -> %s: %s owner=%s context=%s",
            request.method, request.path, e.status_code, e.message,
            ident.subject if ident else None, e.context,
        )
        return jsonify({"ok": False, "error": e.message}), e.status_code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        if isinstance(e, HTTPException):
            return jsonify({"ok": False, "error": e.description}), e.code
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"ok": False, "error": "Internal server error"}), 500

    @app.after_request
    def add_no_cache_headers(resp):
        resp.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
        return resp

    # ------------------ ROUTES ------------------
    @app.get("/healthz")
    def healthz():
        return jsonify(ok=True), 200

    @app.get("/api/dashboard")
    def api_dashboard():
        window = services.window_from_args()
        group_by = GroupBy.from_string(request.args.get("group_by") or "day")
        owner = services.owner_id()
        st = services.store()
        client = services.payments()

        results, errors = fan_out({
            "payments": client.get_dashboard_summary,
            "manual": lambda: st.manual.list(owner, window.start, window.end),
            "recurring": lambda: st.recurring.rules(owner),
        })

        summary_data = results.get("payments") or {}
        events = filter_window(
            collect_events(summary_data.get("charges") or [], results.get("manual") or []),
            window,
        )
        home = settings.home_currency
        stats = summarize(events).to_dict()
        stats["available_balance"] = _balance_amount(summary_data.get("balance"), "available", home)
        stats["pending_balance"] = _balance_amount(summary_data.get("balance"), "pending", home)

        payload: Dict[str, Any] = {
            "ok": not errors,
            "window": {"start": window.start.isoformat(), "end": window.end.isoformat()},
            "group_by": group_by.value,
            "stats": stats,
            "chart": [b.to_dict() for b in aggregate(events, group_by)],
            "categories": [c.to_dict() for c in category_breakdown(events)],
            "payouts": [{**p, "tone": fmt.status_tone(p.get("status"))} for p in summary_data.get("payouts") or []],
            "activity": [
                {**t, "label": fmt.transaction_type_label(t.get("type"))}
                for t in summary_data.get("balanceTransactions") or []
            ],
            "errors": errors,
        }
        if "recurring" in results:
            payload["recurring"] = recurring_totals(results["recurring"], window).to_dict()
        return jsonify(payload)

    # ---- Payments proxy ----
    @app.post("/api/stripe")
    def api_stripe():
        body = services.json_body()
        action = body.get("action")
        if not action:
            raise InvalidArgument("action is required")
        params = body.get("params") or {}
        if not isinstance(params, dict):
            raise InvalidArgument("params must be an object")
        return jsonify(services.payments().dispatch(action, params))

    @app.get("/api/stripe/<action>")
    def api_stripe_get(action: str):
        params: Dict[str, Any] = dict(request.args)
        if "limit" in params:
            try:
                params["limit"] = int(params["limit"])
            except ValueError:
                raise InvalidArgument("limit must be an integer")
        return jsonify(services.payments().dispatch(action, params))

    # ---- Statements ----
    def _statement_for_request() -> Statement:
        window = services.window_from_args()
        currency = request.args.get("currency") or settings.home_currency
        owner = services.owner_id()
        start_ts, end_ts = services.unix_bounds(window)
        charges = charges_in_window(services.payments(), start_ts, end_ts)
        manual_rows = services.store().manual.list(owner, window.start, window.end)
        return prepare_statement(
            window,
            currency,
            charges,
            manual_rows,
            rate=settings.conversion_rate,
            company=settings.company_name,
            generated_at=datetime.now(),
            home_currency=settings.home_currency,
        )

    @app.get("/api/statement")
    def api_statement():
        return jsonify({"ok": True, "statement": _statement_for_request().to_dict()})

    @app.get("/statement")
    def statement_document():
        st = _statement_for_request()
        html = render_template("statement.html", st=st)
        return Response(
            html,
            mimetype="text/html",
            headers={"Content-Disposition": f'attachment; filename="{st.header.file_name}.html"'},
        )

    @app.post("/api/statement/royalty")
    def api_royalty_statement():
        body = services.json_body()
        when = body.get("statement_date")
        rs = prepare_royalty_statement(
            body.get("artist_name") or "",
            body.get("entries") or [],
            require_date(when, "statement_date") if when else None,
        )
        return jsonify({"ok": True, "statement": rs.to_dict()})

    return app


def main():
    create_app().run(host="0.0.0.0", port=5000)


if __name__ == "__main__":
    main()
