"""
JSON API over the same customer operations as the screen.

Writes need the CSRF token (X-CSRF-Token header or "csrf_token" in the body).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from flask import Blueprint, current_app, jsonify, request

from app.shopdesk.modules.customer_loans.service import (
    LoanRow,
    LoanSummary,
    list_loans,
    loan_row,
    loans_for_customer,
    summarize_by_customer,
    summarize_loans,
)
from app.shopdesk.modules.customers.service import (
    CUSTOMER_FIELDS,
    create_customer,
    delete_customer,
    filter_customers,
    get_customer,
    list_customers,
    update_customer,
    validate_customer_payload,
)
from app.shopdesk.shop import active_shop_id, require_shop
from app.shopdesk.store import Document, StoreError, get_store
from app.shopdesk.utils import parse_timestamp, quantize_money

bp = Blueprint("customers_api", __name__)


def _money(amount: Decimal) -> str:
    return str(quantize_money(amount))


def _iso(value: Any) -> str | None:
    ts = parse_timestamp(value)
    return ts.isoformat() if ts else None


def _customer_json(c: Document, summary: LoanSummary | None = None) -> dict[str, Any]:
    out: dict[str, Any] = {"id": c.get("id"), "shopId": c.get("shopId")}
    out.update({f: c.get(f) or "" for f in CUSTOMER_FIELDS})
    out["createdAt"] = _iso(c.get("createdAt"))
    out["updatedAt"] = _iso(c.get("updatedAt"))
    if summary is not None:
        out["loans"] = _summary_json(summary)
    return out


def _summary_json(summary: LoanSummary) -> dict[str, Any]:
    return {"count": summary.count, "total": _money(summary.total)}


def _loan_json(row: LoanRow) -> dict[str, Any]:
    return {
        "id": row.id,
        "date": row.date.isoformat() if row.date else None,
        "reference": row.reference,
        "amount": _money(row.amount),
        "status": row.status,
    }


def _error(message: str, status: int):
    return jsonify({"ok": False, "error": message}), status


def _payload() -> dict[str, Any]:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return {}
    return {f: body.get(f) for f in CUSTOMER_FIELDS}


@bp.get("/customers")
@require_shop
def api_customers_list():
    store = get_store()
    shop_id = active_shop_id()
    try:
        customers = list_customers(store, shop_id)
    except StoreError as e:
        current_app.logger.error("Error fetching customers: %s", e)
        return _error("Failed to load customers", 500)
    warnings: list[str] = []
    try:
        loans = list_loans(store, shop_id)
    except StoreError as e:
        current_app.logger.error("Error fetching customer loans: %s", e)
        warnings.append("Failed to load customer loans")
        loans = []

    visible = filter_customers(customers, request.args.get("q") or "")
    summaries = summarize_by_customer(visible, loans)
    return jsonify(
        {
            "ok": True,
            "total": len(customers),
            "customers": [_customer_json(c, summaries.get(str(c.get("id")))) for c in visible],
            "warnings": warnings,
        }
    )


@bp.post("/customers")
@require_shop
def api_customers_create():
    payload = _payload()
    errs = validate_customer_payload(payload)
    if errs:
        return jsonify({"ok": False, "errors": [{"field": e.field, "message": e.message} for e in errs]}), 400

    store = get_store()
    try:
        c = create_customer(store, payload, shop_id=active_shop_id())
        store.commit()
    except (StoreError, ValueError) as e:
        store.rollback()
        current_app.logger.error("Error saving customer: %s", e)
        return _error(f"Failed to save customer: {e}", 500)
    return jsonify({"ok": True, "customer": _customer_json(c)}), 201


def _get_or_404(customer_id: str):
    try:
        c = get_customer(get_store(), active_shop_id(), customer_id)
    except StoreError as e:
        current_app.logger.error("Error loading customer %s: %s", customer_id, e)
        return None, _error("Failed to load customers", 500)
    if not c:
        return None, _error("Customer not found.", 404)
    return c, None


@bp.get("/customers/<customer_id>")
@require_shop
def api_customer_get(customer_id: str):
    c, err = _get_or_404(customer_id)
    if err:
        return err
    return jsonify({"ok": True, "customer": _customer_json(c)})


@bp.put("/customers/<customer_id>")
@require_shop
def api_customer_update(customer_id: str):
    c, err = _get_or_404(customer_id)
    if err:
        return err
    payload = _payload()
    errs = validate_customer_payload(payload)
    if errs:
        return jsonify({"ok": False, "errors": [{"field": e.field, "message": e.message} for e in errs]}), 400

    store = get_store()
    try:
        updated = update_customer(store, c, payload, shop_id=active_shop_id())
        store.commit()
    except (StoreError, ValueError) as e:
        store.rollback()
        current_app.logger.error("Error saving customer: %s", e)
        return _error(f"Failed to save customer: {e}", 500)
    return jsonify({"ok": True, "customer": _customer_json(updated)})


@bp.delete("/customers/<customer_id>")
@require_shop
def api_customer_delete(customer_id: str):
    c, err = _get_or_404(customer_id)
    if err:
        return err
    store = get_store()
    try:
        delete_customer(store, c, shop_id=active_shop_id())
        store.commit()
    except StoreError as e:
        store.rollback()
        current_app.logger.error("Error deleting customer: %s", e)
        return _error(f"Failed to delete customer: {e}", 500)
    return jsonify({"ok": True})


@bp.get("/customers/<customer_id>/loans")
@require_shop
def api_customer_loans(customer_id: str):
    c, err = _get_or_404(customer_id)
    if err:
        return err
    try:
        loans = list_loans(get_store(), active_shop_id())
    except StoreError as e:
        current_app.logger.error("Error fetching customer loans: %s", e)
        return _error("Failed to load customer loans", 500)
    matched = loans_for_customer(loans, c.get("name"))
    summary = summarize_loans(matched)
    return jsonify(
        {
            "ok": True,
            "customer": {"id": c.get("id"), "name": c.get("name") or ""},
            "summary": _summary_json(summary),
            "loans": [_loan_json(loan_row(loan)) for loan in matched],
        }
    )
