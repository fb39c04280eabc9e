from __future__ import annotations

from typing import Any

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for

from app.shopdesk.modules.customer_loans.service import (
    loan_history,
    list_loans,
    summarize_by_customer,
)
from app.shopdesk.modules.customers.service import (
    CUSTOMER_FIELDS,
    blank_form,
    create_customer,
    delete_customer,
    filter_customers,
    form_from_customer,
    form_from_payload,
    get_customer,
    list_customers,
    update_customer,
    validate_customer_payload,
)
from app.shopdesk.shop import active_shop_id, require_shop
from app.shopdesk.store import Document, StoreError, get_store

bp = Blueprint("customers", __name__)


def _search_term() -> str:
    # Read from the query string on GETs and from a hidden field on POSTs.
    return request.values.get("q") or ""


def _list_url(q: str | None = None) -> str:
    return url_for("customers.customers_list", q=(q if q is not None else _search_term()) or None)


def _render_screen(status: int = 200, **modal: Any):
    """
    Render the customer screen. `modal` carries which dialog is open:
    form/form_mode/editing, to_delete, or loans_customer/loan_rows.
    """
    shop_id = active_shop_id()
    store = get_store()

    customers: list[Document] = []
    try:
        customers = list_customers(store, shop_id)
    except StoreError as e:
        current_app.logger.error("Error fetching customers: %s", e)
        flash("Failed to load customers", "danger")

    loans: list[Document] = []
    try:
        loans = list_loans(store, shop_id)
    except StoreError as e:
        current_app.logger.error("Error fetching customer loans: %s", e)
        flash("Failed to load customer loans", "danger")

    q = _search_term()
    visible = filter_customers(customers, q)
    if "loans_customer" in modal:
        modal["loan_rows"] = loan_history(loans, modal["loans_customer"].get("name"))

    return (
        render_template(
            "customers/list.html",
            customers=visible,
            total_customers=len(customers),
            loan_summaries=summarize_by_customer(visible, loans),
            q=q,
            fields=CUSTOMER_FIELDS,
            **modal,
        ),
        status,
    )


def _load_customer_or_redirect(customer_id: str):
    try:
        c = get_customer(get_store(), active_shop_id(), customer_id)
    except StoreError as e:
        current_app.logger.error("Error loading customer %s: %s", customer_id, e)
        flash("Failed to load customers", "danger")
        return None, redirect(_list_url())
    if not c:
        flash("Customer not found.", "danger")
        return None, redirect(_list_url())
    return c, None


def _form_payload() -> dict[str, Any]:
    return {f: request.form.get(f) for f in CUSTOMER_FIELDS}


# ---------- List / search ----------
@bp.get("/customers")
@require_shop
def customers_list():
    return _render_screen()


# ---------- Add ----------
@bp.get("/customers/new")
@require_shop
def customers_new_get():
    return _render_screen(form=blank_form(), form_mode="new", editing=None)


@bp.post("/customers/new")
@require_shop
def customers_new_post():
    payload = _form_payload()
    errs = validate_customer_payload(payload)
    if errs:
        flash("; ".join(e.message for e in errs), "danger")
        return _render_screen(400, form=form_from_payload(payload), form_mode="new", editing=None)

    store = get_store()
    try:
        create_customer(store, payload, shop_id=active_shop_id())
        store.commit()
    except (StoreError, ValueError) as e:
        store.rollback()
        current_app.logger.error("Error saving customer: %s", e)
        flash(f"Failed to save customer: {e}", "danger")
        return _render_screen(400, form=form_from_payload(payload), form_mode="new", editing=None)

    flash("Customer added successfully", "success")
    return redirect(_list_url())


# ---------- Edit ----------
@bp.get("/customers/<customer_id>/edit")
@require_shop
def customer_edit_get(customer_id: str):
    c, resp = _load_customer_or_redirect(customer_id)
    if resp:
        return resp
    return _render_screen(form=form_from_customer(c), form_mode="edit", editing=c)


@bp.post("/customers/<customer_id>/edit")
@require_shop
def customer_edit_post(customer_id: str):
    c, resp = _load_customer_or_redirect(customer_id)
    if resp:
        return resp

    payload = _form_payload()
    errs = validate_customer_payload(payload)
    if errs:
        flash("; ".join(e.message for e in errs), "danger")
        return _render_screen(400, form=form_from_payload(payload), form_mode="edit", editing=c)

    store = get_store()
    try:
        update_customer(store, c, payload, shop_id=active_shop_id())
        store.commit()
    except (StoreError, ValueError) as e:
        store.rollback()
        current_app.logger.error("Error saving customer: %s", e)
        flash(f"Failed to save customer: {e}", "danger")
        return _render_screen(400, form=form_from_payload(payload), form_mode="edit", editing=c)

    flash("Customer updated successfully", "success")
    return redirect(_list_url())


# ---------- Delete (confirm, then delete) ----------
@bp.get("/customers/<customer_id>/delete")
@require_shop
def customer_delete_get(customer_id: str):
    c, resp = _load_customer_or_redirect(customer_id)
    if resp:
        return resp
    return _render_screen(to_delete=c)


@bp.post("/customers/<customer_id>/delete")
@require_shop
def customer_delete_post(customer_id: str):
    c, resp = _load_customer_or_redirect(customer_id)
    if resp:
        return resp

    store = get_store()
    try:
        delete_customer(store, c, shop_id=active_shop_id())
        store.commit()
    except StoreError as e:
        store.rollback()
        current_app.logger.error("Error deleting customer: %s", e)
        flash(f"Failed to delete customer: {e}", "danger")
        return redirect(_list_url())

    flash("Customer deleted successfully", "success")
    return redirect(_list_url())


# ---------- Loan history ----------
@bp.get("/customers/<customer_id>/loans")
@require_shop
def customer_loans(customer_id: str):
    c, resp = _load_customer_or_redirect(customer_id)
    if resp:
        return resp
    return _render_screen(loans_customer=c)
