"""
Customer records for one shop.

Reads are always scoped by shopId. Sorting and search happen in Python over
the shop's full customer list; the store is only asked for equality matches.

Loans reference customers by name (see customer_loans.service), so renaming a
customer here detaches its historical loans. That is existing behaviour.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from app.shopdesk.audit import record_event
from app.shopdesk.store import Document, DocumentStore
from app.shopdesk.utils import utcnow

logger = logging.getLogger(__name__)

CUSTOMERS_COLLECTION = "customers"

# Editable fields, in form order.
CUSTOMER_FIELDS = ("name", "phone", "email", "address", "city", "notes")


@dataclass(frozen=True)
class ValidationError:
    field: str
    message: str


def blank_form() -> dict[str, str]:
    return {f: "" for f in CUSTOMER_FIELDS}


def form_from_customer(customer: Mapping[str, Any]) -> dict[str, str]:
    """Pre-fill the edit form; missing values become empty strings."""
    return {f: str(customer.get(f) or "") for f in CUSTOMER_FIELDS}


def form_from_payload(payload: Mapping[str, Any]) -> dict[str, str]:
    """Keep what the user typed, so a rejected form can be shown again unchanged."""
    return {f: "" if payload.get(f) is None else str(payload.get(f)) for f in CUSTOMER_FIELDS}


def _name_key(customer: Mapping[str, Any]) -> str:
    return str(customer.get("name") or "").lower()


def sort_customers(customers: Iterable[Document]) -> list[Document]:
    return sorted(customers, key=lambda c: (_name_key(c), str(c.get("id") or "")))


def customer_matches(customer: Mapping[str, Any], term: str) -> bool:
    """
    Name and email match case-insensitively; phone is a plain substring match.
    A missing field never matches.
    """
    needle = term.lower()
    name = customer.get("name")
    if name is not None and needle in str(name).lower():
        return True
    phone = customer.get("phone")
    if phone is not None and term in str(phone):
        return True
    email = customer.get("email")
    return email is not None and needle in str(email).lower()


def filter_customers(customers: Iterable[Document], term: str | None) -> list[Document]:
    if not term:
        return list(customers)
    return [c for c in customers if customer_matches(c, term)]


def list_customers(store: DocumentStore, shop_id: str | None) -> list[Document]:
    """All customers of the shop, sorted by lowercase name."""
    if not shop_id:
        return []
    docs = store.query(CUSTOMERS_COLLECTION, shopId=shop_id)
    logger.debug("Loaded %s customers for shop %s", len(docs), shop_id)
    return sort_customers(docs)


def get_customer(store: DocumentStore, shop_id: str | None, customer_id: str) -> Document | None:
    """A customer of the active shop, or None (other shops' customers are invisible)."""
    if not shop_id or not customer_id:
        return None
    doc = store.get(CUSTOMERS_COLLECTION, customer_id)
    if not doc or doc.get("shopId") != shop_id:
        return None
    return doc


def validate_customer_payload(payload: Mapping[str, Any]) -> list[ValidationError]:
    errs: list[ValidationError] = []
    if not str(payload.get("name") or "").strip():
        errs.append(ValidationError("name", "Customer name is required"))
    return errs


def _customer_fields(payload: Mapping[str, Any]) -> dict[str, str]:
    return {f: str(payload.get(f) or "").strip() for f in CUSTOMER_FIELDS}


def _require_valid(payload: Mapping[str, Any], shop_id: str | None) -> None:
    errs = validate_customer_payload(payload)
    if errs:
        raise ValueError(errs[0].message)
    if not shop_id:
        raise ValueError("Shop ID is missing")


def create_customer(
    store: DocumentStore,
    payload: Mapping[str, Any],
    *,
    shop_id: str | None,
    now: datetime | None = None,
) -> Document:
    _require_valid(payload, shop_id)
    now = now or utcnow()
    data: Document = {
        **_customer_fields(payload),
        "shopId": shop_id,
        "createdAt": now,
        "updatedAt": now,
    }
    customer_id = store.add(CUSTOMERS_COLLECTION, data)
    record_event(
        store,
        shop_id=shop_id,
        action="customer.create",
        entity_type="Customer",
        entity_id=customer_id,
        metadata={"name": data["name"]},
    )
    logger.info("Customer %s created for shop %s", customer_id, shop_id)
    return {"id": customer_id, **data}


def update_customer(
    store: DocumentStore,
    customer: Document,
    payload: Mapping[str, Any],
    *,
    shop_id: str | None,
    now: datetime | None = None,
) -> Document:
    """
    Overwrites the editable fields. createdAt is carried over from the stored
    record (stamped now only if the record never had one); updatedAt is always now.
    """
    _require_valid(payload, shop_id)
    now = now or utcnow()
    before = {f: customer.get(f) for f in CUSTOMER_FIELDS}
    data: Document = {
        **_customer_fields(payload),
        "shopId": shop_id,
        "createdAt": customer.get("createdAt") or now,
        "updatedAt": now,
    }
    store.update(CUSTOMERS_COLLECTION, customer["id"], data)

    fields_changed = [f for f in CUSTOMER_FIELDS if (before[f] or "") != data[f]]
    record_event(
        store,
        shop_id=shop_id,
        action="customer.update",
        entity_type="Customer",
        entity_id=str(customer["id"]),
        metadata={
            "before": {f: before[f] for f in fields_changed},
            "after": {f: data[f] for f in fields_changed},
            "fields_changed": fields_changed,
        },
    )
    if "name" in fields_changed:
        logger.warning(
            "Customer %s renamed %r -> %r; loans recorded under the old name no longer match",
            customer["id"],
            before["name"],
            data["name"],
        )
    return {**customer, **data}


def delete_customer(store: DocumentStore, customer: Document, *, shop_id: str | None) -> None:
    store.delete(CUSTOMERS_COLLECTION, customer["id"])
    record_event(
        store,
        shop_id=shop_id,
        action="customer.delete",
        entity_type="Customer",
        entity_id=str(customer["id"]),
        metadata={"name": customer.get("name")},
    )
    logger.info("Customer %s deleted from shop %s", customer["id"], shop_id)
