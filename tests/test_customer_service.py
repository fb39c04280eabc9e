import json
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from app.shopdesk.models import AuditEvent, Base
from app.shopdesk.modules.customers.service import (
    blank_form,
    create_customer,
    customer_matches,
    delete_customer,
    filter_customers,
    form_from_customer,
    form_from_payload,
    get_customer,
    list_customers,
    sort_customers,
    update_customer,
    validate_customer_payload,
)
from app.shopdesk.store import SqlDocumentStore


@pytest.fixture()
def store():
    engine = create_engine("sqlite:///:memory:", future=True)
    Base.metadata.create_all(bind=engine)
    with Session(engine, expire_on_commit=False) as s:
        yield SqlDocumentStore(session=s)


# ---------- Search ----------
def test_customer_matches_name_case_insensitive():
    assert customer_matches({"name": "Nimal Perera"}, "PERERA")
    assert not customer_matches({"name": "Nimal Perera"}, "silva")


def test_customer_matches_email_case_insensitive():
    assert customer_matches({"name": "x", "email": "Nimal@Mail.LK"}, "mail.lk")


def test_customer_matches_phone_is_plain_substring():
    c = {"name": "x", "phone": "+94 77 123 4567"}
    assert customer_matches(c, "123 45")
    assert not customer_matches(c, "1234567")


def test_missing_fields_never_match():
    c = {"name": None, "phone": None, "email": None}
    assert not customer_matches(c, "none")
    assert not customer_matches({}, "a")


def test_filter_empty_term_returns_everything():
    customers = [{"name": "b"}, {"name": "a"}]
    assert filter_customers(customers, "") == customers
    assert filter_customers(customers, None) == customers


def test_filter_term_is_not_trimmed():
    customers = [{"name": "Ann Lee"}, {"name": "Annette"}]
    assert filter_customers(customers, "ann ") == [{"name": "Ann Lee"}]


def test_whitespace_only_term_is_used_as_typed():
    customers = [{"name": "Ann"}, {"name": "Bob"}, {"name": "Ann Lee"}]
    assert filter_customers(customers, "   ") == []
    assert filter_customers(customers, " ") == [{"name": "Ann Lee"}]


def test_sort_by_lowercase_name():
    out = sort_customers([{"id": "1", "name": "bravo"}, {"id": "2", "name": "Alpha"}, {"id": "3", "name": None}])
    assert [c["id"] for c in out] == ["3", "2", "1"]


# ---------- Forms ----------
def test_forms():
    assert blank_form() == {"name": "", "phone": "", "email": "", "address": "", "city": "", "notes": ""}
    assert form_from_customer({"name": "A", "phone": None})["phone"] == ""
    assert form_from_payload({"name": " A "})["name"] == " A "


def test_validate_requires_name():
    errs = validate_customer_payload({"name": "  "})
    assert [(e.field, e.message) for e in errs] == [("name", "Customer name is required")]
    assert validate_customer_payload({"name": "A"}) == []


# ---------- Service over the SQL store ----------
def test_create_and_list_scoped_by_shop(store):
    now = datetime(2024, 3, 1, 12, 0)
    created = create_customer(store, {"name": " zeta ", "phone": " 071 "}, shop_id="s1", now=now)
    create_customer(store, {"name": "Alpha"}, shop_id="s1", now=now)
    create_customer(store, {"name": "Other"}, shop_id="s2", now=now)
    store.commit()

    assert created["name"] == "zeta"
    assert created["phone"] == "071"
    assert created["email"] == ""
    assert created["createdAt"] == now == created["updatedAt"]

    names = [c["name"] for c in list_customers(store, "s1")]
    assert names == ["Alpha", "zeta"]
    assert list_customers(store, None) == []


def test_create_requires_name_and_shop(store):
    with pytest.raises(ValueError, match="Customer name is required"):
        create_customer(store, {"name": ""}, shop_id="s1")
    with pytest.raises(ValueError, match="Shop ID is missing"):
        create_customer(store, {"name": "A"}, shop_id=None)
    assert store.query("customers") == []


def test_get_customer_hides_other_shops(store):
    c = create_customer(store, {"name": "A"}, shop_id="s1")
    assert get_customer(store, "s1", c["id"])["name"] == "A"
    assert get_customer(store, "s2", c["id"]) is None
    assert get_customer(store, "s1", "missing") is None


def test_update_keeps_created_at(store):
    created_at = datetime(2023, 1, 1)
    c = create_customer(store, {"name": "A", "city": "Kandy"}, shop_id="s1", now=created_at)
    later = datetime(2024, 6, 1)

    updated = update_customer(store, c, {"name": "A", "city": "Galle"}, shop_id="s1", now=later)
    store.commit()

    stored = store.get("customers", c["id"])
    assert stored["city"] == "Galle"
    assert stored["createdAt"] == created_at
    assert stored["updatedAt"] == later
    assert updated["createdAt"] == created_at

    ev = store.session.query(AuditEvent).filter_by(action="customer.update").one()
    meta = json.loads(ev.metadata_json)
    assert meta["fields_changed"] == ["city"]
    assert meta["before"] == {"city": "Kandy"}
    assert meta["after"] == {"city": "Galle"}


def test_update_without_created_at_stamps_now(store):
    c = create_customer(store, {"name": "A"}, shop_id="s1")
    legacy = {**c, "createdAt": None}
    now = datetime(2024, 6, 1)
    updated = update_customer(store, legacy, {"name": "B"}, shop_id="s1", now=now)
    assert updated["createdAt"] == now


def test_rename_logs_warning(store, caplog):
    c = create_customer(store, {"name": "Old"}, shop_id="s1")
    with caplog.at_level("WARNING"):
        update_customer(store, c, {"name": "New"}, shop_id="s1")
    assert "no longer match" in caplog.text


def test_delete_records_audit(store):
    c = create_customer(store, {"name": "Gone"}, shop_id="s1")
    delete_customer(store, c, shop_id="s1")
    store.commit()

    assert store.get("customers", c["id"]) is None
    actions = [e["action"] for e in store.query("audit_events", shopId="s1")]
    assert sorted(actions) == ["customer.create", "customer.delete"]
