import pytest
from sqlalchemy import create_engine, inspect

from scripts import init_db, release
from scripts._db_utils import script_session
from app.shopdesk.modules.customer_loans.models import CustomerLoan
from app.shopdesk.modules.customers.models import Customer


def test_create_tables(tmp_path):
    url = f"sqlite:///{tmp_path/'init.db'}"
    init_db.create_tables(database_url=url)
    engine = create_engine(url)
    try:
        names = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    assert {"customers", "customer_loans", "audit_events"} <= names


def test_seed_demo_is_idempotent(tmp_path):
    url = f"sqlite:///{tmp_path/'seed.db'}"
    init_db.create_tables(database_url=url)

    assert init_db.seed_demo("demo-shop", database_url=url) == 3
    assert init_db.seed_demo("demo-shop", database_url=url) == 0

    with script_session(url) as s:
        assert s.query(Customer).filter_by(shop_id="demo-shop").count() == 3
        loans = s.query(CustomerLoan).filter_by(shop_id="demo-shop").all()
        assert len(loans) == 3
        assert {loan.receipt_id for loan in loans if not loan.transaction_id} == {"RC-0003"}


def test_seed_demo_per_shop(tmp_path):
    url = f"sqlite:///{tmp_path/'seed.db'}"
    init_db.create_tables(database_url=url)
    init_db.seed_demo("a", database_url=url)
    assert init_db.seed_demo("b", database_url=url) == 3


def test_release_requires_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        release.run_release()


def test_release_refuses_sqlite_in_production(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///prod.db")
    monkeypatch.setenv("ENV", "production")
    with pytest.raises(RuntimeError, match="sqlite"):
        release.run_release()
