from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from app.shopdesk.store import Document, DocumentStore
from app.shopdesk.utils import ZERO, parse_amount, parse_timestamp

logger = logging.getLogger(__name__)

LOANS_COLLECTION = "customerLoans"
DEFAULT_STATUS = "outstanding"


@dataclass(frozen=True)
class LoanSummary:
    count: int
    total: Decimal

    @property
    def badge_variant(self) -> str:
        return "danger" if self.count > 0 else "secondary"


EMPTY_SUMMARY = LoanSummary(count=0, total=ZERO)


@dataclass(frozen=True)
class LoanRow:
    """One line of a customer's loan history."""

    id: str
    date: datetime | None
    reference: str
    amount: Decimal
    status: str


def list_loans(store: DocumentStore, shop_id: str | None) -> list[Document]:
    if not shop_id:
        return []
    loans = store.query(LOANS_COLLECTION, shopId=shop_id)
    logger.debug("Loaded %s loans for shop %s", len(loans), shop_id)
    return loans


def _name_key(name: Any) -> str:
    return str(name or "").lower()


def loans_for_customer(loans: Iterable[Mapping[str, Any]], customer_name: str | None) -> list[Mapping[str, Any]]:
    """Loans whose customerName equals the customer's name, ignoring case."""
    key = _name_key(customer_name)
    return [loan for loan in loans if _name_key(loan.get("customerName")) == key]


def summarize_loans(loans: Iterable[Mapping[str, Any]]) -> LoanSummary:
    count = 0
    total = ZERO
    for loan in loans:
        count += 1
        total += parse_amount(loan.get("amount"))
    return LoanSummary(count=count, total=total)


def summarize_by_customer(
    customers: Iterable[Mapping[str, Any]],
    loans: Iterable[Mapping[str, Any]],
) -> dict[str, LoanSummary]:
    """Loan count/total keyed by customer id."""
    by_name: dict[str, list[Mapping[str, Any]]] = defaultdict(list)
    for loan in loans:
        by_name[_name_key(loan.get("customerName"))].append(loan)
    return {
        str(c.get("id")): summarize_loans(by_name.get(_name_key(c.get("name")), ()))
        for c in customers
    }


def loan_row(loan: Mapping[str, Any]) -> LoanRow:
    return LoanRow(
        id=str(loan.get("id") or ""),
        date=parse_timestamp(loan.get("timestamp")),
        reference=str(loan.get("transactionId") or loan.get("receiptId") or "-"),
        amount=parse_amount(loan.get("amount")),
        status=str(loan.get("status") or DEFAULT_STATUS),
    )


def loan_history(loans: Iterable[Mapping[str, Any]], customer_name: str | None) -> list[LoanRow]:
    return [loan_row(loan) for loan in loans_for_customer(loans, customer_name)]
