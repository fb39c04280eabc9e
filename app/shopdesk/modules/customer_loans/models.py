from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.shopdesk.models import Base, new_document_id


class CustomerLoan(Base):
    """
    Credit left outstanding on a sale. Written by the sales screen; read-only here.

    Linked to a customer by `customer_name`, not by id.
    """

    __tablename__ = "customer_loans"
    __table_args__ = (
        Index("idx_customer_loans_shop_id", "shop_id"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_document_id)
    shop_id: Mapped[str] = mapped_column(String(128), nullable=False)

    customer_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Kept as written by the sales screen (number or free text).
    amount: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    transaction_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    receipt_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str | None] = mapped_column(Text, nullable=True)
