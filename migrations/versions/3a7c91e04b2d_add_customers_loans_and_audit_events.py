"""add customers, customer loans and audit events

Revision ID: 3a7c91e04b2d
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "3a7c91e04b2d"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    existing_tables = set(insp.get_table_names())

    def _has_index(table: str, name: str) -> bool:
        return any(ix.get("name") == name for ix in inspect(op.get_bind()).get_indexes(table))

    if "customers" not in existing_tables:
        op.create_table(
            "customers",
            sa.Column("id", sa.String(length=32), primary_key=True, nullable=False),
            sa.Column("shop_id", sa.String(length=128), nullable=False),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("phone", sa.Text(), nullable=True),
            sa.Column("email", sa.Text(), nullable=True),
            sa.Column("address", sa.Text(), nullable=True),
            sa.Column("city", sa.Text(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
        )
    if not _has_index("customers", "idx_customers_shop_id"):
        op.create_index("idx_customers_shop_id", "customers", ["shop_id"])

    if "customer_loans" not in existing_tables:
        op.create_table(
            "customer_loans",
            sa.Column("id", sa.String(length=32), primary_key=True, nullable=False),
            sa.Column("shop_id", sa.String(length=128), nullable=False),
            sa.Column("customer_name", sa.Text(), nullable=True),
            sa.Column("amount", sa.Text(), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=False), nullable=True),
            sa.Column("transaction_id", sa.Text(), nullable=True),
            sa.Column("receipt_id", sa.Text(), nullable=True),
            sa.Column("status", sa.Text(), nullable=True),
        )
    if not _has_index("customer_loans", "idx_customer_loans_shop_id"):
        op.create_index("idx_customer_loans_shop_id", "customer_loans", ["shop_id"])

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.String(length=32), primary_key=True, nullable=False),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            sa.Column("request_id", sa.String(length=64), nullable=True),
            sa.Column("shop_id", sa.String(length=128), nullable=True),
            sa.Column("client_ip", sa.String(length=64), nullable=True),
            sa.Column("action", sa.String(length=128), nullable=False),
            sa.Column("entity_type", sa.String(length=128), nullable=True),
            sa.Column("entity_id", sa.String(length=128), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
        )
    if not _has_index("audit_events", "idx_audit_events_shop_id"):
        op.create_index("idx_audit_events_shop_id", "audit_events", ["shop_id", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_audit_events_shop_id", table_name="audit_events")
    op.drop_table("audit_events")

    op.drop_index("idx_customer_loans_shop_id", table_name="customer_loans")
    op.drop_table("customer_loans")

    op.drop_index("idx_customers_shop_id", table_name="customers")
    op.drop_table("customers")
