"""Baseline schema: users, inventory, products, tables, orders, sales, purchases, waste, delivery, expenses.

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19
"""
from alembic import op

from restopos.db.models import Base

revision = "0001_baseline"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    Base.metadata.create_all(bind=op.get_bind())


def downgrade() -> None:
    Base.metadata.drop_all(bind=op.get_bind())
