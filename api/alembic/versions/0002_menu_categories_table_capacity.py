"""menu item categories and table capacity

Revision ID: 0002_menu_categories_table_capacity
Revises: 0001_orders_and_payment_logs
Create Date: 2026-10-19
"""

import sqlalchemy as sa
from alembic import op

revision: str = "0002_menu_categories_table_capacity"
down_revision: str | None = "0001_orders_and_payment_logs"
branch_labels: tuple[str, ...] | None = None
depends_on: tuple[str, ...] | None = None


def upgrade() -> None:
    with op.batch_alter_table("menu_items") as batch:
        batch.add_column(
            sa.Column("category", sa.String(), nullable=False, server_default="General")
        )
    with op.batch_alter_table("tables") as batch:
        batch.add_column(sa.Column("capacity", sa.Integer(), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("tables") as batch:
        batch.drop_column("capacity")
    with op.batch_alter_table("menu_items") as batch:
        batch.drop_column("category")
