"""recurring expenses remember when they were resumed

Revision ID: 202610190900
Revises: 202601050900
Create Date: 2026-10-19 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610190900"
down_revision = "202601050900"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("recurring_expenses") as batch_op:
        batch_op.add_column(sa.Column("resumed_on", sa.Date(), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("recurring_expenses") as batch_op:
        batch_op.drop_column("resumed_on")
