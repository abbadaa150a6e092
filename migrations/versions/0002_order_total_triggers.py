"""Order total triggers on order_items

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-18
"""
from alembic import op

from ecommerce_store.db.triggers import create_trigger_statements, drop_trigger_statements

revision = '0002'
down_revision = '0001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    for statement in create_trigger_statements(op.get_bind().dialect.name):
        op.execute(statement)


def downgrade() -> None:
    for statement in drop_trigger_statements(op.get_bind().dialect.name):
        op.execute(statement)
