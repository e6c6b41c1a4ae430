"""Add maintenance records, one row per service performed on a machine

Revision ID: 8d4f2b6a1c37
Revises: 3c1e5a7b9d20
Create Date: 2026-10-18 14:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8d4f2b6a1c37'
down_revision: Union[str, None] = '3c1e5a7b9d20'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'maintenance_records',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('machine_id', sa.Integer(), sa.ForeignKey('machines.id', ondelete='CASCADE'), nullable=False),
        sa.Column('performed_at', sa.DateTime(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_maintenance_records_machine_id', 'maintenance_records', ['machine_id'])

    # Existing machines keep their current cycle as a single recorded service
    op.execute(
        "INSERT INTO maintenance_records (machine_id, performed_at, created_at) "
        "SELECT id, last_serviced_at, CURRENT_TIMESTAMP FROM machines "
        "WHERE last_serviced_at IS NOT NULL"
    )


def downgrade() -> None:
    op.drop_index('ix_maintenance_records_machine_id', table_name='maintenance_records')
    op.drop_table('maintenance_records')
