"""Create machines, rentals, installation appointments, phone callbacks and config tables

Revision ID: 3c1e5a7b9d20
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1e5a7b9d20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'machines',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('price_per_day', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('deposit', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('maintenance_type', sa.String(), nullable=False),
        sa.Column('interval_days', sa.Integer(), nullable=True),
        sa.Column('interval_rental_count', sa.Integer(), nullable=True),
        sa.Column('last_serviced_at', sa.DateTime(), nullable=True),
        sa.Column('next_maintenance_at', sa.DateTime(), nullable=True),
        sa.Column('guests', sa.JSON(), nullable=True),
        sa.Column('event_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_machines_next_maintenance_at', 'machines', ['next_maintenance_at'])

    op.create_table(
        'rentals',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('machine_id', sa.Integer(), sa.ForeignKey('machines.id', ondelete='CASCADE'), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        sa.Column('with_shipping', sa.Boolean(), nullable=True, server_default=sa.false()),
        sa.Column('client_first_name', sa.String(), nullable=False),
        sa.Column('client_last_name', sa.String(), nullable=False),
        sa.Column('client_phone', sa.String(), nullable=True),
        sa.Column('client_address', sa.String(), nullable=True),
        sa.Column('client_postal', sa.String(), nullable=True),
        sa.Column('client_city', sa.String(), nullable=True),
        sa.Column('deposit_to_pay', sa.Boolean(), nullable=True, server_default=sa.true()),
        sa.Column('paid', sa.Boolean(), nullable=True, server_default=sa.false()),
        sa.Column('guests', sa.JSON(), nullable=True),
        sa.Column('event_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_rentals_machine_id', 'rentals', ['machine_id'])

    op.create_table(
        'installation_appointments',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('order_reference', sa.String(), nullable=True),
        sa.Column('client_first_name', sa.String(), nullable=False),
        sa.Column('client_last_name', sa.String(), nullable=False),
        sa.Column('client_phone', sa.String(), nullable=True),
        sa.Column('client_address', sa.String(), nullable=True),
        sa.Column('robot_name', sa.String(), nullable=False),
        sa.Column('installation_date', sa.DateTime(), nullable=True),
        sa.Column('guests', sa.JSON(), nullable=True),
        sa.Column('event_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'phone_callbacks',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('phone_number', sa.String(), nullable=False),
        sa.Column('client_name', sa.String(), nullable=False),
        sa.Column('reason', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('responsible_person', sa.String(), nullable=False),
        sa.Column('completed', sa.Boolean(), nullable=True, server_default=sa.false()),
        sa.Column('scheduled_at', sa.DateTime(), nullable=False),
        sa.Column('guests', sa.JSON(), nullable=True),
        sa.Column('event_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'config_entries',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('key', sa.String(), nullable=False, unique=True),
        sa.Column('value', sa.String(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table('config_entries')
    op.drop_table('phone_callbacks')
    op.drop_table('installation_appointments')
    op.drop_index('ix_rentals_machine_id', table_name='rentals')
    op.drop_table('rentals')
    op.drop_index('ix_machines_next_maintenance_at', table_name='machines')
    op.drop_table('machines')
