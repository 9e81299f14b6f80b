"""Warehouse core tables

Revision ID: 3f2a9c1d0b7e
Revises:
Create Date: 2026-10-19 10:12:41.512307

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Revision identifiers used by Alembic
revision: str = '3f2a9c1d0b7e'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum('ADMIN', 'SUPERVISOR', 'TECHNICIAN', name='userrole')
movement_type = sa.Enum('ADD_STOCK', 'REMOVE_STOCK', 'TRANSFER_TO_TECH', 'TRANSFER_FROM_TECH', 'USE', name='movementtype')
serial_location = sa.Enum('MAIN_WAREHOUSE', 'TECHNICIAN', 'USED', name='seriallocation')
serial_status = sa.Enum('AVAILABLE', 'IN_USE', 'LOST', name='serialstatus')
intervention_status = sa.Enum('OPEN', 'IN_PROGRESS', 'QUALITY_ASSESSMENT', 'COMPLETED', 'CANCELED', name='interventionstatus')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('role', user_role, nullable=False),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'warehouse_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('item_name', sa.String(), nullable=False),
        sa.Column('part_number', sa.String(), nullable=False),
        sa.Column('value', sa.Float(), sa.CheckConstraint('value >= 0'), nullable=False),
        sa.Column('tracks_serial_numbers', sa.Boolean(), nullable=False),
        sa.Column('auto_sn', sa.Boolean(), nullable=False),
        sa.Column('sn_prefix', sa.String(), nullable=True),
        sa.Column('main_warehouse', sa.Integer(), sa.CheckConstraint('main_warehouse >= 0'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_warehouse_items_id', 'warehouse_items', ['id'])
    op.create_index('ix_warehouse_items_item_name', 'warehouse_items', ['item_name'])
    op.create_index('ix_warehouse_items_part_number', 'warehouse_items', ['part_number'])

    op.create_table(
        'serial_number_stock',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('item_id', sa.Integer(), sa.ForeignKey('warehouse_items.id'), nullable=False),
        sa.Column('serial_number', sa.String(), nullable=False),
        sa.Column('location', serial_location, nullable=False),
        sa.Column('status', serial_status, nullable=False),
        sa.Column('technician_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('item_id', 'serial_number', name='uq_serial_per_item'),
    )
    op.create_index('ix_serial_number_stock_id', 'serial_number_stock', ['id'])
    op.create_index('ix_serial_number_stock_item_id', 'serial_number_stock', ['item_id'])
    op.create_index('ix_serial_number_stock_location', 'serial_number_stock', ['location'])
    op.create_index('ix_serial_number_stock_technician_id', 'serial_number_stock', ['technician_id'])

    op.create_table(
        'technician_stock',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('item_id', sa.Integer(), sa.ForeignKey('warehouse_items.id'), nullable=False),
        sa.Column('technician_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.UniqueConstraint('item_id', 'technician_id', name='uq_technician_stock'),
        sa.CheckConstraint('quantity >= 0'),
    )
    op.create_index('ix_technician_stock_id', 'technician_stock', ['id'])
    op.create_index('ix_technician_stock_item_id', 'technician_stock', ['item_id'])
    op.create_index('ix_technician_stock_technician_id', 'technician_stock', ['technician_id'])

    op.create_table(
        'item_movements',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('item_id', sa.Integer(), sa.ForeignKey('warehouse_items.id'), nullable=False),
        sa.Column('movement_type', movement_type, nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('from_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('to_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('notes', sa.String(), nullable=True),
        sa.Column('created_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_item_movements_id', 'item_movements', ['id'])
    op.create_index('ix_item_movements_item_id', 'item_movements', ['item_id'])
    op.create_index('ix_item_movements_movement_type', 'item_movements', ['movement_type'])

    op.create_table(
        'movement_serial_numbers',
        sa.Column('movement_id', sa.Integer(), sa.ForeignKey('item_movements.id'), primary_key=True),
        sa.Column('serial_number_id', sa.Integer(), sa.ForeignKey('serial_number_stock.id'), primary_key=True),
    )

    op.create_table(
        'interventions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('status', intervention_status, nullable=False),
        sa.Column('assigned_to_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_interventions_id', 'interventions', ['id'])
    op.create_index('ix_interventions_assigned_to_id', 'interventions', ['assigned_to_id'])

    op.create_table(
        'intervention_parts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('intervention_id', sa.Integer(), sa.ForeignKey('interventions.id'), nullable=False),
        sa.Column('item_id', sa.Integer(), sa.ForeignKey('warehouse_items.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('movement_id', sa.Integer(), sa.ForeignKey('item_movements.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_intervention_parts_id', 'intervention_parts', ['id'])
    op.create_index('ix_intervention_parts_intervention_id', 'intervention_parts', ['intervention_id'])
    op.create_index('ix_intervention_parts_item_id', 'intervention_parts', ['item_id'])

    op.create_table(
        'intervention_part_serial_numbers',
        sa.Column('intervention_part_id', sa.Integer(), sa.ForeignKey('intervention_parts.id'), primary_key=True),
        sa.Column('serial_number_id', sa.Integer(), sa.ForeignKey('serial_number_stock.id'), primary_key=True),
    )

    op.create_table(
        'logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ts', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('action', sa.String(length=50)),
        sa.Column('resource', sa.String(length=50)),
        sa.Column('status', sa.String(length=20)),
        sa.Column('ip', sa.String(length=64), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
    )
    op.create_index('ix_logs_id', 'logs', ['id'])
    op.create_index('ix_logs_ts', 'logs', ['ts'])
    op.create_index('ix_logs_action', 'logs', ['action'])
    op.create_index('ix_logs_resource', 'logs', ['resource'])
    op.create_index('ix_logs_status', 'logs', ['status'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('logs')
    op.drop_table('intervention_part_serial_numbers')
    op.drop_table('intervention_parts')
    op.drop_table('interventions')
    op.drop_table('movement_serial_numbers')
    op.drop_table('item_movements')
    op.drop_table('technician_stock')
    op.drop_table('serial_number_stock')
    op.drop_table('warehouse_items')
    op.drop_table('users')
