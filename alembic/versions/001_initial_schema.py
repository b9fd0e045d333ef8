"""Initial schema - SKU master, stock ledger and marketplace link tables

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'skus',
        sa.Column('sku', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('stock', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('image_url', sa.String(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('stock >= 0', name='ck_skus_stock_non_negative'),
        sa.PrimaryKeyConstraint('sku'),
    )

    op.create_table(
        'stock_ledger',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('sku', sa.String(), nullable=False),
        sa.Column('delta', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(), nullable=False),
        sa.Column('ref', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['sku'], ['skus.sku']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku', 'reason', 'ref', name='uq_stock_ledger_movement'),
    )
    op.create_index('ix_stock_ledger_sku', 'stock_ledger', ['sku'])

    op.create_table(
        'ml_items',
        sa.Column('item_id', sa.String(), nullable=False),
        sa.Column('sku', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('stock_ml', sa.Integer(), nullable=False),
        sa.Column('image_url', sa.String(), nullable=True),
        sa.Column('permalink', sa.String(), nullable=True),
        sa.Column('sku_source', sa.String(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['sku'], ['skus.sku']),
        sa.PrimaryKeyConstraint('item_id'),
    )
    op.create_index('ix_ml_items_sku', 'ml_items', ['sku'])

    op.create_table(
        'tn_items',
        sa.Column('product_id', sa.BigInteger(), nullable=False),
        sa.Column('variant_id', sa.BigInteger(), nullable=False),
        sa.Column('sku', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('stock_tn', sa.Integer(), nullable=False),
        sa.Column('image_url', sa.String(), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['sku'], ['skus.sku']),
        sa.PrimaryKeyConstraint('product_id', 'variant_id'),
    )
    op.create_index('ix_tn_items_sku', 'tn_items', ['sku'])


def downgrade() -> None:
    op.drop_index('ix_tn_items_sku', table_name='tn_items')
    op.drop_table('tn_items')
    op.drop_index('ix_ml_items_sku', table_name='ml_items')
    op.drop_table('ml_items')
    op.drop_index('ix_stock_ledger_sku', table_name='stock_ledger')
    op.drop_table('stock_ledger')
    op.drop_table('skus')
