"""Initial schema: stores and the product linkage ledger.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ### Stores table ###
    op.create_table(
        'stores',
        sa.Column('shop_id', sa.String(64), primary_key=True),
        sa.Column('domain', sa.String(255), nullable=False),
        sa.Column('access_token_encrypted', sa.Text(), nullable=False),
        sa.Column('scopes', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_stores_domain', 'stores', ['domain'], unique=True)

    # ### Product linkage ledger ###
    op.create_table(
        'product_linkages',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('shop_id', sa.String(64), sa.ForeignKey('stores.shop_id', ondelete='CASCADE'), nullable=False),
        sa.Column('master_product_id', sa.String(64), nullable=False),
        sa.Column('child_product_ids', sa.JSON(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('last_synced_quantity', sa.Integer(), nullable=True),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('shop_id', 'master_product_id', name='uq_product_linkages_shop_master'),
    )
    op.create_index('ix_product_linkages_shop_id', 'product_linkages', ['shop_id'])


def downgrade() -> None:
    op.drop_index('ix_product_linkages_shop_id', table_name='product_linkages')
    op.drop_table('product_linkages')
    op.drop_index('ix_stores_domain', table_name='stores')
    op.drop_table('stores')
