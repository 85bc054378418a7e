"""Create sync engine tables

Revision ID: 20251001_000001
Revises: 
Create Date: 2025-10-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '20251001_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Canonical NFT records
    op.create_table(
        'nfts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('token_id', sa.String(78), nullable=False),
        sa.Column('contract_address', sa.String(42), nullable=False),
        sa.Column('owner_address', sa.String(42), nullable=False),
        sa.Column('creator_address', sa.String(42), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=False, server_default=''),
        sa.Column('object_storage_url', sa.Text(), nullable=True),
        sa.Column('category', sa.String(64), nullable=False, server_default='travel'),
        sa.Column('location', sa.Text(), nullable=False),
        sa.Column('latitude', sa.DECIMAL(10, 8), nullable=True),
        sa.Column('longitude', sa.DECIMAL(11, 8), nullable=True),
        sa.Column('transaction_hash', sa.String(66), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id', name='pk_nfts'),
        sa.UniqueConstraint('contract_address', 'token_id', name='uq_nfts_contract_token'),
        sa.UniqueConstraint('transaction_hash', name='uq_nfts_transaction_hash'),
    )
    op.create_index('idx_nfts_owner', 'nfts', ['owner_address'])
    op.create_index('idx_nfts_location', 'nfts', ['location'])

    # Retry queue for mints whose metadata fetch failed
    op.create_table(
        'pending_mints',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('token_id', sa.String(78), nullable=False),
        sa.Column('contract_address', sa.String(42), nullable=False),
        sa.Column('owner_address', sa.String(42), nullable=False),
        sa.Column('transaction_hash', sa.String(66), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('last_attempt_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('claim_token', sa.String(36), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id', name='pk_pending_mints'),
        sa.UniqueConstraint('contract_address', 'token_id', name='uq_pending_mints_contract_token'),
    )
    op.create_index('idx_pending_mints_claimed_at', 'pending_mints', ['claimed_at'])
    op.create_index('idx_pending_mints_last_attempt', 'pending_mints', ['last_attempt_at'])

    # Per-contract checkpoints
    op.create_table(
        'sync_state',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('contract_address', sa.String(42), nullable=False),
        sa.Column('last_processed_block', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id', name='pk_sync_state'),
        sa.CheckConstraint(
            'last_processed_block >= 0',
            name='ck_sync_state_last_processed_block_non_negative',
        ),
    )
    op.create_index(
        'ix_sync_state_contract_address', 'sync_state', ['contract_address'], unique=True
    )

    # Day-keyed quest credits
    op.create_table(
        'quest_completions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('quest_type', sa.String(32), nullable=False),
        sa.Column('points_earned', sa.Integer(), nullable=False),
        sa.Column('completion_date', sa.Date(), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('wallet_address', sa.String(42), nullable=True),
        sa.Column('transaction_hash', sa.String(66), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id', name='pk_quest_completions'),
        sa.UniqueConstraint(
            'user_id', 'quest_type', 'completion_date',
            name='uq_quest_completions_user_quest_day',
        ),
        sa.CheckConstraint(
            'points_earned >= 0',
            name='ck_quest_completions_points_non_negative',
        ),
    )
    op.create_index('idx_quest_completions_user', 'quest_completions', ['user_id'])


def downgrade() -> None:
    op.drop_index('idx_quest_completions_user', table_name='quest_completions')
    op.drop_table('quest_completions')

    op.drop_index('ix_sync_state_contract_address', table_name='sync_state')
    op.drop_table('sync_state')

    op.drop_index('idx_pending_mints_last_attempt', table_name='pending_mints')
    op.drop_index('idx_pending_mints_claimed_at', table_name='pending_mints')
    op.drop_table('pending_mints')

    op.drop_index('idx_nfts_location', table_name='nfts')
    op.drop_index('idx_nfts_owner', table_name='nfts')
    op.drop_table('nfts')
