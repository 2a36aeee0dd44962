"""Create settlement tables

Revision ID: 20260301_000001
Revises: 
Create Date: 2026-03-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20260301_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('wallet_address', sa.String(42), nullable=True),
        sa.Column('preferred_network', sa.String(32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_users_wallet_address', 'users', ['wallet_address'])

    op.create_table(
        'blockchain_networks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('type', sa.String(32), nullable=False),
        sa.Column('chain_id', sa.Integer(), nullable=False),
        sa.Column('rpc_url', sa.String(512), nullable=False),
        sa.Column('native_symbol', sa.String(16), nullable=False),
        sa.Column('is_testnet', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('type'),
    )

    op.create_table(
        'smart_contracts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(64), nullable=False),
        sa.Column('type', sa.String(32), nullable=False),
        sa.Column('network_id', sa.Integer(), nullable=False),
        sa.Column('address', sa.String(42), nullable=False),
        sa.Column('abi', sa.JSON(), nullable=False),
        sa.Column('deployer_address', sa.String(42), nullable=False),
        sa.Column('deployment_tx_hash', sa.String(66), nullable=False),
        sa.Column('version', sa.String(16), nullable=False, server_default='1.0.0'),
        sa.Column('verified', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('deployed_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['network_id'], ['blockchain_networks.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('network_id', 'address', name='uq_smart_contracts_network_address'),
    )
    op.create_index('ix_smart_contracts_type', 'smart_contracts', ['type'])
    op.create_index('ix_smart_contracts_network_id', 'smart_contracts', ['network_id'])
    op.create_index('ix_smart_contracts_address', 'smart_contracts', ['address'])

    op.create_table(
        'cashbacks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('payment_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('wallet_address', sa.String(42), nullable=True),
        sa.Column('network_identifier', sa.String(32), nullable=True),
        sa.Column('amount', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('percentage', sa.DECIMAL(5, 2), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('tx_hash', sa.String(66), nullable=True),
        sa.Column('block_number', sa.Integer(), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('last_retry_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('next_retry_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('eligible_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('failed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('amount > 0', name='check_cashback_amount_positive'),
        sa.CheckConstraint('retry_count >= 0', name='check_cashback_retry_count_non_negative'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_cashbacks_payment_id', 'cashbacks', ['payment_id'])
    op.create_index('ix_cashbacks_user_id', 'cashbacks', ['user_id'])
    op.create_index('ix_cashbacks_network_identifier', 'cashbacks', ['network_identifier'])
    op.create_index('ix_cashbacks_status', 'cashbacks', ['status'])
    op.create_index('ix_cashbacks_tx_hash', 'cashbacks', ['tx_hash'])
    op.create_index('ix_cashbacks_next_retry_at', 'cashbacks', ['next_retry_at'])
    op.create_index('ix_cashbacks_expires_at', 'cashbacks', ['expires_at'])
    op.create_index('ix_cashbacks_created_at', 'cashbacks', ['created_at'])

    op.create_table(
        'blockchain_transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tx_hash', sa.String(66), nullable=False),
        sa.Column('network_id', sa.Integer(), nullable=False),
        sa.Column('contract_id', sa.Integer(), nullable=True),
        sa.Column('from_address', sa.String(42), nullable=False),
        sa.Column('to_address', sa.String(42), nullable=True),
        sa.Column('value', sa.String(78), nullable=False, server_default='0'),
        sa.Column('nonce', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('block_number', sa.Integer(), nullable=True),
        sa.Column('block_hash', sa.String(66), nullable=True),
        sa.Column('gas_used', sa.Integer(), nullable=True),
        sa.Column('gas_price', sa.String(78), nullable=True),
        sa.Column('gas_fee', sa.DECIMAL(36, 18), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['network_id'], ['blockchain_networks.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['contract_id'], ['smart_contracts.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_blockchain_transactions_tx_hash', 'blockchain_transactions', ['tx_hash'], unique=True)
    op.create_index('ix_blockchain_transactions_network_id', 'blockchain_transactions', ['network_id'])
    op.create_index('ix_blockchain_transactions_contract_id', 'blockchain_transactions', ['contract_id'])
    op.create_index('ix_blockchain_transactions_status', 'blockchain_transactions', ['status'])

    op.create_table(
        'blockchain_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('network_id', sa.Integer(), nullable=False),
        sa.Column('contract_id', sa.Integer(), nullable=True),
        sa.Column('event_name', sa.String(64), nullable=False),
        sa.Column('transaction_hash', sa.String(66), nullable=False),
        sa.Column('log_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('block_number', sa.Integer(), nullable=False),
        sa.Column('block_hash', sa.String(66), nullable=True),
        sa.Column('event_data', sa.JSON(), nullable=False),
        sa.Column('processed', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processing_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['network_id'], ['blockchain_networks.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['contract_id'], ['smart_contracts.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_hash', 'log_index', name='uq_blockchain_events_tx_log'),
    )
    op.create_index('ix_blockchain_events_network_id', 'blockchain_events', ['network_id'])
    op.create_index('ix_blockchain_events_contract_id', 'blockchain_events', ['contract_id'])
    op.create_index('ix_blockchain_events_event_name', 'blockchain_events', ['event_name'])
    op.create_index('ix_blockchain_events_transaction_hash', 'blockchain_events', ['transaction_hash'])
    op.create_index('ix_blockchain_events_processed', 'blockchain_events', ['processed'])


def downgrade() -> None:
    op.drop_table('blockchain_events')
    op.drop_table('blockchain_transactions')
    op.drop_table('cashbacks')
    op.drop_table('smart_contracts')
    op.drop_table('blockchain_networks')
    op.drop_table('users')
