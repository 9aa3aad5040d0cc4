"""initial ledger schema

Revision ID: 2026_10_16_0000
Revises:
Create Date: 2026-10-16 08:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


# revision identifiers, used by Alembic.
revision: str = '2026_10_16_0000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create ledger schema."""

    # ========================================================================
    # Create plans table
    # ========================================================================
    op.create_table(
        'plans',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('price_minor', sa.BigInteger(), nullable=False),
        sa.Column('daily_earning_minor', sa.BigInteger(), nullable=False),
        sa.Column('videos_per_day', sa.Integer(), nullable=False),
        sa.Column('validity_days', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        # Constraints
        sa.UniqueConstraint('name', name='uq_plan_name'),
        sa.CheckConstraint('price_minor > 0', name='ck_plan_price_positive'),
        sa.CheckConstraint('daily_earning_minor > 0', name='ck_plan_daily_earning_positive'),
        sa.CheckConstraint('videos_per_day > 0', name='ck_plan_videos_per_day_positive'),
        sa.CheckConstraint('validity_days > 0', name='ck_plan_validity_days_positive'),
    )

    # ========================================================================
    # Create accounts table
    # ========================================================================
    op.create_table(
        'accounts',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('username', sa.String(50), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='user'),
        sa.Column('is_banned', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('balance_minor', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('plan_id', sa.Integer(), nullable=True),
        sa.Column('plan_activated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_withdrawal_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('referral_code', sa.String(32), nullable=True),
        sa.Column('referred_by_id', UUID(as_uuid=True), nullable=True),
        sa.Column('referral_earnings_minor', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        # Constraints
        sa.CheckConstraint('balance_minor >= 0', name='ck_balance_non_negative'),
        sa.CheckConstraint('referral_earnings_minor >= 0', name='ck_referral_earnings_non_negative'),
        sa.CheckConstraint("role IN ('user', 'admin')", name='ck_account_role'),
        sa.CheckConstraint('(plan_id IS NULL) = (plan_activated_at IS NULL)', name='ck_plan_activation_pair'),
        sa.UniqueConstraint('referral_code', name='uq_account_referral_code'),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id'], name='fk_accounts_plan', ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['referred_by_id'], ['accounts.id'], name='fk_accounts_referred_by', ondelete='SET NULL'),
    )

    # Indexes for accounts
    op.create_index('idx_accounts_referred_by', 'accounts', ['referred_by_id'], postgresql_where=sa.text('referred_by_id IS NOT NULL'))
    op.create_index('idx_accounts_created_at', 'accounts', ['created_at'])

    # ========================================================================
    # Create videos table
    # ========================================================================
    op.create_table(
        'videos',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('video_url', sa.String(1024), nullable=False),
        sa.Column('watch_duration_seconds', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        # Constraints
        sa.CheckConstraint('watch_duration_seconds > 0 AND watch_duration_seconds <= 3600', name='ck_video_duration_range'),
    )

    op.create_index('idx_videos_created_at', 'videos', ['created_at'])

    # ========================================================================
    # Create watched_videos table (fact log, one row per account/video/day)
    # ========================================================================
    op.create_table(
        'watched_videos',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('account_id', UUID(as_uuid=True), nullable=False),
        sa.Column('video_id', sa.Integer(), nullable=False),
        sa.Column('watched_on', sa.Date(), nullable=False),
        sa.Column('watched_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        # Constraints
        sa.UniqueConstraint('account_id', 'video_id', 'watched_on', name='uq_watch_per_day'),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], name='fk_watched_videos_account', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['video_id'], ['videos.id'], name='fk_watched_videos_video', ondelete='CASCADE'),
    )

    op.create_index('idx_watched_videos_account_day', 'watched_videos', ['account_id', 'watched_on'])

    # ========================================================================
    # Create daily_claims table (at most one payout per account per day)
    # ========================================================================
    op.create_table(
        'daily_claims',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('account_id', UUID(as_uuid=True), nullable=False),
        sa.Column('claimed_on', sa.Date(), nullable=False),
        sa.Column('amount_minor', sa.BigInteger(), nullable=False),
        sa.Column('balance_before', sa.BigInteger(), nullable=False),
        sa.Column('balance_after', sa.BigInteger(), nullable=False),
        sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        # Constraints
        sa.UniqueConstraint('account_id', 'claimed_on', name='uq_daily_claim_per_day'),
        sa.CheckConstraint('amount_minor > 0', name='ck_daily_claim_amount_positive'),
        sa.CheckConstraint('balance_after = balance_before + amount_minor', name='ck_daily_claim_balance_consistency'),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], name='fk_daily_claims_account', ondelete='CASCADE'),
    )

    # ========================================================================
    # Create transactions table (plan purchases)
    # ========================================================================
    op.create_table(
        'transactions',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('account_id', UUID(as_uuid=True), nullable=False),
        sa.Column('plan_id', sa.Integer(), nullable=False),
        sa.Column('amount_minor', sa.BigInteger(), nullable=False),
        sa.Column('payment_reference', sa.String(100), nullable=False),
        sa.Column('proof_url', sa.String(1024), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolved_by_id', UUID(as_uuid=True), nullable=True),

        # Constraints
        sa.CheckConstraint('amount_minor > 0', name='ck_transaction_amount_positive'),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name='ck_transaction_status'),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], name='fk_transactions_account', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id'], name='fk_transactions_plan', ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['resolved_by_id'], ['accounts.id'], name='fk_transactions_resolved_by', ondelete='SET NULL'),
    )

    op.create_index('idx_transactions_account_id', 'transactions', ['account_id'])
    op.create_index('idx_transactions_status', 'transactions', ['status'])
    op.create_index('idx_transactions_created_at', 'transactions', ['created_at'])

    # ========================================================================
    # Create withdrawals table
    # ========================================================================
    op.create_table(
        'withdrawals',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('account_id', UUID(as_uuid=True), nullable=False),
        sa.Column('amount_minor', sa.BigInteger(), nullable=False),
        sa.Column('payment_method', sa.String(50), nullable=False),
        sa.Column('account_number', sa.String(64), nullable=False),
        sa.Column('account_name', sa.String(100), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolved_by_id', UUID(as_uuid=True), nullable=True),

        # Constraints
        sa.CheckConstraint('amount_minor > 0', name='ck_withdrawal_amount_positive'),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name='ck_withdrawal_status'),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], name='fk_withdrawals_account', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['resolved_by_id'], ['accounts.id'], name='fk_withdrawals_resolved_by', ondelete='SET NULL'),
    )

    op.create_index('idx_withdrawals_account_created', 'withdrawals', ['account_id', 'created_at'])
    op.create_index('idx_withdrawals_status', 'withdrawals', ['status'])

    # ========================================================================
    # Create referral_rewards table (bonus paid at most once per referred account)
    # ========================================================================
    op.create_table(
        'referral_rewards',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('referrer_id', UUID(as_uuid=True), nullable=False),
        sa.Column('referred_id', UUID(as_uuid=True), nullable=False),
        sa.Column('transaction_id', sa.BigInteger(), nullable=True),
        sa.Column('amount_minor', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        # Constraints
        sa.UniqueConstraint('referred_id', name='uq_referral_reward_referred'),
        sa.CheckConstraint('amount_minor > 0', name='ck_referral_reward_amount_positive'),
        sa.ForeignKeyConstraint(['referrer_id'], ['accounts.id'], name='fk_referral_rewards_referrer', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['referred_id'], ['accounts.id'], name='fk_referral_rewards_referred', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id'], name='fk_referral_rewards_transaction', ondelete='SET NULL'),
    )

    op.create_index('idx_referral_rewards_referrer', 'referral_rewards', ['referrer_id'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('referral_rewards')
    op.drop_table('withdrawals')
    op.drop_table('transactions')
    op.drop_table('daily_claims')
    op.drop_table('watched_videos')
    op.drop_table('videos')
    op.drop_table('accounts')
    op.drop_table('plans')
