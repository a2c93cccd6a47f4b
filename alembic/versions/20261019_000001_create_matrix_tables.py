"""Create matrix tables.

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19

Users, levels, queue entries, cycle and bonus history, the transaction
ledger and the Jupiter Pool / SystemFunds singletons.
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_000001'
down_revision = None
branch_labels = None
depends_on = None


def _money(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, sa.DECIMAL(precision=18, scale=8), **kwargs)


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=None if nullable else sa.func.now(),
    )


def upgrade() -> None:
    """Create all matrix tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('referral_code', sa.String(length=20), nullable=True),
        sa.Column('referrer_id', sa.Integer(), nullable=True),
        sa.Column(
            'status',
            sa.String(length=20),
            nullable=False,
            server_default='PENDING',
            comment='PENDING, ACTIVE, SUSPENDED'
        ),
        _money('balance', nullable=False, server_default='0'),
        _money('total_earned', nullable=False, server_default='0'),
        _money('total_bonus', nullable=False, server_default='0'),
        _money('total_deposited', nullable=False, server_default='0'),
        sa.Column(
            'current_level', sa.Integer(), nullable=False, server_default='0'
        ),
        _timestamp('created_at'),
        _timestamp('activated_at', nullable=True),
        sa.ForeignKeyConstraint(
            ['referrer_id'], ['users.id'], ondelete='SET NULL'
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            'balance >= 0', name='check_user_balance_non_negative'
        ),
        sa.CheckConstraint(
            'total_earned >= 0', name='check_user_total_earned_non_negative'
        ),
        sa.CheckConstraint(
            'total_bonus >= 0', name='check_user_total_bonus_non_negative'
        ),
    )
    op.create_index(
        'ix_users_referral_code', 'users', ['referral_code'], unique=True
    )
    op.create_index('ix_users_referrer_id', 'users', ['referrer_id'])
    op.create_index('ix_users_status', 'users', ['status'])

    op.create_table(
        'levels',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('level_number', sa.Integer(), nullable=False),
        _money('entry_value', nullable=False),
        _money('reward_value', nullable=False),
        _money('bonus_value', nullable=False),
        _money('cash_balance', nullable=False, server_default='0'),
        sa.Column(
            'total_cycles', sa.Integer(), nullable=False, server_default='0'
        ),
        sa.Column(
            'total_users',
            sa.Integer(),
            nullable=False,
            server_default='0',
            comment='Cached count of WAITING + PROCESSING entries'
        ),
        _timestamp('last_cycle_at', nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            'level_number >= 1 AND level_number <= 10',
            name='check_level_number_range'
        ),
        sa.CheckConstraint(
            'cash_balance >= 0', name='check_level_cash_non_negative'
        ),
        sa.CheckConstraint(
            'total_users >= 0', name='check_level_total_users_non_negative'
        ),
    )
    op.create_index(
        'ix_levels_level_number', 'levels', ['level_number'], unique=True
    )

    op.create_table(
        'queue_entries',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('level_id', sa.Integer(), nullable=False),
        sa.Column('quota_number', sa.Integer(), nullable=False),
        sa.Column(
            'score',
            sa.DECIMAL(precision=18, scale=4),
            nullable=False,
            server_default='0'
        ),
        sa.Column(
            'reentries', sa.Integer(), nullable=False, server_default='0'
        ),
        sa.Column(
            'status',
            sa.String(length=20),
            nullable=False,
            server_default='WAITING',
            comment='WAITING, PROCESSING, COMPLETED'
        ),
        sa.Column('cycle_group_id', sa.String(length=64), nullable=True),
        _timestamp('entered_at'),
        _timestamp('processed_at', nullable=True),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(
            ['level_id'], ['levels.id'], ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'user_id', 'level_id', 'quota_number',
            name='uq_queue_entry_user_level_quota'
        ),
        sa.CheckConstraint(
            'reentries >= 0', name='check_queue_entry_reentries_non_negative'
        ),
        sa.CheckConstraint(
            'quota_number >= 1',
            name='check_queue_entry_quota_number_positive'
        ),
    )
    op.create_index('ix_queue_entries_user_id', 'queue_entries', ['user_id'])
    op.create_index(
        'idx_queue_entry_level_status', 'queue_entries', ['level_id', 'status']
    )
    op.create_index(
        'idx_queue_entry_cycle_group', 'queue_entries', ['cycle_group_id']
    )

    op.create_table(
        'cycle_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('level_id', sa.Integer(), nullable=False),
        sa.Column('queue_entry_id', sa.Integer(), nullable=True),
        sa.Column('position', sa.String(length=20), nullable=False),
        _money('amount', nullable=False),
        sa.Column('cycle_group_id', sa.String(length=64), nullable=False),
        sa.Column(
            'status',
            sa.String(length=20),
            nullable=False,
            server_default='CONFIRMED'
        ),
        _timestamp('confirmed_at', nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(
            ['level_id'], ['levels.id'], ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['queue_entry_id'], ['queue_entries.id'], ondelete='SET NULL'
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'cycle_group_id', 'position',
            name='uq_cycle_history_group_position'
        ),
        sa.CheckConstraint(
            'amount >= 0', name='check_cycle_history_amount_non_negative'
        ),
    )
    op.create_index('ix_cycle_history_user_id', 'cycle_history', ['user_id'])
    op.create_index('ix_cycle_history_level_id', 'cycle_history', ['level_id'])
    op.create_index(
        'ix_cycle_history_cycle_group_id', 'cycle_history', ['cycle_group_id']
    )

    op.create_table(
        'bonus_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('referrer_id', sa.Integer(), nullable=False),
        sa.Column('referred_id', sa.Integer(), nullable=False),
        sa.Column('level_id', sa.Integer(), nullable=False),
        sa.Column('cycle_group_id', sa.String(length=64), nullable=False),
        _money('amount', nullable=False),
        sa.Column(
            'percent',
            sa.Integer(),
            nullable=False,
            comment='Tier percent of the referrer at payout time'
        ),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(
            ['referrer_id'], ['users.id'], ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['referred_id'], ['users.id'], ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['level_id'], ['levels.id'], ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            'amount > 0', name='check_bonus_history_amount_positive'
        ),
    )
    op.create_index(
        'ix_bonus_history_referrer_id', 'bonus_history', ['referrer_id']
    )
    op.create_index(
        'ix_bonus_history_referred_id', 'bonus_history', ['referred_id']
    )

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('type', sa.String(length=40), nullable=False),
        _money('amount', nullable=False),
        sa.Column(
            'status',
            sa.String(length=20),
            nullable=False,
            server_default='PENDING'
        ),
        sa.Column('level_number', sa.Integer(), nullable=True),
        sa.Column('cycle_group_id', sa.String(length=64), nullable=True),
        sa.Column(
            'external_ref',
            sa.String(length=255),
            nullable=True,
            comment='Verified payment reference, never reused'
        ),
        sa.Column('description', sa.Text(), nullable=True),
        _timestamp('created_at'),
        _timestamp('confirmed_at', nullable=True),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'], ondelete='SET NULL'
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_ref'),
        sa.CheckConstraint(
            'amount >= 0', name='check_transaction_amount_non_negative'
        ),
    )
    op.create_index('ix_transactions_user_id', 'transactions', ['user_id'])
    op.create_index('idx_transaction_type', 'transactions', ['type'])
    op.create_index(
        'idx_transaction_cycle_group', 'transactions', ['cycle_group_id']
    )

    op.create_table(
        'jupiter_pool',
        sa.Column('id', sa.Integer(), nullable=False),
        _money('balance', nullable=False, server_default='0'),
        _money('total_deposits', nullable=False, server_default='0'),
        _money('total_withdrawals', nullable=False, server_default='0'),
        _money('today_deposits', nullable=False, server_default='0'),
        _money('today_withdrawals', nullable=False, server_default='0'),
        sa.Column('counters_date', sa.Date(), nullable=True),
        sa.Column(
            'total_interventions',
            sa.Integer(),
            nullable=False,
            server_default='0'
        ),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            'balance >= 0', name='check_jupiter_pool_balance_non_negative'
        ),
    )

    op.create_table(
        'system_funds',
        sa.Column('id', sa.Integer(), nullable=False),
        _money('reserve', nullable=False, server_default='0'),
        _money('operational', nullable=False, server_default='0'),
        _money('profit', nullable=False, server_default='0'),
        _money('total_in', nullable=False, server_default='0'),
        _money('total_out', nullable=False, server_default='0'),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id'),
    )


def downgrade() -> None:
    """Drop all matrix tables."""
    op.drop_table('system_funds')
    op.drop_table('jupiter_pool')

    op.drop_index('idx_transaction_cycle_group', table_name='transactions')
    op.drop_index('idx_transaction_type', table_name='transactions')
    op.drop_index('ix_transactions_user_id', table_name='transactions')
    op.drop_table('transactions')

    op.drop_index('ix_bonus_history_referred_id', table_name='bonus_history')
    op.drop_index('ix_bonus_history_referrer_id', table_name='bonus_history')
    op.drop_table('bonus_history')

    op.drop_index(
        'ix_cycle_history_cycle_group_id', table_name='cycle_history'
    )
    op.drop_index('ix_cycle_history_level_id', table_name='cycle_history')
    op.drop_index('ix_cycle_history_user_id', table_name='cycle_history')
    op.drop_table('cycle_history')

    op.drop_index('idx_queue_entry_cycle_group', table_name='queue_entries')
    op.drop_index('idx_queue_entry_level_status', table_name='queue_entries')
    op.drop_index('ix_queue_entries_user_id', table_name='queue_entries')
    op.drop_table('queue_entries')

    op.drop_index('ix_levels_level_number', table_name='levels')
    op.drop_table('levels')

    op.drop_index('ix_users_status', table_name='users')
    op.drop_index('ix_users_referrer_id', table_name='users')
    op.drop_index('ix_users_referral_code', table_name='users')
    op.drop_table('users')
