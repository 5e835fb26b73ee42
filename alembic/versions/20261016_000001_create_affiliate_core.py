"""Create referral closure and affiliate commission tables

Revision ID: 20261016_000001
Revises:
Create Date: 2026-10-16

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261016_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users (referral tree nodes)
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('referrer_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            'referrer_id IS NULL OR referrer_id <> id',
            name='check_user_not_self_referred'
        ),
        sa.ForeignKeyConstraint(
            ['referrer_id'], ['users.id'], ondelete='RESTRICT'
        ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index(
        'ix_users_referrer_id', 'users', ['referrer_id'], unique=False
    )

    # Closure relation (no FKs: swapped wholesale by the rebuild job)
    op.create_table(
        'user_referral_closure',
        sa.Column('ancestor_id', sa.Integer(), nullable=False),
        sa.Column('descendant_id', sa.Integer(), nullable=False),
        sa.Column('depth', sa.Integer(), nullable=False),
        sa.CheckConstraint(
            'depth >= 0', name='check_closure_depth_non_negative'
        ),
        sa.PrimaryKeyConstraint('ancestor_id', 'descendant_id')
    )
    op.create_index(
        'idx_closure_descendant_depth', 'user_referral_closure',
        ['descendant_id', 'depth'], unique=False
    )
    op.create_index(
        'idx_closure_ancestor_depth', 'user_referral_closure',
        ['ancestor_id', 'depth'], unique=False
    )

    # Orders (owned by the e-commerce subsystem)
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('buyer_id', sa.Integer(), nullable=True),
        sa.Column(
            'status', sa.String(length=20),
            nullable=False, server_default='pending'
        ),
        sa.Column('purchase_date', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ['buyer_id'], ['users.id'], ondelete='SET NULL'
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code')
    )
    op.create_index('ix_orders_buyer_id', 'orders', ['buyer_id'], unique=False)
    op.create_index('ix_orders_status', 'orders', ['status'], unique=False)

    op.create_table(
        'order_lines',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=True),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('category_name', sa.String(length=255), nullable=True),
        sa.Column('category_group', sa.String(length=20), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column(
            'unit_price', sa.DECIMAL(precision=18, scale=8), nullable=False
        ),
        sa.CheckConstraint(
            'quantity > 0', name='check_order_line_quantity_positive'
        ),
        sa.CheckConstraint(
            'unit_price >= 0', name='check_order_line_price_non_negative'
        ),
        sa.ForeignKeyConstraint(
            ['order_id'], ['orders.id'], ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_order_lines_order_id', 'order_lines', ['order_id'], unique=False
    )

    # Commissions
    op.create_table(
        'affiliate_commissions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('order_line_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('beneficiary_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.String(length=4), nullable=False),
        sa.Column('rate', sa.DECIMAL(precision=5, scale=4), nullable=False),
        sa.Column(
            'unit_price', sa.DECIMAL(precision=18, scale=8), nullable=False,
            comment='Unit price at order time'
        ),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column(
            'base_amount', sa.DECIMAL(precision=18, scale=8), nullable=False,
            comment='unit_price * quantity'
        ),
        sa.Column(
            'amount', sa.DECIMAL(precision=18, scale=8), nullable=False,
            comment='base_amount * rate, rounded half-even'
        ),
        sa.Column(
            'status', sa.String(length=20),
            nullable=False, server_default='calculated'
        ),
        sa.Column('calculated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_by', sa.String(length=255), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            'rate >= 0 AND rate <= 1', name='check_commission_rate_fraction'
        ),
        sa.CheckConstraint(
            'amount >= 0', name='check_commission_amount_non_negative'
        ),
        sa.CheckConstraint(
            'quantity > 0', name='check_commission_quantity_positive'
        ),
        sa.ForeignKeyConstraint(
            ['order_id'], ['orders.id'], ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['order_line_id'], ['order_lines.id'], ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['beneficiary_id'], ['users.id'], ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'order_id', 'order_line_id', 'beneficiary_id', 'level',
            name='uq_commission_order_line_beneficiary_level'
        )
    )
    op.create_index(
        'ix_affiliate_commissions_order_id', 'affiliate_commissions',
        ['order_id'], unique=False
    )
    op.create_index(
        'ix_affiliate_commissions_product_id', 'affiliate_commissions',
        ['product_id'], unique=False
    )
    op.create_index(
        'ix_affiliate_commissions_beneficiary_id', 'affiliate_commissions',
        ['beneficiary_id'], unique=False
    )
    op.create_index(
        'ix_affiliate_commissions_status', 'affiliate_commissions',
        ['status'], unique=False
    )
    op.create_index(
        'idx_commission_beneficiary_calculated', 'affiliate_commissions',
        ['beneficiary_id', 'calculated_at'], unique=False
    )
    op.create_index(
        'idx_commission_beneficiary_level', 'affiliate_commissions',
        ['beneficiary_id', 'level'], unique=False
    )

    # Calculation log (no FK: failed attempts for unknown orders are logged)
    op.create_table(
        'affiliate_commission_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column(
            'total_amount', sa.DECIMAL(precision=18, scale=8),
            nullable=False, server_default='0'
        ),
        sa.Column(
            'record_count', sa.Integer(), nullable=False, server_default='0'
        ),
        sa.Column('outcome', sa.String(length=20), nullable=False),
        sa.Column(
            'processed_by', sa.String(length=255),
            nullable=False, server_default=''
        ),
        sa.Column('notes', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_affiliate_commission_logs_order_id', 'affiliate_commission_logs',
        ['order_id'], unique=False
    )
    op.create_index(
        'ix_affiliate_commission_logs_outcome', 'affiliate_commission_logs',
        ['outcome'], unique=False
    )
    op.create_index(
        'ix_affiliate_commission_logs_created_at', 'affiliate_commission_logs',
        ['created_at'], unique=False
    )


def downgrade() -> None:
    op.drop_index(
        'ix_affiliate_commission_logs_created_at',
        table_name='affiliate_commission_logs'
    )
    op.drop_index(
        'ix_affiliate_commission_logs_outcome',
        table_name='affiliate_commission_logs'
    )
    op.drop_index(
        'ix_affiliate_commission_logs_order_id',
        table_name='affiliate_commission_logs'
    )
    op.drop_table('affiliate_commission_logs')

    op.drop_index(
        'idx_commission_beneficiary_level', table_name='affiliate_commissions'
    )
    op.drop_index(
        'idx_commission_beneficiary_calculated',
        table_name='affiliate_commissions'
    )
    op.drop_index(
        'ix_affiliate_commissions_status', table_name='affiliate_commissions'
    )
    op.drop_index(
        'ix_affiliate_commissions_beneficiary_id',
        table_name='affiliate_commissions'
    )
    op.drop_index(
        'ix_affiliate_commissions_product_id',
        table_name='affiliate_commissions'
    )
    op.drop_index(
        'ix_affiliate_commissions_order_id', table_name='affiliate_commissions'
    )
    op.drop_table('affiliate_commissions')

    op.drop_index('ix_order_lines_order_id', table_name='order_lines')
    op.drop_table('order_lines')

    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_index('ix_orders_buyer_id', table_name='orders')
    op.drop_table('orders')

    op.drop_index(
        'idx_closure_ancestor_depth', table_name='user_referral_closure'
    )
    op.drop_index(
        'idx_closure_descendant_depth', table_name='user_referral_closure'
    )
    op.drop_table('user_referral_closure')

    op.drop_index('ix_users_referrer_id', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
