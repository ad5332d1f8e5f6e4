"""Create PodFlow order and balance ledger tables

Revision ID: create_podflow_tables
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'create_podflow_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False)


def _updated_at() -> sa.Column:
    return sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False)


def upgrade() -> None:
    """Create users, catalog, orders and ledger tables"""

    # 用户（余额与积分）
    op.create_table('users',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False, comment='登录邮箱'),
        sa.Column('name', sa.String(length=255), nullable=False, comment='显示名称'),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='seller', comment='角色'),
        sa.Column('permissions', postgresql.JSONB(), nullable=False, server_default='[]', comment='权限列表'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true', comment='是否启用'),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default='false', comment='是否已激活'),
        sa.Column('balance', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0.00', comment='预付余额'),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0', comment='积分'),
        sa.Column('referral_code', sa.String(length=32), nullable=True, comment='推荐码'),
        sa.Column('referred_by_id', sa.BigInteger(), nullable=True, comment='推荐人ID'),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(['referred_by_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sa.UniqueConstraint('referral_code'),
    )
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_referred_by', 'users', ['referred_by_id'])

    # 商品目录
    op.create_table('products',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False, comment='商品名称'),
        sa.Column('base_price', sa.Numeric(precision=12, scale=2), nullable=False, comment='基础生产价'),
        sa.Column('available_colors', postgresql.JSONB(), nullable=False, server_default='[]', comment='可选颜色'),
        sa.Column('available_sizes', postgresql.JSONB(), nullable=False, server_default='[]', comment='可选尺码'),
        sa.Column('views', postgresql.JSONB(), nullable=False, server_default='[]', comment='印刷面及加价'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('in_stock', sa.Boolean(), nullable=False, server_default='true'),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table('seller_product_prices',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('user_id', sa.BigInteger(), nullable=False),
        sa.Column('product_id', sa.BigInteger(), nullable=False),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False, comment='专属生产价'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'product_id', name='uq_seller_product_prices_user_product'),
    )

    op.create_table('templates',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('user_id', sa.BigInteger(), nullable=False, comment='模板所有者'),
        sa.Column('product_id', sa.BigInteger(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('colors', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('sizes', postgresql.JSONB(), nullable=False, server_default='[]'),
        sa.Column('design_config', postgresql.JSONB(), nullable=False, server_default='{}'),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_templates_user_status', 'templates', ['user_id', 'status'])

    op.create_table('customers',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('user_id', sa.BigInteger(), nullable=False, comment='所属卖家'),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('total_orders', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_spent', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0.00'),
        sa.Column('last_order_date', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'phone', name='uq_customers_user_phone'),
    )

    op.create_table('system_settings',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('setting_key', sa.String(length=100), nullable=False),
        sa.Column('setting_value', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        _updated_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('setting_key'),
    )

    # 订单号序列（每月一行）
    op.create_table('order_sequences',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('period', sa.String(length=6), nullable=False, comment='年月 YYYYMM'),
        sa.Column('last_value', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('period', name='uq_order_sequences_period'),
    )

    op.create_table('orders',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False, comment='订单号'),
        sa.Column('user_id', sa.BigInteger(), nullable=False, comment='所属卖家'),
        sa.Column('customer_id', sa.BigInteger(), nullable=True, comment='客户ID'),
        sa.Column('product_id', sa.BigInteger(), nullable=True),
        sa.Column('template_id', sa.BigInteger(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='PENDING', comment='规范状态'),
        sa.Column('shipping_status', sa.Text(), nullable=True, comment='承运商原始状态'),
        sa.Column('recipient_name', sa.String(length=255), nullable=False),
        sa.Column('recipient_phone', sa.String(length=32), nullable=False),
        sa.Column('recipient_email', sa.String(length=255), nullable=True),
        sa.Column('address_street', sa.Text(), nullable=False),
        sa.Column('address_city', sa.String(length=120), nullable=False),
        sa.Column('address_postal_code', sa.String(length=20), nullable=True),
        sa.Column('address_country', sa.String(length=60), nullable=False, server_default='Morocco'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1', comment='总件数'),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=2), nullable=False, comment='生产成本合计'),
        sa.Column('items_cost', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0.00'),
        sa.Column('packaging_fee', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0.00'),
        sa.Column('shipping_fee', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0.00'),
        sa.Column('include_packaging', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('selling_price', sa.Numeric(precision=12, scale=2), nullable=False, comment='客户售价'),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False, comment='代收金额，签收后回款给卖家'),
        sa.Column('tracking_number', sa.String(length=64), nullable=True, comment='承运商运单号'),
        sa.Column('shipped_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('allow_reshipping', sa.Boolean(), nullable=False, server_default='true', comment='是否允许重新发货'),
        sa.Column('is_reordered', sa.Boolean(), nullable=False, server_default='false', comment='是否已被重下单引用'),
        sa.Column('reordered_from_id', sa.BigInteger(), nullable=True, comment='重下单来源订单'),
        sa.Column('delivery_credited_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['template_id'], ['templates.id']),
        sa.ForeignKeyConstraint(['reordered_from_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_number', name='uq_orders_order_number'),
    )
    op.create_index('ix_orders_user_created', 'orders', ['user_id', 'created_at'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_tracking_number', 'orders', ['tracking_number'])

    op.create_table('order_items',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('order_id', sa.BigInteger(), nullable=False),
        sa.Column('product_id', sa.BigInteger(), nullable=False),
        sa.Column('template_id', sa.BigInteger(), nullable=True),
        sa.Column('product_name', sa.String(length=255), nullable=False, comment='商品名称快照'),
        sa.Column('color', sa.String(length=60), nullable=False),
        sa.Column('size', sa.String(length=30), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_cost', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('line_cost', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('reorder_from_order_id', sa.BigInteger(), nullable=True, comment='重下单来源订单'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['template_id'], ['templates.id']),
        sa.ForeignKeyConstraint(['reorder_from_order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table('order_status_history',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('order_id', sa.BigInteger(), nullable=False),
        sa.Column('old_status', sa.String(length=20), nullable=True),
        sa.Column('new_status', sa.String(length=20), nullable=False),
        sa.Column('raw_status', sa.Text(), nullable=True, comment='承运商原始状态'),
        sa.Column('source', sa.String(length=20), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('updated_by', sa.BigInteger(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['updated_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_status_history_order', 'order_status_history', ['order_id', 'created_at'])

    # 余额流水与充值/提现
    op.create_table('balance_transactions',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('user_id', sa.BigInteger(), nullable=False),
        sa.Column('transaction_type', sa.String(length=30), nullable=False, comment='流水类型'),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0.00'),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('balance_after', sa.Numeric(precision=12, scale=2), nullable=False, comment='变动后余额'),
        sa.Column('points_after', sa.Integer(), nullable=False, comment='变动后积分'),
        sa.Column('order_id', sa.BigInteger(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_balance_transactions_user_created', 'balance_transactions', ['user_id', 'created_at'])
    op.create_index('ix_balance_transactions_order', 'balance_transactions', ['order_id'])

    op.create_table('deposits',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('user_id', sa.BigInteger(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='PENDING'),
        sa.Column('reference', sa.String(length=120), nullable=True, comment='转账凭证号'),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.BigInteger(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['reviewed_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_deposits_user_status', 'deposits', ['user_id', 'status'])

    op.create_table('withdrawals',
        sa.Column('id', sa.BigInteger(), nullable=False),
        sa.Column('user_id', sa.BigInteger(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False, comment='申请金额（已从余额扣除）'),
        sa.Column('fee', sa.Numeric(precision=12, scale=2), nullable=False, comment='手续费'),
        sa.Column('net_amount', sa.Numeric(precision=12, scale=2), nullable=False, comment='实际到账'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='PENDING'),
        sa.Column('bank_details', sa.Text(), nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.BigInteger(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['reviewed_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_withdrawals_user_status', 'withdrawals', ['user_id', 'status'])


def downgrade() -> None:
    """Drop all PodFlow tables"""
    op.drop_index('ix_withdrawals_user_status', table_name='withdrawals')
    op.drop_table('withdrawals')
    op.drop_index('ix_deposits_user_status', table_name='deposits')
    op.drop_table('deposits')
    op.drop_index('ix_balance_transactions_order', table_name='balance_transactions')
    op.drop_index('ix_balance_transactions_user_created', table_name='balance_transactions')
    op.drop_table('balance_transactions')
    op.drop_index('ix_order_status_history_order', table_name='order_status_history')
    op.drop_table('order_status_history')
    op.drop_table('order_items')
    op.drop_index('ix_orders_tracking_number', table_name='orders')
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_index('ix_orders_user_created', table_name='orders')
    op.drop_table('orders')
    op.drop_table('order_sequences')
    op.drop_table('system_settings')
    op.drop_table('customers')
    op.drop_index('ix_templates_user_status', table_name='templates')
    op.drop_table('templates')
    op.drop_table('seller_product_prices')
    op.drop_table('products')
    op.drop_index('ix_users_referred_by', table_name='users')
    op.drop_index('ix_users_role', table_name='users')
    op.drop_table('users')
