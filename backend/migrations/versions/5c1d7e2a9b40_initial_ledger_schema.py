"""initial ledger schema

Revision ID: 5c1d7e2a9b40
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the inventory ledger schema:
- items: stock-keeping units with on-hand quantity and cached status
- item_status_history: append-only status audit trail (authoritative)
- customers: registry referenced by conditional loans
- sales / sale_lines: committed sales (barter included)
- purchases / purchase_lines: OPEN -> FINALIZED supplier purchases
- conditional_loans / conditional_lines: trial loans and their settlement
- write_offs: irreversible stock reductions

Every line table points at its parent document and at an item, never the
reverse. items.quantity carries a CHECK (quantity >= 0).
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c1d7e2a9b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # items: stock-keeping units
    # ============================================================================
    op.create_table(
        'items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('size', sa.String(length=16), nullable=True),
        sa.Column('color', sa.String(length=32), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('owner_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='available'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('quantity >= 0', name='ck_items_quantity_nonnegative'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_items_name', 'items', ['name'])
    op.create_index('ix_items_owner_id', 'items', ['owner_id'])
    op.create_index('ix_items_status', 'items', ['status'])
    op.create_index('ix_items_name_active', 'items', ['name', 'is_active'])

    # ============================================================================
    # item_status_history: append-only, one row per status change
    # ============================================================================
    op.create_table(
        'item_status_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('prior_status', sa.String(length=16), nullable=True),
        sa.Column('new_status', sa.String(length=16), nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('transaction_kind', sa.String(length=32), nullable=True),
        sa.Column('transaction_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_item_status_history_item_id', 'item_status_history', ['item_id'])
    op.create_index('ix_item_status_history_item_occurred',
                    'item_status_history', ['item_id', 'occurred_at', 'id'])

    # ============================================================================
    # customers
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_name', 'customers', ['name'])

    # ============================================================================
    # conditional_loans / conditional_lines
    # ============================================================================
    op.create_table(
        'conditional_loans',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('loan_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('returned', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('converted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_conditional_loans_customer_id', 'conditional_loans', ['customer_id'])
    op.create_index('ix_conditional_loans_loan_date', 'conditional_loans', ['loan_date'])
    op.create_index('ix_conditional_loans_open', 'conditional_loans', ['returned', 'converted'])

    op.create_table(
        'conditional_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('loan_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('returned_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sold_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.CheckConstraint('returned_quantity + sold_quantity <= quantity',
                           name='ck_conditional_lines_settled_le_quantity'),
        sa.ForeignKeyConstraint(['loan_id'], ['conditional_loans.id'], ),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_conditional_lines_loan_id', 'conditional_lines', ['loan_id'])
    op.create_index('ix_conditional_lines_item_id', 'conditional_lines', ['item_id'])

    # ============================================================================
    # sales / sale_lines
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('total_value', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('discount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('paid_value', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('barter_description', sa.Text(), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('customer_phone', sa.String(length=32), nullable=True),
        sa.Column('conditional_loan_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['conditional_loan_id'], ['conditional_loans.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_sale_date', 'sales', ['sale_date'])
    op.create_index('ix_sales_payment_method', 'sales', ['payment_method'])
    op.create_index('ix_sales_conditional_loan_id', 'sales', ['conditional_loan_id'])
    op.create_index('ix_sales_date_method', 'sales', ['sale_date', 'payment_method'])

    op.create_table(
        'sale_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_lines_sale_id', 'sale_lines', ['sale_id'])
    op.create_index('ix_sale_lines_item_id', 'sale_lines', ['item_id'])

    # ============================================================================
    # purchases / purchase_lines
    # ============================================================================
    op.create_table(
        'purchases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('paid_value', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('supplier_name', sa.String(length=255), nullable=False),
        sa.Column('supplier_phone', sa.String(length=32), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='OPEN'),
        sa.Column('finalized_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_purchases_purchase_date', 'purchases', ['purchase_date'])
    op.create_index('ix_purchases_supplier_name', 'purchases', ['supplier_name'])
    op.create_index('ix_purchases_status', 'purchases', ['status'])
    op.create_index('ix_purchases_status_date', 'purchases', ['status', 'purchase_date'])

    op.create_table(
        'purchase_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=True),
        sa.Column('item_name', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('size', sa.String(length=16), nullable=True),
        sa.Column('color', sa.String(length=32), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_cost', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], ),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_purchase_lines_purchase_id', 'purchase_lines', ['purchase_id'])
    op.create_index('ix_purchase_lines_item_id', 'purchase_lines', ['item_id'])

    # ============================================================================
    # write_offs: irreversible
    # ============================================================================
    op.create_table(
        'write_offs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=120), nullable=False),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('write_off_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('recorded_by_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_write_offs_item_id', 'write_offs', ['item_id'])
    op.create_index('ix_write_offs_write_off_date', 'write_offs', ['write_off_date'])
    op.create_index('ix_write_offs_date_reason', 'write_offs', ['write_off_date', 'reason'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('write_offs')
    op.drop_table('purchase_lines')
    op.drop_table('purchases')
    op.drop_table('sale_lines')
    op.drop_table('sales')
    op.drop_table('conditional_lines')
    op.drop_table('conditional_loans')
    op.drop_table('customers')
    op.drop_table('item_status_history')
    op.drop_table('items')
