"""Initial invoicing schema: companies, customers, lot inventory, invoices, refunds, estimates

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration adds:
1. Company and DocumentSequence (per-company gapless numbering)
2. Customer with running receivable balance
3. Product and PurchaseLot (FIFO lot ledger)
4. Invoice, InvoiceItem, InvoiceAttachment
5. Refund, RefundItem and Payment (refunds are negative payments)
6. Estimate and EstimateItem
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(with_updated=True):
    cols = [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]
    if with_updated:
        cols.append(
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False)
        )
    return cols


def upgrade():
    # ==========================================================================
    # 1. COMPANIES + DOCUMENT SEQUENCES
    # ==========================================================================
    op.create_table('companies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('invoice_prefix', sa.String(length=16), nullable=False, server_default='INV'),
        sa.Column('estimate_prefix', sa.String(length=16), nullable=False, server_default='EST'),
        sa.Column('refund_prefix', sa.String(length=16), nullable=False, server_default='REF'),
        sa.Column('use_separators', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        *_timestamps(with_updated=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )

    op.create_table('document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=16), nullable=False),
        sa.Column('current_number', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'document_type', name='uq_document_sequences_company_type'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('document_sequences', schema=None) as batch_op:
        batch_op.create_index('ix_document_sequences_company_id', ['company_id'], unique=False)

    # ==========================================================================
    # 2. CUSTOMERS
    # ==========================================================================
    op.create_table('customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('credit_limit_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('current_balance_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'email', name='uq_customers_company_email'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('customers', schema=None) as batch_op:
        batch_op.create_index('ix_customers_company_id', ['company_id'], unique=False)
        batch_op.create_index('ix_customers_company_active', ['company_id', 'is_active'], unique=False)

    # ==========================================================================
    # 3. PRODUCTS + PURCHASE LOTS
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('cost_price_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('tax_rate_bps', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('quantity_on_hand', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default=sa.text('1')),
        *_timestamps(),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'sku', name='uq_products_company_sku'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index('ix_products_company_id', ['company_id'], unique=False)
        batch_op.create_index('ix_products_company_name', ['company_id', 'name'], unique=False)

    op.create_table('purchase_lots',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('reference', sa.String(length=64), nullable=True),
        sa.Column('quantity_received', sa.Integer(), nullable=False),
        sa.Column('remaining_qty', sa.Integer(), nullable=False),
        sa.Column('stock_status', sa.String(length=16), nullable=False, server_default='in_stock'),
        sa.Column('unit_cost_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.CheckConstraint('remaining_qty >= 0', name='ck_purchase_lots_remaining_nonneg'),
        sa.CheckConstraint('remaining_qty <= quantity_received', name='ck_purchase_lots_remaining_le_received'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('purchase_lots', schema=None) as batch_op:
        batch_op.create_index('ix_purchase_lots_company_id', ['company_id'], unique=False)
        batch_op.create_index('ix_purchase_lots_product_id', ['product_id'], unique=False)
        batch_op.create_index(
            'ix_purchase_lots_product_status_received',
            ['product_id', 'stock_status', 'received_at'],
            unique=False,
        )

    # ==========================================================================
    # 4. INVOICES
    # ==========================================================================
    op.create_table('invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('sequence_number', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='opened'),
        sa.Column('invoice_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('head_note', sa.Text(), nullable=True),
        sa.Column('memo', sa.Text(), nullable=True),
        sa.Column('terms', sa.String(length=64), nullable=True),
        sa.Column('billing_address', sa.Text(), nullable=True),
        sa.Column('shipping_address', sa.Text(), nullable=True),
        sa.Column('discount_type', sa.String(length=16), nullable=False, server_default='fixed'),
        sa.Column('discount_value', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('tax_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('discount_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('shipping_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('paid_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('balance_due_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        *_timestamps(),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'invoice_number', name='uq_invoices_company_number'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('invoices', schema=None) as batch_op:
        batch_op.create_index('ix_invoices_company_id', ['company_id'], unique=False)
        batch_op.create_index('ix_invoices_customer_id', ['customer_id'], unique=False)
        batch_op.create_index('ix_invoices_status', ['status'], unique=False)
        batch_op.create_index('ix_invoices_company_status_due', ['company_id', 'status', 'due_date'], unique=False)
        batch_op.create_index('ix_invoices_customer_status', ['customer_id', 'status'], unique=False)

    op.create_table('invoice_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('cost_price_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('actual_unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('tax_rate_bps', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('tax_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('total_price_cents', sa.Integer(), nullable=False),
        sa.Column('stock_detail', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('quantity > 0', name='ck_invoice_items_quantity_positive'),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('invoice_items', schema=None) as batch_op:
        batch_op.create_index('ix_invoice_items_invoice_id', ['invoice_id'], unique=False)
        batch_op.create_index('ix_invoice_items_product_id', ['product_id'], unique=False)

    op.create_table('invoice_attachments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=False),
        sa.Column('file_path', sa.String(length=512), nullable=False),
        *_timestamps(with_updated=False),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('invoice_attachments', schema=None) as batch_op:
        batch_op.create_index('ix_invoice_attachments_invoice_id', ['invoice_id'], unique=False)

    # ==========================================================================
    # 5. REFUNDS + PAYMENTS
    # ==========================================================================
    op.create_table('refunds',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('refund_number', sa.String(length=64), nullable=False),
        sa.Column('sequence_number', sa.Integer(), nullable=False),
        sa.Column('refund_date', sa.Date(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('tax_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        *_timestamps(with_updated=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'refund_number', name='uq_refunds_company_number'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('refunds', schema=None) as batch_op:
        batch_op.create_index('ix_refunds_company_id', ['company_id'], unique=False)
        batch_op.create_index('ix_refunds_invoice_id', ['invoice_id'], unique=False)
        batch_op.create_index('ix_refunds_customer_id', ['customer_id'], unique=False)

    op.create_table('refund_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('refund_id', sa.Integer(), nullable=False),
        sa.Column('invoice_item_id', sa.Integer(), nullable=True),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('tax_rate_bps', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('tax_cents', sa.Integer(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('restocked', sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(['refund_id'], ['refunds.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('refund_items', schema=None) as batch_op:
        batch_op.create_index('ix_refund_items_refund_id', ['refund_id'], unique=False)
        batch_op.create_index('ix_refund_items_product_id', ['product_id'], unique=False)

    op.create_table('payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('refund_id', sa.Integer(), nullable=True),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('deposit_to', sa.String(length=64), nullable=True),
        sa.Column('reference', sa.String(length=64), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['refund_id'], ['refunds.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('payments', schema=None) as batch_op:
        batch_op.create_index('ix_payments_company_id', ['company_id'], unique=False)
        batch_op.create_index('ix_payments_invoice_id', ['invoice_id'], unique=False)
        batch_op.create_index('ix_payments_customer_id', ['customer_id'], unique=False)
        batch_op.create_index('ix_payments_refund_id', ['refund_id'], unique=False)
        batch_op.create_index('ix_payments_customer_date', ['customer_id', 'payment_date'], unique=False)

    # ==========================================================================
    # 6. ESTIMATES
    # ==========================================================================
    op.create_table('estimates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=True),
        sa.Column('estimate_number', sa.String(length=64), nullable=False),
        sa.Column('sequence_number', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('estimate_date', sa.Date(), nullable=False),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('head_note', sa.Text(), nullable=True),
        sa.Column('memo', sa.Text(), nullable=True),
        sa.Column('billing_address', sa.Text(), nullable=True),
        sa.Column('shipping_address', sa.Text(), nullable=True),
        sa.Column('discount_type', sa.String(length=16), nullable=False, server_default='fixed'),
        sa.Column('discount_value', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('tax_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('discount_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('shipping_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        *_timestamps(),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'estimate_number', name='uq_estimates_company_number'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('estimates', schema=None) as batch_op:
        batch_op.create_index('ix_estimates_company_id', ['company_id'], unique=False)
        batch_op.create_index('ix_estimates_customer_id', ['customer_id'], unique=False)
        batch_op.create_index('ix_estimates_invoice_id', ['invoice_id'], unique=False)
        batch_op.create_index('ix_estimates_status', ['status'], unique=False)

    op.create_table('estimate_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('estimate_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('actual_unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('tax_rate_bps', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('tax_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('total_price_cents', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['estimate_id'], ['estimates.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('estimate_items', schema=None) as batch_op:
        batch_op.create_index('ix_estimate_items_estimate_id', ['estimate_id'], unique=False)
        batch_op.create_index('ix_estimate_items_product_id', ['product_id'], unique=False)


def downgrade():
    op.drop_table('estimate_items')
    op.drop_table('estimates')
    op.drop_table('payments')
    op.drop_table('refund_items')
    op.drop_table('refunds')
    op.drop_table('invoice_attachments')
    op.drop_table('invoice_items')
    op.drop_table('invoices')
    op.drop_table('purchase_lots')
    op.drop_table('products')
    op.drop_table('customers')
    op.drop_table('document_sequences')
    op.drop_table('companies')
