"""pos core schema

Revision ID: p0s1a2b3c4d5
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the POS transaction engine schema:
- items: catalog with non-negative stock counter and optimistic version
- stock_movements: append-only audit of sale/return stock changes
- cash_bank_accounts / cash_bank_transactions: settlement balances and their ledger
- invoices / invoice_lines: immutable finalized sales
- returns / return_lines: immutable returns against invoice lines
- document_sequences: atomic INV/RET numbering
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'p0s1a2b3c4d5'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # items: catalog (stock_qty >= 0 enforced by CHECK)
    # ============================================================================
    op.create_table(
        'items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=120), nullable=True),
        sa.Column('cost_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('selling_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku', name='uq_items_sku'),
        sa.CheckConstraint('stock_qty >= 0', name='ck_items_stock_non_negative'),
        sa.CheckConstraint('selling_price_cents >= 0', name='ck_items_selling_price_non_negative'),
        sa.CheckConstraint('cost_price_cents >= 0', name='ck_items_cost_price_non_negative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_items_name', 'items', ['name'])

    # ============================================================================
    # cash_bank_accounts / cash_bank_transactions
    # ============================================================================
    op.create_table(
        'cash_bank_accounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('account_type', sa.String(length=16), nullable=False),
        sa.Column('balance_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_cash_bank_accounts_name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_cash_bank_accounts_account_type', 'cash_bank_accounts', ['account_type'])

    op.create_table(
        'cash_bank_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('direction', sa.String(length=8), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('balance_after_cents', sa.Integer(), nullable=False),
        sa.Column('reference_type', sa.String(length=16), nullable=True),
        sa.Column('reference_id', sa.Integer(), nullable=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['account_id'], ['cash_bank_accounts.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount_cents >= 0', name='ck_cash_bank_tx_amount_non_negative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_cash_bank_transactions_account_id', 'cash_bank_transactions', ['account_id'])
    op.create_index('ix_cash_bank_tx_account_created', 'cash_bank_transactions', ['account_id', 'created_at'])

    # ============================================================================
    # invoices / invoice_lines: written once by finalize
    # ============================================================================
    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_number', sa.String(length=64), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('cash_bank_account_id', sa.Integer(), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tax_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['cash_bank_account_id'], ['cash_bank_accounts.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_number', name='uq_invoices_docnum'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoices_created', 'invoices', ['created_at'])
    op.create_index('ix_invoices_cash_bank_account_id', 'invoices', ['cash_bank_account_id'])

    op.create_table(
        'invoice_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.Column('line_net_cents', sa.Integer(), nullable=False),
        sa.Column('unit_cost_cents', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.ForeignKeyConstraint(['item_id'], ['items.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_id', 'sku', name='uq_invoice_lines_invoice_sku'),
        sa.CheckConstraint('quantity > 0', name='ck_invoice_lines_quantity_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoice_lines_invoice_id', 'invoice_lines', ['invoice_id'])
    op.create_index('ix_invoice_lines_item_id', 'invoice_lines', ['item_id'])

    # ============================================================================
    # returns / return_lines
    # ============================================================================
    op.create_table(
        'returns',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_number', sa.String(length=64), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('refund_method', sa.String(length=32), nullable=False),
        sa.Column('cash_bank_account_id', sa.Integer(), nullable=False),
        sa.Column('gross_refund_cents', sa.Integer(), nullable=False),
        sa.Column('restocking_fee_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('refund_amount_cents', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('processed_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.ForeignKeyConstraint(['cash_bank_account_id'], ['cash_bank_accounts.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_number', name='uq_returns_docnum'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_returns_invoice_id', 'returns', ['invoice_id'])
    op.create_index('ix_returns_cash_bank_account_id', 'returns', ['cash_bank_account_id'])
    op.create_index('ix_returns_invoice_created', 'returns', ['invoice_id', 'created_at'])

    op.create_table(
        'return_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('return_id', sa.Integer(), nullable=False),
        sa.Column('invoice_line_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('line_refund_cents', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['return_id'], ['returns.id']),
        sa.ForeignKeyConstraint(['invoice_line_id'], ['invoice_lines.id']),
        sa.ForeignKeyConstraint(['item_id'], ['items.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_return_lines_quantity_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_return_lines_return_id', 'return_lines', ['return_id'])
    op.create_index('ix_return_lines_invoice_line_id', 'return_lines', ['invoice_line_id'])

    # ============================================================================
    # stock_movements: append-only stock audit
    # ============================================================================
    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('movement_type', sa.String(length=16), nullable=False),
        sa.Column('quantity_delta', sa.Integer(), nullable=False),
        sa.Column('stock_after', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=True),
        sa.Column('return_id', sa.Integer(), nullable=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['item_id'], ['items.id']),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.ForeignKeyConstraint(['return_id'], ['returns.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_movements_item_id', 'stock_movements', ['item_id'])
    op.create_index('ix_stock_movements_movement_type', 'stock_movements', ['movement_type'])
    op.create_index('ix_stock_movements_invoice_id', 'stock_movements', ['invoice_id'])
    op.create_index('ix_stock_movements_return_id', 'stock_movements', ['return_id'])
    op.create_index('ix_stock_movements_item_created', 'stock_movements', ['item_id', 'created_at'])

    # ============================================================================
    # document_sequences
    # ============================================================================
    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_type', name='uq_doc_sequences_type'),
        sqlite_autoincrement=True
    )


def downgrade():
    op.drop_table('document_sequences')
    op.drop_index('ix_stock_movements_item_created', table_name='stock_movements')
    op.drop_index('ix_stock_movements_return_id', table_name='stock_movements')
    op.drop_index('ix_stock_movements_invoice_id', table_name='stock_movements')
    op.drop_index('ix_stock_movements_movement_type', table_name='stock_movements')
    op.drop_index('ix_stock_movements_item_id', table_name='stock_movements')
    op.drop_table('stock_movements')
    op.drop_index('ix_return_lines_invoice_line_id', table_name='return_lines')
    op.drop_index('ix_return_lines_return_id', table_name='return_lines')
    op.drop_table('return_lines')
    op.drop_index('ix_returns_invoice_created', table_name='returns')
    op.drop_index('ix_returns_cash_bank_account_id', table_name='returns')
    op.drop_index('ix_returns_invoice_id', table_name='returns')
    op.drop_table('returns')
    op.drop_index('ix_invoice_lines_item_id', table_name='invoice_lines')
    op.drop_index('ix_invoice_lines_invoice_id', table_name='invoice_lines')
    op.drop_table('invoice_lines')
    op.drop_index('ix_invoices_cash_bank_account_id', table_name='invoices')
    op.drop_index('ix_invoices_created', table_name='invoices')
    op.drop_table('invoices')
    op.drop_index('ix_cash_bank_tx_account_created', table_name='cash_bank_transactions')
    op.drop_index('ix_cash_bank_transactions_account_id', table_name='cash_bank_transactions')
    op.drop_table('cash_bank_transactions')
    op.drop_index('ix_cash_bank_accounts_account_type', table_name='cash_bank_accounts')
    op.drop_table('cash_bank_accounts')
    op.drop_index('ix_items_name', table_name='items')
    op.drop_table('items')
