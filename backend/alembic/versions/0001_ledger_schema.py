"""ledger schema: foundations, accounts, journal entries, invoices

Revision ID: 0001_ledger_schema
Revises:
Create Date: 2025-08-29 15:28:05.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_ledger_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

member_role = sa.Enum('owner', 'member', name='member_role')
account_type = sa.Enum('asset', 'liability', 'equity', 'revenue', 'expense', name='account_type')
journal_entry_status = sa.Enum('draft', 'posted', 'reversed', name='journal_entry_status')
invoice_type = sa.Enum('sales', 'purchase', name='invoice_type')
invoice_status = sa.Enum('draft', 'sent', 'paid', 'overdue', 'cancelled', name='invoice_status')


def _audit_columns():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('updated_by', sa.String(), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'foundations',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('owner_id', sa.String(), nullable=False, index=True),
        *_audit_columns(),
    )

    op.create_table(
        'foundation_members',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('foundation_id', sa.String(), sa.ForeignKey('foundations.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', sa.String(), nullable=False, index=True),
        sa.Column('role', member_role, nullable=False),
        *_audit_columns(),
        sa.UniqueConstraint('foundation_id', 'user_id', name='_foundation_member_uc'),
    )

    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('foundation_id', sa.String(), sa.ForeignKey('foundations.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('account_number', sa.String(length=4), nullable=False, index=True),
        sa.Column('account_name', sa.String(length=100), nullable=False),
        sa.Column('account_type', account_type, nullable=False),
        sa.Column('balance', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='SEK'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_audit_columns(),
        sa.UniqueConstraint('foundation_id', 'account_number', name='_foundation_account_number_uc'),
    )

    op.create_table(
        'journal_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('foundation_id', sa.String(), sa.ForeignKey('foundations.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('entry_number', sa.String(length=32), nullable=False, index=True),
        sa.Column('entry_date', sa.Date(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('reference_number', sa.String(), nullable=True),
        sa.Column('total_debit', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('total_credit', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('status', journal_entry_status, nullable=False, server_default='draft'),
        sa.Column('approved_by', sa.String(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reversed_by', sa.String(), nullable=True),
        sa.Column('reversed_at', sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
        sa.UniqueConstraint('foundation_id', 'entry_number', name='_foundation_entry_number_uc'),
    )

    op.create_table(
        'journal_entry_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('journal_entry_id', sa.Integer(), sa.ForeignKey('journal_entries.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('account_id', sa.Integer(), sa.ForeignKey('accounts.id'), nullable=False, index=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('debit_amount', sa.Numeric(15, 2), sa.CheckConstraint('debit_amount >= 0'), nullable=False, server_default='0'),
        sa.Column('credit_amount', sa.Numeric(15, 2), sa.CheckConstraint('credit_amount >= 0'), nullable=False, server_default='0'),
        sa.Column('line_order', sa.Integer(), nullable=False),
        sa.CheckConstraint(
            '(debit_amount > 0 AND credit_amount = 0) OR (debit_amount = 0 AND credit_amount > 0)',
            name='check_one_sided_line'
        ),
    )

    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('foundation_id', sa.String(), sa.ForeignKey('foundations.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('invoice_number', sa.String(length=32), nullable=False, index=True),
        sa.Column('invoice_type', invoice_type, nullable=False),
        sa.Column('customer_supplier_name', sa.String(), nullable=False),
        sa.Column('invoice_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('subtotal', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('tax_amount', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='SEK'),
        sa.Column('status', invoice_status, nullable=False, server_default='draft'),
        sa.Column('payment_terms', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_audit_columns(),
        sa.UniqueConstraint('foundation_id', 'invoice_number', name='_foundation_invoice_number_uc'),
    )

    op.create_table(
        'invoice_line_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('invoice_id', sa.Integer(), sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('quantity', sa.Numeric(10, 3), sa.CheckConstraint('quantity > 0'), nullable=False),
        sa.Column('unit_price', sa.Numeric(15, 2), sa.CheckConstraint('unit_price >= 0'), nullable=False),
        sa.Column('tax_rate', sa.Numeric(5, 2), sa.CheckConstraint('tax_rate >= 0 AND tax_rate <= 100'), nullable=False, server_default='0'),
        sa.Column('line_total', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('line_order', sa.Integer(), nullable=False),
    )

    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('foundation_id', sa.String(), nullable=True, index=True),
        sa.Column('table_name', sa.String(), nullable=False),
        sa.Column('record_id', sa.Integer(), nullable=False),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('changed_by', sa.String(), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('old_values', sa.JSON(), nullable=True),
        sa.Column('new_values', sa.JSON(), nullable=True),
    )

    # Ledger tables are only reachable through the API role on the hosted database
    if op.get_bind().dialect.name == 'postgresql':
        for table in ('accounts', 'journal_entries', 'journal_entry_lines', 'invoices', 'invoice_line_items'):
            op.execute(f'ALTER TABLE {table} ENABLE ROW LEVEL SECURITY')


def downgrade() -> None:
    """Downgrade schema."""
    for table in ('audit_log', 'invoice_line_items', 'invoices', 'journal_entry_lines',
                  'journal_entries', 'accounts', 'foundation_members', 'foundations'):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in (invoice_status, invoice_type, journal_entry_status, account_type, member_role):
        enum_type.drop(bind, checkfirst=True)
