from models.foundation import Foundation, FoundationMember, MemberRole
from models.chart_of_accounts import Account, AccountType
from models.journal_entry import JournalEntry, JournalEntryStatus
from models.journal_entry_line import JournalEntryLine
from models.invoice import Invoice, InvoiceLineItem, InvoiceStatus, InvoiceType
from models.audit_log import AuditLog

__all__ = [
    'Account', 'AccountType', 'AuditLog', 'Foundation', 'FoundationMember', 'Invoice', 'InvoiceLineItem',
    'InvoiceStatus', 'InvoiceType', 'JournalEntry', 'JournalEntryLine', 'JournalEntryStatus', 'MemberRole',
]
