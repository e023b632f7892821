from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from models.journal_entry import JournalEntryStatus


class JournalEntryLineBase(BaseModel):
    # Optional here so a missing account is reported as MissingAccount by the
    # ledger validation instead of a generic schema error
    account_id: Optional[int] = None
    description: Optional[str] = None
    debit_amount: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    credit_amount: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)


class JournalEntryLineCreate(JournalEntryLineBase):
    pass


class JournalEntryLine(JournalEntryLineBase):
    id: int
    journal_entry_id: int
    account_id: int
    line_order: int

    class Config:
        from_attributes = True


class JournalEntryBase(BaseModel):
    entry_date: date
    description: str = Field(..., min_length=1)
    reference_number: Optional[str] = None


class JournalEntryCreate(JournalEntryBase):
    lines: List[JournalEntryLineCreate]


class JournalEntryReplace(JournalEntryCreate):
    """Whole-entry replacement of a draft: header fields and the full line set."""
    pass


class JournalEntry(JournalEntryBase):
    id: int
    foundation_id: str
    entry_number: str
    total_debit: Decimal
    total_credit: Decimal
    status: JournalEntryStatus
    created_by: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    reversed_by: Optional[str] = None
    reversed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    lines: List[JournalEntryLine] = []

    class Config:
        from_attributes = True


class JournalValidationResult(BaseModel):
    is_valid: bool
    reason: Optional[str] = None
    error: Optional[str] = None
    total_debit: Decimal
    total_credit: Decimal
