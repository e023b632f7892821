from sqlalchemy import Column, Integer, String, Date, DateTime, Numeric, Text, Enum, UniqueConstraint, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import TimestampMixin
import enum


class JournalEntryStatus(enum.Enum):
    DRAFT = "draft"
    POSTED = "posted"
    REVERSED = "reversed"


class JournalEntry(Base, TimestampMixin):
    __tablename__ = "journal_entries"
    __table_args__ = (UniqueConstraint('foundation_id', 'entry_number', name='_foundation_entry_number_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    foundation_id = Column(String, ForeignKey("foundations.id", ondelete="CASCADE"), nullable=False, index=True)
    entry_number = Column(String(32), nullable=False, index=True)  # JE-YYYY-NNNNNN
    entry_date = Column(Date, nullable=False)
    description = Column(Text, nullable=False)
    reference_number = Column(String, nullable=True)
    total_debit = Column(Numeric(15, 2), nullable=False, default=0)
    total_credit = Column(Numeric(15, 2), nullable=False, default=0)
    status = Column(Enum(JournalEntryStatus, values_callable=lambda e: [m.value for m in e], name="journal_entry_status"),
                    default=JournalEntryStatus.DRAFT, nullable=False)
    approved_by = Column(String, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    reversed_by = Column(String, nullable=True)
    reversed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    lines = relationship(
        "JournalEntryLine",
        back_populates="journal_entry",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="JournalEntryLine.line_order",
    )
