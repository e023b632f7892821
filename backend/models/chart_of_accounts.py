from sqlalchemy import Column, Integer, String, Boolean, Numeric, ForeignKey, Enum, UniqueConstraint, true
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import TimestampMixin
import enum


class AccountType(enum.Enum):
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"

    @property
    def is_debit_normal(self) -> bool:
        """Assets and expenses grow with debits; the rest grow with credits."""
        return self in (AccountType.ASSET, AccountType.EXPENSE)


class Account(Base, TimestampMixin):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    foundation_id = Column(String, ForeignKey("foundations.id", ondelete="CASCADE"), nullable=False, index=True)
    account_number = Column(String(4), nullable=False, index=True)
    account_name = Column(String(100), nullable=False)
    account_type = Column(Enum(AccountType, values_callable=lambda e: [m.value for m in e], name="account_type"),
                          nullable=False)
    # Mutated only by posting and reversing journal entries
    balance = Column(Numeric(15, 2), nullable=False, default=0, server_default='0')
    currency = Column(String(3), nullable=False, default="SEK", server_default="SEK")
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())

    foundation = relationship("Foundation", back_populates="accounts")

    __table_args__ = (
        UniqueConstraint('foundation_id', 'account_number', name='_foundation_account_number_uc'),
    )
