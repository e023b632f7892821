from sqlalchemy import Column, Integer, String, Text, Numeric, Date, ForeignKey, Enum, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import TimestampMixin
import enum


class InvoiceType(enum.Enum):
    SALES = "sales"
    PURCHASE = "purchase"


class InvoiceStatus(enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


def _values(e):
    return [m.value for m in e]


class Invoice(Base, TimestampMixin):
    __tablename__ = "invoices"
    __table_args__ = (UniqueConstraint('foundation_id', 'invoice_number', name='_foundation_invoice_number_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    foundation_id = Column(String, ForeignKey("foundations.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_number = Column(String(32), nullable=False, index=True)  # INV-YYYY-NNNNNN or PI-YYYY-NNNNNN
    invoice_type = Column(Enum(InvoiceType, values_callable=_values, name="invoice_type"), nullable=False)
    customer_supplier_name = Column(String, nullable=False)
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total_amount = Column(Numeric(15, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="SEK")
    status = Column(Enum(InvoiceStatus, values_callable=_values, name="invoice_status"),
                    default=InvoiceStatus.DRAFT, nullable=False)
    payment_terms = Column(String, nullable=True, default="Net 30")
    notes = Column(Text, nullable=True)

    # Relationships
    items = relationship("InvoiceLineItem", back_populates="invoice", cascade="all, delete-orphan",
                         order_by="InvoiceLineItem.line_order")


class InvoiceLineItem(Base):
    __tablename__ = "invoice_line_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    quantity = Column(Numeric(10, 3), CheckConstraint('quantity > 0'), nullable=False)
    unit_price = Column(Numeric(15, 2), CheckConstraint('unit_price >= 0'), nullable=False)
    # Flat rate in percent; stored only, no tax rules are derived from it
    tax_rate = Column(Numeric(5, 2), CheckConstraint('tax_rate >= 0 AND tax_rate <= 100'), nullable=False, default=0)
    line_total = Column(Numeric(15, 2), nullable=False, default=0)
    line_order = Column(Integer, nullable=False)

    invoice = relationship("Invoice", back_populates="items")
