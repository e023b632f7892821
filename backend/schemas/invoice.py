from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from models.invoice import InvoiceStatus, InvoiceType


class InvoiceLineItemBase(BaseModel):
    description: str = Field(..., min_length=1)
    quantity: Decimal = Field(..., gt=0, decimal_places=3)
    unit_price: Decimal = Field(..., ge=0, decimal_places=2)
    tax_rate: Decimal = Field(Decimal("0"), ge=0, le=100, decimal_places=2)


class InvoiceLineItemCreate(InvoiceLineItemBase):
    pass


class InvoiceLineItem(InvoiceLineItemBase):
    id: int
    invoice_id: int
    line_total: Decimal
    line_order: int

    class Config:
        from_attributes = True


class InvoiceBase(BaseModel):
    invoice_type: InvoiceType
    customer_supplier_name: str = Field(..., min_length=1)
    invoice_date: date
    due_date: date
    currency: str = "SEK"
    payment_terms: Optional[str] = "Net 30"
    notes: Optional[str] = None


class InvoiceCreate(InvoiceBase):
    items: List[InvoiceLineItemCreate] = Field(..., min_length=1)

    @model_validator(mode='after')
    def check_due_date(self):
        if self.due_date < self.invoice_date:
            raise ValueError("Due date cannot be before the invoice date")
        return self


class Invoice(InvoiceBase):
    id: int
    foundation_id: str
    invoice_number: str
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    status: InvoiceStatus
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[InvoiceLineItem] = []

    class Config:
        from_attributes = True
