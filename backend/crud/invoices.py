from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from crud import numbering
from models.invoice import Invoice, InvoiceLineItem, InvoiceStatus, InvoiceType
from schemas.invoice import InvoiceCreate
from utils import clock
from utils.access import require_ledger_write
from utils.errors import LedgerError, PersistenceFailure
from utils.validation import CENT

logger = logging.getLogger(__name__)


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_totals(items) -> dict:
    """Line totals, subtotal, flat-rate tax and grand total, all rounded to cents."""
    line_totals = [_money(item.quantity * item.unit_price) for item in items]
    subtotal = sum(line_totals, Decimal("0"))
    tax_amount = _money(sum(
        (line_total * item.tax_rate / Decimal("100") for line_total, item in zip(line_totals, items)),
        Decimal("0")
    ))
    return {
        "line_totals": line_totals,
        "subtotal": subtotal,
        "tax_amount": tax_amount,
        "total_amount": subtotal + tax_amount,
    }


def get_invoice(db: Session, foundation_id: str, invoice_id: int) -> Optional[Invoice]:
    return db.query(Invoice).filter(Invoice.id == invoice_id, Invoice.foundation_id == foundation_id).first()


def get_invoices(
    db: Session,
    foundation_id: str,
    invoice_type: Optional[InvoiceType] = None,
    skip: int = 0,
    limit: int = 100
) -> List[Invoice]:
    query = db.query(Invoice).filter(Invoice.foundation_id == foundation_id)
    if invoice_type:
        query = query.filter(Invoice.invoice_type == invoice_type)
    return query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).offset(skip).limit(limit).all()


def create_invoice(
    db: Session,
    foundation_id: str,
    actor_id: str,
    invoice: InvoiceCreate,
    today: Optional[date] = None
) -> Invoice:
    require_ledger_write(db, actor_id, foundation_id)
    totals = calculate_totals(invoice.items)
    year = (today or clock.today()).year
    prefix = numbering.INVOICE_PREFIXES[invoice.invoice_type]

    def build(invoice_number: str) -> Invoice:
        return Invoice(
            foundation_id=foundation_id,
            invoice_number=invoice_number,
            invoice_type=invoice.invoice_type,
            customer_supplier_name=invoice.customer_supplier_name,
            invoice_date=invoice.invoice_date,
            due_date=invoice.due_date,
            subtotal=totals["subtotal"],
            tax_amount=totals["tax_amount"],
            total_amount=totals["total_amount"],
            currency=invoice.currency,
            status=InvoiceStatus.DRAFT,
            payment_terms=invoice.payment_terms,
            notes=invoice.notes,
            created_by=actor_id,
        )

    try:
        db_invoice = numbering.insert_numbered(db, Invoice, "invoice_number", foundation_id, prefix, year, build)
        for order, (item, line_total) in enumerate(zip(invoice.items, totals["line_totals"]), start=1):
            db.add(InvoiceLineItem(
                invoice_id=db_invoice.id,
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                tax_rate=item.tax_rate,
                line_total=line_total,
                line_order=order,
            ))
        db.commit()
    except LedgerError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"Creating {invoice.invoice_type.value} invoice for foundation {foundation_id} failed")
        raise PersistenceFailure(f"Could not create invoice: {e}", cause=e) from e

    db.refresh(db_invoice)
    logger.info(f"Invoice {db_invoice.invoice_number} created by {actor_id} for foundation {foundation_id}")
    return db_invoice
