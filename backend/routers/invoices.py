from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
from database import get_db
from models.invoice import InvoiceType
from schemas.invoice import Invoice, InvoiceCreate
from crud import invoices as invoices_crud
from utils.tenancy import get_foundation_id
from utils.auth_utils import get_current_user, get_user_identifier
from utils.access import require_ledger_read
from utils.errors import LedgerError, NotFound, to_http_exception

router = APIRouter(
    prefix="/invoices",
    tags=["Invoices"],
)


@router.post("/", response_model=Invoice, status_code=status.HTTP_201_CREATED)
def create_invoice(
    invoice: InvoiceCreate,
    db: Session = Depends(get_db),
    foundation_id: str = Depends(get_foundation_id),
    user: dict = Depends(get_current_user)
):
    try:
        return invoices_crud.create_invoice(db, foundation_id, get_user_identifier(user), invoice)
    except LedgerError as e:
        raise to_http_exception(e)


@router.get("/", response_model=List[Invoice])
def get_invoices(
    invoice_type: Optional[InvoiceType] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    foundation_id: str = Depends(get_foundation_id),
    user: dict = Depends(get_current_user)
):
    try:
        require_ledger_read(db, get_user_identifier(user), foundation_id)
    except LedgerError as e:
        raise to_http_exception(e)
    return invoices_crud.get_invoices(db, foundation_id, invoice_type=invoice_type, skip=skip, limit=limit)


@router.get("/{invoice_id}", response_model=Invoice)
def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    foundation_id: str = Depends(get_foundation_id),
    user: dict = Depends(get_current_user)
):
    try:
        require_ledger_read(db, get_user_identifier(user), foundation_id)
        db_invoice = invoices_crud.get_invoice(db, foundation_id, invoice_id)
        if db_invoice is None:
            raise NotFound(f"Invoice {invoice_id} not found")
    except LedgerError as e:
        raise to_http_exception(e)
    return db_invoice
