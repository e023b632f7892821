from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from database import get_db
from schemas.foundation import Foundation, FoundationCreate, FoundationCreated
from crud import foundations as foundations_crud
from crud.chart_of_accounts import STANDARD_CHART_VERSION
from utils.auth_utils import get_current_user, get_user_identifier
from utils.access import require_ledger_read
from utils.errors import LedgerError, to_http_exception

router = APIRouter(
    prefix="/foundations",
    tags=["Foundations"],
)


@router.post("/", response_model=FoundationCreated, status_code=status.HTTP_201_CREATED)
def create_foundation(
    foundation: FoundationCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user)
):
    """Create a foundation owned by the caller and seed its standard chart of accounts."""
    try:
        db_foundation, accounts_created = foundations_crud.create_foundation(
            db, foundation, get_user_identifier(user)
        )
    except LedgerError as e:
        raise to_http_exception(e)
    return FoundationCreated(
        id=db_foundation.id,
        name=db_foundation.name,
        owner_id=db_foundation.owner_id,
        created_at=db_foundation.created_at,
        chart_version=STANDARD_CHART_VERSION,
        accounts_created=accounts_created,
    )


@router.get("/{foundation_id}", response_model=Foundation)
def get_foundation(
    foundation_id: str,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user)
):
    try:
        require_ledger_read(db, get_user_identifier(user), foundation_id)
    except LedgerError as e:
        raise to_http_exception(e)

    db_foundation = foundations_crud.get_foundation(db, foundation_id)
    if db_foundation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"kind": "NotFound", "message": f"Foundation {foundation_id} not found"}
        )
    return db_foundation
