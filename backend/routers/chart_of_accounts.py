from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional
from database import get_db
from models.chart_of_accounts import AccountType
from schemas.chart_of_accounts import Account, AccountCreate, AccountUpdate, BootstrapResult
from crud import chart_of_accounts as chart_of_accounts_crud
from utils.tenancy import get_foundation_id
from utils.auth_utils import get_current_user, get_user_identifier
from utils.access import require_ledger_read, require_ledger_write
from utils.errors import LedgerError, to_http_exception

router = APIRouter(
    prefix="/accounts",
    tags=["Chart of Accounts"],
)


@router.post("/", response_model=Account, status_code=status.HTTP_201_CREATED)
def create_account(
    account: AccountCreate,
    db: Session = Depends(get_db),
    foundation_id: str = Depends(get_foundation_id),
    user: dict = Depends(get_current_user)
):
    try:
        return chart_of_accounts_crud.create_account(db, account, foundation_id, get_user_identifier(user))
    except LedgerError as e:
        raise to_http_exception(e)


@router.get("/", response_model=List[Account])
def get_accounts(
    account_type: Optional[AccountType] = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    foundation_id: str = Depends(get_foundation_id),
    user: dict = Depends(get_current_user)
):
    try:
        require_ledger_read(db, get_user_identifier(user), foundation_id)
    except LedgerError as e:
        raise to_http_exception(e)
    return chart_of_accounts_crud.get_accounts(
        db, foundation_id, account_type=account_type, include_inactive=include_inactive
    )


@router.post("/bootstrap", response_model=BootstrapResult)
def bootstrap_accounts(
    db: Session = Depends(get_db),
    foundation_id: str = Depends(get_foundation_id),
    user: dict = Depends(get_current_user)
):
    """Re-apply the standard chart. Existing account numbers are left as they are."""
    try:
        require_ledger_write(db, get_user_identifier(user), foundation_id)
    except LedgerError as e:
        raise to_http_exception(e)
    created = chart_of_accounts_crud.initialize_default_accounts(db, foundation_id)
    return BootstrapResult(
        foundation_id=foundation_id,
        chart_version=chart_of_accounts_crud.STANDARD_CHART_VERSION,
        accounts_created=created,
    )


@router.get("/{account_id}", response_model=Account)
def get_account(
    account_id: int,
    db: Session = Depends(get_db),
    foundation_id: str = Depends(get_foundation_id),
    user: dict = Depends(get_current_user)
):
    try:
        require_ledger_read(db, get_user_identifier(user), foundation_id)
    except LedgerError as e:
        raise to_http_exception(e)

    account = chart_of_accounts_crud.get_account(db, account_id, foundation_id)
    if not account:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"kind": "NotFound", "message": f"Account with id {account_id} not found"}
        )
    return account


@router.patch("/{account_id}", response_model=Account)
def update_account(
    account_id: int,
    account_update: AccountUpdate,
    db: Session = Depends(get_db),
    foundation_id: str = Depends(get_foundation_id),
    user: dict = Depends(get_current_user)
):
    try:
        return chart_of_accounts_crud.update_account(
            db, account_id, account_update, foundation_id, get_user_identifier(user)
        )
    except LedgerError as e:
        raise to_http_exception(e)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(
    account_id: int,
    db: Session = Depends(get_db),
    foundation_id: str = Depends(get_foundation_id),
    user: dict = Depends(get_current_user)
):
    """Deactivates the account; accounts referenced by journal lines cannot be removed."""
    try:
        chart_of_accounts_crud.deactivate_account(db, account_id, foundation_id, get_user_identifier(user))
    except LedgerError as e:
        raise to_http_exception(e)
    return None
