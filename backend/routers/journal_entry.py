from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
import logging
from database import get_db
from models.journal_entry import JournalEntryStatus
from schemas.journal_entry import JournalEntry, JournalEntryCreate, JournalEntryReplace, JournalValidationResult
from crud import journal_entry as journal_entry_crud
from utils.tenancy import get_foundation_id
from utils.auth_utils import get_current_user, get_user_identifier
from utils.access import require_ledger_read
from utils.errors import LedgerError, to_http_exception
from utils.validation import validate_journal_lines, line_totals

router = APIRouter(
    prefix="/journal-entries",
    tags=["Journal Entries"],
)
logger = logging.getLogger(__name__)


@router.post("/validate", response_model=JournalValidationResult)
def validate_journal_entry(entry: JournalEntryCreate, user: dict = Depends(get_current_user)):
    """
    Dry run of the double-entry checks for a candidate entry. Nothing is stored;
    the same checks run again when the entry is submitted.
    """
    result = validate_journal_lines(entry.lines)
    total_debit, total_credit = line_totals(entry.lines)
    return JournalValidationResult(
        is_valid=result.is_valid,
        reason=result.reason.value if result.reason else None,
        error=result.error,
        total_debit=total_debit,
        total_credit=total_credit,
    )


@router.post("/", response_model=JournalEntry, status_code=status.HTTP_201_CREATED)
def create_journal_entry(
    entry: JournalEntryCreate,
    db: Session = Depends(get_db),
    foundation_id: str = Depends(get_foundation_id),
    user: dict = Depends(get_current_user)
):
    """
    Create a draft journal entry with its line items.
    Balances are not touched until the entry is posted.
    """
    try:
        return journal_entry_crud.create_journal_entry(
            db=db, foundation_id=foundation_id, actor_id=get_user_identifier(user), entry=entry
        )
    except LedgerError as e:
        raise to_http_exception(e)


@router.get("/", response_model=List[JournalEntry])
def get_journal_entries(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    entry_status: Optional[JournalEntryStatus] = None,
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
    return journal_entry_crud.get_journal_entries(
        db=db,
        foundation_id=foundation_id,
        start_date=start_date,
        end_date=end_date,
        status=entry_status,
        skip=skip,
        limit=limit
    )


@router.get("/{entry_id}", response_model=JournalEntry)
def get_journal_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    foundation_id: str = Depends(get_foundation_id),
    user: dict = Depends(get_current_user)
):
    try:
        require_ledger_read(db, get_user_identifier(user), foundation_id)
        return journal_entry_crud.get_journal_entry_or_404(db=db, foundation_id=foundation_id, entry_id=entry_id)
    except LedgerError as e:
        raise to_http_exception(e)


@router.put("/{entry_id}", response_model=JournalEntry)
def replace_journal_entry(
    entry_id: int,
    entry: JournalEntryReplace,
    db: Session = Depends(get_db),
    foundation_id: str = Depends(get_foundation_id),
    user: dict = Depends(get_current_user)
):
    """Replace a draft entry as a whole: header fields and every line."""
    try:
        return journal_entry_crud.replace_journal_entry(
            db=db, foundation_id=foundation_id, entry_id=entry_id, actor_id=get_user_identifier(user), entry=entry
        )
    except LedgerError as e:
        raise to_http_exception(e)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_journal_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    foundation_id: str = Depends(get_foundation_id),
    user: dict = Depends(get_current_user)
):
    try:
        journal_entry_crud.delete_journal_entry(
            db=db, foundation_id=foundation_id, entry_id=entry_id, actor_id=get_user_identifier(user)
        )
    except LedgerError as e:
        raise to_http_exception(e)
    return None


@router.post("/{entry_id}/post", response_model=JournalEntry)
def post_journal_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    foundation_id: str = Depends(get_foundation_id),
    user: dict = Depends(get_current_user)
):
    """Post a draft: its lines are applied to the account balances exactly once."""
    try:
        return journal_entry_crud.post_journal_entry(
            db=db, foundation_id=foundation_id, entry_id=entry_id, actor_id=get_user_identifier(user)
        )
    except LedgerError as e:
        raise to_http_exception(e)


@router.post("/{entry_id}/reverse", response_model=JournalEntry)
def reverse_journal_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    foundation_id: str = Depends(get_foundation_id),
    user: dict = Depends(get_current_user)
):
    try:
        return journal_entry_crud.reverse_journal_entry(
            db=db, foundation_id=foundation_id, entry_id=entry_id, actor_id=get_user_identifier(user)
        )
    except LedgerError as e:
        raise to_http_exception(e)
