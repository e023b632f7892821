"""
Journal entry persistence and status transitions.

An entry and its lines are always written together. A new entry starts as a
draft with no effect on account balances; posting (draft -> posted) applies
each line to its account exactly once, reversing (posted -> reversed) takes
the effect back out. Both transitions are compare-and-swap updates on the
status column, so concurrent or repeated calls cannot apply an entry twice.
"""
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
import logging

from sqlalchemy import update
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from crud import numbering
from crud.audit_log import create_audit_log
from database import apply_statement_timeout
from models.chart_of_accounts import Account
from models.journal_entry import JournalEntry, JournalEntryStatus
from models.journal_entry_line import JournalEntryLine
from schemas.audit_log import AuditLogCreate
from schemas.journal_entry import JournalEntryCreate, JournalEntryReplace
from utils import clock, sqlalchemy_to_dict
from utils.access import require_ledger_write
from utils.errors import (
    InvalidStatusTransition,
    LedgerError,
    LedgerValidationError,
    LineItemInsertFailed,
    NotFound,
    PersistenceFailure,
    Timeout,
    ValidationReason,
)
from utils.validation import ensure_valid_journal_lines, line_totals, to_decimal

logger = logging.getLogger(__name__)

# PostgreSQL: query_canceled (statement_timeout), lock_not_available
TIMEOUT_PGCODES = {"57014", "55P03"}


def _is_timeout(error: Exception) -> bool:
    if not isinstance(error, OperationalError):
        return False
    if getattr(error.orig, "pgcode", None) in TIMEOUT_PGCODES:
        return True
    return "database is locked" in str(error.orig)


def _store_error(error: SQLAlchemyError, action: str) -> LedgerError:
    if _is_timeout(error):
        return Timeout(f"Timed out while {action}")
    return PersistenceFailure(f"Database error while {action}: {error}", cause=error)


def get_journal_entry(db: Session, foundation_id: str, entry_id: int) -> Optional[JournalEntry]:
    return db.query(JournalEntry).filter(
        JournalEntry.id == entry_id,
        JournalEntry.foundation_id == foundation_id
    ).first()


def get_journal_entry_or_404(db: Session, foundation_id: str, entry_id: int) -> JournalEntry:
    db_entry = get_journal_entry(db, foundation_id, entry_id)
    if db_entry is None:
        raise NotFound(f"Journal entry {entry_id} not found")
    return db_entry


def get_journal_entries(
    db: Session,
    foundation_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Optional[JournalEntryStatus] = None,
    skip: int = 0,
    limit: int = 100
) -> List[JournalEntry]:
    query = db.query(JournalEntry).filter(JournalEntry.foundation_id == foundation_id)

    if start_date:
        query = query.filter(JournalEntry.entry_date >= start_date)
    if end_date:
        query = query.filter(JournalEntry.entry_date <= end_date)
    if status:
        query = query.filter(JournalEntry.status == status)

    return query.order_by(JournalEntry.entry_date.desc(), JournalEntry.id.desc()).offset(skip).limit(limit).all()


def _ensure_accounts(db: Session, foundation_id: str, lines) -> None:
    """Every referenced account must belong to the foundation and be active."""
    account_ids = {line.account_id for line in lines}
    accounts = db.query(Account).filter(
        Account.id.in_(account_ids),
        Account.foundation_id == foundation_id
    ).all()
    found = {account.id: account for account in accounts}

    for account_id in sorted(account_ids):
        account = found.get(account_id)
        if account is None:
            raise NotFound(f"Account {account_id} not found for this foundation")
        if not account.is_active:
            raise LedgerValidationError(
                ValidationReason.INVALID_FIELD,
                f"Account {account.account_number} ({account.account_name}) is inactive"
            )


def _insert_lines(db: Session, entry_id: int, lines) -> None:
    for order, line in enumerate(lines, start=1):
        db.add(JournalEntryLine(
            journal_entry_id=entry_id,
            account_id=line.account_id,
            description=line.description,
            debit_amount=to_decimal(line.debit_amount),
            credit_amount=to_decimal(line.credit_amount),
            line_order=order,
        ))
    db.flush()


def _compensate(db: Session, entry_id: int) -> None:
    """Removes a header whose lines could not be written."""
    try:
        db.query(JournalEntryLine).filter(JournalEntryLine.journal_entry_id == entry_id).delete(synchronize_session=False)
        db.query(JournalEntry).filter(JournalEntry.id == entry_id).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        # Nothing was committed yet, so the rollback discards the header too
        logger.exception(f"Compensating delete of journal entry {entry_id} failed, rolling back")
        db.rollback()


def create_journal_entry(
    db: Session,
    foundation_id: str,
    actor_id: str,
    entry: JournalEntryCreate,
    today: Optional[date] = None
) -> JournalEntry:
    """
    Creates a draft journal entry with its lines as one unit.

    The lines are validated again here whatever the client did before. The
    entry number uses the current year of the ledger clock, not the entry
    date, so numbers stay monotonic in allocation order.

    Raises:
        NotAuthorized: the actor may not write to this foundation's ledger.
        LedgerValidationError: the lines break a double-entry rule.
        NotFound: a line references an unknown account.
        NumberingConflict: no unique number could be allocated.
        LineItemInsertFailed: the lines could not be stored; the header was removed.
        PersistenceFailure, Timeout: other store failures, after rollback.
    """
    require_ledger_write(db, actor_id, foundation_id)

    total_debit, total_credit = line_totals(entry.lines)
    ensure_valid_journal_lines(entry.lines)
    _ensure_accounts(db, foundation_id, entry.lines)

    year = (today or clock.today()).year

    def build(entry_number: str) -> JournalEntry:
        return JournalEntry(
            foundation_id=foundation_id,
            entry_number=entry_number,
            entry_date=entry.entry_date,
            description=entry.description,
            reference_number=entry.reference_number,
            total_debit=total_debit,
            total_credit=total_credit,
            status=JournalEntryStatus.DRAFT,
            created_by=actor_id,
        )

    try:
        apply_statement_timeout(db)
        db_entry = numbering.insert_numbered(
            db, JournalEntry, "entry_number", foundation_id, numbering.JOURNAL_ENTRY_PREFIX, year, build
        )
    except LedgerError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"Failed to create journal entry header for foundation {foundation_id}")
        raise _store_error(e, "creating the journal entry header") from e

    entry_id = db_entry.id
    entry_number = db_entry.entry_number
    try:
        with db.begin_nested():
            _insert_lines(db, entry_id, entry.lines)
    except Exception as e:
        # Whatever went wrong, the header must not outlive its lines
        logger.exception(f"Line items for journal entry {entry_number} failed, removing header")
        _compensate(db, entry_id)
        if _is_timeout(e):
            raise Timeout(f"Timed out while storing the line items of {entry_number}") from e
        raise LineItemInsertFailed(f"Could not store the line items of {entry_number}: {e}", cause=e) from e

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"Commit of journal entry {entry_number} failed")
        raise _store_error(e, "committing the journal entry") from e

    db.refresh(db_entry)
    logger.info(
        f"Journal entry {entry_number} created by {actor_id} for foundation {foundation_id} "
        f"(debit {total_debit}, credit {total_credit})"
    )
    return db_entry


def _balance_deltas(db: Session, entry_id: int) -> dict:
    """Per-account balance change of an entry, signed by the account's normal side."""
    rows = db.query(
        JournalEntryLine.account_id,
        JournalEntryLine.debit_amount,
        JournalEntryLine.credit_amount,
        Account.account_type
    ).join(Account, Account.id == JournalEntryLine.account_id).filter(
        JournalEntryLine.journal_entry_id == entry_id
    ).all()

    deltas = defaultdict(Decimal)
    for account_id, debit, credit, account_type in rows:
        debit, credit = to_decimal(debit), to_decimal(credit)
        deltas[account_id] += debit - credit if account_type.is_debit_normal else credit - debit
    return deltas


def _apply_balance_deltas(db: Session, deltas: dict, direction: int) -> None:
    # Fixed order so concurrent postings lock account rows in the same sequence
    for account_id in sorted(deltas):
        delta = deltas[account_id] * direction
        if delta == 0:
            continue
        db.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(balance=Account.balance + delta)
            .execution_options(synchronize_session=False)
        )


def _transition(
    db: Session,
    foundation_id: str,
    entry_id: int,
    actor_id: str,
    source: JournalEntryStatus,
    target: JournalEntryStatus,
    direction: int,
    timestamp: datetime,
    columns: dict,
    action: str
) -> JournalEntry:
    require_ledger_write(db, actor_id, foundation_id)
    db_entry = get_journal_entry_or_404(db, foundation_id, entry_id)

    if db_entry.status == target:
        logger.info(f"Journal entry {db_entry.entry_number} is already {target.value}, nothing to apply")
        return db_entry
    if db_entry.status != source:
        raise InvalidStatusTransition(
            f"Journal entry {db_entry.entry_number} is {db_entry.status.value} and cannot be {target.value}"
        )

    ensure_valid_journal_lines(db_entry.lines)
    old_values = sqlalchemy_to_dict(db_entry)

    try:
        apply_statement_timeout(db)
        result = db.execute(
            update(JournalEntry)
            .where(
                JournalEntry.id == entry_id,
                JournalEntry.foundation_id == foundation_id,
                JournalEntry.status == source
            )
            .values(status=target, updated_by=actor_id, updated_at=timestamp, **columns)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # Another request won the compare-and-swap
            db.rollback()
            db.refresh(db_entry)
            if db_entry.status == target:
                return db_entry
            raise InvalidStatusTransition(
                f"Journal entry {db_entry.entry_number} changed to {db_entry.status.value} concurrently"
            )

        _apply_balance_deltas(db, _balance_deltas(db, entry_id), direction)

        db.expire(db_entry)
        create_audit_log(db, AuditLogCreate(
            foundation_id=foundation_id,
            table_name="journal_entries",
            record_id=entry_id,
            changed_by=actor_id,
            action=action,
            old_values=old_values,
            new_values=sqlalchemy_to_dict(db_entry),
        ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"{action} of journal entry {entry_id} failed")
        raise _store_error(e, f"changing journal entry {entry_id} to {target.value}") from e

    db.refresh(db_entry)
    logger.info(f"Journal entry {db_entry.entry_number} {target.value} by {actor_id}")
    return db_entry


def post_journal_entry(
    db: Session,
    foundation_id: str,
    entry_id: int,
    actor_id: str,
    now: Optional[datetime] = None
) -> JournalEntry:
    """Moves a draft to posted and applies its lines to the account balances once."""
    timestamp = now or clock.now()
    return _transition(
        db, foundation_id, entry_id, actor_id,
        JournalEntryStatus.DRAFT, JournalEntryStatus.POSTED, 1,
        timestamp, {"approved_by": actor_id, "approved_at": timestamp},
        "POST",
    )


def reverse_journal_entry(
    db: Session,
    foundation_id: str,
    entry_id: int,
    actor_id: str,
    now: Optional[datetime] = None
) -> JournalEntry:
    """Moves a posted entry to reversed and takes its effect off the balances. Reversed entries are final."""
    timestamp = now or clock.now()
    return _transition(
        db, foundation_id, entry_id, actor_id,
        JournalEntryStatus.POSTED, JournalEntryStatus.REVERSED, -1,
        timestamp, {"reversed_by": actor_id, "reversed_at": timestamp},
        "REVERSE",
    )


def _require_draft(db_entry: JournalEntry, verb: str) -> None:
    if db_entry.status != JournalEntryStatus.DRAFT:
        raise InvalidStatusTransition(
            f"Journal entry {db_entry.entry_number} is {db_entry.status.value}; only drafts can be {verb}"
        )


def replace_journal_entry(
    db: Session,
    foundation_id: str,
    entry_id: int,
    actor_id: str,
    entry: JournalEntryReplace
) -> JournalEntry:
    """Replaces a draft's header fields and its whole line set in one transaction."""
    require_ledger_write(db, actor_id, foundation_id)
    db_entry = db.query(JournalEntry).filter(
        JournalEntry.id == entry_id,
        JournalEntry.foundation_id == foundation_id
    ).with_for_update().first()
    if db_entry is None:
        raise NotFound(f"Journal entry {entry_id} not found")
    _require_draft(db_entry, "edited")

    total_debit, total_credit = line_totals(entry.lines)
    ensure_valid_journal_lines(entry.lines)
    _ensure_accounts(db, foundation_id, entry.lines)
    old_values = sqlalchemy_to_dict(db_entry)

    try:
        apply_statement_timeout(db)
        db_entry.entry_date = entry.entry_date
        db_entry.description = entry.description
        db_entry.reference_number = entry.reference_number
        db_entry.total_debit = total_debit
        db_entry.total_credit = total_credit
        db_entry.updated_by = actor_id
        db.query(JournalEntryLine).filter(JournalEntryLine.journal_entry_id == entry_id).delete(synchronize_session=False)
        _insert_lines(db, entry_id, entry.lines)
        create_audit_log(db, AuditLogCreate(
            foundation_id=foundation_id,
            table_name="journal_entries",
            record_id=entry_id,
            changed_by=actor_id,
            action="REPLACE",
            old_values=old_values,
            new_values=sqlalchemy_to_dict(db_entry),
        ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"Replacing journal entry {entry_id} failed")
        if _is_timeout(e):
            raise Timeout(f"Timed out while replacing journal entry {entry_id}") from e
        raise LineItemInsertFailed(f"Could not replace the line items of journal entry {entry_id}: {e}", cause=e) from e

    db.refresh(db_entry)
    logger.info(f"Journal entry {db_entry.entry_number} replaced by {actor_id}")
    return db_entry


def delete_journal_entry(db: Session, foundation_id: str, entry_id: int, actor_id: str) -> None:
    """Deletes a draft together with its lines. Posted and reversed entries are kept."""
    require_ledger_write(db, actor_id, foundation_id)
    db_entry = get_journal_entry_or_404(db, foundation_id, entry_id)
    _require_draft(db_entry, "deleted")

    old_values = sqlalchemy_to_dict(db_entry)
    entry_number = db_entry.entry_number
    try:
        deleted = db.query(JournalEntry).filter(
            JournalEntry.id == entry_id,
            JournalEntry.status == JournalEntryStatus.DRAFT
        ).delete(synchronize_session=False)
        if deleted != 1:
            db.rollback()
            raise InvalidStatusTransition(f"Journal entry {entry_number} is no longer a draft")
        db.query(JournalEntryLine).filter(JournalEntryLine.journal_entry_id == entry_id).delete(synchronize_session=False)
        create_audit_log(db, AuditLogCreate(
            foundation_id=foundation_id,
            table_name="journal_entries",
            record_id=entry_id,
            changed_by=actor_id,
            action="DELETE",
            old_values=old_values,
        ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"Deleting journal entry {entry_id} failed")
        raise _store_error(e, f"deleting journal entry {entry_id}") from e

    db.expunge(db_entry)
    logger.info(f"Draft journal entry {entry_number} deleted by {actor_id}")
