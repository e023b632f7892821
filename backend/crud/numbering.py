"""
Sequential document numbers of the form <PREFIX>-<year>-<6-digit sequence>.

The next sequence is the highest existing sequence for the foundation, prefix
and year plus one. Counting rows instead would hand out a number again after a
deletion. Numbers are allocated inside the transaction that inserts the
numbered row: PostgreSQL serializes allocations with an advisory lock, and the
(foundation_id, number) unique constraints catch anything that slips through,
in which case the number is recomputed and the insert retried.
"""
import logging
import os
import re
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import acquire_advisory_lock
from models.invoice import Invoice, InvoiceType
from models.journal_entry import JournalEntry
from utils.errors import NumberingConflict

logger = logging.getLogger(__name__)

JOURNAL_ENTRY_PREFIX = "JE"
INVOICE_PREFIXES = {
    InvoiceType.SALES: "INV",
    InvoiceType.PURCHASE: "PI",
}
SEQUENCE_WIDTH = 6
MAX_RETRIES = int(os.getenv("NUMBERING_MAX_RETRIES", "5"))


def format_number(prefix: str, year: int, sequence: int) -> str:
    return f"{prefix}-{year}-{sequence:0{SEQUENCE_WIDTH}d}"


def parse_sequence(number: Optional[str], prefix: str, year: int) -> Optional[int]:
    """Returns the sequence part of `number`, or None if it does not follow the pattern."""
    match = re.fullmatch(rf"{re.escape(prefix)}-{year}-(\d+)", number or "")
    return int(match.group(1)) if match else None


def lock_key(foundation_id: str, prefix: str, year: int) -> str:
    return f"numbering:{foundation_id}:{prefix}:{year}"


def next_sequence(db: Session, model, number_field: str, foundation_id: str, prefix: str, year: int) -> int:
    number_column = getattr(model, number_field)
    numbers = db.query(number_column).filter(
        model.foundation_id == foundation_id,
        number_column.like(f"{prefix}-{year}-%")
    ).all()

    highest = 0
    for (number,) in numbers:
        sequence = parse_sequence(number, prefix, year)
        if sequence is not None and sequence > highest:
            highest = sequence
    return highest + 1


def next_entry_number(db: Session, foundation_id: str, year: int) -> str:
    sequence = next_sequence(db, JournalEntry, "entry_number", foundation_id, JOURNAL_ENTRY_PREFIX, year)
    return format_number(JOURNAL_ENTRY_PREFIX, year, sequence)


def next_invoice_number(db: Session, foundation_id: str, invoice_type: InvoiceType, year: int) -> str:
    prefix = INVOICE_PREFIXES[invoice_type]
    sequence = next_sequence(db, Invoice, "invoice_number", foundation_id, prefix, year)
    return format_number(prefix, year, sequence)


def _is_number_conflict(error: IntegrityError, number_field: str) -> bool:
    message = str(error.orig)
    return number_field in message or "_uc" in message


def insert_numbered(
    db: Session,
    model,
    number_field: str,
    foundation_id: str,
    prefix: str,
    year: int,
    build: Callable[[str], object],
    max_retries: int = MAX_RETRIES,
):
    """
    Allocates the next number and flushes the row built by `build(number)`.

    Each attempt runs in a SAVEPOINT so a unique-constraint conflict only
    discards that attempt. The caller owns the surrounding transaction and
    commits it.

    Raises:
        NumberingConflict: every attempt collided with a concurrent insert.
    """
    acquire_advisory_lock(db, lock_key(foundation_id, prefix, year))

    for attempt in range(1, max_retries + 1):
        sequence = next_sequence(db, model, number_field, foundation_id, prefix, year)
        number = format_number(prefix, year, sequence)
        row = build(number)

        savepoint = db.begin_nested()
        try:
            db.add(row)
            db.flush()
        except IntegrityError as e:
            savepoint.rollback()
            if not _is_number_conflict(e, number_field):
                raise
            logger.warning(
                f"Number {number} already taken for foundation {foundation_id} "
                f"(attempt {attempt}/{max_retries}), recomputing"
            )
            continue
        savepoint.commit()
        return row

    raise NumberingConflict(
        f"Could not allocate a unique {prefix} number for foundation {foundation_id} "
        f"in {year} after {max_retries} attempts"
    )
