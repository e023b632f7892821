"""
Nightly read-only check of the stored journal.

Flags entries whose header totals disagree with their lines, or whose lines
break the double-entry rules. Nothing is repaired automatically; findings are
logged for a bookkeeper to look at.
"""
from typing import List, Optional
import logging

from sqlalchemy.orm import Session, selectinload

from database import SessionLocal
from models.journal_entry import JournalEntry
from utils.validation import BALANCE_TOLERANCE, line_totals, to_decimal, validate_journal_lines

logger = logging.getLogger(__name__)


def find_integrity_problems(db: Session, foundation_id: Optional[str] = None) -> List[dict]:
    query = db.query(JournalEntry).options(selectinload(JournalEntry.lines))
    if foundation_id:
        query = query.filter(JournalEntry.foundation_id == foundation_id)

    problems = []
    for entry in query.order_by(JournalEntry.id).all():
        total_debit, total_credit = line_totals(entry.lines)
        if total_debit != to_decimal(entry.total_debit) or total_credit != to_decimal(entry.total_credit):
            problems.append({
                "foundation_id": entry.foundation_id,
                "entry_number": entry.entry_number,
                "problem": (
                    f"stored totals {entry.total_debit}/{entry.total_credit} "
                    f"differ from line totals {total_debit}/{total_credit}"
                ),
            })
        if abs(to_decimal(entry.total_debit) - to_decimal(entry.total_credit)) > BALANCE_TOLERANCE:
            problems.append({
                "foundation_id": entry.foundation_id,
                "entry_number": entry.entry_number,
                "problem": "header is unbalanced",
            })
        result = validate_journal_lines(entry.lines)
        if not result.is_valid:
            problems.append({
                "foundation_id": entry.foundation_id,
                "entry_number": entry.entry_number,
                "problem": f"{result.reason.value}: {result.error}",
            })
    return problems


def run_integrity_sweep() -> int:
    """Scheduled entry point. Returns the number of problems found."""
    db = SessionLocal()
    try:
        logger.info("Starting ledger integrity sweep")
        problems = find_integrity_problems(db)
        for problem in problems:
            logger.warning(
                f"Ledger integrity: foundation {problem['foundation_id']} "
                f"entry {problem['entry_number']}: {problem['problem']}"
            )
        logger.info(f"Ledger integrity sweep finished, {len(problems)} problem(s) found")
        return len(problems)
    finally:
        db.close()
