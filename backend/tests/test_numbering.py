# tests/test_numbering.py
"""
Tests for document numbering.

Tests cover:
- Number format and parsing
- Max-based allocation per foundation, prefix and year
- Retry on a unique-constraint conflict, and giving up after the retry budget
- Concurrent submissions ending up with distinct numbers
"""
import threading
from datetime import date
from decimal import Decimal

import pytest

from conftest import OWNER_ID, TODAY, donation
from crud import numbering
from crud.invoices import create_invoice
from crud.journal_entry import create_journal_entry, delete_journal_entry
from models.invoice import InvoiceType
from models.journal_entry import JournalEntry
from schemas.invoice import InvoiceCreate, InvoiceLineItemCreate
from utils import clock
from utils.errors import NumberingConflict


class TestNumberFormat:

    def test_format(self):
        assert numbering.format_number("JE", 2025, 1) == "JE-2025-000001"
        assert numbering.format_number("INV", 2026, 123456) == "INV-2026-123456"

    def test_parse(self):
        assert numbering.parse_sequence("JE-2025-000042", "JE", 2025) == 42

    @pytest.mark.parametrize("number", ["JE-2024-000042", "PI-2025-000042", "JE-2025-", "JE-2025-00004x", None, ""])
    def test_parse_ignores_other_numbers(self, number):
        assert numbering.parse_sequence(number, "JE", 2025) is None


class TestEntryNumberAllocation:

    def test_first_entry_of_the_year(self, db, foundation, accounts):
        db_entry = create_journal_entry(db, foundation.id, OWNER_ID, donation(accounts), today=TODAY)

        assert db_entry.entry_number == "JE-2025-000001"

    def test_numbers_are_sequential(self, db, foundation, accounts):
        numbers = [
            create_journal_entry(db, foundation.id, OWNER_ID, donation(accounts), today=TODAY).entry_number
            for _ in range(3)
        ]

        assert numbers == ["JE-2025-000001", "JE-2025-000002", "JE-2025-000003"]
        assert numbering.next_entry_number(db, foundation.id, 2025) == "JE-2025-000004"

    def test_deleting_a_draft_does_not_reuse_a_higher_number(self, db, foundation, accounts):
        first = create_journal_entry(db, foundation.id, OWNER_ID, donation(accounts), today=TODAY)
        second = create_journal_entry(db, foundation.id, OWNER_ID, donation(accounts), today=TODAY)
        create_journal_entry(db, foundation.id, OWNER_ID, donation(accounts), today=TODAY)

        delete_journal_entry(db, foundation.id, second.id, OWNER_ID)
        fourth = create_journal_entry(db, foundation.id, OWNER_ID, donation(accounts), today=TODAY)

        assert first.entry_number == "JE-2025-000001"
        assert fourth.entry_number == "JE-2025-000004"

    def test_sequence_restarts_each_year(self, db, foundation, accounts):
        create_journal_entry(db, foundation.id, OWNER_ID, donation(accounts), today=date(2025, 12, 31))
        create_journal_entry(db, foundation.id, OWNER_ID, donation(accounts), today=date(2025, 12, 31))

        db_entry = create_journal_entry(db, foundation.id, OWNER_ID, donation(accounts), today=date(2026, 1, 1))

        assert db_entry.entry_number == "JE-2026-000001"

    def test_year_comes_from_the_ledger_clock(self, db, foundation, accounts, monkeypatch):
        monkeypatch.setattr(clock, "today", lambda: date(2027, 6, 1))

        db_entry = create_journal_entry(db, foundation.id, OWNER_ID, donation(accounts))

        # entry_date is still the date given by the bookkeeper
        assert db_entry.entry_number == "JE-2027-000001"
        assert db_entry.entry_date == TODAY

    def test_foundations_number_independently(self, db, foundation, accounts, other_foundation):
        create_journal_entry(db, foundation.id, OWNER_ID, donation(accounts), today=TODAY)
        create_journal_entry(db, foundation.id, OWNER_ID, donation(accounts), today=TODAY)

        assert numbering.next_entry_number(db, other_foundation.id, 2025) == "JE-2025-000001"


class TestNumberingConflicts:

    def test_conflict_is_retried_with_a_fresh_number(self, db, foundation, accounts, monkeypatch):
        create_journal_entry(db, foundation.id, OWNER_ID, donation(accounts), today=TODAY)

        real_next_sequence = numbering.next_sequence
        calls = []

        def stale_then_real(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                # What a concurrent request that read the table too early would compute
                return 1
            return real_next_sequence(*args, **kwargs)

        monkeypatch.setattr(numbering, "next_sequence", stale_then_real)

        db_entry = create_journal_entry(db, foundation.id, OWNER_ID, donation(accounts), today=TODAY)

        assert db_entry.entry_number == "JE-2025-000002"
        assert len(calls) == 2
        assert len(db_entry.lines) == 2

    def test_gives_up_after_the_retry_budget(self, db, foundation, accounts, monkeypatch):
        create_journal_entry(db, foundation.id, OWNER_ID, donation(accounts), today=TODAY)
        calls = []

        def always_taken(*args, **kwargs):
            calls.append(args)
            return 1

        monkeypatch.setattr(numbering, "next_sequence", always_taken)

        with pytest.raises(NumberingConflict) as exc_info:
            create_journal_entry(db, foundation.id, OWNER_ID, donation(accounts), today=TODAY)

        assert exc_info.value.retryable is True
        assert exc_info.value.status_code == 409
        assert len(calls) == numbering.MAX_RETRIES
        assert db.query(JournalEntry).filter(JournalEntry.foundation_id == foundation.id).count() == 1

    def test_concurrent_submissions_get_distinct_numbers(self, db, session_factory, foundation, accounts):
        foundation_id = foundation.id
        # End the fixture session's transaction; it would hold the write lock
        db.rollback()
        workers = 4
        barrier = threading.Barrier(workers)
        numbers = []
        errors = []
        lock = threading.Lock()

        def submit():
            session = session_factory()
            try:
                barrier.wait()
                db_entry = create_journal_entry(session, foundation_id, OWNER_ID, donation(accounts), today=TODAY)
                with lock:
                    numbers.append(db_entry.entry_number)
            except Exception as e:  # collected and asserted below
                with lock:
                    errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=submit) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        assert errors == []
        assert sorted(numbers) == [numbering.format_number("JE", 2025, n) for n in range(1, workers + 1)]


class TestInvoiceNumbering:

    def _invoice(self, invoice_type):
        return InvoiceCreate(
            invoice_type=invoice_type,
            customer_supplier_name="Konsult AB",
            invoice_date=TODAY,
            due_date=date(2025, 4, 13),
            items=[InvoiceLineItemCreate(description="Advisory", quantity=Decimal("1"), unit_price=Decimal("100.00"))],
        )

    def test_sales_and_purchase_invoices_have_separate_sequences(self, db, foundation):
        sales = [
            create_invoice(db, foundation.id, OWNER_ID, self._invoice(InvoiceType.SALES), today=TODAY).invoice_number
            for _ in range(2)
        ]
        purchase = create_invoice(db, foundation.id, OWNER_ID, self._invoice(InvoiceType.PURCHASE), today=TODAY)

        assert sales == ["INV-2025-000001", "INV-2025-000002"]
        assert purchase.invoice_number == "PI-2025-000001"
        assert numbering.next_invoice_number(db, foundation.id, InvoiceType.SALES, 2025) == "INV-2025-000003"
