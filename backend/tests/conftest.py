# tests/conftest.py
"""
Pytest fixtures for the ledger tests.

Each test gets its own SQLite file. Transactions are opened with
BEGIN IMMEDIATE so concurrent sessions serialize on the write lock, and
foreign keys are enforced, which keeps the store close to PostgreSQL for
what the ledger relies on (unique constraints, check constraints, cascades).
"""
import os
import tempfile

# Configuration read at import time by database.py, auth_utils.py and main.py
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["SUPABASE_JWT_AUDIENCE"] = "authenticated"
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="ledger-logs-"))

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from database import Base
import models  # noqa: F401
from crud.foundations import add_member, create_foundation
from crud.chart_of_accounts import get_account_by_number
from models.foundation import MemberRole
from schemas.foundation import FoundationCreate
from schemas.journal_entry import JournalEntryCreate, JournalEntryLineCreate


OWNER_ID = "user-owner"
MEMBER_ID = "user-member"
OUTSIDER_ID = "user-outsider"
TODAY = date(2025, 3, 14)


def make_sqlite_engine(path):
    engine = create_engine(
        f"sqlite:///{path}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself; pysqlite's own handling breaks SAVEPOINT
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


@pytest.fixture
def engine(tmp_path):
    engine = make_sqlite_engine(tmp_path / "ledger.db")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# =============================================================================
# Foundation fixtures
# =============================================================================

@pytest.fixture
def foundation(db):
    """A foundation owned by OWNER_ID with MEMBER_ID as a read-only member."""
    db_foundation, _ = create_foundation(db, FoundationCreate(name="Stiftelsen Test"), OWNER_ID)
    add_member(db, db_foundation.id, MEMBER_ID, MemberRole.MEMBER)
    return db_foundation


@pytest.fixture
def other_foundation(db):
    db_foundation, _ = create_foundation(db, FoundationCreate(name="Stiftelsen Annan"), "user-other-owner")
    return db_foundation


@pytest.fixture
def accounts(db, foundation):
    """Account ids by account number for the standard chart of `foundation`."""
    numbers = ["1010", "1020", "2010", "3010", "4010", "5010"]
    ids = {number: get_account_by_number(db, number, foundation.id).id for number in numbers}
    # Release the write lock so other sessions and threads can start transactions
    db.commit()
    return ids


# =============================================================================
# Helpers
# =============================================================================

def line(account_id, debit="0", credit="0", description=None):
    return JournalEntryLineCreate(
        account_id=account_id,
        debit_amount=Decimal(debit),
        credit_amount=Decimal(credit),
        description=description,
    )


def entry_payload(lines, description="Donation received", entry_date=TODAY):
    return JournalEntryCreate(entry_date=entry_date, description=description, lines=lines)


def donation(accounts, amount="500.00"):
    """Cash received as a donation: debit 1010, credit 4010."""
    return entry_payload([
        line(accounts["1010"], debit=amount),
        line(accounts["4010"], credit=amount),
    ])
