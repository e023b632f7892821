from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from models import chart_of_accounts as chart_of_accounts_model
from models import journal_entry_line as journal_entry_line_model
from models.chart_of_accounts import AccountType
from schemas.chart_of_accounts import AccountCreate, AccountUpdate
from database import dialect_name
from utils import clock
from utils.access import require_ledger_write
from utils.errors import LedgerValidationError, NotFound, PersistenceFailure, ValidationReason
import logging

logger = logging.getLogger(__name__)

Account = chart_of_accounts_model.Account

# Bump when STANDARD_ACCOUNTS changes; bootstrap never removes accounts
STANDARD_CHART_VERSION = "bas-foundation-2025.1"
DEFAULT_CURRENCY = "SEK"

# BAS-style chart for foundations: assets 1xxx, liabilities 2xxx, equity 3xxx,
# revenue 4xxx, expenses 5xxx-8xxx
STANDARD_ACCOUNTS = [
    ("1010", "Cash", AccountType.ASSET),
    ("1020", "Bank Account - Operating", AccountType.ASSET),
    ("1030", "Bank Account - Savings", AccountType.ASSET),
    ("1510", "Accounts Receivable", AccountType.ASSET),
    ("1630", "Prepaid Expenses", AccountType.ASSET),
    ("1810", "Office Equipment", AccountType.ASSET),
    ("1820", "Computer Equipment", AccountType.ASSET),

    ("2010", "Accounts Payable", AccountType.LIABILITY),
    ("2020", "Accrued Expenses", AccountType.LIABILITY),
    ("2030", "VAT Payable", AccountType.LIABILITY),
    ("2040", "Payroll Taxes Payable", AccountType.LIABILITY),

    ("3010", "Foundation Capital", AccountType.EQUITY),
    ("3020", "Retained Earnings", AccountType.EQUITY),
    ("3030", "Current Year Earnings", AccountType.EQUITY),

    ("4010", "Donation Revenue", AccountType.REVENUE),
    ("4020", "Grant Revenue", AccountType.REVENUE),
    ("4030", "Investment Income", AccountType.REVENUE),
    ("4040", "Interest Income", AccountType.REVENUE),
    ("4050", "Other Income", AccountType.REVENUE),

    ("5010", "Office Supplies", AccountType.EXPENSE),
    ("5020", "Travel Expenses", AccountType.EXPENSE),
    ("5030", "Meals and Entertainment", AccountType.EXPENSE),
    ("5040", "Utilities", AccountType.EXPENSE),
    ("5050", "Professional Services", AccountType.EXPENSE),
    ("5060", "Marketing and Advertising", AccountType.EXPENSE),
    ("5070", "Insurance", AccountType.EXPENSE),
    ("5080", "Rent", AccountType.EXPENSE),
    ("6010", "Salaries and Wages", AccountType.EXPENSE),
    ("6020", "Payroll Taxes", AccountType.EXPENSE),
    ("6030", "Employee Benefits", AccountType.EXPENSE),
    ("7010", "Program Expenses", AccountType.EXPENSE),
    ("7020", "Grant Disbursements", AccountType.EXPENSE),
    ("8010", "Depreciation Expense", AccountType.EXPENSE),
    ("8020", "Interest Expense", AccountType.EXPENSE),
    ("8030", "Bank Fees", AccountType.EXPENSE),
]


def get_account(db: Session, account_id: int, foundation_id: str):
    return db.query(Account).filter(
        Account.id == account_id,
        Account.foundation_id == foundation_id
    ).first()


def get_account_by_number(db: Session, account_number: str, foundation_id: str):
    return db.query(Account).filter(
        Account.account_number == account_number,
        Account.foundation_id == foundation_id
    ).first()


def get_accounts(db: Session, foundation_id: str, account_type: AccountType = None, include_inactive: bool = False,
                 skip: int = 0, limit: int = 500):
    query = db.query(Account).filter(Account.foundation_id == foundation_id)

    if not include_inactive:
        query = query.filter(Account.is_active.is_(True))
    if account_type:
        query = query.filter(Account.account_type == account_type)

    return query.order_by(Account.account_number).offset(skip).limit(limit).all()


def create_account(db: Session, account: AccountCreate, foundation_id: str, actor_id: str):
    require_ledger_write(db, actor_id, foundation_id)
    if get_account_by_number(db, account.account_number, foundation_id):
        raise LedgerValidationError(
            ValidationReason.INVALID_FIELD,
            f"Account with number {account.account_number} already exists"
        )

    db_account = Account(**account.model_dump(), foundation_id=foundation_id, balance=0, created_by=actor_id)
    db.add(db_account)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise LedgerValidationError(
            ValidationReason.INVALID_FIELD,
            f"Account with number {account.account_number} already exists"
        )
    db.refresh(db_account)
    logger.info(f"Account {db_account.account_number} created by {actor_id} for foundation {foundation_id}")
    return db_account


def _is_referenced(db: Session, account_id: int) -> bool:
    return db.query(journal_entry_line_model.JournalEntryLine.id).filter(
        journal_entry_line_model.JournalEntryLine.account_id == account_id
    ).first() is not None


def update_account(db: Session, account_id: int, account_update: AccountUpdate, foundation_id: str, actor_id: str):
    require_ledger_write(db, actor_id, foundation_id)
    db_account = get_account(db, account_id, foundation_id)
    if not db_account:
        raise NotFound(f"Account with id {account_id} not found")

    # Every column behind AccountUpdate is NOT NULL
    update_data = account_update.model_dump(exclude_unset=True, exclude_none=True)

    # An account already used by journal lines keeps its type and stays active
    if 'account_type' in update_data and update_data['account_type'] != db_account.account_type:
        if _is_referenced(db, account_id):
            raise LedgerValidationError(
                ValidationReason.INVALID_FIELD,
                "Cannot change account type for an account that is in use by journal entries."
            )
    if update_data.get('is_active') is False and _is_referenced(db, account_id):
        raise LedgerValidationError(
            ValidationReason.INVALID_FIELD,
            "Cannot deactivate account because it is referenced by journal entry lines."
        )

    for key, value in update_data.items():
        setattr(db_account, key, value)
    db_account.updated_by = actor_id

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"Could not update account {account_id} for foundation {foundation_id}")
        raise PersistenceFailure(f"Could not update account {account_id}: {e}", cause=e) from e
    db.refresh(db_account)
    return db_account


def deactivate_account(db: Session, account_id: int, foundation_id: str, actor_id: str):
    return update_account(db, account_id, AccountUpdate(is_active=False), foundation_id, actor_id)


def _insert_ignoring_conflicts(db: Session):
    """INSERT .. ON CONFLICT DO NOTHING for the dialects that support it."""
    if dialect_name(db) == "postgresql":
        return postgresql.insert(Account)
    if dialect_name(db) == "sqlite":
        return sqlite.insert(Account)
    raise PersistenceFailure(f"Chart bootstrap does not support the {dialect_name(db)} dialect")


def initialize_default_accounts(db: Session, foundation_id: str, commit: bool = True) -> int:
    """
    Seeds the standard chart of accounts for a foundation.

    Account numbers the foundation already has are left untouched, so this can
    run any number of times. Returns how many accounts were created.
    """
    timestamp = clock.now()
    rows = [
        {
            "foundation_id": foundation_id,
            "account_number": number,
            "account_name": name,
            "account_type": account_type,
            "balance": 0,
            "currency": DEFAULT_CURRENCY,
            "is_active": True,
            "created_at": timestamp,
        }
        for number, name, account_type in STANDARD_ACCOUNTS
    ]

    statement = _insert_ignoring_conflicts(db).values(rows).on_conflict_do_nothing(
        index_elements=["foundation_id", "account_number"]
    )
    # rowcount only counts rows this statement inserted, not concurrent ones
    created = db.execute(statement).rowcount

    if commit:
        db.commit()
    logger.info(
        f"Chart of accounts {STANDARD_CHART_VERSION} applied to foundation {foundation_id}: "
        f"{created} account(s) created"
    )
    return created
