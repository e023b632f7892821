"""
Validation helpers for bookkeeping input.

All functions are side-effect free and return a `ValidationResult`, so the
same checks can run before submission (the `/journal-entries/validate`
endpoint) and again inside the posting procedure.
"""
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional, Union
import re

from utils.errors import LedgerValidationError, ValidationReason

# Fixed tolerance for comparing debit and credit totals
BALANCE_TOLERANCE = Decimal("0.01")
MAX_AMOUNT = Decimal("999999999.99")
CENT = Decimal("0.01")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
ACCOUNT_NUMBER_RE = re.compile(r"^\d{4}$")


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    error: Optional[str] = None
    reason: Optional[ValidationReason] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(True)

    @classmethod
    def fail(cls, error: str, reason: ValidationReason = ValidationReason.INVALID_FIELD) -> "ValidationResult":
        return cls(False, error, reason)

    def raise_for_error(self) -> None:
        if not self.is_valid:
            raise LedgerValidationError(self.reason, self.error)


def to_decimal(value: Union[str, int, float, Decimal, None]) -> Decimal:
    """Converts user input to Decimal without going through binary floats."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    # str() keeps the shortest repr of a float, so 0.1 stays 0.1
    return Decimal(str(value))


def validate_currency(amount: Union[str, int, float, Decimal]) -> ValidationResult:
    try:
        value = to_decimal(amount)
    except InvalidOperation:
        return ValidationResult.fail("Amount must be a valid number")
    if not value.is_finite():
        return ValidationResult.fail("Amount must be a valid number")
    if value < 0:
        return ValidationResult.fail("Amount must be positive")
    if value > MAX_AMOUNT:
        return ValidationResult.fail("Amount is too large")
    if value != value.quantize(CENT, rounding=ROUND_HALF_UP):
        return ValidationResult.fail("Amount cannot have more than 2 decimal places")
    return ValidationResult.ok()


def validate_required(value: Optional[str], field_name: str) -> ValidationResult:
    if value is None or not str(value).strip():
        return ValidationResult.fail(f"{field_name} is required")
    return ValidationResult.ok()


def _parse_date(value: Union[str, date]) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        return None


def validate_date(value: Union[str, date, None]) -> ValidationResult:
    if value is None or (isinstance(value, str) and not value.strip()):
        return ValidationResult.fail("Date is required")
    if _parse_date(value) is None:
        return ValidationResult.fail("Please enter a valid date")
    return ValidationResult.ok()


def validate_date_range(start: Union[str, date], end: Union[str, date]) -> ValidationResult:
    start_date, end_date = _parse_date(start), _parse_date(end)
    if start_date is None or end_date is None:
        return ValidationResult.fail("Please enter valid dates")
    if start_date > end_date:
        return ValidationResult.fail("Start date must be before end date")
    return ValidationResult.ok()


def validate_email(email: Optional[str]) -> ValidationResult:
    if not email or not email.strip():
        return ValidationResult.fail("Email is required")
    if not EMAIL_RE.match(email):
        return ValidationResult.fail("Please enter a valid email address")
    return ValidationResult.ok()


def validate_account_number(account_number: Optional[str]) -> ValidationResult:
    if not account_number or not account_number.strip():
        return ValidationResult.fail("Account number is required")
    if not ACCOUNT_NUMBER_RE.match(account_number):
        return ValidationResult.fail("Account number must be 4 digits")
    return ValidationResult.ok()


def validate_foundation_name(name: Optional[str]) -> ValidationResult:
    if not name or not name.strip():
        return ValidationResult.fail("Foundation name is required")
    if len(name.strip()) < 2:
        return ValidationResult.fail("Foundation name must be at least 2 characters")
    if len(name.strip()) > 100:
        return ValidationResult.fail("Foundation name cannot exceed 100 characters")
    return ValidationResult.ok()


def _field(line: Any, name: str):
    if isinstance(line, dict):
        return line.get(name)
    return getattr(line, name, None)


def line_totals(lines: Iterable[Any]) -> tuple:
    """Returns (total_debit, total_credit) as exact Decimals."""
    total_debit = Decimal("0")
    total_credit = Decimal("0")
    for line in lines:
        total_debit += to_decimal(_field(line, "debit_amount"))
        total_credit += to_decimal(_field(line, "credit_amount"))
    return total_debit, total_credit


def validate_journal_lines(lines: Optional[Iterable[Any]]) -> ValidationResult:
    """
    Checks the double-entry rules for a candidate set of line items.

    Lines may be pydantic models, ORM rows or plain dicts with
    `account_id`, `debit_amount` and `credit_amount`.

    Per-line problems are reported first, in line order, so a line carrying
    both a debit and a credit is always reported as MixedSides. Then the
    line count is checked, then the balance.
    """
    lines = list(lines or [])

    for index, line in enumerate(lines, start=1):
        has_debit = to_decimal(_field(line, "debit_amount")) > 0
        has_credit = to_decimal(_field(line, "credit_amount")) > 0
        if has_debit and has_credit:
            return ValidationResult.fail(
                f"Line {index} must have either a debit or a credit amount, not both",
                ValidationReason.MIXED_SIDES,
            )
        if not has_debit and not has_credit:
            return ValidationResult.fail(
                f"Line {index} must have either a debit or a credit amount",
                ValidationReason.EMPTY_SIDE,
            )
        if not _field(line, "account_id"):
            return ValidationResult.fail(
                f"Line {index} must have an account selected",
                ValidationReason.MISSING_ACCOUNT,
            )

    if len(lines) < 2:
        return ValidationResult.fail(
            "Journal entry must have at least 2 line items",
            ValidationReason.TOO_FEW_LINES,
        )

    total_debit, total_credit = line_totals(lines)
    if abs(total_debit - total_credit) > BALANCE_TOLERANCE:
        return ValidationResult.fail(
            f"Debits must equal credits (debit {total_debit}, credit {total_credit})",
            ValidationReason.UNBALANCED,
        )

    return ValidationResult.ok()


def ensure_valid_journal_lines(lines: Optional[Iterable[Any]]) -> None:
    validate_journal_lines(lines).raise_for_error()


def parse_currency_input(value: Optional[str]) -> Decimal:
    """Parses free-form amount input such as "1 250,50 kr"; unparseable input is zero."""
    if value is None:
        return Decimal("0")
    cleaned = re.sub(r"[^\d.,-]", "", str(value)).replace(",", ".")
    # Keep only the last separator as the decimal point
    if cleaned.count(".") > 1:
        head, _, tail = cleaned.rpartition(".")
        cleaned = head.replace(".", "") + "." + tail
    try:
        return Decimal(cleaned).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return Decimal("0")


def format_currency(amount: Union[Decimal, int, str], currency: str = "SEK") -> str:
    """Swedish style display: space as thousands separator, comma as decimal point."""
    value = to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    whole, _, cents = f"{abs(value):.2f}".partition(".")
    groups = []
    while whole:
        groups.insert(0, whole[-3:])
        whole = whole[:-3]
    return f"{sign}{' '.join(groups)},{cents} {currency}"
