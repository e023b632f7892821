"""
Structured ledger errors.

CRUD and service functions raise these; routers turn them into HTTP responses
with `to_http_exception`, so callers always receive a `kind` and a readable
`message`.
"""
from typing import Optional
import enum

from fastapi import HTTPException, status


class ValidationReason(str, enum.Enum):
    TOO_FEW_LINES = "TooFewLines"
    UNBALANCED = "Unbalanced"
    MIXED_SIDES = "MixedSides"
    EMPTY_SIDE = "EmptySide"
    MISSING_ACCOUNT = "MissingAccount"
    INVALID_FIELD = "InvalidField"


class LedgerError(Exception):
    kind = "LedgerError"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class LedgerValidationError(LedgerError):
    kind = "ValidationError"
    status_code = 422

    def __init__(self, reason: ValidationReason, message: str):
        super().__init__(message)
        self.reason = reason

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["reason"] = self.reason.value
        return data


class NumberingConflict(LedgerError):
    kind = "NumberingConflict"
    status_code = status.HTTP_409_CONFLICT
    retryable = True


class PersistenceFailure(LedgerError):
    kind = "PersistenceFailure"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class LineItemInsertFailed(PersistenceFailure):
    kind = "LineItemInsertFailed"


class NotAuthorized(LedgerError):
    kind = "NotAuthorized"
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(LedgerError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND


class InvalidStatusTransition(LedgerError):
    kind = "InvalidStatusTransition"
    status_code = status.HTTP_409_CONFLICT


class Timeout(LedgerError):
    kind = "Timeout"
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    retryable = True


def to_http_exception(error: LedgerError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.to_dict())
