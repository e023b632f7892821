from sqlalchemy import Column, DateTime, String
from utils import clock


class TimestampMixin:
    """Mixin that provides created/updated timestamps and user info.

    Timestamps are timezone-aware and taken in the ledger timezone
    (LEDGER_TIMEZONE, Europe/Stockholm by default).
    """
    created_at = Column(DateTime(timezone=True), default=clock.now)
    updated_at = Column(DateTime(timezone=True), onupdate=clock.now)
    created_by = Column(String, nullable=True)
    updated_by = Column(String, nullable=True)
