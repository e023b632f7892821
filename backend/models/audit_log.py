from sqlalchemy import Column, Integer, String, DateTime, JSON
from database import Base
from utils import clock


class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, index=True)
    foundation_id = Column(String, nullable=True, index=True)
    table_name = Column(String, nullable=False)
    record_id = Column(Integer, nullable=False)
    changed_at = Column(DateTime(timezone=True), default=clock.now)
    changed_by = Column(String, nullable=False)
    action = Column(String, nullable=False)  # e.g., 'POST', 'REVERSE', 'REPLACE', 'DELETE'
    old_values = Column(JSON)
    new_values = Column(JSON)
