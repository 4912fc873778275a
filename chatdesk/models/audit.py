"""
Audit log model.

Immutable, append-only trail of every status change and assignment. The
workflow engines only ever write it; the recent-activity feed reads it.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON, Enum as SQLEnum
from chatdesk.database import Base
from chatdesk.models.enums import AuditAction


class AuditEvent(Base):
    """
    Immutable audit event.

    Invariants:
    - Once written, never edited or deleted
    - Append-only
    """
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    action = Column(SQLEnum(AuditAction), nullable=False, index=True)
    resource_type = Column(String, nullable=False, index=True)  # "Grievance", "Appointment"
    resource_id = Column(String, nullable=True, index=True)

    # Actor snapshot, kept even if the user is later deleted
    user_id = Column(String, nullable=True, index=True)  # Nullable for system events
    user_email = Column(String, nullable=True)
    user_name = Column(String, nullable=True)
    company_id = Column(String, nullable=True, index=True)
    department_id = Column(String, nullable=True)

    details = Column(JSON, nullable=True)  # before/after payload
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
