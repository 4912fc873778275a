"""Audit recorder and the recent-activity feed built on top of it."""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chatdesk.models.audit import AuditEvent
from chatdesk.models.enums import AuditAction, Permission, UserRole
from chatdesk.services.authorization import ActorContext, has_permission
from chatdesk.services.errors import Forbidden

logger = logging.getLogger(__name__)

MAX_FEED_LIMIT = 100


class AuditRecorder:
    """Appends audit events. Append-only: no update or delete path."""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        actor: Optional[ActorContext],
        action: AuditAction,
        resource_type: str,
        resource_id: Optional[str],
        details: Optional[Dict[str, Any]] = None
    ) -> AuditEvent:
        """
        Write one audit event and commit it.

        On a database error only the audit insert is rolled back and the
        error is re-raised for the caller to deal with.
        """
        user = actor.user if actor else None
        event = AuditEvent(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            user_id=user.id if user else None,
            user_email=user.email if user else None,
            user_name=user.full_name if user else None,
            company_id=user.company_id if user else None,
            department_id=user.department_id if user else None,
            details=details,
            ip_address=actor.ip_address if actor else None,
            user_agent=actor.user_agent if actor else None
        )
        try:
            self.db.add(event)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.debug(f"Audit {action.value} {resource_type}:{resource_id} by {event.user_id}")
        return event


def recent_activity(
    db: Session,
    actor: ActorContext,
    limit: int = 50,
    action: Optional[AuditAction] = None,
    resource_type: Optional[str] = None
) -> List[AuditEvent]:
    """
    Newest audit events visible to the actor.

    SUPER_ADMIN sees every company; everyone else is limited to events
    written by users of their own company.
    """
    if not has_permission(actor.user, Permission.VIEW_AUDIT_LOGS):
        raise Forbidden("Access denied. Required permissions not found.")

    limit = max(1, min(limit, MAX_FEED_LIMIT))
    query = db.query(AuditEvent)
    if actor.role != UserRole.SUPER_ADMIN:
        query = query.filter(AuditEvent.company_id == actor.company_id)
    if action is not None:
        query = query.filter(AuditEvent.action == action)
    if resource_type:
        query = query.filter(AuditEvent.resource_type == resource_type)

    return query.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(limit).all()
