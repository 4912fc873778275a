"""Assignment engine and the pool of users a record may be assigned to."""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from chatdesk.models.domain import User
from chatdesk.models.enums import AuditAction, UserRole
from chatdesk.services.audit import AuditRecorder
from chatdesk.services.authorization import ActorContext, ensure_can_assign
from chatdesk.services.errors import Forbidden, OutOfScopeAssignee, UserNotFound
from chatdesk.services.records import (
    commit_record_change,
    get_user,
    load_record,
    resolve_record_type
)
from chatdesk.services.side_effects import run_best_effort

logger = logging.getLogger(__name__)

ASSIGNABLE_ROLES = (UserRole.DEPARTMENT_ADMIN, UserRole.OPERATOR)


def available_assignees_query(db: Session, company_id: str, department_id: Optional[str] = None):
    """Active department admins and operators of a company, optionally one department."""
    query = db.query(User).filter(
        User.is_active.is_(True),
        User.is_deleted.is_(False),
        User.company_id == company_id,
        User.role.in_(ASSIGNABLE_ROLES)
    )
    if department_id is not None:
        query = query.filter(User.department_id == department_id)
    return query


def available_users_for(db: Session, actor: ActorContext, department_id: Optional[str] = None) -> List[User]:
    """
    Candidate assignees as seen by the caller.

    COMPANY_ADMIN gets the company pool (optionally narrowed to one
    department); DEPARTMENT_ADMIN gets the operators of their own
    department; anyone else is refused.
    """
    if actor.role == UserRole.COMPANY_ADMIN:
        query = available_assignees_query(db, actor.company_id, department_id)
    elif actor.role == UserRole.DEPARTMENT_ADMIN:
        if actor.department_id is None:
            return []
        query = available_assignees_query(db, actor.company_id, actor.department_id).filter(
            User.role == UserRole.OPERATOR
        )
    else:
        raise Forbidden("Insufficient permissions")

    return query.order_by(User.first_name, User.last_name).all()


class AssignmentEngine:
    """Validates and applies assignee changes. Assignment never notifies the citizen."""

    def __init__(self, db: Session, auditor: Optional[AuditRecorder] = None):
        self.db = db
        self.auditor = auditor or AuditRecorder(db)

    def assign(self, record_type, record_id: int, assignee_user_id: str, actor: ActorContext):
        """
        Bind a record to a user of its company (and department, if it has one).

        Refusals, in order: RecordNotFound, Forbidden, UserNotFound,
        OutOfScopeAssignee. An existing assignee is overwritten.
        """
        record_type = resolve_record_type(record_type)
        record = load_record(self.db, record_type, record_id)
        ensure_can_assign(actor, record)

        assignee = get_user(self.db, assignee_user_id)
        if assignee is None:
            raise UserNotFound("User to assign not found")

        in_pool = available_assignees_query(
            self.db, record.company_id, record.department_id
        ).filter(User.id == assignee.id).first()
        if in_pool is None:
            scope = "department" if record.department_id else "company"
            logger.info(
                f"Refused assigning {record.reference} to {assignee.id}: outside the record's {scope}"
            )
            raise OutOfScopeAssignee(f"Can only assign to users within the {record_type.value}'s {scope}")

        previous = record.assigned_to_id
        now = datetime.utcnow()
        record.assigned_to_id = assignee.id
        record.assigned_at = now
        record.updated_at = now
        commit_record_change(self.db, record)
        self.db.refresh(record)

        logger.info(f"{record.reference} assigned {previous} -> {assignee.id} by {actor.user_id}")

        run_best_effort(
            "Audit log",
            self.auditor.record,
            actor,
            AuditAction.ASSIGN,
            type(record).__name__,
            str(record.id),
            {
                "before": previous,
                "after": assignee.id,
                "assignee_name": assignee.full_name,
                "reference": record.reference,
            },
            context={"record_id": record.id, "reference": record.reference}
        )

        return record
