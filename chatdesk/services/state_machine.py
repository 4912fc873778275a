"""
Status transition engine for grievances and appointments.

All status changes MUST go through here. The change is persisted first;
the citizen notification and the audit entry follow as independent
best-effort effects.
"""
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session
from chatdesk.models.domain import Grievance, Appointment, StatusHistoryEntry
from chatdesk.models.enums import (
    RecordType,
    AuditAction,
    GrievanceStatus,
    AppointmentStatus
)
from chatdesk.services.audit import AuditRecorder
from chatdesk.services.authorization import ActorContext, ensure_can_update
from chatdesk.services.errors import NoOpTransition
from chatdesk.services.notifications import WhatsAppNotifier
from chatdesk.services.records import (
    commit_record_change,
    load_record,
    next_history_timestamp,
    parse_status,
    resolve_record_type
)
from chatdesk.services.side_effects import run_best_effort

logger = logging.getLogger(__name__)


class StatusTransitionEngine:
    """
    Validates and applies status changes.

    Any status of a variant may follow any other distinct status of the
    same variant; there is no adjacency table.
    """

    def __init__(
        self,
        db: Session,
        notifier: Optional[WhatsAppNotifier] = None,
        auditor: Optional[AuditRecorder] = None
    ):
        self.db = db
        self.notifier = notifier or WhatsAppNotifier()
        self.auditor = auditor or AuditRecorder(db)

    def transition(
        self,
        record_type,
        record_id: int,
        new_status,
        remarks: Optional[str],
        actor: ActorContext
    ):
        """
        Move a record to new_status.

        Refusals, in the order they are checked:
        - RecordNotFound: record_id does not resolve
        - Forbidden: actor lacks update permission or the record is outside their scope
        - InvalidStatus: new_status is not one of the variant's statuses
        - NoOpTransition: new_status equals the current status (nothing is written)

        Returns the persisted record with its appended history entry.
        """
        record_type = resolve_record_type(record_type)
        record = load_record(self.db, record_type, record_id)
        ensure_can_update(actor, record)
        status = parse_status(record_type, new_status)

        old_status = record.status
        if status == old_status:
            logger.info(
                f"Refused no-op transition on {record.reference}: already {status.value}"
            )
            raise NoOpTransition(
                f"{record_type.value.capitalize()} is already {status.value}"
            )

        now = next_history_timestamp(record)
        record.status = status
        record.updated_at = now
        self._stamp_milestones(record, status, now)
        self.db.add(StatusHistoryEntry(
            record_type=record_type.value,
            record_id=record.id,
            status=status.value,
            remarks=remarks,
            changed_by_id=actor.user_id,
            changed_at=now
        ))
        commit_record_change(self.db, record)
        self.db.refresh(record)

        logger.info(
            f"{record.reference} moved {old_status.value} -> {status.value} by {actor.user_id}"
        )

        run_best_effort(
            "WhatsApp notification",
            self.notifier.dispatch,
            record,
            status,
            remarks,
            context={
                "record_id": record.id,
                "reference": record.reference,
                "contact": record.citizen_contact,
            }
        )
        run_best_effort(
            "Audit log",
            self.auditor.record,
            actor,
            AuditAction.UPDATE,
            type(record).__name__,
            str(record.id),
            {
                "action": "status_change",
                "old_status": old_status.value,
                "new_status": status.value,
                "remarks": remarks,
                "reference": record.reference,
            },
            context={"record_id": record.id, "reference": record.reference}
        )

        return record

    def _stamp_milestones(self, record, status, now: datetime) -> None:
        """Set the first-reached timestamps. Later visits keep the original stamp."""
        if isinstance(record, Grievance):
            if status == GrievanceStatus.RESOLVED and record.resolved_at is None:
                record.resolved_at = now
            elif status == GrievanceStatus.CLOSED and record.closed_at is None:
                record.closed_at = now
        elif isinstance(record, Appointment):
            if status == AppointmentStatus.COMPLETED and record.completed_at is None:
                record.completed_at = now
            elif status == AppointmentStatus.CANCELLED and record.cancelled_at is None:
                record.cancelled_at = now
