"""Record lookup, intake and scoped listing shared by the workflow engines."""
import logging
from datetime import date, datetime
from typing import List, Optional, Union

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from chatdesk.models.domain import (
    RECORD_MODELS,
    Company,
    Department,
    StatusHistoryEntry,
    User
)
from chatdesk.models.enums import STATUS_ENUMS, AuditAction, RecordType, UserRole
from chatdesk.services.audit import AuditRecorder
from chatdesk.services.authorization import (
    DEPARTMENT_SCOPED_ROLES,
    READ_PERMISSIONS,
    ActorContext,
    ensure_can_create,
    has_permission
)
from chatdesk.services.errors import (
    ConcurrentModification,
    Forbidden,
    InvalidRecord,
    InvalidStatus,
    RecordNotFound
)
from chatdesk.services.side_effects import run_best_effort

logger = logging.getLogger(__name__)


def resolve_record_type(value: Union[str, RecordType]) -> RecordType:
    """Map a path segment like "grievance" to its RecordType."""
    try:
        return RecordType(value)
    except ValueError:
        raise RecordNotFound(f"Unknown record type: {value}")


def parse_status(record_type: RecordType, value):
    """Coerce a status string into the variant's enum, refusing foreign values."""
    status_enum = STATUS_ENUMS[record_type]
    try:
        return status_enum(getattr(value, "value", value))
    except ValueError:
        raise InvalidStatus(f"Invalid status value: {value}")


def load_record(db: Session, record_type: RecordType, record_id: int):
    model = RECORD_MODELS[record_type]
    record = db.get(model, record_id)
    if record is None:
        raise RecordNotFound(f"{model.__name__} not found")
    return record


def commit_record_change(db: Session, record) -> None:
    """Commit a record mutation, turning a lost version race into ConcurrentModification."""
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        logger.warning(f"Concurrent update detected on {record.record_type.value} {record.id}")
        raise ConcurrentModification(
            f"{record.record_type.value.capitalize()} was modified by another request. Reload and try again."
        )


def next_history_timestamp(record) -> datetime:
    """Current time, clamped so history timestamps never go backwards."""
    now = datetime.utcnow()
    if record.history:
        last = record.history[-1].changed_at
        if last is not None and last > now:
            return last
    return now


def _next_reference(db: Session, model, company_id: str) -> str:
    count = db.query(model).filter(model.company_id == company_id).count()
    return f"{model.reference_prefix}{count + 1:08d}"


def create_record(
    db: Session,
    record_type: RecordType,
    actor: ActorContext,
    company_id: str,
    citizen_name: str,
    citizen_phone: str,
    department_id: Optional[str] = None,
    citizen_whatsapp: Optional[str] = None,
    **fields
):
    """
    Register a new record in PENDING, unassigned, with its first history entry.

    Variant-specific columns (description, purpose, appointment_date, ...)
    are passed through as keyword arguments.
    """
    ensure_can_create(actor, record_type, company_id, department_id)

    company = db.get(Company, company_id)
    if company is None or not company.is_active:
        raise InvalidRecord(f"Company {company_id} does not exist or is inactive")
    if department_id is not None:
        department = db.get(Department, department_id)
        if department is None or department.company_id != company_id:
            raise InvalidRecord(f"Department {department_id} does not belong to company {company_id}")

    model = RECORD_MODELS[record_type]
    initial_status = STATUS_ENUMS[record_type].PENDING
    now = datetime.utcnow()
    record = model(
        reference=_next_reference(db, model, company_id),
        company_id=company_id,
        department_id=department_id,
        citizen_name=citizen_name,
        citizen_phone=citizen_phone,
        citizen_whatsapp=citizen_whatsapp,
        status=initial_status,
        created_at=now,
        updated_at=now,
        **fields
    )
    db.add(record)
    db.flush()

    db.add(StatusHistoryEntry(
        record_type=record_type.value,
        record_id=record.id,
        status=initial_status.value,
        changed_at=now
    ))
    db.commit()
    db.refresh(record)

    logger.info(f"Registered {record_type.value} {record.reference} for company {company_id}")

    run_best_effort(
        "Audit log",
        AuditRecorder(db).record,
        actor,
        AuditAction.CREATE,
        model.__name__,
        str(record.id),
        {"reference": record.reference, "status": initial_status.value},
        context={"record_id": record.id}
    )
    return record


def list_records(
    db: Session,
    record_type: RecordType,
    actor: ActorContext,
    status: Optional[str] = None,
    appointment_day: Optional[date] = None
) -> List:
    """Records inside the actor's scope, newest first."""
    if not has_permission(actor.user, READ_PERMISSIONS[record_type]):
        raise Forbidden("Access denied. Required permissions not found.")

    model = RECORD_MODELS[record_type]
    query = db.query(model)

    if actor.role != UserRole.SUPER_ADMIN:
        if actor.company_id is None:
            return []
        query = query.filter(model.company_id == actor.company_id)
        if actor.role in DEPARTMENT_SCOPED_ROLES:
            # Department-less records sit outside every department scope
            if actor.department_id is None:
                return []
            query = query.filter(model.department_id == actor.department_id)

    if status:
        query = query.filter(model.status == parse_status(record_type, status))
    if appointment_day is not None and record_type == RecordType.APPOINTMENT:
        query = query.filter(model.appointment_date == appointment_day)

    return query.order_by(model.created_at.desc(), model.id.desc()).all()


def get_user(db: Session, user_id: str) -> Optional[User]:
    """Active, non-deleted user by id, else None."""
    user = db.get(User, user_id)
    if user is None or user.is_deleted or not user.is_active:
        return None
    return user
