"""API routes for the record status/assignment workflow."""
from datetime import date
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from chatdesk.api.dependencies import get_actor, get_notifier
from chatdesk.api.schemas import (
    AppointmentCreate,
    AppointmentResponse,
    AssigneeResponse,
    AssignmentRequest,
    AuditEventResponse,
    Envelope,
    ErrorEnvelope,
    GrievanceCreate,
    GrievanceResponse,
    StatusUpdate
)
from chatdesk.database import get_db
from chatdesk.models.domain import Grievance
from chatdesk.models.enums import AuditAction, RecordType
from chatdesk.services.assignment import AssignmentEngine, available_users_for
from chatdesk.services.audit import recent_activity
from chatdesk.services.authorization import ActorContext, ensure_can_view
from chatdesk.services.notifications import WhatsAppNotifier
from chatdesk.services.records import create_record, list_records, load_record, resolve_record_type
from chatdesk.services.state_machine import StatusTransitionEngine

router = APIRouter()

RecordPayload = Union[GrievanceResponse, AppointmentResponse]

ERROR_RESPONSES = {
    400: {"model": ErrorEnvelope, "description": "Invalid status or request body"},
    401: {"model": ErrorEnvelope, "description": "Missing or unknown X-User-Id"},
    403: {"model": ErrorEnvelope, "description": "Actor lacks permission or scope"},
    404: {"model": ErrorEnvelope, "description": "Record or user not found"},
    409: {"model": ErrorEnvelope, "description": "No-op transition or concurrent modification"},
    422: {"model": ErrorEnvelope, "description": "Assignee outside the record's scope"},
}


def serialize_record(record) -> RecordPayload:
    if isinstance(record, Grievance):
        return GrievanceResponse.model_validate(record)
    return AppointmentResponse.model_validate(record)


# Status endpoints
@router.put("/status/{record_type}/{record_id}", response_model=Envelope[RecordPayload], responses=ERROR_RESPONSES)
def update_status(
    record_type: str,
    record_id: int,
    update: StatusUpdate,
    actor: ActorContext = Depends(get_actor),
    notifier: WhatsAppNotifier = Depends(get_notifier),
    db: Session = Depends(get_db)
):
    """
    Change a record's status and notify the citizen via WhatsApp.

    Notification and audit failures do not fail the request.
    """
    engine = StatusTransitionEngine(db, notifier=notifier)
    record = engine.transition(record_type, record_id, update.status, update.remarks, actor)
    type_name = record.record_type.value.capitalize()
    return Envelope(message=f"{type_name} status updated successfully", data=serialize_record(record))


# Assignment endpoints
@router.get("/assignments/users/available", response_model=Envelope[List[AssigneeResponse]], responses=ERROR_RESPONSES)
def get_available_users(
    department_id: Optional[str] = Query(None, alias="departmentId"),
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Users the caller may pick as assignee, scoped to their company/department."""
    users = available_users_for(db, actor, department_id)
    return Envelope(data=[AssigneeResponse.model_validate(u) for u in users])


@router.put("/assignments/{record_type}/{record_id}/assign", response_model=Envelope[RecordPayload], responses=ERROR_RESPONSES)
def assign_record(
    record_type: str,
    record_id: int,
    payload: AssignmentRequest,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Assign a record to a department admin or operator of its company."""
    engine = AssignmentEngine(db)
    record = engine.assign(record_type, record_id, payload.assigned_to, actor)
    type_name = record.record_type.value.capitalize()
    return Envelope(message=f"{type_name} assigned successfully", data=serialize_record(record))


# Record endpoints
@router.post("/records/grievance", response_model=Envelope[GrievanceResponse], status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES)
def create_grievance(
    payload: GrievanceCreate,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Register a new grievance in PENDING."""
    record = create_record(db, RecordType.GRIEVANCE, actor, **payload.model_dump())
    return Envelope(message="Grievance registered", data=GrievanceResponse.model_validate(record))


@router.post("/records/appointment", response_model=Envelope[AppointmentResponse], status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES)
def create_appointment(
    payload: AppointmentCreate,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Register a new appointment in PENDING."""
    record = create_record(db, RecordType.APPOINTMENT, actor, **payload.model_dump())
    return Envelope(message="Appointment registered", data=AppointmentResponse.model_validate(record))


@router.get("/records/{record_type}", response_model=Envelope[List[RecordPayload]], responses=ERROR_RESPONSES)
def get_records(
    record_type: str,
    status_filter: Optional[str] = Query(None, alias="status"),
    appointment_day: Optional[date] = Query(None, alias="date"),
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """List records in the caller's scope, newest first."""
    records = list_records(
        db,
        resolve_record_type(record_type),
        actor,
        status=status_filter,
        appointment_day=appointment_day
    )
    return Envelope(data=[serialize_record(r) for r in records])


@router.get("/records/{record_type}/{record_id}", response_model=Envelope[RecordPayload], responses=ERROR_RESPONSES)
def get_record(
    record_type: str,
    record_id: int,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Get a record with its full status history."""
    record = load_record(db, resolve_record_type(record_type), record_id)
    ensure_can_view(actor, record)
    return Envelope(data=serialize_record(record))


# Audit endpoints
@router.get("/audit-logs", response_model=Envelope[List[AuditEventResponse]], responses=ERROR_RESPONSES)
def get_audit_logs(
    limit: int = Query(50, ge=1, le=100),
    action: Optional[AuditAction] = None,
    resource: Optional[str] = None,
    actor: ActorContext = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Recent activity feed, newest first."""
    events = recent_activity(db, actor, limit=limit, action=action, resource_type=resource)
    return Envelope(data=[AuditEventResponse.model_validate(e) for e in events])
