"""Pydantic schemas for request/response validation."""
from datetime import date, datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar
from pydantic import BaseModel, ConfigDict, Field
from chatdesk.models.enums import (
    AuditAction,
    GrievancePriority,
    UserRole
)

T = TypeVar("T")


# Envelope
class Envelope(BaseModel, Generic[T]):
    """Every response is wrapped as {success, message?, data?}."""
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class ErrorEnvelope(BaseModel):
    success: bool = False
    message: str


# History
class StatusHistoryResponse(BaseModel):
    status: str
    remarks: Optional[str]
    changed_by_id: Optional[str]
    changed_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Records
class RecordResponse(BaseModel):
    """Fields common to grievances and appointments."""
    id: int
    reference: str
    status: str
    company_id: str
    department_id: Optional[str]
    assigned_to_id: Optional[str]
    assigned_at: Optional[datetime]
    citizen_name: str
    citizen_phone: str
    citizen_whatsapp: Optional[str]
    created_at: datetime
    updated_at: datetime
    version: int
    history: List[StatusHistoryResponse] = []

    model_config = ConfigDict(from_attributes=True)


class GrievanceResponse(RecordResponse):
    description: str
    category: Optional[str]
    priority: GrievancePriority
    resolved_at: Optional[datetime]
    closed_at: Optional[datetime]


class AppointmentResponse(RecordResponse):
    purpose: str
    appointment_date: date
    appointment_time: str
    duration_minutes: int
    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]


class RecordCreate(BaseModel):
    """Intake payload. Variant-specific fields are validated by GrievanceCreate / AppointmentCreate."""
    company_id: str = Field(..., alias="companyId", min_length=1)
    department_id: Optional[str] = Field(None, alias="departmentId")
    citizen_name: str = Field(..., alias="citizenName", min_length=1, max_length=200)
    citizen_phone: str = Field(..., alias="citizenPhone", min_length=5, max_length=20)
    citizen_whatsapp: Optional[str] = Field(None, alias="citizenWhatsApp", max_length=20)

    model_config = ConfigDict(populate_by_name=True)


class GrievanceCreate(RecordCreate):
    description: str = Field(..., min_length=1)
    category: Optional[str] = None
    priority: GrievancePriority = GrievancePriority.MEDIUM


class AppointmentCreate(RecordCreate):
    purpose: str = Field(..., min_length=1)
    appointment_date: date = Field(..., alias="appointmentDate")
    appointment_time: str = Field(..., alias="appointmentTime", pattern=r"^\d{1,2}:\d{2}$")
    duration_minutes: int = Field(30, alias="durationMinutes", gt=0, le=480)


# Workflow requests
class StatusUpdate(BaseModel):
    status: str = Field(..., min_length=1)
    remarks: Optional[str] = Field(None, max_length=1000)


class AssignmentRequest(BaseModel):
    assigned_to: str = Field(..., alias="assignedTo", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


# Users
class AssigneeResponse(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    role: UserRole
    department_id: Optional[str]

    model_config = ConfigDict(from_attributes=True)


# Audit
class AuditEventResponse(BaseModel):
    id: int
    action: AuditAction
    resource_type: str
    resource_id: Optional[str]
    user_id: Optional[str]
    user_name: Optional[str]
    company_id: Optional[str]
    details: Optional[Dict[str, Any]]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
