"""Domain models - organisation (companies, departments, users) and the two workflow records."""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Date, Boolean, ForeignKey, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship, declared_attr
from chatdesk.database import Base
from chatdesk.models.enums import (
    UserRole,
    RecordType,
    GrievanceStatus,
    AppointmentStatus,
    GrievancePriority
)


class Company(Base):
    """
    A tenant of the platform.

    WhatsApp is considered configured only when both the phone number id
    and the access token are present.
    """
    __tablename__ = "companies"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    # WhatsApp Cloud API credentials
    whatsapp_phone_number_id = Column(String, nullable=True)
    whatsapp_access_token = Column(String, nullable=True)
    whatsapp_business_account_id = Column(String, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    departments = relationship("Department", back_populates="company", cascade="all, delete-orphan")

    @property
    def whatsapp_configured(self) -> bool:
        return bool(self.whatsapp_phone_number_id and self.whatsapp_access_token)


class Department(Base):
    __tablename__ = "departments"

    id = Column(String, primary_key=True, index=True)
    company_id = Column(String, ForeignKey("companies.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    company = relationship("Company", back_populates="departments")


class User(Base):
    """
    Staff member acting on records.

    Invariants:
    - COMPANY_ADMIN and below always carry a company_id
    - DEPARTMENT_ADMIN and OPERATOR also carry a department_id
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    phone = Column(String, nullable=True)
    role = Column(SQLEnum(UserRole), nullable=False, index=True)
    company_id = Column(String, ForeignKey("companies.id"), nullable=True, index=True)
    department_id = Column(String, ForeignKey("departments.id"), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_deleted = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    department = relationship("Department")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class StatusHistoryEntry(Base):
    """
    One row per status a record has passed through.

    Invariants:
    - Append-only; rows are never updated or deleted
    - changed_at is non-decreasing per record (enforced in the service layer)
    """
    __tablename__ = "status_history"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    record_type = Column(String(20), nullable=False, index=True)  # RecordType value
    record_id = Column(Integer, nullable=False, index=True)
    status = Column(String(20), nullable=False)
    remarks = Column(Text, nullable=True)
    changed_by_id = Column(String, ForeignKey("users.id"), nullable=True)  # None for intake
    changed_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class RecordMixin:
    """Columns and relationships shared by Grievance and Appointment."""

    reference = Column(String, nullable=False, index=True)  # GRV00000001 / APT00000001, numbered per company
    citizen_name = Column(String, nullable=False)
    citizen_phone = Column(String, nullable=False, index=True)
    citizen_whatsapp = Column(String, nullable=True)
    assigned_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    @declared_attr
    def company_id(cls):
        return Column(String, ForeignKey("companies.id"), nullable=False, index=True)

    @declared_attr
    def department_id(cls):
        return Column(String, ForeignKey("departments.id"), nullable=True, index=True)

    @declared_attr
    def assigned_to_id(cls):
        return Column(String, ForeignKey("users.id"), nullable=True, index=True)

    @declared_attr
    def company(cls):
        return relationship("Company")

    @declared_attr
    def assignee(cls):
        return relationship("User")

    @declared_attr
    def history(cls):
        return relationship(
            "StatusHistoryEntry",
            primaryjoin=(
                f"and_(foreign(StatusHistoryEntry.record_id) == {cls.__name__}.id, "
                f"StatusHistoryEntry.record_type == '{cls.record_type.value}')"
            ),
            order_by="StatusHistoryEntry.id",
            viewonly=True,
        )

    @property
    def citizen_contact(self):
        """Number notifications go to: the WhatsApp number, else the phone number."""
        return self.citizen_whatsapp or self.citizen_phone


class Grievance(RecordMixin, Base):
    """
    A citizen complaint raised through the chatbot.

    Status moves freely between the five grievance statuses; resolved_at and
    closed_at are stamped the first time RESOLVED / CLOSED are reached.
    """
    __tablename__ = "grievances"

    record_type = RecordType.GRIEVANCE
    reference_prefix = "GRV"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    status = Column(SQLEnum(GrievanceStatus), nullable=False, default=GrievanceStatus.PENDING, index=True)
    description = Column(Text, nullable=False)
    category = Column(String, nullable=True)
    priority = Column(SQLEnum(GrievancePriority), nullable=False, default=GrievancePriority.MEDIUM)
    resolved_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)

    # Optimistic concurrency stamp
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class Appointment(RecordMixin, Base):
    """
    A citizen appointment booked through the chatbot.

    completed_at and cancelled_at are stamped the first time COMPLETED /
    CANCELLED are reached.
    """
    __tablename__ = "appointments"

    record_type = RecordType.APPOINTMENT
    reference_prefix = "APT"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    status = Column(SQLEnum(AppointmentStatus), nullable=False, default=AppointmentStatus.PENDING, index=True)
    purpose = Column(Text, nullable=False)
    appointment_date = Column(Date, nullable=False, index=True)
    appointment_time = Column(String, nullable=False)  # "10:30"
    duration_minutes = Column(Integer, nullable=False, default=30)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    # Optimistic concurrency stamp
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


RECORD_MODELS = {
    RecordType.GRIEVANCE: Grievance,
    RecordType.APPOINTMENT: Appointment,
}
