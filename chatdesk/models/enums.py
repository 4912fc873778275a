"""Enums for the chatdesk workflow - these define the valid values for roles, statuses and actions."""
from enum import Enum


class UserRole(str, Enum):
    """Staff roles. Scope narrows from the whole platform down to one department."""
    SUPER_ADMIN = "SUPER_ADMIN"
    COMPANY_ADMIN = "COMPANY_ADMIN"
    DEPARTMENT_ADMIN = "DEPARTMENT_ADMIN"
    OPERATOR = "OPERATOR"
    ANALYTICS_VIEWER = "ANALYTICS_VIEWER"


class RecordType(str, Enum):
    """The two record variants tracked through the workflow."""
    GRIEVANCE = "grievance"
    APPOINTMENT = "appointment"


class GrievanceStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class AppointmentStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class GrievancePriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class AuditAction(str, Enum):
    """Actions written to the audit log."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ASSIGN = "ASSIGN"
    RESOLVE = "RESOLVE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"


class Permission(str, Enum):
    """Record permissions checked by the workflow engines."""
    READ_GRIEVANCE = "READ_GRIEVANCE"
    UPDATE_GRIEVANCE = "UPDATE_GRIEVANCE"
    ASSIGN_GRIEVANCE = "ASSIGN_GRIEVANCE"
    READ_APPOINTMENT = "READ_APPOINTMENT"
    UPDATE_APPOINTMENT = "UPDATE_APPOINTMENT"
    ASSIGN_APPOINTMENT = "ASSIGN_APPOINTMENT"
    VIEW_AUDIT_LOGS = "VIEW_AUDIT_LOGS"


STATUS_ENUMS = {
    RecordType.GRIEVANCE: GrievanceStatus,
    RecordType.APPOINTMENT: AppointmentStatus,
}
