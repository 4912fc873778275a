"""
Role permissions and company/department scoping.

Actor identity travels explicitly as an ActorContext into every service
call; nothing here reads ambient request state.
"""
from dataclasses import dataclass
from typing import Optional

from chatdesk.models.domain import User
from chatdesk.models.enums import Permission, RecordType, UserRole
from chatdesk.services.errors import Forbidden


ASSIGN_PERMISSIONS = {
    RecordType.GRIEVANCE: Permission.ASSIGN_GRIEVANCE,
    RecordType.APPOINTMENT: Permission.ASSIGN_APPOINTMENT,
}

# Assignment stays with company administrators
ROLE_PERMISSIONS = {
    UserRole.SUPER_ADMIN: set(Permission) - set(ASSIGN_PERMISSIONS.values()),
    UserRole.COMPANY_ADMIN: {
        Permission.READ_GRIEVANCE,
        Permission.UPDATE_GRIEVANCE,
        Permission.ASSIGN_GRIEVANCE,
        Permission.READ_APPOINTMENT,
        Permission.UPDATE_APPOINTMENT,
        Permission.ASSIGN_APPOINTMENT,
        Permission.VIEW_AUDIT_LOGS,
    },
    UserRole.DEPARTMENT_ADMIN: {
        Permission.READ_GRIEVANCE,
        Permission.UPDATE_GRIEVANCE,
        Permission.READ_APPOINTMENT,
        Permission.UPDATE_APPOINTMENT,
    },
    UserRole.OPERATOR: {
        Permission.READ_GRIEVANCE,
        Permission.UPDATE_GRIEVANCE,
        Permission.READ_APPOINTMENT,
        Permission.UPDATE_APPOINTMENT,
    },
    UserRole.ANALYTICS_VIEWER: set(),
}

READ_PERMISSIONS = {
    RecordType.GRIEVANCE: Permission.READ_GRIEVANCE,
    RecordType.APPOINTMENT: Permission.READ_APPOINTMENT,
}

UPDATE_PERMISSIONS = {
    RecordType.GRIEVANCE: Permission.UPDATE_GRIEVANCE,
    RecordType.APPOINTMENT: Permission.UPDATE_APPOINTMENT,
}

DEPARTMENT_SCOPED_ROLES = (UserRole.DEPARTMENT_ADMIN, UserRole.OPERATOR)


@dataclass
class ActorContext:
    """Who is acting, and from where. Passed into every engine call."""
    user: User
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def role(self) -> UserRole:
        return self.user.role

    @property
    def company_id(self) -> Optional[str]:
        return self.user.company_id

    @property
    def department_id(self) -> Optional[str]:
        return self.user.department_id


def has_permission(user: User, permission: Permission) -> bool:
    return permission in ROLE_PERMISSIONS.get(user.role, set())


def in_scope(user: User, company_id: Optional[str], department_id: Optional[str]) -> bool:
    """
    Whether a company/department pair falls inside the user's scope.

    SUPER_ADMIN sees everything, COMPANY_ADMIN its company, department-level
    roles only their department. A record without a department is outside
    every department-level scope.
    """
    if user.role == UserRole.SUPER_ADMIN:
        return True
    if user.company_id is None or company_id != user.company_id:
        return False
    if user.role in DEPARTMENT_SCOPED_ROLES:
        return department_id is not None and department_id == user.department_id
    return True


def _scope_word(user: User) -> str:
    return "department" if user.role in DEPARTMENT_SCOPED_ROLES else "company"


def _plural(record_type: RecordType) -> str:
    return f"{record_type.value}s"


def ensure_can_view(actor: ActorContext, record) -> None:
    record_type = record.record_type
    if not has_permission(actor.user, READ_PERMISSIONS[record_type]):
        raise Forbidden("Access denied. Required permissions not found.")
    if not in_scope(actor.user, record.company_id, record.department_id):
        raise Forbidden(f"You can only view {_plural(record_type)} in your {_scope_word(actor.user)}")


def ensure_can_update(actor: ActorContext, record) -> None:
    record_type = record.record_type
    if not has_permission(actor.user, UPDATE_PERMISSIONS[record_type]):
        raise Forbidden("Access denied. Required permissions not found.")
    if not in_scope(actor.user, record.company_id, record.department_id):
        raise Forbidden(f"You can only update {_plural(record_type)} in your {_scope_word(actor.user)}")


def ensure_can_create(actor: ActorContext, record_type: RecordType, company_id: str, department_id: Optional[str]) -> None:
    if not has_permission(actor.user, UPDATE_PERMISSIONS[record_type]):
        raise Forbidden("Access denied. Required permissions not found.")
    if not in_scope(actor.user, company_id, department_id):
        raise Forbidden(f"You can only register {_plural(record_type)} in your {_scope_word(actor.user)}")


def ensure_can_assign(actor: ActorContext, record) -> None:
    """Only a company administrator of the record's own company may assign."""
    plural = _plural(record.record_type)
    if not has_permission(actor.user, ASSIGN_PERMISSIONS[record.record_type]):
        raise Forbidden(f"Insufficient permissions to assign {plural}")
    if record.company_id != actor.company_id:
        raise Forbidden(f"You can only assign {plural} within your company")
