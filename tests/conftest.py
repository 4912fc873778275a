"""Pytest configuration and shared fixtures."""
import os

# Keep the module-level create_all in chatdesk.main off the working directory
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date

import pytest
from sqlalchemy.orm import sessionmaker

from chatdesk.database import Base, build_engine
from chatdesk.models.domain import Company, Department, User
from chatdesk.models.audit import AuditEvent  # noqa: F401  registers the table
from chatdesk.models.enums import RecordType, UserRole, AppointmentStatus
from chatdesk.services.authorization import ActorContext
from chatdesk.services.records import create_record
from chatdesk.services.state_machine import StatusTransitionEngine


class FakeNotifier:
    """Stands in for WhatsAppNotifier; remembers every dispatch."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def dispatch(self, record, new_status, remarks=None):
        self.calls.append({
            "reference": record.reference,
            "contact": record.citizen_contact,
            "status": getattr(new_status, "value", new_status),
            "remarks": remarks,
        })
        if self.fail:
            raise RuntimeError("WhatsApp API unreachable")
        return "wamid.test"


@pytest.fixture
def engine():
    """One in-memory database per test, shareable across threads for TestClient."""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


def _user(user_id, role, company_id=None, department_id=None, first_name=None, **kwargs):
    return User(
        id=user_id,
        first_name=first_name or user_id.split("-")[0].capitalize(),
        last_name="Tester",
        email=f"{user_id}@example.org",
        role=role,
        company_id=company_id,
        department_id=department_id,
        **kwargs
    )


@pytest.fixture
def org(db_session):
    """
    Two companies and their staff.

    C1 has WhatsApp configured and departments D1, D2; C2 has D3 and no
    WhatsApp. user-42 is an operator of C2.
    """
    db_session.add_all([
        Company(
            id="C1",
            name="Zilla Parishad",
            whatsapp_phone_number_id="PNID1",
            whatsapp_access_token="token-c1"
        ),
        Company(id="C2", name="Municipal Corporation"),
    ])
    db_session.flush()
    db_session.add_all([
        Department(id="D1", company_id="C1", name="Water Supply"),
        Department(id="D2", company_id="C1", name="Roads"),
        Department(id="D3", company_id="C2", name="Sanitation"),
    ])
    db_session.flush()
    db_session.add_all([
        _user("super", UserRole.SUPER_ADMIN),
        _user("admin-c1", UserRole.COMPANY_ADMIN, "C1"),
        _user("admin-c2", UserRole.COMPANY_ADMIN, "C2"),
        _user("deptadmin-d1", UserRole.DEPARTMENT_ADMIN, "C1", "D1", first_name="Anita"),
        _user("operator-d1", UserRole.OPERATOR, "C1", "D1", first_name="Bala"),
        _user("operator-d2", UserRole.OPERATOR, "C1", "D2", first_name="Chitra"),
        _user("user-42", UserRole.OPERATOR, "C2", "D3"),
        _user("viewer-c1", UserRole.ANALYTICS_VIEWER, "C1"),
        _user("inactive-d1", UserRole.OPERATOR, "C1", "D1", is_active=False),
        _user("deleted-d1", UserRole.OPERATOR, "C1", "D1", is_deleted=True),
    ])
    db_session.commit()


@pytest.fixture
def actor(db_session, org):
    """Factory: ActorContext for a seeded user id."""
    def _make(user_id):
        return ActorContext(
            user=db_session.get(User, user_id),
            ip_address="127.0.0.1",
            user_agent="pytest"
        )
    return _make


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def grievance(db_session, actor):
    """g1: PENDING grievance of C1 with no department."""
    return create_record(
        db_session,
        RecordType.GRIEVANCE,
        actor("super"),
        company_id="C1",
        citizen_name="Ramesh Patil",
        citizen_phone="919800000001",
        citizen_whatsapp="919811111111",
        description="Streetlight on Station Road has been off for a week"
    )


@pytest.fixture
def appointment(db_session, actor):
    """a1: appointment of C1/D1, already CONFIRMED."""
    record = create_record(
        db_session,
        RecordType.APPOINTMENT,
        actor("super"),
        company_id="C1",
        department_id="D1",
        citizen_name="Sunita Kale",
        citizen_phone="919800000002",
        purpose="New water connection",
        appointment_date=date(2026, 11, 2),
        appointment_time="10:30"
    )
    StatusTransitionEngine(db_session, notifier=FakeNotifier()).transition(
        RecordType.APPOINTMENT, record.id, AppointmentStatus.CONFIRMED, "Slot confirmed", actor("admin-c1")
    )
    return record
