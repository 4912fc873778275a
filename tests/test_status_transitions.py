"""
Tests for the status transition engine.

Covers history ordering, refusals, scope checks and the best-effort
notification/audit effects that follow a committed change.
"""
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from chatdesk.models.audit import AuditEvent
from chatdesk.models.domain import Grievance, StatusHistoryEntry, User
from chatdesk.models.enums import (
    AppointmentStatus,
    AuditAction,
    GrievanceStatus,
    RecordType
)
from chatdesk.services.authorization import ActorContext
from chatdesk.services.errors import (
    ConcurrentModification,
    Forbidden,
    InvalidStatus,
    NoOpTransition,
    RecordNotFound
)
from chatdesk.services.state_machine import StatusTransitionEngine
from conftest import FakeNotifier


class TestTransitionHistory:
    """A successful transition persists the status and appends history."""

    def test_resolve_pending_grievance(self, db_session, grievance, actor, notifier):
        """g1 PENDING -> RESOLVED with remarks, citizen notified on their WhatsApp number."""
        engine = StatusTransitionEngine(db_session, notifier=notifier)
        before = len(grievance.history)

        record = engine.transition(RecordType.GRIEVANCE, grievance.id, "RESOLVED", "fixed", actor("admin-c1"))

        assert record.status == GrievanceStatus.RESOLVED
        assert len(record.history) == before + 1
        assert record.history[-1].status == "RESOLVED"
        assert record.history[-1].remarks == "fixed"
        assert record.history[-1].changed_by_id == "admin-c1"
        assert record.resolved_at is not None

        assert len(notifier.calls) == 1
        assert notifier.calls[0]["contact"] == "919811111111"
        assert notifier.calls[0]["status"] == "RESOLVED"
        assert notifier.calls[0]["remarks"] == "fixed"

    def test_two_transitions_recorded_in_order(self, db_session, grievance, actor, notifier):
        engine = StatusTransitionEngine(db_session, notifier=notifier)

        engine.transition(RecordType.GRIEVANCE, grievance.id, GrievanceStatus.IN_PROGRESS, None, actor("admin-c1"))
        record = engine.transition(RecordType.GRIEVANCE, grievance.id, GrievanceStatus.RESOLVED, None, actor("admin-c1"))

        assert record.status == GrievanceStatus.RESOLVED
        assert [h.status for h in record.history] == ["PENDING", "IN_PROGRESS", "RESOLVED"]
        stamps = [h.changed_at for h in record.history]
        assert stamps == sorted(stamps)

    def test_any_distinct_status_may_follow(self, db_session, grievance, actor, notifier):
        """There is no adjacency table: CLOSED can go straight back to PENDING."""
        engine = StatusTransitionEngine(db_session, notifier=notifier)

        engine.transition(RecordType.GRIEVANCE, grievance.id, "CLOSED", None, actor("admin-c1"))
        record = engine.transition(RecordType.GRIEVANCE, grievance.id, "PENDING", "Reopened", actor("admin-c1"))

        assert record.status == GrievanceStatus.PENDING
        assert record.closed_at is not None

    def test_history_timestamp_never_goes_backwards(self, db_session, grievance, actor, notifier):
        """A history entry stamped in the future (clock skew) bounds the next entry from below."""
        future = datetime.utcnow() + timedelta(hours=1)
        entry = db_session.query(StatusHistoryEntry).filter(
            StatusHistoryEntry.record_type == "grievance",
            StatusHistoryEntry.record_id == grievance.id
        ).one()
        entry.changed_at = future
        db_session.commit()

        engine = StatusTransitionEngine(db_session, notifier=notifier)
        record = engine.transition(RecordType.GRIEVANCE, grievance.id, "IN_PROGRESS", None, actor("admin-c1"))

        assert record.history[-1].changed_at >= future

    def test_first_milestone_stamp_is_kept(self, db_session, appointment, actor, notifier):
        engine = StatusTransitionEngine(db_session, notifier=notifier)

        record = engine.transition(RecordType.APPOINTMENT, appointment.id, "COMPLETED", None, actor("admin-c1"))
        first_completed = record.completed_at
        engine.transition(RecordType.APPOINTMENT, appointment.id, "CONFIRMED", None, actor("admin-c1"))
        record = engine.transition(RecordType.APPOINTMENT, appointment.id, "COMPLETED", None, actor("admin-c1"))

        assert first_completed is not None
        assert record.completed_at == first_completed

    def test_version_increments_on_each_change(self, db_session, grievance, actor, notifier):
        engine = StatusTransitionEngine(db_session, notifier=notifier)
        start = grievance.version

        record = engine.transition(RecordType.GRIEVANCE, grievance.id, "IN_PROGRESS", None, actor("admin-c1"))

        assert record.version == start + 1

    def test_record_type_accepts_path_string(self, db_session, appointment, actor, notifier):
        engine = StatusTransitionEngine(db_session, notifier=notifier)

        record = engine.transition("appointment", appointment.id, "NO_SHOW", None, actor("admin-c1"))

        assert record.status == AppointmentStatus.NO_SHOW


class TestTransitionRefusals:
    """Refused transitions leave the record and its history untouched."""

    def test_same_status_is_noop(self, db_session, grievance, actor, notifier):
        engine = StatusTransitionEngine(db_session, notifier=notifier)
        history_before = len(grievance.history)
        version_before = grievance.version

        with pytest.raises(NoOpTransition):
            engine.transition(RecordType.GRIEVANCE, grievance.id, "PENDING", "again", actor("admin-c1"))

        db_session.expire_all()
        record = db_session.get(Grievance, grievance.id)
        assert record.status == GrievanceStatus.PENDING
        assert len(record.history) == history_before
        assert record.version == version_before
        assert notifier.calls == []
        assert db_session.query(AuditEvent).filter(AuditEvent.action == AuditAction.UPDATE).count() == 0

    def test_status_from_other_variant_is_invalid(self, db_session, grievance, actor, notifier):
        engine = StatusTransitionEngine(db_session, notifier=notifier)

        with pytest.raises(InvalidStatus):
            engine.transition(RecordType.GRIEVANCE, grievance.id, "CONFIRMED", None, actor("admin-c1"))

    def test_unknown_record(self, db_session, org, actor, notifier):
        engine = StatusTransitionEngine(db_session, notifier=notifier)

        with pytest.raises(RecordNotFound):
            engine.transition(RecordType.GRIEVANCE, 9999, "RESOLVED", None, actor("admin-c1"))

    def test_unknown_record_type(self, db_session, grievance, actor, notifier):
        engine = StatusTransitionEngine(db_session, notifier=notifier)

        with pytest.raises(RecordNotFound):
            engine.transition("lead", grievance.id, "RESOLVED", None, actor("admin-c1"))

    def test_company_admin_of_other_company_forbidden(self, db_session, grievance, actor, notifier):
        engine = StatusTransitionEngine(db_session, notifier=notifier)

        with pytest.raises(Forbidden):
            engine.transition(RecordType.GRIEVANCE, grievance.id, "RESOLVED", None, actor("admin-c2"))

    def test_analytics_viewer_forbidden(self, db_session, grievance, actor, notifier):
        engine = StatusTransitionEngine(db_session, notifier=notifier)

        with pytest.raises(Forbidden):
            engine.transition(RecordType.GRIEVANCE, grievance.id, "RESOLVED", None, actor("viewer-c1"))

    def test_operator_outside_department_forbidden(self, db_session, grievance, appointment, actor, notifier):
        """g1 has no department, so department-level roles cannot touch it."""
        engine = StatusTransitionEngine(db_session, notifier=notifier)

        with pytest.raises(Forbidden):
            engine.transition(RecordType.GRIEVANCE, grievance.id, "RESOLVED", None, actor("operator-d1"))
        with pytest.raises(Forbidden):
            engine.transition(RecordType.APPOINTMENT, appointment.id, "COMPLETED", None, actor("operator-d2"))

    def test_operator_inside_department_allowed(self, db_session, appointment, actor, notifier):
        engine = StatusTransitionEngine(db_session, notifier=notifier)

        record = engine.transition(RecordType.APPOINTMENT, appointment.id, "COMPLETED", None, actor("operator-d1"))

        assert record.status == AppointmentStatus.COMPLETED

    def test_forbidden_checked_before_noop(self, db_session, grievance, actor, notifier):
        engine = StatusTransitionEngine(db_session, notifier=notifier)

        with pytest.raises(Forbidden):
            engine.transition(RecordType.GRIEVANCE, grievance.id, "PENDING", None, actor("admin-c2"))


class FailingAuditor:
    def record(self, *args, **kwargs):
        raise OperationalError("INSERT INTO audit_events", {}, Exception("disk I/O error"))


class TestBestEffortEffects:
    """Notification and audit failures never undo or fail the transition."""

    def test_notification_failure_keeps_status(self, db_session, grievance, actor):
        engine = StatusTransitionEngine(db_session, notifier=FakeNotifier(fail=True))

        record = engine.transition(RecordType.GRIEVANCE, grievance.id, "RESOLVED", "fixed", actor("admin-c1"))

        assert record.status == GrievanceStatus.RESOLVED
        db_session.expire_all()
        assert db_session.get(Grievance, grievance.id).status == GrievanceStatus.RESOLVED
        # Audit still written after the failed dispatch
        assert db_session.query(AuditEvent).filter(AuditEvent.action == AuditAction.UPDATE).count() == 1

    def test_notification_failure_is_logged_with_context(self, db_session, grievance, actor, caplog):
        engine = StatusTransitionEngine(db_session, notifier=FakeNotifier(fail=True))

        with caplog.at_level("ERROR", logger="chatdesk.services.side_effects"):
            engine.transition(RecordType.GRIEVANCE, grievance.id, "RESOLVED", None, actor("admin-c1"))

        failures = [r for r in caplog.records if r.name == "chatdesk.services.side_effects"]
        assert len(failures) == 1
        assert failures[0].record_id == grievance.id
        assert failures[0].contact == "919811111111"
        assert "WhatsApp API unreachable" in failures[0].getMessage()

    def test_audit_failure_keeps_status(self, db_session, grievance, actor, notifier):
        engine = StatusTransitionEngine(db_session, notifier=notifier, auditor=FailingAuditor())

        record = engine.transition(RecordType.GRIEVANCE, grievance.id, "IN_PROGRESS", None, actor("admin-c1"))

        assert record.status == GrievanceStatus.IN_PROGRESS
        assert len(notifier.calls) == 1

    def test_update_audit_entry(self, db_session, grievance, actor, notifier):
        engine = StatusTransitionEngine(db_session, notifier=notifier)

        engine.transition(RecordType.GRIEVANCE, grievance.id, "RESOLVED", "fixed", actor("admin-c1"))

        audit = db_session.query(AuditEvent).filter(AuditEvent.action == AuditAction.UPDATE).one()
        assert audit.resource_type == "Grievance"
        assert audit.resource_id == str(grievance.id)
        assert audit.user_id == "admin-c1"
        assert audit.company_id == "C1"
        assert audit.ip_address == "127.0.0.1"
        assert audit.details["old_status"] == "PENDING"
        assert audit.details["new_status"] == "RESOLVED"
        assert audit.details["remarks"] == "fixed"
        assert audit.details["reference"] == grievance.reference


class TestConcurrency:

    def test_stale_write_is_refused(self, db_session, session_factory, grievance, actor):
        """A session holding an older version of the record cannot overwrite a newer change."""
        stale = session_factory()
        try:
            held = stale.get(Grievance, grievance.id)
            assert held.status == GrievanceStatus.PENDING
            stale_actor = ActorContext(user=stale.get(User, "admin-c1"))

            StatusTransitionEngine(db_session, notifier=FakeNotifier()).transition(
                RecordType.GRIEVANCE, grievance.id, "IN_PROGRESS", None, actor("admin-c1")
            )

            with pytest.raises(ConcurrentModification):
                StatusTransitionEngine(stale, notifier=FakeNotifier()).transition(
                    RecordType.GRIEVANCE, grievance.id, "RESOLVED", None, stale_actor
                )
        finally:
            stale.close()

        db_session.expire_all()
        assert db_session.get(Grievance, grievance.id).status == GrievanceStatus.IN_PROGRESS
