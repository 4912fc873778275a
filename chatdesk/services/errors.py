"""
Caller-visible workflow errors.

Every error carries a human-readable message and the HTTP status the API
layer renders it with.
"""


class WorkflowError(Exception):
    """Base class for refusals raised by the workflow services."""
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class NotAuthenticated(WorkflowError):
    status_code = 401


class Forbidden(WorkflowError):
    status_code = 403


class RecordNotFound(WorkflowError):
    status_code = 404


class UserNotFound(WorkflowError):
    status_code = 404


class InvalidStatus(WorkflowError):
    status_code = 400


class InvalidRecord(WorkflowError):
    """Intake data that cannot become a record (unknown company, foreign department)."""
    status_code = 400


class NoOpTransition(WorkflowError):
    status_code = 409


class ConcurrentModification(WorkflowError):
    """The record changed between read and write; the caller should reload and retry."""
    status_code = 409


class OutOfScopeAssignee(WorkflowError):
    status_code = 422
