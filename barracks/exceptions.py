"""Error taxonomy shared by the status, request and weather workflows."""
from __future__ import annotations


class WorkflowError(Exception):
    """Base class for failures surfaced to the caller of a barracks operation."""

    code = "internal"
    http_status = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code

    def as_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class Unauthenticated(WorkflowError):
    code = "unauthenticated"
    http_status = 401


class PermissionDenied(WorkflowError):
    code = "permission-denied"
    http_status = 403


class InvalidArgument(WorkflowError):
    code = "invalid-argument"
    http_status = 400


class NotFound(WorkflowError):
    code = "not-found"
    http_status = 404


class FailedPrecondition(WorkflowError):
    code = "failed-precondition"
    http_status = 409


class AlreadyExists(WorkflowError):
    code = "already-exists"
    http_status = 409
