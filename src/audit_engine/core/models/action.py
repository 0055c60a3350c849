from enum import StrEnum
from typing import Optional

from pydantic import BaseModel

from audit_engine.core.models.job import AuditJob


class ErrorKind(StrEnum):
    missing_job_id = "MissingJobId"
    auth_expired = "AuthExpired"
    forbidden = "Forbidden"
    unsupported = "Unsupported"
    generic = "Generic"


class ClassifiedError(BaseModel):
    kind: ErrorKind
    message: str
    status: Optional[int] = None

    @property
    def recoverable(self) -> bool:
        return self.kind != ErrorKind.missing_job_id


class ActionResult(BaseModel):
    """Outcome of one dispatcher operation, ready to be shown to a user."""

    ok: bool
    message: str
    job: Optional[AuditJob] = None
    error: Optional[ClassifiedError] = None

    @classmethod
    def success(cls, job: AuditJob, message: str) -> "ActionResult":
        return cls(ok=True, message=message, job=job)

    @classmethod
    def failure(cls, error: ClassifiedError) -> "ActionResult":
        return cls(ok=False, message=error.message, error=error)
