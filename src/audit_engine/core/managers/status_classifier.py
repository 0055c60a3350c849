"""Classification of open-vocabulary job statuses.

The backend reports statuses in English and Portuguese with several synonyms.
Anything not recognized is treated as non-final so that polling continues
instead of silently abandoning an in-flight job.
"""

import re
from enum import StrEnum
from typing import Dict, Optional

from audit_engine.core.models.job import AuditJob, JobOrigin


class StatusTone(StrEnum):
    success = "success"
    warning = "warning"
    error = "error"
    neutral = "neutral"


FINAL_STATUSES = frozenset(
    {
        "completed",
        "concluido",
        "concluído",
        "sucesso",
        "success",
        "failed",
        "erro",
        "error",
        "cancelled",
        "canceled",
    }
)

FAILED_STATUSES = frozenset({"failed", "erro", "error"})

STATUS_LABELS: Dict[str, str] = {
    "pending": "Pending",
    "queued": "Queued",
    "running": "Processing",
    "processing": "Processing",
    "completed": "Completed",
    "concluido": "Completed",
    "concluído": "Completed",
    "sucesso": "Completed",
    "success": "Completed",
    "failed": "Failed",
    "erro": "Failed",
    "error": "Failed",
    "cancelled": "Cancelled",
    "canceled": "Cancelled",
}

STATUS_TONES: Dict[str, StatusTone] = {
    "completed": StatusTone.success,
    "concluido": StatusTone.success,
    "concluído": StatusTone.success,
    "sucesso": StatusTone.success,
    "success": StatusTone.success,
    "running": StatusTone.warning,
    "processing": StatusTone.warning,
    "pending": StatusTone.warning,
    "queued": StatusTone.warning,
    "failed": StatusTone.error,
    "erro": StatusTone.error,
    "error": StatusTone.error,
    "cancelled": StatusTone.neutral,
    "canceled": StatusTone.neutral,
}

ORIGIN_LABELS: Dict[str, str] = {
    JobOrigin.individual.value: "Individual",
    JobOrigin.bulk.value: "Bulk",
}

UNDEFINED_LABEL = "Undefined"
ORIGIN_NOT_INFORMED = "Not informed"

_WHITESPACE = re.compile(r"\s+")


def normalize_text(value: Optional[str]) -> str:
    if not value:
        return ""
    return _WHITESPACE.sub(" ", str(value)).strip().lower()


def is_final(status: Optional[str]) -> bool:
    return normalize_text(status) in FINAL_STATUSES


def is_failed(status: Optional[str]) -> bool:
    return normalize_text(status) in FAILED_STATUSES


def label(status: Optional[str]) -> str:
    key = normalize_text(status)
    if not key:
        return UNDEFINED_LABEL
    return STATUS_LABELS.get(key, str(status))


def tone(status: Optional[str]) -> StatusTone:
    return STATUS_TONES.get(normalize_text(status), StatusTone.neutral)


def origin_label(origin: Optional[str]) -> str:
    key = normalize_text(origin)
    if not key:
        return ORIGIN_NOT_INFORMED
    return ORIGIN_LABELS.get(key, str(origin))


def can_reprocess(job: AuditJob) -> bool:
    """Reprocess is offered only once a job has settled."""
    return is_final(job.status)


def can_cancel(job: AuditJob) -> bool:
    return not is_final(job.status)
