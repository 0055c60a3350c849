"""Normalization of backend audit job payloads into `AuditJob` records.

The backend is not consistent about key naming (camelCase vs snake_case,
`id` vs `jobId`, several names for the error text), so every field is read
through an explicit alias table. Each field resolves with a three-tier
precedence: explicit value in the payload, then the caller's defaults, then a
hard-coded fallback.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict, Optional, Tuple

from audit_engine.core.exceptions import MissingJobIdError
from audit_engine.core.models.job import AuditJob, JobOrigin, RawJobPayload

# field name -> accepted backend keys, in lookup order
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "job_id": ("jobId", "id", "job_id"),
    "status": ("status",),
    "partner_ids": ("partnerIds", "partner_ids"),
    "origin": ("origin",),
    "requested_by": ("requestedBy", "requested_by"),
    "created_at": ("createdAt", "created_at"),
    "completed_at": ("completedAt", "completed_at"),
    "error": ("error", "errorMessage", "error_message", "message"),
    "payload": ("payload",),
    "result": ("result",),
}

FALLBACKS: Dict[str, Any] = {
    "status": "pending",
    "origin": JobOrigin.unknown.value,
    "partner_ids": [],
}

_STRING_FIELDS = {"job_id", "status", "origin", "requested_by", "created_at", "completed_at", "error"}


def _lookup(raw: Mapping, field_name: str) -> Tuple[bool, Any]:
    for key in FIELD_ALIASES[field_name]:
        value = raw.get(key)
        if value is None:
            continue
        if field_name == "partner_ids" and not isinstance(value, list):
            continue
        if field_name == "job_id" and not str(value).strip():
            continue
        return True, value
    return False, None


def _coerce(field_name: str, value: Any) -> Any:
    if value is None:
        return None
    if field_name == "partner_ids":
        return [str(v) for v in value]
    if field_name in _STRING_FIELDS:
        return str(value)
    return value


def _defaults_as_dict(defaults: Optional[Mapping | AuditJob]) -> Dict[str, Any]:
    if defaults is None:
        return {}
    if isinstance(defaults, AuditJob):
        return defaults.model_dump()
    # accept both python and camelCase keys for caller convenience
    resolved: Dict[str, Any] = {}
    for field_name, aliases in FIELD_ALIASES.items():
        for key in (field_name, *aliases):
            if key in defaults and defaults[key] is not None:
                resolved[field_name] = defaults[key]
                break
    return resolved


def normalize_job(raw: RawJobPayload, defaults: Optional[Mapping | AuditJob] = None) -> AuditJob:
    """Convert an arbitrary backend payload into a canonical AuditJob.

    Args:
        raw: Backend response body (any JSON value; non-mappings carry no fields)
        defaults: Partial job values used when the payload omits a field

    Returns:
        AuditJob with `supplied_fields` set to the fields read from `raw`

    Raises:
        MissingJobIdError: neither the payload nor the defaults carry a job id
    """
    fields_source: Mapping = raw if isinstance(raw, Mapping) else {}
    fallback_values = _defaults_as_dict(defaults)

    values: Dict[str, Any] = {}
    supplied = set()
    for field_name in FIELD_ALIASES:
        found, value = _lookup(fields_source, field_name)
        if found:
            supplied.add(field_name)
        elif fallback_values.get(field_name) is not None:
            value = fallback_values[field_name]
        else:
            value = FALLBACKS.get(field_name)
        values[field_name] = _coerce(field_name, value)

    job_id = values.pop("job_id")
    if not job_id or not job_id.strip():
        raise MissingJobIdError()

    # copy so callers mutating the defaults list do not alias the record
    values["partner_ids"] = list(values["partner_ids"])

    job = AuditJob(job_id=job_id, raw=raw, last_checked_at=None, **values)
    return job.mark_supplied(supplied)
