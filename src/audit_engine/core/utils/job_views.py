"""Helpers for presenting and filtering tracked audit jobs."""

import json
import re
from datetime import datetime
from typing import Any, Iterable, List, Optional

from audit_engine.core.managers.status_classifier import normalize_text
from audit_engine.core.models.job import AuditJob

_PARTNER_ID_SEPARATORS = re.compile(r"\r?\n|,|;|\s+")


def clean_partner_ids(partner_ids: Iterable[str]) -> List[str]:
    """Trim ids, drop blanks and exact duplicates, keep first-seen order."""
    cleaned: List[str] = []
    seen = set()
    for partner_id in partner_ids:
        if partner_id is None:
            continue
        value = str(partner_id).strip()
        if not value or value in seen:
            continue
        seen.add(value)
        cleaned.append(value)
    return cleaned


def parse_partner_ids(text: str) -> List[str]:
    """Split free text pasted by a user (commas, semicolons, whitespace, newlines)."""
    return clean_partner_ids(_PARTNER_ID_SEPARATORS.split(text or ""))


def _created_sort_key(job: AuditJob) -> float:
    if not job.created_at:
        return 0.0
    try:
        return datetime.fromisoformat(job.created_at.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return 0.0


def filter_jobs(
    jobs: Iterable[AuditJob],
    partner: Optional[str] = None,
    status: Optional[str] = None,
    origin: Optional[str] = None,
) -> List[AuditJob]:
    """Filter by partner substring, exact status and exact origin; newest first.

    Empty filters and the literal "all" match everything.
    """
    partner_key = (partner or "").strip().lower()
    status_key = "" if status == "all" else normalize_text(status)
    origin_key = "" if origin == "all" else normalize_text(origin)

    selected = []
    for job in jobs:
        if partner_key and not any(partner_key in pid.lower() for pid in job.partner_ids):
            continue
        if status_key and normalize_text(job.status) != status_key:
            continue
        if origin_key and normalize_text(job.origin) != origin_key:
            continue
        selected.append(job)
    return sorted(selected, key=_created_sort_key, reverse=True)


def format_datetime(value: Optional[str]) -> str:
    if not value:
        return "-"
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return parsed.strftime("%d/%m/%Y %H:%M")


def format_job_result(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError):
        return str(value)
