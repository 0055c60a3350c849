"""JobRegistry: ordered in-memory collection of audit jobs keyed by job id.

The registry only grows for the life of a session; records are merged on
every upsert and never removed. It is synchronous and lock-free: on a single
event loop an `upsert` runs to completion before any other coroutine resumes.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from audit_engine.core.interfaces.clock import ClockPort
from audit_engine.core.interfaces.observers import RegistryObserver
from audit_engine.core.managers.status_classifier import is_final
from audit_engine.core.models.job import AuditJob, JobOrigin
from audit_engine.core.settings import logger

MERGEABLE_FIELDS = (
    "status",
    "partner_ids",
    "origin",
    "requested_by",
    "created_at",
    "completed_at",
    "error",
    "payload",
    "result",
)


def _is_known(field_name: str, value) -> bool:
    if value is None:
        return False
    if field_name == "partner_ids":
        return len(value) > 0
    if field_name == "origin":
        return value != JobOrigin.unknown.value
    return True


def merge_jobs(existing: AuditJob, incoming: AuditJob) -> AuditJob:
    """Merge `incoming` on top of `existing`, field by field.

    A known incoming value wins if the backend supplied it or nothing is
    known yet; defaults never replace a known value. This is stricter than
    "the newest non-null value wins": a status fetch fills `origin` with a
    fallback, and that fallback must not overwrite the origin recorded when
    the job was triggered.
    """
    merged = existing.model_dump()
    for field_name in MERGEABLE_FIELDS:
        new_value = getattr(incoming, field_name)
        if not _is_known(field_name, new_value):
            continue
        if incoming.was_supplied(field_name) or not _is_known(field_name, merged[field_name]):
            merged[field_name] = new_value
    merged["raw"] = incoming.raw
    job = AuditJob(**merged)
    return job.mark_supplied(existing.supplied_fields | incoming.supplied_fields)


class JobRegistry:
    """Most-recently-touched-first view of all jobs seen in a session."""

    def __init__(self, clock: Optional[ClockPort] = None, observers: Optional[List[RegistryObserver]] = None):
        self._jobs: "OrderedDict[str, AuditJob]" = OrderedDict()
        self._clock = clock
        self._observers: List[RegistryObserver] = list(observers or [])

    def _now(self) -> str:
        now = self._clock.now() if self._clock else datetime.now(timezone.utc)
        return now.isoformat()

    # ---------------- Observers -----------------
    def subscribe(self, observer: RegistryObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def unsubscribe(self, observer: RegistryObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self, job: AuditJob) -> None:
        for observer in list(self._observers):
            try:
                observer.on_registry_changed(self, job)
            except Exception as exc:
                logger.error(
                    f"[registry:observer] on_registry_changed failed observer={type(observer).__name__} "
                    f"job_id={job.job_id} error={exc}"
                )

    # ---------------- Mutation -----------------
    def upsert(self, job: AuditJob) -> AuditJob:
        """Insert or merge `job`, stamp `last_checked_at` and move it to the head."""
        timestamp = self._now()
        previous = self._jobs.get(job.job_id)
        merged = merge_jobs(previous, job) if previous else job.model_copy(deep=True)
        if merged.created_at is None:
            merged.created_at = timestamp
        merged.last_checked_at = timestamp

        self._jobs[merged.job_id] = merged
        self._jobs.move_to_end(merged.job_id, last=False)
        logger.debug(
            f"[registry:upsert] job_id={merged.job_id} status={merged.status} "
            f"inserted={previous is None} total={len(self._jobs)}"
        )
        self._notify(merged)
        return merged

    # ---------------- Queries -----------------
    def get(self, job_id: str) -> Optional[AuditJob]:
        return self._jobs.get(job_id)

    def list_jobs(self) -> List[AuditJob]:
        return list(self._jobs.values())

    def non_final(self) -> List[AuditJob]:
        return [job for job in self._jobs.values() if not is_final(job.status)]

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def __iter__(self) -> Iterator[AuditJob]:
        return iter(list(self._jobs.values()))
