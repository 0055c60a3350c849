"""AuditActionDispatcher: issues job-affecting requests and feeds the registry.

Responsibilities:
1. Build the backend request for each operation (trigger individual/bulk,
   fetch status, reprocess, cancel) with the session's bearer credential.
2. Normalize the response with operation-specific defaults.
3. Upsert the normalized job into the registry.
4. On failure, classify the error and return a user-facing message while
   leaving the registry untouched (stale-but-present beats erased).
5. After a successful trigger of a non-final job, and after every successful
   cancel, fetch the job status once. The follow-up only refreshes the
   registry; it never changes the outcome reported for the action.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Iterable, Optional
from urllib.parse import quote

from pydantic import ValidationError

from audit_engine.core.config import AuditEngineConfig
from audit_engine.core.exceptions import AuditEngineError, MissingCredentialsError
from audit_engine.core.interfaces.http_client import HttpClientPort
from audit_engine.core.interfaces.session import SessionPort
from audit_engine.core.managers.error_classifier import ErrorClassifier
from audit_engine.core.managers.job_registry import JobRegistry
from audit_engine.core.managers.normalizer import normalize_job
from audit_engine.core.managers.status_classifier import is_final
from audit_engine.core.models.action import ActionResult, ClassifiedError, ErrorKind
from audit_engine.core.models.job import AuditJob, JobOrigin
from audit_engine.core.settings import logger
from audit_engine.core.utils.job_views import clean_partner_ids

MISSING_PARTNER_MESSAGE = "Provide the partner identifier."
EMPTY_BULK_MESSAGE = "Provide at least one partner for the bulk audit."


def _segment(value: str) -> str:
    return quote(str(value), safe="")


class AuditActionDispatcher:
    """Runs the five audit job operations against the backend.

    All operations are idempotent with respect to the registry: repeating a
    call only re-upserts the job.
    """

    def __init__(
        self,
        http_client: HttpClientPort,
        registry: JobRegistry,
        session: SessionPort,
        config: AuditEngineConfig,
        classifier: Optional[ErrorClassifier] = None,
    ) -> None:
        self._http = http_client
        self._registry = registry
        self._session = session
        self.config = config
        self._classifier = classifier or ErrorClassifier(session=session)
        # job id -> number of status fetches in flight
        self._refreshing: Dict[str, int] = {}

    # ---------------- Refresh tracking -----------------
    @property
    def refreshing(self) -> frozenset:
        return frozenset(self._refreshing)

    def is_refreshing(self, job_id: str) -> bool:
        return job_id in self._refreshing

    def _begin_refresh(self, job_id: str) -> None:
        self._refreshing[job_id] = self._refreshing.get(job_id, 0) + 1

    def _end_refresh(self, job_id: str) -> None:
        remaining = self._refreshing.get(job_id, 0) - 1
        if remaining > 0:
            self._refreshing[job_id] = remaining
        else:
            self._refreshing.pop(job_id, None)

    # ---------------- Request helpers -----------------
    def _url(self, path: str) -> str:
        return self.config.base_url + path

    def _auth_headers(self) -> Dict[str, str]:
        token = self._session.get_token()
        if not token:
            raise MissingCredentialsError("No bearer credential available")
        return {"Authorization": f"Bearer {token}"}

    async def _execute(
        self,
        operation: str,
        send: Callable[[Dict[str, str]], Awaitable[Any]],
        build_defaults: Callable[[Any], Dict[str, Any]],
        success_message: str,
        fallback_message: str,
        job_id: Optional[str] = None,
    ) -> ActionResult:
        try:
            headers = self._auth_headers()
            body = await send(headers)
            if body is None or body == "":
                body = {}
            job = normalize_job(body, build_defaults(body))
        except (AuditEngineError, ValidationError) as exc:
            error = self._classifier.classify(exc, fallback_message, operation)
            logger.warning(
                f"[audit:dispatch] {operation} failed job_id={job_id} kind={error.kind} "
                f"status={error.status} error={exc}"
            )
            return ActionResult.failure(error)

        stored = self._registry.upsert(job)
        logger.debug(f"[audit:dispatch] {operation} ok job_id={stored.job_id} status={stored.status}")
        return ActionResult.success(stored, success_message)

    async def _follow_up(self, operation: str, result: ActionResult) -> ActionResult:
        """Fetch the job once more right after a successful request.

        The outcome of the fetch never replaces `result`; only its job is
        swapped for the registry record.
        """
        job_id = result.job.job_id
        follow_up = await self.fetch_status(job_id)
        if not follow_up.ok:
            logger.warning(
                f"[audit:dispatch] post-{operation} status fetch failed job_id={job_id} kind={follow_up.error.kind}"
            )
        return result.model_copy(update={"job": self._registry.get(job_id) or result.job})

    async def _refresh_if_pending(self, operation: str, result: ActionResult) -> ActionResult:
        if not result.ok or is_final(result.job.status):
            return result
        return await self._follow_up(operation, result)

    def _local_failure(self, message: str) -> ActionResult:
        return ActionResult.failure(ClassifiedError(kind=ErrorKind.generic, message=message))

    def _current(self, job_id: str, current_job: Optional[AuditJob]) -> Optional[AuditJob]:
        return current_job if current_job is not None else self._registry.get(job_id)

    @staticmethod
    def _defaults_from_current(job_id: str, current_job: Optional[AuditJob]) -> Dict[str, Any]:
        return {
            "job_id": job_id,
            "origin": current_job.origin if current_job else JobOrigin.bulk.value,
            "partner_ids": list(current_job.partner_ids) if current_job else [],
            "requested_by": current_job.requested_by if current_job else None,
            "status": current_job.status if current_job else "pending",
        }

    # ---------------- Operations -----------------
    async def trigger_individual(self, partner_id: str, requested_by: Optional[str] = None) -> ActionResult:
        partner_id = (partner_id or "").strip()
        if not partner_id:
            return self._local_failure(MISSING_PARTNER_MESSAGE)

        url = self._url(f"/partners/{_segment(partner_id)}/audit")
        payload = {"requestedBy": requested_by} if requested_by else {}
        logger.info(f"[audit:dispatch] trigger individual partner_id={partner_id}")

        result = await self._execute(
            "trigger-individual",
            lambda headers: self._http.post(url, json=payload, headers=headers, timeout=self.config.request_timeout),
            lambda body: {
                "origin": JobOrigin.individual.value,
                "partner_ids": [partner_id],
                "requested_by": requested_by,
            },
            success_message="Individual audit requested successfully.",
            fallback_message="Could not request the partner audit.",
        )
        return await self._refresh_if_pending("trigger-individual", result)

    async def trigger_bulk(self, partner_ids: Iterable[str], requested_by: Optional[str] = None) -> ActionResult:
        cleaned = clean_partner_ids(partner_ids)
        if not cleaned:
            return self._local_failure(EMPTY_BULK_MESSAGE)

        url = self._url("/partners/audit")
        payload: Dict[str, Any] = {"partnerIds": cleaned}
        if requested_by:
            payload["requestedBy"] = requested_by
        logger.info(f"[audit:dispatch] trigger bulk partners={len(cleaned)}")

        result = await self._execute(
            "trigger-bulk",
            lambda headers: self._http.post(url, json=payload, headers=headers, timeout=self.config.request_timeout),
            lambda body: {
                "origin": JobOrigin.bulk.value,
                "partner_ids": list(cleaned),
                "requested_by": requested_by,
            },
            success_message=f"Bulk audit started for {len(cleaned)} partner(s).",
            fallback_message="Could not request the bulk audit.",
        )
        return await self._refresh_if_pending("trigger-bulk", result)

    async def fetch_status(self, job_id: str) -> ActionResult:
        url = self._url(f"/partners/audit/{_segment(job_id)}")
        self._begin_refresh(job_id)
        try:
            return await self._execute(
                "fetch-status",
                lambda headers: self._http.get(url, headers=headers, timeout=self.config.request_timeout),
                # origin "bulk" is a conservative fallback when the backend omits it
                lambda body: {"job_id": job_id, "origin": JobOrigin.bulk.value},
                success_message="Audit status updated.",
                fallback_message="Could not update the audit job status.",
                job_id=job_id,
            )
        finally:
            self._end_refresh(job_id)

    async def reprocess(self, job_id: str, current_job: Optional[AuditJob] = None) -> ActionResult:
        url = self._url(f"/partners/audit/{_segment(job_id)}/reprocess")
        defaults = self._defaults_from_current(job_id, self._current(job_id, current_job))
        logger.info(f"[audit:dispatch] reprocess job_id={job_id}")

        return await self._execute(
            "reprocess",
            lambda headers: self._http.post(url, json={}, headers=headers, timeout=self.config.request_timeout),
            lambda body: defaults,
            success_message="Audit reprocessing requested.",
            fallback_message="Could not reprocess the audit job.",
            job_id=job_id,
        )

    async def cancel(self, job_id: str, current_job: Optional[AuditJob] = None) -> ActionResult:
        url = self._url(f"/partners/audit/{_segment(job_id)}/cancel")
        defaults = self._defaults_from_current(job_id, self._current(job_id, current_job))
        logger.info(f"[audit:dispatch] cancel job_id={job_id}")

        result = await self._execute(
            "cancel",
            lambda headers: self._http.post(url, json={}, headers=headers, timeout=self.config.request_timeout),
            lambda body: defaults,
            success_message="Audit cancellation requested.",
            fallback_message="Could not cancel the audit job.",
            job_id=job_id,
        )
        if not result.ok:
            return result

        # cancellation may complete asynchronously on the backend, so always re-fetch
        return await self._follow_up("cancel", result)
