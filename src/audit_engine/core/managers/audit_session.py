"""AuditSession: lifecycle owner for registry, dispatcher and poller.

One session corresponds to one signed-in view of the audit console. Entering
the session opens the HTTP client and starts the poller; leaving it stops the
timer, lets in-flight fetches resolve, then closes the client.
"""

from __future__ import annotations

import uuid
from typing import Iterable, List, Optional

from audit_engine.core.config import AuditEngineConfig
from audit_engine.core.interfaces.clock import ClockPort
from audit_engine.core.interfaces.http_client import HttpClientPort
from audit_engine.core.interfaces.session import NavigatorPort, SessionPort
from audit_engine.core.logging_config import bind_session_id, unbind_session_id
from audit_engine.core.managers.action_dispatcher import AuditActionDispatcher
from audit_engine.core.managers.error_classifier import ErrorClassifier
from audit_engine.core.managers.job_registry import JobRegistry
from audit_engine.core.managers.poller import AuditPoller
from audit_engine.core.models.action import ActionResult
from audit_engine.core.models.job import AuditJob
from audit_engine.core.settings import logger


class AuditSession:
    def __init__(
        self,
        http_client: HttpClientPort,
        session: SessionPort,
        config: AuditEngineConfig,
        navigator: Optional[NavigatorPort] = None,
        clock: Optional[ClockPort] = None,
    ) -> None:
        self.config = config
        self.session_id = uuid.uuid4().hex[:8]
        self._http = http_client
        self.registry = JobRegistry(clock=clock)
        self.expired = False
        self.classifier = ErrorClassifier(
            session=session,
            navigator=navigator,
            on_session_expired=self._on_session_expired,
        )
        self.dispatcher = AuditActionDispatcher(
            http_client=http_client,
            registry=self.registry,
            session=session,
            config=config,
            classifier=self.classifier,
        )
        self.poller = AuditPoller(self.registry, self.dispatcher, config)
        self._session_token = None

    async def __aenter__(self) -> "AuditSession":
        self._session_token = bind_session_id(self.session_id)
        await self._http.__aenter__()
        self.poller.start()
        logger.info(f"[audit:session] opened session_id={self.session_id} api_url={self.config.base_url}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        if self._session_token is not None:
            unbind_session_id(self._session_token)
            self._session_token = None
        return False

    async def close(self) -> None:
        self.poller.stop()
        await self.poller.wait_idle()
        await self._http.close()
        logger.info(f"[audit:session] closed session_id={self.session_id} tracked_jobs={len(self.registry)}")

    # ---------------- Operations -----------------
    async def trigger_individual(self, partner_id: str, requested_by: Optional[str] = None) -> ActionResult:
        return await self.dispatcher.trigger_individual(partner_id, requested_by)

    async def trigger_bulk(self, partner_ids: Iterable[str], requested_by: Optional[str] = None) -> ActionResult:
        return await self.dispatcher.trigger_bulk(partner_ids, requested_by)

    async def fetch_status(self, job_id: str) -> ActionResult:
        return await self.dispatcher.fetch_status(job_id)

    async def reprocess(self, job_id: str) -> ActionResult:
        return await self.dispatcher.reprocess(job_id, self.registry.get(job_id))

    async def cancel(self, job_id: str) -> ActionResult:
        return await self.dispatcher.cancel(job_id, self.registry.get(job_id))

    def _on_session_expired(self) -> None:
        # no request can succeed without a credential; stop scheduling ticks
        if not self.expired:
            logger.warning(f"[audit:session] credential expired; polling stopped session_id={self.session_id}")
        self.expired = True
        self.poller.stop()

    async def wait_until_settled(self) -> bool:
        """True once every tracked job is final; False if polling stopped first."""
        return await self.poller.wait_until_settled()

    def jobs(self) -> List[AuditJob]:
        return self.registry.list_jobs()
