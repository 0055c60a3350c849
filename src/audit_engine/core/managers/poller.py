"""AuditPoller: periodic status refresh for every non-final job.

State machine per session:
- IDLE: no non-final jobs, no timer.
- POLLING: at least one non-final job; a repeating timer fires ticks.

The poller observes the registry and re-evaluates after every mutation, so
the timer starts when the first non-final job appears and stops once the last
one settles. Each tick fetches all targets concurrently; a tick is fired by
the timer without waiting for the previous one to finish. There is no backoff
and no retry cap: a job is polled for as long as it stays non-final.
"""

from __future__ import annotations

import asyncio
from enum import StrEnum
from typing import List, Optional, Set

from audit_engine.core.config import AuditEngineConfig
from audit_engine.core.managers.action_dispatcher import AuditActionDispatcher
from audit_engine.core.managers.job_registry import JobRegistry
from audit_engine.core.models.action import ActionResult
from audit_engine.core.models.job import AuditJob
from audit_engine.core.settings import PollOverlapPolicy, logger


class PollerState(StrEnum):
    idle = "idle"
    polling = "polling"


class AuditPoller:
    """Explicit scheduler owned by a session; started and stopped by calls.

    Tests can leave the poller stopped and drive `tick()` directly.
    """

    def __init__(
        self,
        registry: JobRegistry,
        dispatcher: AuditActionDispatcher,
        config: AuditEngineConfig,
    ) -> None:
        self._registry = registry
        self._dispatcher = dispatcher
        self.config = config
        self._active = False
        self._timer: Optional[asyncio.Task] = None
        self._ticks: Set[asyncio.Task] = set()
        self._settled = asyncio.Event()
        self.tick_count = 0

    @property
    def state(self) -> PollerState:
        if self._timer is not None and not self._timer.done():
            return PollerState.polling
        return PollerState.idle

    @property
    def active(self) -> bool:
        return self._active

    # ---------------- Lifecycle -----------------
    def start(self) -> None:
        """Attach to the registry and begin polling if anything is pending.

        Must be called from a running event loop.
        """
        if self._active:
            return
        self._active = True
        self._registry.subscribe(self)
        logger.debug("[audit:poll] poller started")
        self._reconcile()

    def stop(self) -> None:
        """Tear down the timer. In-flight fetches are left to resolve."""
        if not self._active:
            return
        self._active = False
        self._registry.unsubscribe(self)
        self._cancel_timer()
        # wake waiters so they see the poller is gone
        self._settled.set()
        logger.debug(f"[audit:poll] poller stopped in_flight_ticks={len(self._ticks)}")

    async def wait_idle(self) -> None:
        """Wait for every tick already fired to finish."""
        while self._ticks:
            await asyncio.gather(*list(self._ticks), return_exceptions=True)

    async def wait_until_settled(self) -> bool:
        """Wait until the registry holds no non-final job or the poller stops.

        Returns True when every job is final. A stopped poller never moves a
        pending job forward, so with pending jobs it returns False at once
        (or as soon as `stop()` is called while waiting).
        """
        while self._registry.non_final():
            if not self._active:
                return False
            self._settled.clear()
            await self._settled.wait()
        return True

    # ---------------- Registry observer -----------------
    def on_registry_changed(self, registry: JobRegistry, job: AuditJob) -> None:
        self._reconcile()

    def _reconcile(self) -> None:
        pending = self._registry.non_final()
        if pending:
            self._settled.clear()
        else:
            self._settled.set()
        if not self._active:
            return
        if pending and self.state is PollerState.idle:
            self._start_timer(len(pending))
        elif not pending and self.state is PollerState.polling:
            logger.debug("[audit:poll] no non-final jobs left; stopping timer")
            self._cancel_timer()

    # ---------------- Timer -----------------
    def _start_timer(self, pending: int) -> None:
        logger.debug(
            f"[audit:poll] starting timer interval={self.config.poll_interval}s pending={pending}"
        )
        self._timer = asyncio.get_running_loop().create_task(self._run_timer())

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(self.config.poll_interval)
            task = asyncio.create_task(self.tick())
            self._ticks.add(task)
            task.add_done_callback(self._ticks.discard)

    # ---------------- Tick -----------------
    def _targets(self) -> List[AuditJob]:
        targets = self._registry.non_final()
        if self.config.poll_overlap == PollOverlapPolicy.skip:
            skipped = [job.job_id for job in targets if self._dispatcher.is_refreshing(job.job_id)]
            if skipped:
                logger.debug(f"[audit:poll] skipping in-flight jobs {skipped}")
            targets = [job for job in targets if job.job_id not in skipped]
        return targets

    async def tick(self) -> List[Optional[ActionResult]]:
        """Fetch status for a snapshot of the non-final jobs, concurrently."""
        targets = self._targets()
        if not targets:
            return []
        self.tick_count += 1
        logger.debug(
            f"[audit:poll] tick={self.tick_count} jobs={[job.job_id for job in targets]}"
        )
        return list(await asyncio.gather(*(self._refresh(job.job_id) for job in targets)))

    async def _refresh(self, job_id: str) -> Optional[ActionResult]:
        try:
            result = await self._dispatcher.fetch_status(job_id)
        except Exception as exc:
            # one failing job must not stop the rest of the tick
            logger.error(f"[audit:poll] unexpected refresh error job_id={job_id} error={exc}")
            return None
        if not result.ok:
            logger.warning(
                f"[audit:poll] refresh failed job_id={job_id} kind={result.error.kind} message={result.message}"
            )
        return result
