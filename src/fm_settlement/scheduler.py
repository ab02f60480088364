"""Background settlement scheduler (APScheduler, in-process).

Runs `SettlementEngine.run_settlement_cycle` every
SETTLEMENT_INTERVAL_SECONDS. max_instances=1 keeps cycles in one process from
overlapping; coalesce=True collapses a backlog of missed runs into one.
Cycles in different processes may overlap safely: the claim CAS decides
which worker settles a period.
"""

import logging

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config.settings import settings
from src.fm_settlement.application.service import SettlementEngine

logger = logging.getLogger(__name__)

SETTLEMENT_JOB_ID = "settlement_cycle"


class SettlementScheduler:
    def __init__(
        self,
        engine: SettlementEngine | None = None,
        interval_seconds: int | None = None,
    ) -> None:
        self._engine = engine or SettlementEngine()
        self._interval = interval_seconds or settings.SETTLEMENT_INTERVAL_SECONDS
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def _run_cycle(self) -> None:
        await self._engine.run_settlement_cycle()

    def _on_job_error(self, event: JobExecutionEvent) -> None:
        logger.error("Settlement job failed: %s", event.exception)

    def _on_job_missed(self, event: JobExecutionEvent) -> None:
        logger.warning("Settlement job missed its run time: %s", event.scheduled_run_time)

    def start(self) -> None:
        if self.running:
            return
        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)
        self._scheduler.add_listener(self._on_job_missed, EVENT_JOB_MISSED)
        self._scheduler.add_job(
            self._run_cycle,
            trigger=IntervalTrigger(seconds=self._interval),
            id=SETTLEMENT_JOB_ID,
            name="Lock expired periods and settle locked ones",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self._interval,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("Settlement scheduler started (every %ds)", self._interval)

    def shutdown(self) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Settlement scheduler stopped")
