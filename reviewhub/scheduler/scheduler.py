"""Background jobs for ReviewHub.

Three interval jobs run inside the API process on an APScheduler
AsyncIOScheduler:
- auto-reply sweep (default every 5 minutes)
- Yelp review polling (default every 15 minutes, first run 30 s after start)
- scheduled campaign dispatch (default every minute)

Each run opens its own database session and closes it afterwards. Jobs are
not coordinated across processes; run a single API instance with the
scheduler enabled.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from reviewhub.config.settings import get_settings
from reviewhub.db.session import SessionLocal
from reviewhub.services.auto_reply import AutoReplyService
from reviewhub.services.campaigns import CampaignService
from reviewhub.services.review_sync import YelpPollingService

logger = structlog.get_logger(__name__)

AUTO_REPLY_JOB_ID = "auto_reply"
YELP_POLLING_JOB_ID = "yelp_polling"
CAMPAIGN_DISPATCH_JOB_ID = "campaign_dispatch"


async def run_auto_reply(session_factory: Callable[[], Session] = SessionLocal) -> int:
    db = session_factory()
    try:
        return await AutoReplyService(db).run_once()
    finally:
        db.close()


async def run_yelp_polling(session_factory: Callable[[], Session] = SessionLocal) -> int:
    db = session_factory()
    try:
        return await YelpPollingService(db).poll_once()
    finally:
        db.close()


async def run_campaign_dispatch(session_factory: Callable[[], Session] = SessionLocal) -> int:
    db = session_factory()
    try:
        return await CampaignService(db).dispatch_due()
    finally:
        db.close()


JOBS: dict[str, tuple[str, Callable]] = {
    AUTO_REPLY_JOB_ID: ("Auto-reply to new reviews", run_auto_reply),
    YELP_POLLING_JOB_ID: ("Poll Yelp for new reviews", run_yelp_polling),
    CAMPAIGN_DISPATCH_JOB_ID: ("Send due scheduled campaigns", run_campaign_dispatch),
}


class Scheduler:
    """Runs the ReviewHub interval jobs on an AsyncIOScheduler bound to the API event loop."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    def _triggers(self) -> dict[str, dict]:
        settings = get_settings()
        first_poll = datetime.now(timezone.utc) + timedelta(seconds=settings.yelp_polling_initial_delay_seconds)
        return {
            AUTO_REPLY_JOB_ID: {"trigger": IntervalTrigger(minutes=settings.auto_reply_interval_minutes)},
            YELP_POLLING_JOB_ID: {
                "trigger": IntervalTrigger(minutes=settings.yelp_polling_interval_minutes),
                "next_run_time": first_poll,
            },
            CAMPAIGN_DISPATCH_JOB_ID: {
                "trigger": IntervalTrigger(minutes=settings.campaign_dispatch_interval_minutes)
            },
        }

    async def start(self) -> None:
        if self.is_running:
            logger.warning("scheduler_already_running")
            return

        scheduler = AsyncIOScheduler()
        for job_id, timing in self._triggers().items():
            name, body = JOBS[job_id]
            scheduler.add_job(
                self._execute,
                id=job_id,
                name=name,
                args=[job_id, body],
                max_instances=1,
                replace_existing=True,
                **timing,
            )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("scheduler_started", jobs=self.job_ids())

    async def stop(self) -> None:
        """Shut down, waiting for any job that is mid-run."""
        if not self.is_running:
            logger.warning("scheduler_not_running")
            return
        self._scheduler.shutdown(wait=True)
        self._scheduler = None
        logger.info("scheduler_stopped")

    def job_ids(self) -> list[str]:
        if self._scheduler is None:
            return []
        return [job.id for job in self._scheduler.get_jobs()]

    async def run_now(self, job_id: str) -> int:
        """Run one job body immediately, outside the timer."""
        if job_id not in JOBS:
            raise ValueError(f"Unknown job: {job_id}")
        return await self._execute(job_id, JOBS[job_id][1])

    async def _execute(self, job_id: str, body: Callable) -> int:
        try:
            result = await body(self._session_factory)
        except Exception as e:
            logger.error("job_failed", job_id=job_id, error=str(e), error_type=type(e).__name__)
            raise
        logger.info("job_finished", job_id=job_id, result=result)
        return result


_instance: Optional[Scheduler] = None


def get_scheduler() -> Scheduler:
    """Process-wide Scheduler used by the API lifespan."""
    global _instance
    if _instance is None:
        _instance = Scheduler()
    return _instance


def reset_scheduler() -> None:
    global _instance
    _instance = None
