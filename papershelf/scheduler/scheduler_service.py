# papershelf/scheduler/scheduler_service.py

import logging
import threading
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.triggers.date import DateTrigger

from papershelf.config import Config
from papershelf.jobs.paper_enrichment_job import run_paper_enrichment_job

logger = logging.getLogger(__name__)

JOB_PREFIX = "paper_enrichment_"


class SchedulerService:
    """
    In-process runner for detached enrichment jobs.

    - enrichment executor: bounded thread pool, jobs never block a request
    - one pending job per paper (duplicate saves are coalesced)
    - no persistence and no retries: a lost job means the paper stays
      un-enriched until a manual regenerate
    """

    EXECUTOR_DEFAULT = "default"
    EXECUTOR_ENRICHMENT = "enrichment"

    def __init__(self, scheduler: Optional[BackgroundScheduler] = None):
        if scheduler is None:
            executors = {
                self.EXECUTOR_DEFAULT: ThreadPoolExecutor(max_workers=1),
                self.EXECUTOR_ENRICHMENT: ThreadPoolExecutor(
                    max_workers=Config.enrichment.max_workers
                ),
            }
            scheduler = BackgroundScheduler(executors=executors, timezone="UTC")

        self.scheduler = scheduler
        self._started = False

    # --------------------------------------------------
    # Lifecycle
    # --------------------------------------------------

    def start(self) -> None:
        """
        Start scheduler (idempotent).
        """
        if self._started:
            return

        logger.info("⏱ Starting SchedulerService...")
        self.scheduler.start()
        self._started = True

    def shutdown(self, wait: bool = False) -> None:
        if not self._started:
            return

        logger.info("🛑 Stopping SchedulerService...")
        self.scheduler.shutdown(wait=wait)
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    # --------------------------------------------------
    # One-time jobs (user triggered)
    # --------------------------------------------------

    def submit_enrichment(self, paper_id: str, pdf_url: str) -> str:
        """
        Queue a one-time enrichment job that runs as soon as a worker is free.

        Only (paper_id, pdf_url) travel with the job; it builds its own
        PaperRepository, PdfDownloader and analyzer.

        Returns:
            job_id: The APScheduler job ID
        """
        job_id = f"{JOB_PREFIX}{paper_id}"

        if self.scheduler.get_job(job_id):
            logger.info(f"⏳ Enrichment already queued: {job_id}")
            return job_id

        self.scheduler.add_job(
            run_paper_enrichment_job,
            trigger=DateTrigger(run_date=datetime.now(timezone.utc)),
            args=[paper_id, pdf_url],
            id=job_id,
            executor=self.EXECUTOR_ENRICHMENT,
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=Config.enrichment.misfire_grace_time,
        )

        logger.info(f"📝 Enrichment job queued: {job_id} (pending: {self.get_queue_size()})")
        return job_id

    def get_queue_size(self) -> int:
        return sum(1 for job in self.scheduler.get_jobs() if job.id.startswith(JOB_PREFIX))

    def get_queue_jobs(self) -> List[Dict[str, Any]]:
        return [
            {
                "job_id": job.id,
                "paper_id": job.id[len(JOB_PREFIX):],
                "next_run_time": job.next_run_time,
            }
            for job in self.scheduler.get_jobs()
            if job.id.startswith(JOB_PREFIX)
        ]


_scheduler: Optional[SchedulerService] = None
_scheduler_lock = threading.Lock()


def get_scheduler() -> SchedulerService:
    """
    Process-wide scheduler, started on first use.
    """
    global _scheduler

    with _scheduler_lock:
        if _scheduler is None:
            _scheduler = SchedulerService()
        if not _scheduler.running:
            _scheduler.start()
        return _scheduler
