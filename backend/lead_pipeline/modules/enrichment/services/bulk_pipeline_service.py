"""
Bulk Pipeline Service
Runs the enrichment pipeline over many leads, one lead at a time.

- Sequential: a lead (including its internal forks) finishes before the next starts
- Pausable: a stop flag is checked before each lead, never mid-lead
- Isolated: one lead's failure is logged and counted, the loop moves on
- Observable: {current, total, current_company, current_step} after every step

Jobs started over HTTP live in an in-memory registry so they can be polled
and stopped. Like the per-lead run registry, this is single-instance state.
"""
import inspect
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from lead_pipeline.modules.enrichment.constants import BulkJobStatus, NotificationVariant
from lead_pipeline.modules.enrichment.repositories.lead_repository import LeadRepository
from lead_pipeline.modules.enrichment.services.pipeline_service import (
    Notification,
    PipelineCallbacks,
    PipelineService,
)
from lead_pipeline.shared.core.constants import BULK_DEFAULT_LIMIT, BULK_JOB_HISTORY_SIZE
from lead_pipeline.shared.db.session import AsyncSessionLocal
from lead_pipeline.shared.utils.exceptions import BulkJobNotFoundError

logger = logging.getLogger("bulk_pipeline_service")


@dataclass
class BulkProgress:
    current: int
    total: int
    current_company: Optional[str] = None
    current_step: Optional[str] = None


@dataclass
class StopSignal:
    """Cooperative stop flag shared between the runner and whoever may pause it."""
    requested: bool = False

    def request(self) -> None:
        self.requested = True


@dataclass
class BulkRunSummary:
    total: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    stopped: bool = False
    errors: List[Dict[str, str]] = field(default_factory=list)


@dataclass
class BulkCallbacks:
    on_progress: Optional[Callable[[BulkProgress], Any]] = None
    on_notify: Optional[Callable[[Notification], Any]] = None


async def _emit(callback: Optional[Callable], *args) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class BulkPipelineService:
    """Drives PipelineService over a list of leads."""

    def __init__(
        self,
        db: AsyncSession,
        lead_repo: Optional[LeadRepository] = None,
        pipeline: Optional[PipelineService] = None
    ):
        self.db = db
        self.lead_repo = lead_repo or LeadRepository(db)
        self.pipeline = pipeline or PipelineService(db, lead_repo=self.lead_repo)

    async def run(
        self,
        leads: List[Dict[str, Any]],
        stop: Optional[StopSignal] = None,
        callbacks: Optional[BulkCallbacks] = None,
        user_id: Optional[str] = None
    ) -> BulkRunSummary:
        """
        Run the pipeline for each lead in order.

        Args:
            leads: Lead snapshots, already filtered by the caller
            stop: Checked before each lead; set it to pause after the current one
            callbacks: Progress and notification hooks
            user_id: Operator ID forwarded to every run

        Returns:
            BulkRunSummary with processed/succeeded/failed counts
        """
        stop = stop or StopSignal()
        callbacks = callbacks or BulkCallbacks()
        total = len(leads)
        summary = BulkRunSummary(total=total)

        logger.info(f"🚀 Bulk pipeline started for {total} leads")

        for index, lead in enumerate(leads):
            if stop.requested:
                summary.stopped = True
                logger.info(f"⏸️ Bulk pipeline paused after {summary.processed} of {total}")
                await _emit(callbacks.on_notify, Notification(
                    title="Pipeline Paused",
                    description=f"Stopped after processing {summary.processed} of {total} leads."
                ))
                return summary

            progress = BulkProgress(
                current=index + 1,
                total=total,
                current_company=lead.get("company"),
            )
            await _emit(callbacks.on_progress, BulkProgress(**progress.__dict__))

            async def on_step(step: Optional[str], progress: BulkProgress = progress) -> None:
                progress.current_step = step
                await _emit(callbacks.on_progress, BulkProgress(**progress.__dict__))

            try:
                await self.pipeline.run(lead, PipelineCallbacks(on_step=on_step), user_id=user_id)
                summary.succeeded += 1
            except Exception as e:
                logger.error(f"❌ Bulk pipeline: lead {lead.get('id')} ({lead.get('company')}) failed: {e}")
                summary.failed += 1
                summary.errors.append({"lead_id": str(lead.get("id")), "error": str(e)})

            summary.processed += 1

        logger.info(f"✅ Bulk pipeline complete: {summary.succeeded} succeeded, {summary.failed} failed")
        await _emit(callbacks.on_notify, Notification(
            title="Bulk Pipeline Complete",
            description=f"Processed {summary.processed} of {total} leads ({summary.failed} failed)."
        ))
        return summary

    async def run_from_query(
        self,
        only_unenriched: bool = True,
        lead_ids: Optional[List[str]] = None,
        limit: int = BULK_DEFAULT_LIMIT,
        stop: Optional[StopSignal] = None,
        callbacks: Optional[BulkCallbacks] = None,
        user_id: Optional[str] = None
    ) -> BulkRunSummary:
        """
        Load the leads to process, then run them.

        Errors outside the per-lead boundary (the query itself) are reported
        as "Bulk Pipeline Failed" and re-raised.
        """
        callbacks = callbacks or BulkCallbacks()
        try:
            leads = await self.lead_repo.get_leads_for_bulk(
                only_unenriched=only_unenriched,
                lead_ids=lead_ids,
                limit=limit
            )
            return await self.run(leads, stop=stop, callbacks=callbacks, user_id=user_id)
        except Exception as e:
            logger.error(f"❌ Bulk pipeline failed: {e}")
            await _emit(callbacks.on_notify, Notification(
                title="Bulk Pipeline Failed",
                description=str(e),
                variant=NotificationVariant.DESTRUCTIVE.value
            ))
            raise


# ============================================
# JOB REGISTRY (HTTP-triggered runs)
# ============================================

@dataclass
class BulkJob:
    id: str
    status: str = BulkJobStatus.PENDING.value
    progress: Optional[BulkProgress] = None
    summary: Optional[BulkRunSummary] = None
    notifications: List[Notification] = field(default_factory=list)
    error: Optional[str] = None
    stop: StopSignal = field(default_factory=StopSignal)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None


class BulkJobRegistry:
    """In-memory bulk jobs, newest last. Finished jobs beyond the history size are evicted."""

    def __init__(self, history_size: int = BULK_JOB_HISTORY_SIZE):
        self._jobs: "OrderedDict[str, BulkJob]" = OrderedDict()
        self._history_size = history_size

    def create(self) -> BulkJob:
        job = BulkJob(id=uuid.uuid4().hex)
        self._jobs[job.id] = job
        self._evict()
        return job

    def get(self, job_id: str) -> BulkJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise BulkJobNotFoundError(job_id)
        return job

    def request_stop(self, job_id: str) -> BulkJob:
        job = self.get(job_id)
        if not BulkJobStatus.is_final(job.status):
            job.stop.request()
            logger.info(f"Stop requested for bulk job {job_id}")
        return job

    def _evict(self) -> None:
        finished = [job_id for job_id, job in self._jobs.items() if BulkJobStatus.is_final(job.status)]
        while len(finished) > self._history_size:
            self._jobs.pop(finished.pop(0), None)


bulk_job_registry = BulkJobRegistry()


async def run_bulk_job(
    job: BulkJob,
    only_unenriched: bool = True,
    lead_ids: Optional[List[str]] = None,
    limit: int = BULK_DEFAULT_LIMIT,
    user_id: Optional[str] = None,
    session_factory=AsyncSessionLocal
) -> None:
    """Background entry point: runs a registered job on its own DB session."""

    def on_progress(progress: BulkProgress) -> None:
        job.progress = progress

    def on_notify(notification: Notification) -> None:
        job.notifications.append(notification)

    job.status = BulkJobStatus.RUNNING.value

    async with session_factory() as db:
        service = BulkPipelineService(db)
        try:
            summary = await service.run_from_query(
                only_unenriched=only_unenriched,
                lead_ids=lead_ids,
                limit=limit,
                stop=job.stop,
                callbacks=BulkCallbacks(on_progress=on_progress, on_notify=on_notify),
                user_id=user_id
            )
            job.summary = summary
            job.status = (BulkJobStatus.PAUSED if summary.stopped else BulkJobStatus.COMPLETED).value
        except Exception as e:
            job.status = BulkJobStatus.FAILED.value
            job.error = str(e)
        finally:
            job.finished_at = datetime.now(timezone.utc)
