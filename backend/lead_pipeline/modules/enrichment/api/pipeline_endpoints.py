"""
Enrichment Pipeline API Endpoints
Run the pipeline for one lead, validate a lead's domain, and manage bulk runs.
"""
import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from lead_pipeline.modules.enrichment.repositories.lead_repository import LeadRepository
from lead_pipeline.modules.enrichment.schemas.pipeline_schemas import (
    BulkJobResponse,
    BulkRunRequest,
    PipelineRunRequest,
    PipelineRunResponse,
    ValidateDomainRequest,
    ValidateDomainResponse,
)
from lead_pipeline.modules.enrichment.services.bulk_pipeline_service import (
    BulkJob,
    bulk_job_registry,
    run_bulk_job,
)
from lead_pipeline.modules.enrichment.services.domain_validation_service import DomainValidationService
from lead_pipeline.modules.enrichment.services.pipeline_service import (
    PipelineCallbacks,
    PipelineResult,
    PipelineService,
)
from lead_pipeline.shared.db.session import get_db
from lead_pipeline.shared.utils.exceptions import (
    BulkJobNotFoundError,
    EntityNotFoundError,
    PipelineAlreadyRunningError,
)

router = APIRouter()
logger = logging.getLogger("pipeline_api")


def _run_response(result: PipelineResult) -> PipelineRunResponse:
    return PipelineRunResponse.model_validate(asdict(result))


def _job_response(job: BulkJob) -> BulkJobResponse:
    return BulkJobResponse(
        job_id=job.id,
        status=job.status,
        stop_requested=job.stop.requested,
        progress=asdict(job.progress) if job.progress else None,
        summary=asdict(job.summary) if job.summary else None,
        notifications=[asdict(n) for n in job.notifications],
        error=job.error,
        created_at=job.created_at,
        finished_at=job.finished_at,
    )


# ============================================
# SINGLE-LEAD PIPELINE
# ============================================

@router.post("/leads/{lead_id}/run", response_model=PipelineRunResponse)
async def run_pipeline(
    lead_id: str,
    request: Optional[PipelineRunRequest] = None,
    db: AsyncSession = Depends(get_db)
):
    """
    Run the full enrichment pipeline for one lead and wait for it to finish.

    - 404 if the lead does not exist
    - 409 if a run for this lead is already in progress
    - 502 if a critical enrichment step failed (partial results stay on the lead)
    """
    user_id = request.user_id if request else None
    service = PipelineService(db)
    captured = {}

    def on_complete(result: PipelineResult) -> None:
        captured["result"] = result

    logger.info(f"🚀 Pipeline requested for lead {lead_id}")

    try:
        result = await service.run_for_lead_id(
            lead_id,
            PipelineCallbacks(on_complete=on_complete),
            user_id=user_id
        )
        return _run_response(result)

    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except PipelineAlreadyRunningError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except Exception as e:
        failed = captured.get("result")
        detail = _run_response(failed).model_dump() if failed else {"lead_id": lead_id, "error": str(e)}
        raise HTTPException(status_code=502, detail=detail)


@router.post("/leads/{lead_id}/validate-domain", response_model=ValidateDomainResponse)
async def validate_domain(
    lead_id: str,
    request: ValidateDomainRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Standalone Validate Domain action.

    Persists exactly what the pipeline's validation step persists.
    Uses the lead's stored domain when the request does not name one.
    """
    repo = LeadRepository(db)
    lead = await repo.get_fields(lead_id, "domain", "source_url", "enrichment_logs")
    if lead is None:
        raise HTTPException(status_code=404, detail=f"Lead with ID {lead_id} not found.")

    domain = (request.domain or lead.get("domain") or "").strip()
    if not domain:
        raise HTTPException(status_code=400, detail="Lead has no domain to validate.")

    service = DomainValidationService(db, lead_repo=repo)
    outcome = await service.validate_and_save_domain(
        lead_id,
        domain,
        source_url=request.source_url or (lead.get("source_url") if not request.domain else None),
        confidence=request.confidence,
        current_logs=lead.get("enrichment_logs") or []
    )

    return ValidateDomainResponse(
        success=outcome.success,
        lead_id=lead_id,
        domain=domain,
        data=outcome.data,
        error=str(outcome.error) if outcome.error else None,
    )


# ============================================
# BULK RUNS
# ============================================

@router.post("/bulk", response_model=BulkJobResponse, status_code=202)
async def start_bulk_run(
    request: BulkRunRequest,
    background_tasks: BackgroundTasks
):
    """
    Start a bulk run in the background. Poll GET /bulk/{job_id} for progress.
    """
    job = bulk_job_registry.create()
    background_tasks.add_task(
        run_bulk_job,
        job,
        only_unenriched=request.only_unenriched,
        lead_ids=request.lead_ids,
        limit=request.limit,
        user_id=request.user_id,
    )
    logger.info(f"📦 Bulk job {job.id} queued")
    return _job_response(job)


@router.get("/bulk/{job_id}", response_model=BulkJobResponse)
async def get_bulk_run(job_id: str):
    try:
        return _job_response(bulk_job_registry.get(job_id))
    except BulkJobNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.post("/bulk/{job_id}/stop", response_model=BulkJobResponse)
async def stop_bulk_run(job_id: str):
    """
    Pause a bulk run. The lead in progress finishes first; no new lead starts.
    """
    try:
        return _job_response(bulk_job_registry.request_stop(job_id))
    except BulkJobNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
