"""
Pydantic Schemas for Pipeline API
Request/Response models for the pipeline endpoints.
"""
from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


# ============================================
# SHARED
# ============================================

class NotificationSchema(BaseModel):
    title: str
    description: str
    variant: str = "default"


# ============================================
# SINGLE-LEAD PIPELINE
# ============================================

class PipelineRunRequest(BaseModel):
    """Optional body for a pipeline run."""
    user_id: Optional[str] = Field(None, description="Operator ID forwarded to find-company-contacts")


class PipelineRunResponse(BaseModel):
    lead_id: str
    outcome: Optional[str] = Field(None, description="full | no_domain | low_score | failed")
    domain: Optional[str] = None
    match_score: Optional[float] = None
    duration_seconds: Optional[float] = None
    steps: List[str] = []
    notifications: List[NotificationSchema] = []
    error: Optional[str] = None


# ============================================
# DOMAIN VALIDATION
# ============================================

class ValidateDomainRequest(BaseModel):
    domain: Optional[str] = Field(None, description="Defaults to the lead's stored domain")
    source_url: Optional[str] = None
    confidence: Optional[float] = Field(None, ge=0, le=100)


class DomainValidationData(BaseModel):
    is_valid_domain: bool
    is_parked: bool
    reason: Optional[str] = None
    http_status: Optional[int] = None


class ValidateDomainResponse(BaseModel):
    success: bool
    lead_id: str
    domain: str
    data: Optional[DomainValidationData] = None
    error: Optional[str] = None


# ============================================
# BULK
# ============================================

class BulkRunRequest(BaseModel):
    only_unenriched: bool = Field(True, description="Skip leads that already have a domain or match score")
    lead_ids: Optional[List[str]] = Field(None, description="Restrict the run to these leads")
    limit: int = Field(500, ge=1, le=5000)
    user_id: Optional[str] = None


class BulkProgressSchema(BaseModel):
    current: int
    total: int
    current_company: Optional[str] = None
    current_step: Optional[str] = None


class BulkSummarySchema(BaseModel):
    total: int
    processed: int
    succeeded: int
    failed: int
    stopped: bool
    errors: List[Dict[str, Any]] = []


class BulkJobResponse(BaseModel):
    job_id: str
    status: str
    stop_requested: bool = False
    progress: Optional[BulkProgressSchema] = None
    summary: Optional[BulkSummarySchema] = None
    notifications: List[NotificationSchema] = []
    error: Optional[str] = None
    created_at: datetime
    finished_at: Optional[datetime] = None
