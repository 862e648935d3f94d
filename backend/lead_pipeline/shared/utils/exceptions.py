"""
Custom Exceptions for the Lead Enrichment Pipeline.

These exceptions provide clear, specific error handling for business logic scenarios.
"""
from typing import Optional


class EntityNotFoundError(Exception):
    """
    Raised when a requested entity does not exist in the database.
    """
    def __init__(self, entity_type: str, entity_id):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.message = f"{entity_type} with ID {entity_id} not found."
        super().__init__(self.message)


class CollaboratorError(Exception):
    """
    Raised when an enrichment function call fails.

    Covers transport errors (no status), non-2xx responses and
    undecodable bodies. The pipeline treats it like any other exception:
    critical steps let it propagate, best-effort steps log and absorb it.
    """
    def __init__(self, function_name: str, message: str, status_code: Optional[int] = None):
        self.function_name = function_name
        self.status_code = status_code
        self.message = message
        if status_code is not None:
            super().__init__(f"{function_name} failed ({status_code}): {message}")
        else:
            super().__init__(f"{function_name} failed: {message}")


class PipelineAlreadyRunningError(Exception):
    """
    Raised when a pipeline run is requested for a lead that already has one
    in flight in this process.

    Recovery:
        Wait for the running pipeline to finish, then re-fetch the lead.
    """
    def __init__(self, lead_id):
        self.lead_id = lead_id
        self.message = f"A pipeline run for lead {lead_id} is already in progress."
        super().__init__(self.message)


class BulkJobNotFoundError(Exception):
    """Raised when a bulk job ID is unknown (never created or already evicted)."""
    def __init__(self, job_id: str):
        self.job_id = job_id
        self.message = f"Bulk job {job_id} not found."
        super().__init__(self.message)
