"""
Shared Utility Functions
"""
from lead_pipeline.shared.utils.json_utils import safe_json_parse, ensure_list
from lead_pipeline.shared.utils.exceptions import (
    EntityNotFoundError,
    CollaboratorError,
    PipelineAlreadyRunningError,
    BulkJobNotFoundError,
)

__all__ = [
    "safe_json_parse",
    "ensure_list",
    "EntityNotFoundError",
    "CollaboratorError",
    "PipelineAlreadyRunningError",
    "BulkJobNotFoundError",
]
