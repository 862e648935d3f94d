"""
Step Table
Per-function failure policy for the enrichment pipeline.

CRITICAL     errors propagate to the pipeline's top-level handler and abort
             the remaining steps
BEST_EFFORT  errors are logged and absorbed; the pipeline continues

Keeping the classification in one table makes the failure policy auditable
without reading the control flow.
"""
import logging
from enum import Enum
from typing import Any, Dict, Optional

from lead_pipeline.modules.enrichment.constants import Collaborator

logger = logging.getLogger("step_table")


class StepPolicy(str, Enum):
    CRITICAL = "critical"
    BEST_EFFORT = "best_effort"


STEP_POLICIES: Dict[Collaborator, StepPolicy] = {
    Collaborator.ENRICH_LEAD: StepPolicy.CRITICAL,
    Collaborator.VALIDATE_DOMAIN: StepPolicy.CRITICAL,
    Collaborator.FIND_COMPANY_COORDINATES: StepPolicy.CRITICAL,
    Collaborator.CALCULATE_DISTANCE: StepPolicy.CRITICAL,
    Collaborator.SCORE_DOMAIN_RELEVANCE: StepPolicy.CRITICAL,
    Collaborator.CALCULATE_MATCH_SCORE: StepPolicy.CRITICAL,
    Collaborator.SEARCH_FACEBOOK: StepPolicy.BEST_EFFORT,
    Collaborator.SEARCH_LINKEDIN: StepPolicy.BEST_EFFORT,
    Collaborator.SEARCH_INSTAGRAM: StepPolicy.BEST_EFFORT,
    Collaborator.SCORE_SOCIAL_RELEVANCE: StepPolicy.CRITICAL,
    Collaborator.ENRICH_COMPANY_DETAILS: StepPolicy.CRITICAL,
    Collaborator.FIND_COMPANY_CONTACTS: StepPolicy.CRITICAL,
    Collaborator.GET_COMPANY_NEWS: StepPolicy.CRITICAL,
    Collaborator.DIAGNOSE_ENRICHMENT: StepPolicy.CRITICAL,
    Collaborator.ENRICH_CONTACT: StepPolicy.BEST_EFFORT,
    Collaborator.SEND_TO_CLAY: StepPolicy.BEST_EFFORT,
    Collaborator.ENRICH_COMPANY_CLAY: StepPolicy.BEST_EFFORT,
}


def policy_for(function: Collaborator) -> StepPolicy:
    """Unlisted functions are critical."""
    return STEP_POLICIES.get(function, StepPolicy.CRITICAL)


async def call_step(functions, function: Collaborator, body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Invoke a function under its policy.

    Returns:
        The function's response, or None if a best-effort call failed
    """
    if policy_for(function) == StepPolicy.CRITICAL:
        return await functions.invoke(function.value, body)

    try:
        return await functions.invoke(function.value, body)
    except Exception as e:
        logger.error(f"{function.value} failed (continuing pipeline): {e}")
        return None
