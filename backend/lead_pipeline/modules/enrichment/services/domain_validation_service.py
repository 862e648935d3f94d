"""
Domain Validation Service
Validates a candidate domain and persists the outcome on the lead.

Shared by the pipeline's "Validating Domain" step and the standalone
Validate Domain action, so both persist the same shape:

- one `step: validate_domain` entry appended to enrichment_logs
- domain, source_url, email_domain_validated, enrichment_status
- match_score / match_score_source placeholder:
    valid and not parked → None / None (scoring still pending)
    parked               → 25 / "parked_domain"
    invalid              → 0 / "invalid_domain"
- enrichment_confidence, when a confidence was supplied (0 if not valid)
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from lead_pipeline.modules.enrichment.constants import (
    Collaborator,
    EnrichmentStatus,
    MatchScoreSource,
)
from lead_pipeline.modules.enrichment.repositories.lead_repository import LeadRepository
from lead_pipeline.modules.enrichment.services.enrichment_log import DomainValidationLog
from lead_pipeline.modules.enrichment.services.functions_client import functions_client
from lead_pipeline.shared.core.config import settings

logger = logging.getLogger("domain_validation_service")


@dataclass
class DomainValidationOutcome:
    """Result of validate_and_save_domain. Never raised, always returned."""
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[Exception] = None

    @property
    def is_valid(self) -> bool:
        return bool(self.data and self.data.get("is_valid_domain"))

    @property
    def is_parked(self) -> bool:
        return bool(self.data and self.data.get("is_parked"))

    @property
    def usable(self) -> bool:
        """Valid and not parked: scoring can run against this domain."""
        return self.success and self.is_valid and not self.is_parked


def placeholder_match_score(is_valid: bool, is_parked: bool) -> Dict[str, Any]:
    """match_score columns implied by a validation result."""
    if is_parked:
        return {
            "match_score": settings.PARKED_DOMAIN_SCORE,
            "match_score_source": MatchScoreSource.PARKED_DOMAIN.value,
        }
    if not is_valid:
        return {
            "match_score": settings.INVALID_DOMAIN_SCORE,
            "match_score_source": MatchScoreSource.INVALID_DOMAIN.value,
        }
    return {"match_score": None, "match_score_source": None}


def enrichment_status_for(is_valid: bool, is_parked: bool) -> str:
    if is_parked:
        return EnrichmentStatus.PARKED.value
    if not is_valid:
        return EnrichmentStatus.INVALID.value
    return EnrichmentStatus.VALIDATED.value


class DomainValidationService:
    """Validate-and-save for a single lead's domain."""

    def __init__(self, db: AsyncSession, lead_repo: Optional[LeadRepository] = None, functions=None):
        self.db = db
        self.lead_repo = lead_repo or LeadRepository(db)
        self.functions = functions or functions_client

    async def validate_and_save_domain(
        self,
        lead_id: str,
        domain: str,
        source_url: Optional[str] = None,
        confidence: Optional[float] = None,
        current_logs: Optional[List[Dict[str, Any]]] = None
    ) -> DomainValidationOutcome:
        """
        Validate `domain` via validate-domain and persist the outcome.

        Args:
            lead_id: Lead to update
            domain: Candidate domain (non-empty)
            source_url: Page the domain came from; defaults to the domain
            confidence: Persisted as enrichment_confidence if given
            current_logs: The caller's view of enrichment_logs; merged with
                the stored array, never used to replace it

        Returns:
            DomainValidationOutcome; errors are captured, never raised
        """
        try:
            if not domain:
                raise ValueError("domain is required")

            data = await self.functions.invoke(
                Collaborator.VALIDATE_DOMAIN.value,
                {"domain": domain}
            )

            is_valid = bool(data.get("is_valid_domain"))
            is_parked = bool(data.get("is_parked"))

            entry = DomainValidationLog(
                domain=domain,
                is_valid=is_valid,
                is_parked=is_parked,
                reason=data.get("reason"),
                http_status=data.get("http_status"),
            )

            values: Dict[str, Any] = {
                "domain": domain,
                "source_url": source_url or domain,
                "email_domain_validated": is_valid,
                "enrichment_status": enrichment_status_for(is_valid, is_parked),
                **placeholder_match_score(is_valid, is_parked),
            }
            if confidence is not None:
                values["enrichment_confidence"] = int(confidence) if is_valid else 0

            await self.lead_repo.append_logs(
                lead_id,
                [entry.to_log()],
                held_logs=current_logs,
                **values
            )

            logger.info(
                f"Domain {domain} for lead {lead_id}: valid={is_valid} parked={is_parked} "
                f"({data.get('reason')})"
            )

            return DomainValidationOutcome(success=True, data={
                "is_valid_domain": is_valid,
                "is_parked": is_parked,
                "reason": data.get("reason"),
                "http_status": data.get("http_status"),
            })

        except Exception as e:
            logger.error(f"❌ Domain validation failed for lead {lead_id} ({domain}): {e}")
            return DomainValidationOutcome(success=False, error=e)
