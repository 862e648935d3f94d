"""
Domain Fallback Service
When the primary domain turns out parked or invalid, look for another domain
that a provider search already reported (it is in enrichment_logs) and switch
to the first one that validates.

Candidates are tried in order of the confidence the provider gave them.
Every attempt is written to enrichment_logs:
- rejected candidate  → domain_fallback_attempt
- accepted candidate  → domain_fallback + validate_domain
- nothing accepted    → domain_fallback_exhausted
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from lead_pipeline.modules.enrichment.constants import Collaborator, EnrichmentStatus
from lead_pipeline.modules.enrichment.repositories.lead_repository import LeadRepository
from lead_pipeline.modules.enrichment.services.enrichment_log import (
    DomainFallbackAttemptLog,
    DomainFallbackExhaustedLog,
    DomainFallbackLog,
    DomainValidationLog,
    alternative_domains,
)
from lead_pipeline.modules.enrichment.services.functions_client import functions_client

logger = logging.getLogger("domain_fallback_service")


@dataclass
class FallbackResult:
    success: bool
    fallback_domain: Optional[str] = None
    fallback_source: Optional[str] = None
    fallback_confidence: Optional[float] = None
    validation_data: Optional[Dict[str, Any]] = None
    tried_domains: List[str] = field(default_factory=list)


class DomainFallbackService:

    def __init__(self, db: AsyncSession, lead_repo: Optional[LeadRepository] = None, functions=None):
        self.db = db
        self.lead_repo = lead_repo or LeadRepository(db)
        self.functions = functions or functions_client

    async def attempt_fallback(
        self,
        lead_id: str,
        current_domain: str,
        enrichment_logs: List[Dict[str, Any]],
        tried_domains: Optional[List[str]] = None
    ) -> FallbackResult:
        """
        Try the alternative domains found in `enrichment_logs`.

        Validation errors for a single candidate skip that candidate. Errors
        writing the lead propagate to the caller.
        """
        tried = list(tried_domains or []) + [current_domain]
        candidates = alternative_domains(enrichment_logs, exclude=tried)

        logger.info(f"Fallback for lead {lead_id} ({current_domain}): {len(candidates)} candidates")

        for candidate in candidates:
            domain = candidate["domain"]
            try:
                validation = await self.functions.invoke(
                    Collaborator.VALIDATE_DOMAIN.value,
                    {"domain": domain}
                )
            except Exception as e:
                logger.error(f"Validation error for fallback candidate {domain}: {e}")
                tried.append(domain)
                continue

            is_valid = bool(validation.get("is_valid_domain"))
            is_parked = bool(validation.get("is_parked"))

            if is_valid and not is_parked:
                fallback_entry = DomainFallbackLog(
                    original_domain=current_domain,
                    new_domain=domain,
                    new_confidence=candidate["confidence"],
                    new_source=candidate["source"],
                    reason=(
                        f'Primary domain "{current_domain}" was parked/invalid. Falling back to '
                        f'"{domain}" from {candidate["source"]} with {candidate["confidence"]}% confidence.'
                    ),
                    validation_result=validation,
                )
                validation_entry = DomainValidationLog(
                    domain=domain,
                    is_valid=is_valid,
                    is_parked=is_parked,
                    reason=validation.get("reason"),
                    http_status=validation.get("http_status"),
                )

                await self.lead_repo.append_logs(
                    lead_id,
                    [fallback_entry.to_log(), validation_entry.to_log()],
                    domain=domain,
                    source_url=domain,
                    enrichment_source=candidate["source"],
                    enrichment_confidence=int(candidate["confidence"]),
                    enrichment_status=EnrichmentStatus.VALIDATED.value,
                    email_domain_validated=True,
                    match_score=None,
                    match_score_source=None,
                )

                logger.info(f"✅ Lead {lead_id} switched from {current_domain} to {domain}")
                return FallbackResult(
                    success=True,
                    fallback_domain=domain,
                    fallback_source=candidate["source"],
                    fallback_confidence=candidate["confidence"],
                    validation_data=validation,
                    tried_domains=tried,
                )

            tried.append(domain)
            attempt_entry = DomainFallbackAttemptLog(
                domain=domain,
                confidence=candidate["confidence"],
                source=candidate["source"],
                reason=f'Tried "{domain}" as fallback but it was {"parked" if is_parked else "invalid"}',
                validation_result=validation,
            )
            await self.lead_repo.append_logs(lead_id, [attempt_entry.to_log()])

        exhausted_entry = DomainFallbackExhaustedLog(
            original_domain=current_domain,
            tried_domains=tried,
            reason=(
                f"No valid alternative domain found. Tried {len(tried)} domains, "
                f"all were parked or invalid."
            ),
        )
        await self.lead_repo.append_logs(lead_id, [exhausted_entry.to_log()])

        logger.info(f"No valid alternative domain for lead {lead_id}")
        return FallbackResult(success=False, tried_domains=tried)
