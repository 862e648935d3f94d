"""
Enrichment Pipeline Service
Drives one lead through the full enrichment sequence.

Two flows run side by side:

  Fork A (contact)   enrich-contact → send-to-clay if a contact LinkedIn was found
                     Best-effort. Joined before the run reports completion.

  Fork B (company)   enrich-lead apollo → google → email
                     if a domain was found:
                         enrich-company-clay (best-effort)
                         validate domain
                         valid:          coordinates → distance → relevance → match score
                         parked/invalid: fixed match score (25 / 0)
                     social searches (fan-out) → social relevance scoring
                     score > threshold:  company details → contacts → news
                     no domain:          match score → diagnosis

Every enrichment function persists its own result to the lead row, so the
service re-reads the columns each next step needs instead of trusting
responses. Progress goes out through PipelineCallbacks; the presentation
layer owns its own state.
"""
import asyncio
import inspect
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from lead_pipeline.modules.enrichment.constants import (
    Collaborator,
    DomainSource,
    NotificationVariant,
    PipelineOutcome,
    PipelineStep,
    SocialPlatform,
    PERSONAL_EMAIL_DOMAINS,
)
from lead_pipeline.modules.enrichment.repositories.lead_repository import LeadRepository
from lead_pipeline.modules.enrichment.services.domain_fallback_service import DomainFallbackService
from lead_pipeline.modules.enrichment.services.domain_validation_service import (
    DomainValidationOutcome,
    DomainValidationService,
    placeholder_match_score,
)
from lead_pipeline.modules.enrichment.services.enrichment_log import (
    domain_log_entries,
    social_results,
)
from lead_pipeline.modules.enrichment.services.functions_client import functions_client
from lead_pipeline.modules.enrichment.services.step_table import call_step
from lead_pipeline.shared.core.config import settings
from lead_pipeline.shared.core.logging import bind_correlation_id, correlation_id_var
from lead_pipeline.shared.utils.exceptions import EntityNotFoundError, PipelineAlreadyRunningError

logger = logging.getLogger("pipeline_service")


# ============================================
# RESULT & CALLBACK TYPES
# ============================================

@dataclass
class Notification:
    """One user-facing message (toast)."""
    title: str
    description: str
    variant: str = NotificationVariant.DEFAULT.value


@dataclass
class PipelineResult:
    lead_id: str
    outcome: Optional[str] = None
    domain: Optional[str] = None
    match_score: Optional[float] = None
    duration_seconds: Optional[float] = None
    steps: List[str] = field(default_factory=list)
    notifications: List[Notification] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class PipelineCallbacks:
    """
    Optional hooks, each may be a plain function or a coroutine function.

    on_step              step name, None once the run has finished
    on_progress          {"domain_validated": bool, "socials_searched": bool}
    on_notify            Notification
    on_contact_enriched  enrich-contact response (steps, enrichedContact)
    on_refresh           the lead row changed in a way worth re-rendering
    on_complete          PipelineResult, on success and on failure
    """
    on_step: Optional[Callable[[Optional[str]], Any]] = None
    on_progress: Optional[Callable[[Dict[str, bool]], Any]] = None
    on_notify: Optional[Callable[[Notification], Any]] = None
    on_contact_enriched: Optional[Callable[[Dict[str, Any]], Any]] = None
    on_refresh: Optional[Callable[[], Any]] = None
    on_complete: Optional[Callable[[PipelineResult], Any]] = None


async def _emit(callback: Optional[Callable], *args) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


# ============================================
# PER-LEAD RUN REGISTRY
# ============================================

class PipelineRunRegistry:
    """
    Tracks which leads have a run in flight in this process.

    A second run for the same lead is refused instead of interleaving writes
    with the first. Runs for different leads never block each other.
    """

    def __init__(self):
        self._running: set = set()

    def is_running(self, lead_id: str) -> bool:
        return lead_id in self._running

    @contextmanager
    def hold(self, lead_id: str):
        if lead_id in self._running:
            raise PipelineAlreadyRunningError(lead_id)
        self._running.add(lead_id)
        try:
            yield
        finally:
            self._running.discard(lead_id)


pipeline_run_registry = PipelineRunRegistry()


class _RunReporter:
    """Records what a run reported while forwarding it to the callbacks."""

    def __init__(self, callbacks: PipelineCallbacks, result: PipelineResult):
        self.callbacks = callbacks
        self.result = result
        self.progress = {"domain_validated": False, "socials_searched": False}

    async def step(self, name: Optional[str]) -> None:
        if name is not None:
            self.result.steps.append(name)
            logger.info(f"[{self.result.lead_id}] {name}")
        await _emit(self.callbacks.on_step, name)

    async def mark(self, **flags: bool) -> None:
        self.progress.update(flags)
        await _emit(self.callbacks.on_progress, dict(self.progress))

    async def notify(self, title: str, description: str, destructive: bool = False) -> None:
        variant = NotificationVariant.DESTRUCTIVE if destructive else NotificationVariant.DEFAULT
        notification = Notification(title=title, description=description, variant=variant.value)
        self.result.notifications.append(notification)
        await _emit(self.callbacks.on_notify, notification)

    async def refresh(self) -> None:
        await _emit(self.callbacks.on_refresh)


def _format_score(score: Optional[float]) -> str:
    if score is None:
        return "n/a"
    return f"{score:g}" if isinstance(score, float) else str(score)


def _validation_notification(outcome: DomainValidationOutcome) -> Dict[str, Any]:
    data = outcome.data or {}
    if not outcome.success:
        title = "Domain Invalid"
    elif outcome.is_parked:
        title = "Domain Parked/For Sale"
    elif outcome.is_valid:
        title = "Domain Valid"
    else:
        title = "Domain Invalid"

    if data.get("reason"):
        description = data["reason"]
    elif not outcome.success or not outcome.is_valid:
        description = "Domain validation failed"
    else:
        description = "Domain validated successfully"

    destructive = not outcome.success or (not outcome.is_valid and not outcome.is_parked)
    return {"title": title, "description": description, "destructive": destructive}


# ============================================
# SERVICE
# ============================================

class PipelineService:
    """
    Orchestrates the enrichment functions for one lead at a time.

    Usage:
        service = PipelineService(db)
        result = await service.run_for_lead_id(lead_id, PipelineCallbacks(on_step=print))
    """

    def __init__(
        self,
        db: AsyncSession,
        lead_repo: Optional[LeadRepository] = None,
        functions=None,
        registry: Optional[PipelineRunRegistry] = None
    ):
        self.db = db
        self.lead_repo = lead_repo or LeadRepository(db)
        self.functions = functions or functions_client
        self.registry = registry or pipeline_run_registry
        self.validator = DomainValidationService(db, self.lead_repo, self.functions)
        self.fallback = DomainFallbackService(db, self.lead_repo, self.functions)

    async def run_for_lead_id(
        self,
        lead_id: str,
        callbacks: Optional[PipelineCallbacks] = None,
        user_id: Optional[str] = None
    ) -> PipelineResult:
        """Load the lead's snapshot and run the pipeline on it."""
        lead = await self.lead_repo.get_snapshot(lead_id)
        if lead is None:
            raise EntityNotFoundError("Lead", lead_id)
        return await self.run(lead, callbacks, user_id=user_id or lead.get("user_id"))

    async def run(
        self,
        lead: Dict[str, Any],
        callbacks: Optional[PipelineCallbacks] = None,
        user_id: Optional[str] = None
    ) -> PipelineResult:
        """
        Run the full pipeline for one lead snapshot.

        Args:
            lead: id plus input columns (company, city, state, zipcode, email,
                full_name, domain, category, dma, mics_*)
            callbacks: progress hooks
            user_id: operator ID forwarded to find-company-contacts

        Returns:
            PipelineResult with the outcome and duration

        Raises:
            PipelineAlreadyRunningError: the lead already has a run in flight
            Exception: whatever a critical step raised, after the failure
                has been reported through the callbacks
        """
        lead_id = lead["id"]
        callbacks = callbacks or PipelineCallbacks()
        result = PipelineResult(lead_id=lead_id)
        reporter = _RunReporter(callbacks, result)

        with self.registry.hold(lead_id):
            token = bind_correlation_id("run")
            start_time = time.monotonic()
            contact_task: Optional[asyncio.Task] = None

            try:
                await reporter.step(PipelineStep.RUNNING)
                await reporter.mark(domain_validated=False, socials_searched=False)

                contact_task = asyncio.create_task(self._enrich_contact(lead, callbacks))

                await reporter.step(PipelineStep.FINDING_DOMAIN)
                await self._discover_domain(lead)

                discovered = await self.lead_repo.get_fields(
                    lead_id,
                    "domain", "enrichment_logs", "source_url",
                    "enrichment_confidence", "enrichment_source"
                ) or {}
                domain = discovered.get("domain")
                domain_found = bool(domain)
                match_score = None

                logger.info(
                    f"Domain discovery for lead {lead_id}: domain={domain} "
                    f"confidence={discovered.get('enrichment_confidence')} "
                    f"source={discovered.get('enrichment_source')}"
                )
                if not domain_found:
                    reported = domain_log_entries(discovered.get("enrichment_logs") or [])
                    if reported:
                        logger.warning(f"Domains reported in logs but not saved: {reported}")

                if domain_found:
                    await reporter.step(PipelineStep.ENRICHING_CLAY)
                    await call_step(self.functions, Collaborator.ENRICH_COMPANY_CLAY, {"domain": domain})

                    match_score, domain = await self._validate_and_score(lead, discovered, reporter)

                social_logs = await self._search_and_score_socials(lead, reporter)

                if match_score is not None and match_score > settings.MATCH_SCORE_THRESHOLD:
                    await self._enrich_company(lead, domain, user_id, reporter)
                    await contact_task

                    result.outcome = PipelineOutcome.FULL.value
                    await reporter.notify(
                        "Full Pipeline Complete",
                        f"Enriched {domain} (Score: {_format_score(match_score)})"
                    )

                elif not domain_found:
                    match_score = await self._diagnose(lead, social_logs, reporter)
                    await contact_task

                    result.outcome = PipelineOutcome.NO_DOMAIN.value
                    await reporter.notify(
                        "Pipeline Complete",
                        "No domain found. Socials searched, validated, score calculated & AI diagnosis generated."
                    )

                else:
                    await contact_task

                    result.outcome = PipelineOutcome.LOW_SCORE.value
                    await reporter.notify(
                        "Pipeline Complete",
                        f"Domain found (Score: {_format_score(match_score)}). Socials searched and validated."
                    )

                result.domain = domain
                result.match_score = match_score
                await reporter.refresh()
                return result

            except Exception as e:
                logger.error(f"❌ Pipeline failed for lead {lead_id}: {e}")
                result.outcome = PipelineOutcome.FAILED.value
                result.error = str(e)
                await reporter.notify("Pipeline Failed", str(e), destructive=True)
                raise

            finally:
                # Fork A runs to completion even when Fork B failed
                if contact_task is not None and not contact_task.done():
                    await asyncio.gather(contact_task, return_exceptions=True)

                result.duration_seconds = round(time.monotonic() - start_time, 3)
                logger.info(f"Pipeline for lead {lead_id} finished in {result.duration_seconds}s ({result.outcome})")
                await reporter.step(None)
                await _emit(callbacks.on_complete, result)
                correlation_id_var.reset(token)

    # ============================================
    # FORK A: CONTACT
    # ============================================

    async def _enrich_contact(self, lead: Dict[str, Any], callbacks: PipelineCallbacks) -> None:
        """Never raises: contact enrichment cannot fail the pipeline."""
        lead_id = lead["id"]
        try:
            if not lead.get("email"):
                logger.info(f"Skipping contact enrichment for lead {lead_id} - no email")
                return

            data = await call_step(self.functions, Collaborator.ENRICH_CONTACT, {
                "leadId": lead_id,
                "full_name": lead.get("full_name"),
                "email": lead.get("email"),
                "domain": lead.get("domain"),
                "company": lead.get("company"),
            })
            if data is None:
                return

            logger.info(f"Contact enrichment completed for lead {lead_id}")
            await _emit(callbacks.on_contact_enriched, data)

            enriched = await self.lead_repo.get_fields(lead_id, "contact_linkedin") or {}
            contact_linkedin = enriched.get("contact_linkedin")
            if contact_linkedin:
                logger.info(f"Sending contact to Clay with LinkedIn {contact_linkedin}")
                await call_step(self.functions, Collaborator.SEND_TO_CLAY, {
                    "fullName": lead.get("full_name"),
                    "email": lead.get("email"),
                    "linkedin": contact_linkedin,
                })
        except Exception as e:
            logger.error(f"Contact enrichment failed for lead {lead_id}: {e}")

    # ============================================
    # FORK B: COMPANY
    # ============================================

    @staticmethod
    def _use_email_source(email: Optional[str]) -> bool:
        if not email or "@" not in email:
            return False
        return email.rsplit("@", 1)[1].strip().lower() not in PERSONAL_EMAIL_DOMAINS

    async def _discover_domain(self, lead: Dict[str, Any]) -> None:
        """Apollo, then Google, then the email domain. Later finds overwrite earlier ones."""
        for source in DomainSource:
            if source == DomainSource.EMAIL and not self._use_email_source(lead.get("email")):
                if lead.get("email"):
                    logger.info(f"Skipping email source - personal email domain ({lead['email']})")
                continue

            await call_step(self.functions, Collaborator.ENRICH_LEAD, {
                "leadId": lead["id"],
                "company": lead.get("company"),
                "city": lead.get("city"),
                "state": lead.get("state"),
                "mics_sector": lead.get("mics_sector"),
                "email": lead.get("email"),
                "source": source.value,
            })

    async def _validate_and_score(
        self,
        lead: Dict[str, Any],
        discovered: Dict[str, Any],
        reporter: _RunReporter
    ):
        """
        Validate the discovered domain, then score it.

        Returns:
            (match_score or None, domain the rest of the run should use)
        """
        lead_id = lead["id"]
        domain = discovered["domain"]

        await reporter.step(PipelineStep.VALIDATING_DOMAIN)
        outcome = await self.validator.validate_and_save_domain(
            lead_id,
            domain,
            discovered.get("source_url"),
            None,
            discovered.get("enrichment_logs") or []
        )
        if outcome.success:
            await reporter.mark(domain_validated=True)

        await reporter.notify(**_validation_notification(outcome))
        await reporter.refresh()

        if not outcome.success:
            logger.warning(f"Skipping domain scoring for lead {lead_id}: validation call failed")
            return None, domain

        usable = outcome.usable

        if not usable and settings.DOMAIN_FALLBACK_ENABLED:
            await reporter.step(PipelineStep.FINDING_ALTERNATIVE_DOMAIN)
            latest = await self.lead_repo.get_fields(lead_id, "enrichment_logs") or {}
            fallback = await self.fallback.attempt_fallback(
                lead_id, domain, latest.get("enrichment_logs") or []
            )
            if fallback.success:
                domain = fallback.fallback_domain
                usable = True
                await reporter.notify(
                    "Alternative Domain Found",
                    f"Switched from {'parked' if outcome.is_parked else 'invalid'} domain to {domain} "
                    f"({fallback.fallback_confidence}% confidence from {fallback.fallback_source})"
                )
                await reporter.refresh()
            else:
                await reporter.notify(
                    "No Valid Alternative Found",
                    f"Primary domain is {'parked' if outcome.is_parked else 'invalid'} and no valid "
                    f"alternatives exist in enrichment logs.",
                    destructive=True
                )

        if not usable:
            values = placeholder_match_score(outcome.is_valid, outcome.is_parked)
            await self.lead_repo.update_fields(lead_id, **values)
            return values["match_score"], domain

        await reporter.step(PipelineStep.FINDING_COORDINATES)
        await call_step(self.functions, Collaborator.FIND_COMPANY_COORDINATES, {
            "leadId": lead_id,
            "domain": domain,
            "sourceUrl": domain,
        })

        coords = await self.lead_repo.get_fields(lead_id, "latitude", "longitude") or {}
        if coords.get("latitude") is not None and coords.get("longitude") is not None:
            await reporter.step(PipelineStep.CALCULATING_DISTANCE)
            await call_step(self.functions, Collaborator.CALCULATE_DISTANCE, {
                "leadId": lead_id,
                "city": lead.get("city"),
                "state": lead.get("state"),
                "zipcode": lead.get("zipcode"),
                "latitude": coords["latitude"],
                "longitude": coords["longitude"],
            })

        await reporter.step(PipelineStep.SCORING_DOMAIN_RELEVANCE)
        await call_step(self.functions, Collaborator.SCORE_DOMAIN_RELEVANCE, {
            "leadId": lead_id,
            "companyName": lead.get("company"),
            "domain": domain,
            "city": lead.get("city"),
            "state": lead.get("state"),
            "dma": lead.get("dma"),
        })

        await reporter.step(PipelineStep.CALCULATING_MATCH_SCORE)
        await call_step(self.functions, Collaborator.CALCULATE_MATCH_SCORE, {"leadId": lead_id})

        scored = await self.lead_repo.get_fields(lead_id, "match_score") or {}
        return scored.get("match_score"), domain

    async def _search_and_score_socials(self, lead: Dict[str, Any], reporter: _RunReporter) -> List[Dict[str, Any]]:
        """
        Search all platforms at once, then score what was found.

        Returns:
            enrichment_logs as read after the searches
        """
        lead_id = lead["id"]
        search_body = {
            "leadId": lead_id,
            "company": lead.get("company"),
            "city": lead.get("city"),
            "state": lead.get("state"),
        }

        await reporter.step(PipelineStep.SEARCHING_SOCIALS)
        await asyncio.gather(*[
            call_step(self.functions, platform.search_function, search_body)
            for platform in SocialPlatform
        ])
        await reporter.mark(socials_searched=True)

        await reporter.step(PipelineStep.VALIDATING_SOCIALS)
        socials = await self.lead_repo.get_fields(
            lead_id, "enrichment_logs", "facebook", "linkedin", "instagram"
        ) or {}
        logs = socials.get("enrichment_logs") or []

        await call_step(self.functions, Collaborator.SCORE_SOCIAL_RELEVANCE, {
            "leadId": lead_id,
            "company": lead.get("company"),
            "city": lead.get("city"),
            "state": lead.get("state"),
            "mics_sector": lead.get("mics_sector"),
            "mics_subsector": lead.get("mics_subsector"),
            "mics_segment": lead.get("mics_segment"),
            "facebookResults": social_results(logs, SocialPlatform.FACEBOOK, socials.get("facebook")),
            "linkedinResults": social_results(logs, SocialPlatform.LINKEDIN, socials.get("linkedin")),
            "instagramResults": social_results(logs, SocialPlatform.INSTAGRAM, socials.get("instagram")),
        })

        return logs

    async def _enrich_company(
        self,
        lead: Dict[str, Any],
        domain: str,
        user_id: Optional[str],
        reporter: _RunReporter
    ) -> None:
        """Company details → contacts → news, for leads that scored high enough."""
        lead_id = lead["id"]
        scored = await self.lead_repo.get_fields(lead_id, "enrichment_source", "apollo_not_found") or {}

        await reporter.step(PipelineStep.ENRICHING_COMPANY)
        await call_step(self.functions, Collaborator.ENRICH_COMPANY_DETAILS, {
            "leadId": lead_id,
            "domain": domain,
            "enrichmentSource": scored.get("enrichment_source"),
            "apolloNotFound": scored.get("apollo_not_found"),
        })

        await reporter.step(PipelineStep.FINDING_CONTACTS)
        await call_step(self.functions, Collaborator.FIND_COMPANY_CONTACTS, {
            "leadId": lead_id,
            "domain": domain,
            "category": lead.get("category"),
            "userId": user_id,
        })

        await reporter.step(PipelineStep.GETTING_NEWS)
        await call_step(self.functions, Collaborator.GET_COMPANY_NEWS, {
            "leadId": lead_id,
            "company": lead.get("company"),
            "domain": domain,
        })

    async def _diagnose(
        self,
        lead: Dict[str, Any],
        enrichment_logs: List[Dict[str, Any]],
        reporter: _RunReporter
    ) -> Optional[float]:
        """Score and diagnose a lead no source found a domain for. Returns the stored score."""
        lead_id = lead["id"]

        await reporter.step(PipelineStep.CALCULATING_SCORE)
        await call_step(self.functions, Collaborator.CALCULATE_MATCH_SCORE, {"leadId": lead_id})

        await reporter.step(PipelineStep.DIAGNOSING)
        await call_step(self.functions, Collaborator.DIAGNOSE_ENRICHMENT, {
            "leadId": lead_id,
            "leadData": {
                "company": lead.get("company"),
                "city": lead.get("city"),
                "state": lead.get("state"),
                "zipcode": lead.get("zipcode"),
                "email": lead.get("email"),
                "mics_sector": lead.get("mics_sector"),
                "full_name": lead.get("full_name"),
            },
            "enrichmentLogs": enrichment_logs,
        })

        scored = await self.lead_repo.get_fields(lead_id, "match_score") or {}
        return scored.get("match_score")
