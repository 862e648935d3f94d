"""
Enrichment Pipeline Constants
Centralized enums and constants for the enrichment module.

Enums inherit from str so they can be passed straight into JSON bodies and
log entries without .value conversion.
"""
from enum import Enum


class Collaborator(str, Enum):
    """Names of the remote enrichment functions the pipeline invokes."""
    ENRICH_LEAD = "enrich-lead"
    VALIDATE_DOMAIN = "validate-domain"
    FIND_COMPANY_COORDINATES = "find-company-coordinates"
    CALCULATE_DISTANCE = "calculate-distance"
    SCORE_DOMAIN_RELEVANCE = "score-domain-relevance"
    CALCULATE_MATCH_SCORE = "calculate-match-score"
    SEARCH_FACEBOOK = "search-facebook-serper"
    SEARCH_LINKEDIN = "search-linkedin-serper"
    SEARCH_INSTAGRAM = "search-instagram-serper"
    SCORE_SOCIAL_RELEVANCE = "score-social-relevance"
    ENRICH_COMPANY_DETAILS = "enrich-company-details"
    ENRICH_COMPANY_CLAY = "enrich-company-clay"
    FIND_COMPANY_CONTACTS = "find-company-contacts"
    GET_COMPANY_NEWS = "get-company-news"
    ENRICH_CONTACT = "enrich-contact"
    SEND_TO_CLAY = "send-to-clay"
    DIAGNOSE_ENRICHMENT = "diagnose-enrichment"


class DomainSource(str, Enum):
    """`source` values accepted by enrich-lead, in the order the pipeline tries them."""
    APOLLO = "apollo"
    GOOGLE = "google"
    EMAIL = "email"


class SocialPlatform(str, Enum):
    FACEBOOK = "facebook"
    LINKEDIN = "linkedin"
    INSTAGRAM = "instagram"

    @property
    def search_function(self) -> Collaborator:
        return Collaborator(f"search-{self.value}-serper")

    @property
    def search_action(self) -> str:
        """`action` tag the search function writes into enrichment_logs."""
        return f"{self.value}_search_serper"


class LogStep(str, Enum):
    """`step` tags of the log entries this service writes itself."""
    VALIDATE_DOMAIN = "validate_domain"
    DOMAIN_FALLBACK = "domain_fallback"
    DOMAIN_FALLBACK_ATTEMPT = "domain_fallback_attempt"
    DOMAIN_FALLBACK_EXHAUSTED = "domain_fallback_exhausted"


# `source` tags of provider entries that carry a discovered domain
DOMAIN_LOG_SOURCES = ("apollo_api", "google_search", "email_domain")


class MatchScoreSource(str, Enum):
    PARKED_DOMAIN = "parked_domain"
    INVALID_DOMAIN = "invalid_domain"


class EnrichmentStatus(str, Enum):
    """Values written to leads.enrichment_status by domain validation."""
    VALIDATED = "validated"
    PARKED = "parked"
    INVALID = "invalid"


class PipelineOutcome(str, Enum):
    FULL = "full"
    NO_DOMAIN = "no_domain"
    LOW_SCORE = "low_score"
    FAILED = "failed"


class NotificationVariant(str, Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


class BulkJobStatus(str, Enum):
    """
    Bulk job lifecycle.

    PENDING → RUNNING → COMPLETED
                     ↘ PAUSED (stop requested, stopped at a lead boundary)
                     ↘ FAILED (error outside the per-lead boundary)
    """
    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def is_final(cls, status: str) -> bool:
        return status in [cls.PAUSED, cls.COMPLETED, cls.FAILED]


class PipelineStep:
    """Step names reported through PipelineCallbacks.on_step."""
    RUNNING = "Running Pipeline..."
    FINDING_DOMAIN = "Finding Domain..."
    ENRICHING_CLAY = "Enriching with Clay..."
    VALIDATING_DOMAIN = "Validating Domain..."
    FINDING_ALTERNATIVE_DOMAIN = "Finding Alternative Domain..."
    FINDING_COORDINATES = "Finding Coordinates..."
    CALCULATING_DISTANCE = "Calculating Distance..."
    SCORING_DOMAIN_RELEVANCE = "Scoring Domain Relevance..."
    CALCULATING_MATCH_SCORE = "Calculating Match Score..."
    SEARCHING_SOCIALS = "Searching Socials..."
    VALIDATING_SOCIALS = "Validating Socials..."
    ENRICHING_COMPANY = "Enriching Company..."
    FINDING_CONTACTS = "Finding Contacts..."
    GETTING_NEWS = "Getting News..."
    CALCULATING_SCORE = "Calculating Score..."
    DIAGNOSING = "Diagnosing..."


# Mailbox providers: an address here says nothing about the company's domain
PERSONAL_EMAIL_DOMAINS = frozenset({
    "gmail.com", "yahoo.com", "hotmail.com", "outlook.com", "live.com",
    "msn.com", "aol.com", "icloud.com", "me.com", "mac.com", "mail.com",
    "protonmail.com", "zoho.com", "yandex.com", "gmx.com", "fastmail.com",
})
