"""
Enrichment Log Entries

`leads.enrichment_logs` is an append-only JSON array of heterogeneous entries.
Each entry is tagged by one of three keys:

- `source`  provider domain searches written by enrich-lead
            (apollo_api, google_search, email_domain)
- `action`  social searches written by the serper functions
            (facebook_search_serper, ...)
- `step`    entries written by this service (validate_domain, domain_fallback, ...)

Entries from enrichment functions are kept as opaque dicts. Entries this
service writes are pydantic models so their shape is fixed in one place.
"""
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from lead_pipeline.modules.enrichment.constants import (
    LogStep,
    SocialPlatform,
    DOMAIN_LOG_SOURCES,
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ============================================
# ENTRIES WRITTEN BY THIS SERVICE
# ============================================

class LogEntry(BaseModel):
    step: LogStep
    timestamp: str = Field(default_factory=_now_iso)

    def to_log(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class DomainValidationLog(LogEntry):
    step: LogStep = LogStep.VALIDATE_DOMAIN
    domain: str
    is_valid: bool
    is_parked: bool
    reason: Optional[str] = None
    http_status: Optional[int] = None


class DomainFallbackLog(LogEntry):
    step: LogStep = LogStep.DOMAIN_FALLBACK
    action: str = LogStep.DOMAIN_FALLBACK.value
    original_domain: str
    new_domain: str
    new_confidence: float
    new_source: str
    reason: str
    validation_result: Dict[str, Any]


class DomainFallbackAttemptLog(LogEntry):
    step: LogStep = LogStep.DOMAIN_FALLBACK_ATTEMPT
    action: str = LogStep.DOMAIN_FALLBACK_ATTEMPT.value
    domain: str
    confidence: float
    source: str
    reason: str
    validation_result: Dict[str, Any]


class DomainFallbackExhaustedLog(LogEntry):
    step: LogStep = LogStep.DOMAIN_FALLBACK_EXHAUSTED
    action: str = LogStep.DOMAIN_FALLBACK_EXHAUSTED.value
    original_domain: str
    tried_domains: List[str]
    reason: str


# ============================================
# READING HELPERS
# ============================================

def discriminator(entry: Dict[str, Any]) -> Optional[str]:
    """Tag of an entry: `step` wins over `action`, which wins over `source`."""
    if not isinstance(entry, dict):
        return None
    for key in ("step", "action", "source"):
        value = entry.get(key)
        if value:
            return str(value)
    return None


def latest_by_action(logs: List[Dict[str, Any]], action: str) -> Optional[Dict[str, Any]]:
    """Most recent entry with the given `action`, or None."""
    for entry in reversed(logs):
        if isinstance(entry, dict) and entry.get("action") == action:
            return entry
    return None


def social_results(
    logs: List[Dict[str, Any]],
    platform: SocialPlatform,
    stored_url: Optional[str]
) -> List[Any]:
    """
    Candidate results of the latest search for a platform.

    Order of preference:
    1. `top3Results` of the latest search entry
    2. `searchSteps[0].organicResults` (older entries; facebook and linkedin only)
    3. the URL currently stored on the lead
    4. []
    """
    entry = latest_by_action(logs, platform.search_action) or {}

    top3 = entry.get("top3Results")
    if top3:
        return list(top3)

    if platform != SocialPlatform.INSTAGRAM:
        steps = entry.get("searchSteps") or []
        if steps and isinstance(steps[0], dict):
            organic = steps[0].get("organicResults")
            if organic:
                return list(organic)

    return [stored_url] if stored_url else []


def alternative_domains(
    logs: List[Dict[str, Any]],
    exclude: List[str]
) -> List[Dict[str, Any]]:
    """
    Domains found by provider searches, best first.

    Skips validation entries, entries without a domain and anything in
    `exclude`. Deduplicated on first occurrence, then sorted by confidence
    descending (stable, so ties keep log order).
    """
    seen = set(exclude)
    candidates = []
    for entry in logs:
        if not isinstance(entry, dict):
            continue
        domain = entry.get("domain")
        if not domain or domain in seen:
            continue
        if entry.get("step") == LogStep.VALIDATE_DOMAIN.value:
            continue
        seen.add(domain)
        candidates.append({
            "domain": domain,
            "confidence": entry.get("confidence") or 0,
            "source": entry.get("source") or "unknown",
        })

    return sorted(candidates, key=lambda c: c["confidence"], reverse=True)


def domain_log_entries(logs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Provider entries that reported a domain (used for diagnostics logging)."""
    return [
        entry for entry in logs
        if isinstance(entry, dict) and entry.get("domain") and entry.get("source") in DOMAIN_LOG_SOURCES
    ]


def _entry_key(entry: Any) -> str:
    return json.dumps(entry, sort_keys=True, default=str)


def merge_logs(
    stored: List[Dict[str, Any]],
    held: List[Dict[str, Any]],
    new: List[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """
    stored + (held entries missing from stored) + new.

    The result is never shorter than `stored`.
    """
    merged = list(stored)
    seen = {_entry_key(entry) for entry in stored}
    for entry in held:
        key = _entry_key(entry)
        if key not in seen:
            seen.add(key)
            merged.append(entry)
    merged.extend(new)
    return merged
