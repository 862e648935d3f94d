from lead_pipeline.modules.enrichment.constants import SocialPlatform
from lead_pipeline.modules.enrichment.services.enrichment_log import (
    DomainValidationLog,
    alternative_domains,
    discriminator,
    domain_log_entries,
    merge_logs,
    social_results,
)


def test_discriminator_prefers_step_then_action_then_source():
    assert discriminator({"step": "validate_domain", "action": "x", "source": "y"}) == "validate_domain"
    assert discriminator({"action": "facebook_search_serper", "source": "y"}) == "facebook_search_serper"
    assert discriminator({"source": "apollo_api"}) == "apollo_api"
    assert discriminator({"domain": "acme.com"}) is None
    assert discriminator("not a dict") is None


def test_validation_log_serializes_without_nones():
    entry = DomainValidationLog(domain="acme.com", is_valid=True, is_parked=False).to_log()

    assert entry["step"] == "validate_domain"
    assert entry["domain"] == "acme.com"
    assert "reason" not in entry
    assert "http_status" not in entry
    assert entry["timestamp"].endswith("+00:00")


# --- SOCIAL RESULTS ---

def test_social_results_uses_latest_top3():
    logs = [
        {"action": "linkedin_search_serper", "top3Results": [{"link": "old"}]},
        {"action": "linkedin_search_serper", "top3Results": [{"link": "new"}]},
    ]
    assert social_results(logs, SocialPlatform.LINKEDIN, None) == [{"link": "new"}]


def test_social_results_falls_back_to_organic_results():
    logs = [{"action": "facebook_search_serper", "searchSteps": [{"organicResults": [{"link": "fb"}]}]}]
    assert social_results(logs, SocialPlatform.FACEBOOK, None) == [{"link": "fb"}]


def test_instagram_ignores_organic_results():
    logs = [{"action": "instagram_search_serper", "searchSteps": [{"organicResults": [{"link": "ig"}]}]}]
    assert social_results(logs, SocialPlatform.INSTAGRAM, "https://instagram.com/acme") == ["https://instagram.com/acme"]
    assert social_results(logs, SocialPlatform.INSTAGRAM, None) == []


# --- ALTERNATIVE DOMAINS ---

def test_alternative_domains_sorted_and_deduplicated():
    logs = [
        {"source": "apollo_api", "domain": "parked.com", "confidence": 95},
        {"source": "google_search", "domain": "acme.com", "confidence": 60},
        {"source": "email_domain", "domain": "acme-dental.com", "confidence": 80},
        {"source": "google_search", "domain": "acme.com", "confidence": 99},
        {"step": "validate_domain", "domain": "checked.com"},
        {"action": "facebook_search_serper"},
    ]

    candidates = alternative_domains(logs, exclude=["parked.com"])

    assert [c["domain"] for c in candidates] == ["acme-dental.com", "acme.com"]
    assert candidates[1] == {"domain": "acme.com", "confidence": 60, "source": "google_search"}


def test_domain_log_entries_only_provider_sources():
    logs = [
        {"source": "apollo_api", "domain": "acme.com"},
        {"source": "apollo_api"},
        {"step": "validate_domain", "domain": "acme.com"},
        {"source": "clay", "domain": "acme.com"},
    ]
    assert domain_log_entries(logs) == [{"source": "apollo_api", "domain": "acme.com"}]


# --- MERGE ---

def test_merge_logs_keeps_stored_entries_first():
    stored = [{"source": "apollo_api"}, {"action": "linkedin_search_serper"}]
    held = [{"source": "apollo_api"}]
    new = [{"step": "validate_domain"}]

    assert merge_logs(stored, held, new) == stored + new


def test_merge_logs_keeps_held_entries_missing_from_store():
    stored = [{"source": "apollo_api"}]
    held = [{"source": "apollo_api"}, {"source": "google_search"}]

    merged = merge_logs(stored, held, [])

    assert merged == [{"source": "apollo_api"}, {"source": "google_search"}]
    assert len(merged) >= len(stored)


def test_merge_logs_with_stale_empty_copy_never_shrinks():
    stored = [{"source": "apollo_api"}, {"source": "google_search"}]
    assert merge_logs(stored, [], [{"step": "validate_domain"}])[:2] == stored


def test_merge_logs_matches_entries_regardless_of_key_order():
    stored = [{"source": "apollo_api", "domain": "acme.com", "confidence": 90}]
    held = [{"confidence": 90, "domain": "acme.com", "source": "apollo_api"}]

    assert merge_logs(stored, held, []) == stored


def test_merge_logs_deduplicates_held_entries():
    held = [{"source": "google_search"}, {"source": "google_search"}]
    assert merge_logs([], held, []) == [{"source": "google_search"}]
