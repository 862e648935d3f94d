import asyncio

from lead_pipeline.modules.enrichment.services.domain_fallback_service import DomainFallbackService

LOGS = [
    {"source": "apollo_api", "domain": "acme-parked.com", "confidence": 90},
    {"source": "google_search", "domain": "acme-old.com", "confidence": 80},
    {"source": "email_domain", "domain": "acmedental.com", "confidence": 60},
]


def attempt(service, logs=LOGS):
    return asyncio.run(service.attempt_fallback("lead-1", "acme-parked.com", logs))


def test_switches_to_first_candidate_that_validates(fake_repo, fake_functions):
    fake_repo.add(domain="acme-parked.com", match_score=25, match_score_source="parked_domain")
    fake_functions.on("validate-domain", lambda body: {
        "is_valid_domain": body["domain"] == "acmedental.com",
        "is_parked": False,
    })
    service = DomainFallbackService(None, lead_repo=fake_repo, functions=fake_functions)

    result = attempt(service)

    assert result.success is True
    assert result.fallback_domain == "acmedental.com"
    assert result.fallback_source == "email_domain"
    assert [b["domain"] for b in fake_functions.bodies("validate-domain")] == ["acme-old.com", "acmedental.com"]

    row = fake_repo.rows["lead-1"]
    assert row["domain"] == "acmedental.com"
    assert row["enrichment_confidence"] == 60
    assert row["match_score"] is None
    assert row["match_score_source"] is None

    steps = [e["step"] for e in row["enrichment_logs"]]
    assert steps == ["domain_fallback_attempt", "domain_fallback", "validate_domain"]


def test_exhausted_when_nothing_validates(fake_repo, fake_functions):
    fake_repo.add(domain="acme-parked.com")
    fake_functions.on("validate-domain", {"is_valid_domain": True, "is_parked": True})
    service = DomainFallbackService(None, lead_repo=fake_repo, functions=fake_functions)

    result = attempt(service)

    assert result.success is False
    assert result.tried_domains == ["acme-parked.com", "acme-old.com", "acmedental.com"]

    row = fake_repo.rows["lead-1"]
    assert row["domain"] == "acme-parked.com"
    assert row["enrichment_logs"][-1]["step"] == "domain_fallback_exhausted"
    assert row["enrichment_logs"][-1]["tried_domains"] == result.tried_domains


def test_candidate_validation_error_skips_candidate(fake_repo, fake_functions):
    fake_repo.add(domain="acme-parked.com")

    def validate(body):
        if body["domain"] == "acme-old.com":
            raise RuntimeError("timeout")
        return {"is_valid_domain": True, "is_parked": False}

    fake_functions.on("validate-domain", validate)
    service = DomainFallbackService(None, lead_repo=fake_repo, functions=fake_functions)

    result = attempt(service)

    assert result.success is True
    assert result.fallback_domain == "acmedental.com"
    assert "acme-old.com" in result.tried_domains


def test_no_candidates_logs_exhausted(fake_repo, fake_functions):
    fake_repo.add(domain="acme-parked.com")
    service = DomainFallbackService(None, lead_repo=fake_repo, functions=fake_functions)

    result = attempt(service, logs=[{"source": "apollo_api", "domain": "acme-parked.com"}])

    assert result.success is False
    assert fake_functions.calls == []
    assert fake_repo.rows["lead-1"]["enrichment_logs"][-1]["step"] == "domain_fallback_exhausted"
