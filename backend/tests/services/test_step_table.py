import pytest
import asyncio
from unittest.mock import AsyncMock, MagicMock

from lead_pipeline.modules.enrichment.constants import Collaborator
from lead_pipeline.modules.enrichment.services.step_table import (
    STEP_POLICIES,
    StepPolicy,
    call_step,
    policy_for,
)


def test_every_function_has_a_policy():
    assert set(STEP_POLICIES) == set(Collaborator)


@pytest.mark.parametrize("function", [
    Collaborator.ENRICH_CONTACT,
    Collaborator.SEND_TO_CLAY,
    Collaborator.ENRICH_COMPANY_CLAY,
])
def test_contact_and_clay_calls_are_best_effort(function):
    assert policy_for(function) == StepPolicy.BEST_EFFORT


def test_scoring_calls_are_critical():
    assert policy_for(Collaborator.CALCULATE_MATCH_SCORE) == StepPolicy.CRITICAL
    assert policy_for(Collaborator.DIAGNOSE_ENRICHMENT) == StepPolicy.CRITICAL


def test_critical_failure_propagates():
    functions = MagicMock()
    functions.invoke = AsyncMock(side_effect=RuntimeError("down"))

    with pytest.raises(RuntimeError):
        asyncio.run(call_step(functions, Collaborator.ENRICH_LEAD, {"leadId": "lead-1"}))


def test_best_effort_failure_returns_none():
    functions = MagicMock()
    functions.invoke = AsyncMock(side_effect=RuntimeError("down"))

    result = asyncio.run(call_step(functions, Collaborator.ENRICH_COMPANY_CLAY, {"domain": "acme.com"}))

    assert result is None
    functions.invoke.assert_called_once_with("enrich-company-clay", {"domain": "acme.com"})


def test_success_returns_response():
    functions = MagicMock()
    functions.invoke = AsyncMock(return_value={"success": True})

    assert asyncio.run(call_step(functions, Collaborator.VALIDATE_DOMAIN, {"domain": "acme.com"})) == {"success": True}
