# backend/tests/conftest.py
"""
Shared fixtures for all test modules.
Avoids async fixtures: tests drive coroutines with asyncio.run().

The enrichment functions persist their results straight onto the lead row,
so the fakes here share one in-memory row store: FakeFunctions handlers
write into FakeLeadRepository the way the real functions write into Postgres.
"""
import copy
import inspect

import pytest
from fastapi.testclient import TestClient

from lead_pipeline.main import app
from lead_pipeline.modules.enrichment.repositories.lead_repository import SNAPSHOT_COLUMNS
from lead_pipeline.modules.enrichment.services.enrichment_log import merge_logs
from lead_pipeline.modules.enrichment.services.pipeline_service import PipelineRunRegistry
from lead_pipeline.shared.db.session import get_db


# --- IN-MEMORY FAKES ---

def make_lead_row(**overrides):
    row = {
        "id": "lead-1",
        "user_id": "user-1",
        "full_name": "Jane Doe",
        "email": "jane@acmedental.com",
        "company": "Acme Dental",
        "city": "Austin",
        "state": "TX",
        "zipcode": "78701",
        "dma": "Austin",
        "category": "Dentist",
        "domain": None,
        "source_url": None,
        "mics_sector": "Healthcare",
        "mics_subsector": "Dental",
        "mics_segment": "General Dentistry",
        "enrichment_logs": [],
        "enrichment_source": None,
        "enrichment_confidence": None,
        "enrichment_status": None,
        "email_domain_validated": None,
        "match_score": None,
        "match_score_source": None,
        "latitude": None,
        "longitude": None,
        "facebook": None,
        "linkedin": None,
        "instagram": None,
        "apollo_not_found": None,
        "contact_linkedin": None,
    }
    row.update(overrides)
    return row


class FakeLeadRepository:
    """Dict-backed stand-in for LeadRepository with the same async surface."""

    def __init__(self):
        self.rows = {}

    def add(self, **overrides):
        row = make_lead_row(**overrides)
        self.rows[row["id"]] = row
        return row

    async def get_snapshot(self, lead_id):
        row = self.rows.get(lead_id)
        if row is None:
            return None
        return {c: copy.deepcopy(row.get(c)) for c in SNAPSHOT_COLUMNS}

    async def get_fields(self, lead_id, *columns):
        row = self.rows.get(lead_id)
        if row is None:
            return None
        return {c: copy.deepcopy(row.get(c)) for c in columns}

    async def get_leads_for_bulk(self, only_unenriched=True, lead_ids=None, limit=500):
        rows = list(self.rows.values())
        if lead_ids:
            rows = [r for r in rows if r["id"] in lead_ids]
        if only_unenriched:
            rows = [r for r in rows if r["domain"] is None and r["match_score"] is None]
        return [{c: r.get(c) for c in SNAPSHOT_COLUMNS} for r in rows[:limit]]

    async def update_fields(self, lead_id, **values):
        self.rows[lead_id].update(values)

    async def append_logs(self, lead_id, entries, held_logs=None, **values):
        row = self.rows[lead_id]
        row["enrichment_logs"] = merge_logs(row["enrichment_logs"], held_logs or [], list(entries))
        row.update(values)
        return len(row["enrichment_logs"])


class FakeFunctions:
    """
    Records every invocation and answers from per-function handlers.

    A handler is a dict (returned as-is) or a callable taking the request
    body; callables may write to the repository like the real functions do.
    """

    def __init__(self):
        self.calls = []
        self.handlers = {}
        self.failures = {}

    def on(self, name, handler):
        self.handlers[name] = handler
        return self

    def fail(self, name, error=None):
        self.failures[name] = error or RuntimeError(f"{name} exploded")
        return self

    async def invoke(self, function_name, body):
        self.calls.append((function_name, body))
        if function_name in self.failures:
            raise self.failures[function_name]
        handler = self.handlers.get(function_name)
        if handler is None:
            return {}
        if callable(handler):
            result = handler(body)
            if inspect.isawaitable(result):
                result = await result
            return result or {}
        return handler

    def names(self):
        return [name for name, _ in self.calls]

    def bodies(self, name):
        return [body for called, body in self.calls if called == name]

    def count(self, name):
        return self.names().count(name)


# --- FIXTURES ---

@pytest.fixture
def fake_repo():
    return FakeLeadRepository()


@pytest.fixture
def fake_functions():
    return FakeFunctions()


@pytest.fixture
def run_registry():
    """A private registry so tests never see each other's in-flight runs."""
    return PipelineRunRegistry()


@pytest.fixture
def test_client():
    """FastAPI test client with the DB dependency stubbed out."""
    app.dependency_overrides[get_db] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()
