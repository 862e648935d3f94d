"""
Lead Repository
Database operations for the leads table.

Key patterns:
- Column-scoped reads: the pipeline re-reads only what its next step needs
- Append-only enrichment_logs: every append re-reads the stored array under
  a row lock and writes stored + new, never a caller-held copy alone
- Writes commit immediately: enrichment functions update the same row from
  their own connections, so locks must not be held across network calls
"""
import asyncio
from typing import Optional, List, Dict, Any, Iterable
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from lead_pipeline.modules.enrichment.models.lead import Lead
from lead_pipeline.modules.enrichment.services.enrichment_log import merge_logs
from lead_pipeline.shared.core.constants import BULK_DEFAULT_LIMIT
from lead_pipeline.shared.utils.exceptions import EntityNotFoundError
from lead_pipeline.shared.utils.json_utils import ensure_list

# Snapshot the orchestrator needs to start a run
SNAPSHOT_COLUMNS = (
    "id", "user_id", "full_name", "email", "company", "city", "state",
    "zipcode", "dma", "category", "domain", "mics_sector",
    "mics_subsector", "mics_segment",
)


def _column(name: str):
    column = getattr(Lead, name, None)
    if column is None or name.startswith("_"):
        raise ValueError(f"Unknown lead column: {name}")
    return column


class LeadRepository:
    """Repository for lead reads and pipeline writes."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        # One AsyncSession cannot run statements concurrently; the pipeline's
        # contact fork shares this repository with the main flow
        self._lock = asyncio.Lock()

    # ============================================
    # READ OPERATIONS
    # ============================================

    async def get_snapshot(self, lead_id: str) -> Optional[dict]:
        """Fetch the input snapshot a pipeline run starts from."""
        return await self.get_fields(lead_id, *SNAPSHOT_COLUMNS)

    async def get_fields(self, lead_id: str, *columns: str) -> Optional[dict]:
        """
        Re-read specific columns of a lead.

        Enrichment functions persist directly to the row, so this is the only
        way to observe what they wrote. JSON array columns are normalized to
        lists.

        Returns:
            Dict of column -> value, or None if the lead does not exist
        """
        query = select(*[_column(c) for c in columns]).where(Lead.id == lead_id)
        async with self._lock:
            result = await self.db.execute(query)
            row = result.mappings().one_or_none()

        if row is None:
            return None

        fields = dict(row)
        for key in ("enrichment_logs", "company_contacts"):
            if key in fields:
                fields[key] = ensure_list(fields[key])
        return fields

    async def get_leads_for_bulk(
        self,
        only_unenriched: bool = True,
        lead_ids: Optional[List[str]] = None,
        limit: int = BULK_DEFAULT_LIMIT
    ) -> List[dict]:
        """
        Fetch lead snapshots for a bulk run, oldest first.

        Args:
            only_unenriched: Only leads with neither a domain nor a match score
            lead_ids: Restrict to these IDs (order of the query, not the list)
            limit: Max leads to return
        """
        query = select(*[_column(c) for c in SNAPSHOT_COLUMNS])

        if lead_ids:
            query = query.where(Lead.id.in_(lead_ids))

        if only_unenriched:
            query = query.where(Lead.domain.is_(None), Lead.match_score.is_(None))

        query = query.order_by(Lead.created_at.asc()).limit(limit)

        async with self._lock:
            result = await self.db.execute(query)
            return [dict(row) for row in result.mappings().all()]

    # ============================================
    # WRITE OPERATIONS
    # ============================================

    async def update_fields(self, lead_id: str, **values: Any) -> None:
        """
        Overwrite top-level columns (last write wins). Commits.
        """
        if not values:
            return
        for name in values:
            _column(name)

        stmt = (
            update(Lead)
            .where(Lead.id == lead_id)
            .values(**values, updated_at=func.now())
        )
        async with self._lock:
            await self.db.execute(stmt)
            await self.db.commit()

    async def append_logs(
        self,
        lead_id: str,
        entries: Iterable[Dict[str, Any]],
        held_logs: Optional[List[Dict[str, Any]]] = None,
        **values: Any
    ) -> int:
        """
        Append entries to enrichment_logs and optionally update other columns
        in the same transaction. Commits.

        The stored array is re-read with SELECT ... FOR UPDATE, so entries
        written by enrichment functions since the caller last looked are kept.
        Entries in `held_logs` that the row does not contain are kept as well.

        Returns:
            Length of the stored array after the append
        """
        for name in values:
            _column(name)

        query = select(Lead.enrichment_logs).where(Lead.id == lead_id).with_for_update()

        async with self._lock:
            result = await self.db.execute(query)
            row = result.one_or_none()

            if row is None:
                await self.db.rollback()
                raise EntityNotFoundError("Lead", lead_id)

            merged = merge_logs(ensure_list(row[0]), held_logs or [], list(entries))

            stmt = (
                update(Lead)
                .where(Lead.id == lead_id)
                .values(enrichment_logs=merged, updated_at=func.now(), **values)
            )
            await self.db.execute(stmt)
            await self.db.commit()

        return len(merged)
