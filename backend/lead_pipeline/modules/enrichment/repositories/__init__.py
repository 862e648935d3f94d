from lead_pipeline.modules.enrichment.repositories.lead_repository import LeadRepository

__all__ = ["LeadRepository"]
