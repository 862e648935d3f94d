from lead_pipeline.modules.enrichment.models.lead import Lead

__all__ = ["Lead"]
