"""
Enrichment services: functions client, domain validation, pipeline orchestration and bulk runs.
"""
