"""
Centralized Constants for the Lead Enrichment Pipeline.
All hardcoded values should be defined here for easy maintenance.
"""

# ============================================
# HTTP CLIENT
# ============================================
HTTP_TIMEOUT = 150.0          # Edge functions can run long (LLM + search calls)
HTTP_CONNECT_TIMEOUT = 10.0
HTTP_MAX_CONNECTIONS = 100
HTTP_MAX_KEEPALIVE_CONNECTIONS = 20
HTTP_KEEPALIVE_EXPIRY = 30.0  # seconds

# ============================================
# DATABASE
# ============================================
DB_POOL_SIZE = 5
DB_MAX_OVERFLOW = 10
DB_POOL_RECYCLE = 300

# ============================================
# BULK RUNS
# ============================================
BULK_DEFAULT_LIMIT = 500
BULK_JOB_HISTORY_SIZE = 50  # Finished jobs kept in memory for polling
