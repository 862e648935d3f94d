"""
Shared HTTP Client
One pooled httpx.AsyncClient for every enrichment function call.

The pipeline fans out several calls per lead (social searches, the contact
fork), so connections are kept alive and reused. The client is created on
first use and closed by the app lifespan.

Usage:
    from lead_pipeline.shared.utils.http_client import http_client_manager

    client = http_client_manager.get_client()
    response = await client.post(url, json=body)
"""
import logging
from typing import Optional, Dict, Any

import httpx

from lead_pipeline.shared.core.constants import (
    HTTP_TIMEOUT,
    HTTP_CONNECT_TIMEOUT,
    HTTP_MAX_CONNECTIONS,
    HTTP_MAX_KEEPALIVE_CONNECTIONS,
    HTTP_KEEPALIVE_EXPIRY,
)

logger = logging.getLogger(__name__)


class HTTPClientManager:
    """Owns the lazily created, process-wide AsyncClient."""

    def __init__(self):
        self._client: Optional[httpx.AsyncClient] = None

    def _create_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(HTTP_TIMEOUT, connect=HTTP_CONNECT_TIMEOUT),
            limits=httpx.Limits(
                max_connections=HTTP_MAX_CONNECTIONS,
                max_keepalive_connections=HTTP_MAX_KEEPALIVE_CONNECTIONS,
                keepalive_expiry=HTTP_KEEPALIVE_EXPIRY,
            ),
            follow_redirects=True,
        )

    def get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = self._create_client()
            logger.info("HTTP client created for enrichment functions")
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("HTTP client closed")

    def get_status(self) -> Dict[str, Any]:
        """Pool state for the health endpoint."""
        return {
            "active": self._client is not None,
            "timeout": HTTP_TIMEOUT,
            "max_connections": HTTP_MAX_CONNECTIONS,
        }


http_client_manager = HTTPClientManager()


# ============================================
# FastAPI LIFESPAN HOOKS
# ============================================

async def startup_http_client():
    http_client_manager.get_client()


async def shutdown_http_client():
    await http_client_manager.close()
