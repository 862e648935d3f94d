"""
Enrichment Functions Client
Low-level wrapper for the remote enrichment functions (Supabase edge functions).

Every function takes a JSON object and returns a JSON object:
    POST {FUNCTIONS_BASE_URL}/{function-name}
    Authorization: Bearer {FUNCTIONS_SERVICE_KEY}

Handles:
- Authentication via service-role bearer token
- JSON encoding/decoding
- Mapping transport errors and non-2xx responses to CollaboratorError

No retries: a failed call is reported once and the pipeline's failure policy
decides what happens next.
"""
import logging
from typing import Dict, Any

import httpx

from lead_pipeline.shared.core.config import settings
from lead_pipeline.shared.utils.exceptions import CollaboratorError
from lead_pipeline.shared.utils.http_client import http_client_manager

logger = logging.getLogger("functions_client")


class FunctionsClient:
    """Invokes enrichment functions by name."""

    def __init__(self):
        self.base_url = settings.FUNCTIONS_BASE_URL.rstrip('/')
        self.service_key = settings.FUNCTIONS_SERVICE_KEY

        if not self.service_key:
            logger.warning("⚠️ FUNCTIONS_SERVICE_KEY not configured in .env")

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.service_key:
            headers["Authorization"] = f"Bearer {self.service_key}"
            headers["apikey"] = self.service_key
        return headers

    def is_configured(self) -> bool:
        return bool(self.base_url and self.service_key)

    async def invoke(self, function_name: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Call an enrichment function.

        Args:
            function_name: e.g. "enrich-lead" (a Collaborator value)
            body: JSON request body

        Returns:
            Decoded JSON response ({} for an empty body)

        Raises:
            CollaboratorError: transport failure, non-2xx status, or a body
                that is not a JSON object
        """
        name = getattr(function_name, "value", function_name)
        url = f"{self.base_url}/{name}"
        client = http_client_manager.get_client()

        logger.debug(f"→ {name} {body}")

        try:
            response = await client.post(url, json=body, headers=self._get_headers())
        except httpx.HTTPError as e:
            logger.error(f"❌ {name} transport error: {e}")
            raise CollaboratorError(name, str(e) or e.__class__.__name__) from e

        if response.status_code >= 400:
            message = self._error_message(response)
            logger.error(f"❌ {name} returned {response.status_code}: {message}")
            raise CollaboratorError(name, message, status_code=response.status_code)

        if not response.content:
            return {}

        try:
            data = response.json()
        except ValueError as e:
            raise CollaboratorError(name, "Response is not valid JSON", status_code=response.status_code) from e

        if not isinstance(data, dict):
            raise CollaboratorError(name, "Response is not a JSON object", status_code=response.status_code)

        return data

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Prefer the function's own `error`/`message` field over raw text."""
        try:
            data = response.json()
        except ValueError:
            return response.text[:500] or response.reason_phrase
        if isinstance(data, dict):
            return str(data.get("error") or data.get("message") or data)
        return str(data)


# Singleton instance
functions_client = FunctionsClient()
