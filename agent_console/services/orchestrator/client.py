"""
Signed HTTP client shared by the orchestrator Admin and Text Chat APIs
"""

import json
from typing import Any, Dict, Optional

import httpx

from agent_console.core.config import settings
from agent_console.core.exceptions import OrchestratorError, UpstreamNotConfigured
from agent_console.core.logging import get_logger
from .signing import sign_request

logger = get_logger(__name__)


class SignedOrchestratorClient:
    """
    Sends HMAC-signed JSON requests with a fixed timeout

    Non-2xx responses and transport failures raise OrchestratorError
    carrying the remote status code. Nothing is retried here.
    """

    service_name = "Admin API"

    def __init__(
        self,
        base_url: Optional[str],
        api_key: Optional[str],
        timeout: Optional[float] = None
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key or ""
        self.timeout = timeout if timeout is not None else settings.orchestrator_timeout_seconds

    def is_configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    def _require_configured(self) -> None:
        if not self.is_configured():
            raise UpstreamNotConfigured(f"{self.service_name} is not configured")

    def _error_message(self, status_code: int, detail: str) -> str:
        return detail or f"{self.service_name} error: {status_code}"

    @staticmethod
    def _extract_detail(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.reason_phrase or ""
        if isinstance(data, dict):
            detail = data.get("detail") or data.get("error") or data.get("message")
            if isinstance(detail, (dict, list)):
                return json.dumps(detail)
            if detail:
                return str(detail)
        return response.reason_phrase or ""

    async def request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Send a signed request and return the decoded JSON body

        Args:
            method: HTTP method
            path: Path (with query string) appended to the base URL and signed
            payload: JSON body for POST/PUT/PATCH

        Raises:
            UpstreamNotConfigured: Missing URL or key
            OrchestratorError: Remote error, timeout or network failure
        """
        self._require_configured()

        method = method.upper()
        body = json.dumps(payload) if payload is not None and method not in ("GET", "DELETE") else ""
        headers = sign_request(method, path, body, self.api_key)

        logger.debug(f"{self.service_name} request: {method} {path}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    headers=headers,
                    content=body or None
                )
        except httpx.TimeoutException as e:
            logger.warning(f"{self.service_name} timeout: {method} {path}", error=str(e))
            raise OrchestratorError(
                f"{self.service_name} request timed out", status_code=504, service=self.service_name
            )
        except httpx.RequestError as e:
            logger.warning(f"{self.service_name} unreachable: {method} {path}", error=str(e))
            raise OrchestratorError(
                f"{self.service_name} is unreachable", status_code=502, service=self.service_name
            )

        if response.status_code >= 400:
            detail = self._extract_detail(response)
            logger.warning(
                f"{self.service_name} error: {method} {path}",
                status_code=response.status_code,
                detail=detail
            )
            raise OrchestratorError(
                self._error_message(response.status_code, detail),
                status_code=response.status_code,
                service=self.service_name
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            raise OrchestratorError(
                f"{self.service_name} returned an invalid response",
                status_code=502,
                service=self.service_name
            )
