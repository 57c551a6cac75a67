"""
Orchestrator Text Chat API
Text sessions against an agent's active workflow
"""

from typing import Any, Dict, Optional
from urllib.parse import quote

from agent_console.core.config import settings
from agent_console.core.logging import get_logger
from .case_mapping import to_camel_keys
from .client import SignedOrchestratorClient

logger = get_logger(__name__)


class TextChatApiClient(SignedOrchestratorClient):
    """Client for the orchestrator Text Chat API"""

    service_name = "Text Chat API"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        super().__init__(
            base_url or settings.text_chat_api_url or settings.orchestrator_admin_api_url,
            api_key or settings.text_chat_api_key or settings.orchestrator_admin_api_key,
            timeout
        )

    def _error_message(self, status_code: int, detail: str) -> str:
        return f"Text Chat API error ({status_code}): {detail or 'Unknown error'}"

    @staticmethod
    def _session_path(session_id: str) -> str:
        return f"/api/chat/sessions/{quote(session_id, safe='')}"

    async def create_session(
        self,
        tenant_id: str,
        agent_id: str,
        version: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        payload = {
            "tenant_id": tenant_id,
            "agent_id": agent_id,
            "metadata": metadata or {}
        }
        if version is not None:
            payload["version"] = version

        result = await self.request("POST", "/api/chat/sessions", payload)
        logger.info(
            "Chat session created",
            tenant_id=tenant_id,
            agent_id=agent_id,
            session_id=result.get("session_id") if isinstance(result, dict) else None
        )
        return to_camel_keys(result)

    async def send_message(self, session_id: str, content: str) -> Dict[str, Any]:
        """Send a user turn and return the agent reply with any node transitions"""
        result = await self.request(
            "POST",
            f"{self._session_path(session_id)}/messages",
            {"content": content}
        )
        return to_camel_keys(result)

    async def get_session_status(self, session_id: str) -> Dict[str, Any]:
        return to_camel_keys(await self.request("GET", self._session_path(session_id)))

    async def end_session(self, session_id: str) -> Dict[str, Any]:
        result = await self.request("DELETE", self._session_path(session_id))
        logger.info("Chat session ended", session_id=session_id)
        return to_camel_keys(result)
