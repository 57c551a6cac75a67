"""
Orchestrator Admin API
Cache refresh, RAG query, outbound calls, call status, LLM providers
and agent import/export
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

from agent_console.core.config import settings
from agent_console.core.exceptions import ConsoleException, OrchestratorError
from agent_console.core.logging import get_logger
from .case_mapping import to_camel_keys
from .client import SignedOrchestratorClient

logger = get_logger(__name__)


def _without_none(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}


class AdminApiClient(SignedOrchestratorClient):
    """Client for the orchestrator Admin API"""

    service_name = "Admin API"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        super().__init__(
            base_url if base_url is not None else settings.orchestrator_admin_api_url,
            api_key if api_key is not None else settings.orchestrator_admin_api_key,
            timeout
        )

    async def refresh_agent_cache(self, tenant_id: str, agent_id: str) -> Dict[str, Any]:
        """Ask the orchestrator to reload an agent's active config"""
        result = await self.request(
            "POST",
            "/admin/cache/refresh/agent",
            {"tenant_id": tenant_id, "agent_id": agent_id}
        )
        logger.info("Agent cache refreshed", tenant_id=tenant_id, agent_id=agent_id)
        return to_camel_keys(result)

    async def refresh_cache_best_effort(self, tenant_id: str, agent_id: str) -> bool:
        """
        Refresh the agent cache without ever failing the caller

        Returns:
            True when the orchestrator acknowledged the refresh
        """
        if not self.is_configured():
            logger.debug("Skipping cache refresh; Admin API is not configured")
            return False
        try:
            await self.refresh_agent_cache(tenant_id, agent_id)
            return True
        except ConsoleException as e:
            logger.warning(
                "Agent cache refresh failed",
                tenant_id=tenant_id,
                agent_id=agent_id,
                error=e.message
            )
            return False

    async def query_rag(
        self,
        tenant_id: str,
        agent_id: str,
        query: str,
        version: Optional[int] = None,
        search_mode: Optional[str] = None,
        top_k: Optional[int] = None
    ) -> Dict[str, Any]:
        """Run a RAG query against an agent's knowledge base"""
        payload = _without_none({
            "tenant_id": tenant_id,
            "agent_id": agent_id,
            "query": query,
            "version": version,
            "search_mode": search_mode,
            "top_k": top_k
        })
        return to_camel_keys(await self.request("POST", "/admin/rag/query", payload))

    async def initiate_outbound_call(
        self,
        tenant_id: str,
        agent_id: str,
        to_number: str,
        from_number: Optional[str] = None,
        version: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Place an outbound call through the orchestrator"""
        payload = _without_none({
            "tenant_id": tenant_id,
            "agent_id": agent_id,
            "to_number": to_number,
            "from_number": from_number,
            "version": version,
            "metadata": metadata
        })
        result = await self.request("POST", "/admin/calls/outbound", payload)
        logger.info(
            "Outbound call initiated",
            tenant_id=tenant_id,
            agent_id=agent_id,
            call_id=result.get("call_id") if isinstance(result, dict) else None
        )
        return to_camel_keys(result)

    async def get_call_status(self, call_id: str) -> Dict[str, Any]:
        """Live status of an inbound or outbound call"""
        return to_camel_keys(await self.request("GET", f"/admin/calls/{quote(call_id, safe='')}"))

    async def list_llm_providers(self) -> List[Dict[str, Any]]:
        """
        LLM providers the orchestrator can route agents to

        Raises:
            OrchestratorError: Remote failure or a body without a providers list
        """
        result = await self.request("GET", "/admin/llm-providers")
        providers = result.get("providers") if isinstance(result, dict) else None
        if not isinstance(providers, list):
            raise OrchestratorError(
                f"{self.service_name} returned an invalid providers list",
                status_code=502,
                service=self.service_name
            )
        return providers

    async def import_agent(
        self,
        tenant_id: str,
        agent_json: Dict[str, Any],
        phone_numbers: Optional[List[str]] = None,
        notes: Optional[str] = None,
        created_by: Optional[str] = None,
        dry_run: Optional[bool] = None
    ) -> Dict[str, Any]:
        """
        Import an agent definition

        agent_json is forwarded untouched; only the result envelope is
        camel-cased.
        """
        payload = _without_none({
            "tenant_id": tenant_id,
            "agent_json": agent_json,
            "phone_numbers": phone_numbers,
            "notes": notes,
            "created_by": created_by,
            "dry_run": dry_run
        })
        result = await self.request("POST", "/admin/agents/import", payload)
        data = result.get("result", result) if isinstance(result, dict) else result
        return to_camel_keys(data)

    async def bulk_import_agents(self, agents: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Import several agents; each item is {tenant_id, agent_json, notes?}"""
        payload = {"agents": [_without_none(item) for item in agents]}
        return to_camel_keys(await self.request("POST", "/admin/agents/import/bulk", payload))

    async def export_agent(
        self,
        tenant_id: str,
        agent_id: str,
        version: Optional[int] = None
    ) -> Dict[str, Any]:
        """Export an agent config; snake_case keys are kept for re-import"""
        path = f"/admin/agents/{quote(tenant_id, safe='')}/{quote(agent_id, safe='')}/export"
        if version is not None:
            path += f"?version={version}"
        return await self.request("GET", path)
