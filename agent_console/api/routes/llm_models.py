"""
LLM Catalog API Routes
Model and provider lookups for agent config dropdowns
"""

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from agent_console.core.exceptions import ConsoleException
from agent_console.core.logging import get_logger
from agent_console.db import get_db
from agent_console.api.middleware.auth import SessionUser, get_current_user
from agent_console.api.responses import CamelModel, success_response
from agent_console.services import LlmModelService
from agent_console.services.orchestrator import AdminApiClient, get_admin_api

logger = get_logger(__name__)
router = APIRouter()

ListFormat = Literal["full", "dropdown"]


class LlmModelResponse(CamelModel):
    id: str
    model_name: str
    provider: str
    actual_model_id: str
    description: Optional[str] = None
    default_temperature: float
    default_max_tokens: int
    default_service_tier: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class LlmModelDropdownItem(CamelModel):
    model_name: str
    display_name: str
    description: Optional[str] = None


def _provider(item: dict, full: bool) -> dict:
    provider = {
        "id": item.get("provider_id"),
        "name": item.get("display_name"),
        "providerType": item.get("type"),
        "modelId": item.get("model_id"),
        "modelName": item.get("model_name")
    }
    if full:
        provider["baseUrl"] = item.get("base_url")
        provider["hasApiKey"] = bool(item.get("has_api_key"))
    return provider


@router.get("/llm-models")
async def list_llm_models(
    format: ListFormat = "full",
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user)
):
    """Active LLM catalog entries, platform-wide"""
    models = LlmModelService(db).list_models()
    if format == "dropdown":
        data = [
            LlmModelDropdownItem(
                model_name=model.model_name,
                display_name=model.model_name,
                description=model.description
            ).dump()
            for model in models
        ]
    else:
        data = [LlmModelResponse.model_validate(model).dump() for model in models]
    return success_response(data)


@router.get("/llm-providers")
async def list_llm_providers(
    format: ListFormat = "full",
    user: SessionUser = Depends(get_current_user),
    admin_api: AdminApiClient = Depends(get_admin_api)
):
    """
    LLM providers configured in the orchestrator

    Degrades to an empty list with an info message when the Admin API is
    missing or failing, so the UI falls back to the default provider.
    """
    if not admin_api.is_configured():
        logger.info("Admin API not configured, returning empty providers list")
        return success_response(
            [],
            extra={"info": "Admin API not configured. Using default provider from environment."}
        )

    try:
        providers = await admin_api.list_llm_providers()
    except ConsoleException as e:
        logger.error("Fetching LLM providers failed", status_code=e.status_code, detail=e.message)
        return success_response(
            [],
            extra={"info": "Failed to fetch providers from admin API. Using default provider."}
        )

    return success_response([_provider(item, full=format == "full") for item in providers])
