"""
Agent API Routes
Agent CRUD, config versions and activation
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import Field
from sqlalchemy.orm import Session

from agent_console.core.exceptions import NotFound, ValidationFailed
from agent_console.core.logging import get_logger
from agent_console.db import get_db
from agent_console.api.middleware.auth import SessionUser, get_current_user, require_admin
from agent_console.api.responses import CamelModel, success_response
from agent_console.api.routes.phone_configs import PhoneConfigResponse
from agent_console.services import AgentService, validate_agent_config
from agent_console.services.orchestrator import AdminApiClient, get_admin_api

logger = get_logger(__name__)
router = APIRouter()


# ============================================
# REQUEST/RESPONSE MODELS
# ============================================

class CreateAgentRequest(CamelModel):
    """Request to create an agent with its first config version"""
    name: str = Field(..., min_length=1, max_length=255, description="Agent name")
    description: Optional[str] = Field(default=None, max_length=1000)
    config_json: Dict[str, Any] = Field(..., description="Workflow configuration")
    tenant_id: Optional[str] = Field(default=None, description="Target tenant (global users only)")


class UpdateAgentRequest(CamelModel):
    """Request to update agent metadata"""
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)


class CreateVersionRequest(CamelModel):
    """Request to create a new config version"""
    config_json: Dict[str, Any]
    notes: Optional[str] = Field(default=None, max_length=500)
    global_prompt: Optional[str] = None
    rag_enabled: bool = False
    rag_config_id: Optional[str] = None
    voice_config_id: Optional[str] = None


class AgentVersionResponse(CamelModel):
    id: str
    agent_id: str
    tenant_id: str
    version: int
    config_json: Dict[str, Any]
    global_prompt: Optional[str] = None
    rag_enabled: bool
    rag_config_id: Optional[str] = None
    voice_config_id: Optional[str] = None
    is_active: bool
    created_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


class AgentResponse(CamelModel):
    id: str
    tenant_id: str
    name: str
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class AgentSummaryResponse(AgentResponse):
    active_version: Optional[int] = None
    version_count: int = 0
    call_count: int = 0


class AgentDetailResponse(AgentResponse):
    active_version: Optional[AgentVersionResponse] = None
    phone_mapping_count: int = 0
    version_count: int = 0
    call_count: int = 0


def _detail(detail: Dict[str, Any]) -> Dict[str, Any]:
    agent = AgentResponse.model_validate(detail["agent"])
    active = detail.get("active_version")
    return AgentDetailResponse(
        **agent.model_dump(),
        active_version=AgentVersionResponse.model_validate(active) if active else None,
        phone_mapping_count=detail.get("phone_mapping_count", 0),
        version_count=detail.get("version_count", 1),
        call_count=detail.get("call_count", 0)
    ).dump()


def _validated_config(config_json: Dict[str, Any]) -> List[str]:
    """Validate a workflow config; returns warnings or raises ValidationFailed"""
    result = validate_agent_config(config_json)
    if not result.valid:
        raise ValidationFailed(
            "Invalid workflow configuration",
            issues=result.errors,
            warnings=result.warnings
        )
    if result.warnings:
        logger.warning("Agent config warnings", warnings=result.warnings)
    return result.warnings


# ============================================
# AGENT ENDPOINTS
# ============================================

@router.get("")
async def list_agents(
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user)
):
    """List agents visible to the caller"""
    rows = AgentService(db).list_agents(user.context())
    data = [
        AgentSummaryResponse(
            **AgentResponse.model_validate(row["agent"]).model_dump(),
            active_version=row["active_version"],
            version_count=row["version_count"],
            call_count=row["call_count"]
        ).dump()
        for row in rows
    ]
    return success_response(data)


@router.post("")
async def create_agent(
    request: CreateAgentRequest,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_admin)
):
    """Create an agent and its active version 1"""
    warnings = _validated_config(request.config_json)

    created = AgentService(db).create_agent(
        name=request.name,
        description=request.description,
        config_json=request.config_json,
        ctx=user.context(),
        created_by=user.email,
        tenant_id=request.tenant_id
    )
    created["version_count"] = 1
    return success_response(_detail(created), 201, extra={"warnings": warnings or None})


@router.get("/{agent_id}")
async def get_agent(
    agent_id: str,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user)
):
    """Agent with its active version and counts"""
    detail = AgentService(db).get_agent_detail(agent_id, user.context())
    if not detail:
        raise NotFound("Agent not found")
    return success_response(_detail(detail))


@router.put("/{agent_id}")
async def update_agent(
    agent_id: str,
    request: UpdateAgentRequest,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_admin)
):
    """Update agent name/description"""
    agent = AgentService(db).update_agent(
        agent_id,
        user.context(),
        **request.model_dump(exclude_unset=True)
    )
    if not agent:
        raise NotFound("Agent not found")
    return success_response(AgentResponse.model_validate(agent).dump())


@router.delete("/{agent_id}")
async def delete_agent(
    agent_id: str,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_admin)
):
    """Soft delete an agent"""
    agent = AgentService(db).delete_agent(agent_id, user.context())
    if not agent:
        raise NotFound("Agent not found")
    return success_response(AgentResponse.model_validate(agent).dump())


@router.get("/{agent_id}/phone-configs")
async def list_agent_phone_configs(
    agent_id: str,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user)
):
    """Phone numbers routed to the agent"""
    configs = AgentService(db).get_agent_phone_configs(agent_id, user.context())
    if configs is None:
        raise NotFound("Agent not found")
    return success_response([PhoneConfigResponse.from_model(c).dump() for c in configs])


# ============================================
# VERSION ENDPOINTS
# ============================================

@router.get("/{agent_id}/versions")
async def list_versions(
    agent_id: str,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user)
):
    """All config versions, newest first"""
    versions = AgentService(db).list_versions(agent_id, user.context())
    if versions is None:
        raise NotFound("Agent not found")
    return success_response([AgentVersionResponse.model_validate(v).dump() for v in versions])


@router.post("/{agent_id}/versions")
async def create_version(
    agent_id: str,
    request: CreateVersionRequest,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_admin)
):
    """Create the next config version (inactive until activated)"""
    warnings = _validated_config(request.config_json)

    version = AgentService(db).create_version(
        agent_id,
        request.config_json,
        user.context(),
        created_by=user.email,
        notes=request.notes,
        global_prompt=request.global_prompt,
        rag_enabled=request.rag_enabled,
        rag_config_id=request.rag_config_id,
        voice_config_id=request.voice_config_id
    )
    if not version:
        raise NotFound("Agent not found")

    return success_response(
        AgentVersionResponse.model_validate(version).dump(),
        201,
        extra={"warnings": warnings or None}
    )


@router.get("/{agent_id}/versions/{version_id}")
async def get_version(
    agent_id: str,
    version_id: str,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user)
):
    version = AgentService(db).get_version(agent_id, version_id, user.context())
    if not version:
        raise NotFound("Version not found")
    return success_response(AgentVersionResponse.model_validate(version).dump())


@router.put("/{agent_id}/versions/{version_id}/activate")
async def activate_version(
    agent_id: str,
    version_id: str,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_admin),
    admin_api: AdminApiClient = Depends(get_admin_api)
):
    """
    Make a version the agent's only active version

    The orchestrator cache refresh that follows is best-effort and is
    reported as cacheRefreshed.
    """
    version = AgentService(db).activate_version(agent_id, version_id, user.context())
    if not version:
        raise NotFound("Version not found")

    cache_refreshed = await admin_api.refresh_cache_best_effort(version.tenant_id, agent_id)

    return success_response(
        AgentVersionResponse.model_validate(version).dump(),
        extra={"cacheRefreshed": cache_refreshed}
    )
