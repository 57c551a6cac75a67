"""
Phone Config API Routes
Tenant phone-number pool
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import Field
from sqlalchemy.orm import Session

from agent_console.core.exceptions import NotFound
from agent_console.core.logging import get_logger
from agent_console.db import get_db
from agent_console.db.models import PhoneConfig
from agent_console.api.middleware.auth import SessionUser, get_current_user, require_admin
from agent_console.api.responses import CamelModel, success_response
from agent_console.services import PhoneConfigService
from agent_console.services.validation import PhoneNumber

logger = get_logger(__name__)
router = APIRouter()


# ============================================
# REQUEST/RESPONSE MODELS
# ============================================

class CreatePhoneConfigRequest(CamelModel):
    phone_number: PhoneNumber
    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    agent_id: Optional[str] = Field(default=None, description="Route the number to this agent")
    tenant_id: Optional[str] = None


class UpdatePhoneConfigRequest(CamelModel):
    """agentId: null unmaps the number; omitting it keeps the mapping"""
    phone_number: Optional[PhoneNumber] = None
    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    agent_id: Optional[str] = None


class PhoneConfigResponse(CamelModel):
    id: str
    tenant_id: str
    phone_number: str
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: bool
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, config: PhoneConfig) -> "PhoneConfigResponse":
        mapping = config.mapping
        return cls(
            id=config.id,
            tenant_id=config.tenant_id,
            phone_number=config.phone_number,
            name=config.name,
            description=config.description,
            is_active=config.is_active,
            agent_id=mapping.agent_id if mapping else None,
            agent_name=mapping.agent.name if mapping and mapping.agent else None,
            created_at=config.created_at,
            updated_at=config.updated_at
        )


class PhoneDropdownItem(CamelModel):
    id: str
    phone_number: str
    name: Optional[str] = None


# ============================================
# ENDPOINTS
# ============================================

@router.get("")
async def list_phone_configs(
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user)
):
    configs = PhoneConfigService(db).list_phone_configs(user.context())
    return success_response([PhoneConfigResponse.from_model(c).dump() for c in configs])


@router.get("/dropdown")
async def phone_config_dropdown(
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user)
):
    configs = PhoneConfigService(db).list_dropdown(user.context())
    return success_response([PhoneDropdownItem.model_validate(c).dump() for c in configs])


@router.get("/unmapped")
async def list_unmapped_phone_configs(
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user)
):
    """Numbers in the pool that are not routed to an agent"""
    configs = PhoneConfigService(db).list_unmapped(user.context())
    return success_response([PhoneDropdownItem.model_validate(c).dump() for c in configs])


@router.post("")
async def create_phone_config(
    request: CreatePhoneConfigRequest,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_admin)
):
    config = PhoneConfigService(db).create_phone_config(
        request.phone_number,
        user.context(),
        name=request.name,
        description=request.description,
        agent_id=request.agent_id,
        tenant_id=request.tenant_id
    )
    return success_response(PhoneConfigResponse.from_model(config).dump(), 201)


@router.get("/{config_id}")
async def get_phone_config(
    config_id: str,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user)
):
    config = PhoneConfigService(db).get_phone_config(config_id, user.context())
    if not config:
        raise NotFound("Phone config not found")
    return success_response(PhoneConfigResponse.from_model(config).dump())


@router.put("/{config_id}")
async def update_phone_config(
    config_id: str,
    request: UpdatePhoneConfigRequest,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_admin)
):
    changes = request.model_dump(exclude_unset=True)
    config = PhoneConfigService(db).update_phone_config(config_id, user.context(), **changes)
    if not config:
        raise NotFound("Phone config not found")
    return success_response(PhoneConfigResponse.from_model(config).dump())


@router.delete("/{config_id}")
async def delete_phone_config(
    config_id: str,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_admin)
):
    config = PhoneConfigService(db).delete_phone_config(config_id, user.context())
    if not config:
        raise NotFound("Phone config not found")
    return success_response({"id": config.id, "deleted": True})
