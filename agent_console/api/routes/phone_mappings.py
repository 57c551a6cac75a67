"""
Phone Mapping API Routes
Phone-number-to-agent routing, keyed by phone number
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agent_console.core.exceptions import NotFound
from agent_console.db import get_db
from agent_console.db.models import PhoneConfigMapping
from agent_console.api.middleware.auth import SessionUser, get_current_user, require_admin
from agent_console.api.responses import CamelModel, success_response
from agent_console.api.routes.phone_configs import PhoneConfigResponse
from agent_console.services import PhoneConfigService
from agent_console.services.validation import PhoneNumber

router = APIRouter()


class CreateMappingRequest(CamelModel):
    """tenantId picks the owning tenant for global users"""
    phone_number: PhoneNumber
    agent_id: Optional[str] = None
    tenant_id: Optional[str] = None


class UpdateMappingRequest(CamelModel):
    agent_id: Optional[str] = None
    tenant_id: Optional[str] = None


class PhoneMappingResponse(CamelModel):
    phone_config_id: str
    phone_number: str
    agent_id: str
    agent_name: Optional[str] = None
    tenant_id: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, mapping: PhoneConfigMapping) -> "PhoneMappingResponse":
        return cls(
            phone_config_id=mapping.phone_config_id,
            phone_number=mapping.phone_config.phone_number,
            agent_id=mapping.agent_id,
            agent_name=mapping.agent.name if mapping.agent else None,
            tenant_id=mapping.tenant_id,
            created_at=mapping.created_at,
            updated_at=mapping.updated_at
        )


@router.get("")
async def list_phone_mappings(
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user)
):
    mappings = PhoneConfigService(db).list_mappings(user.context())
    return success_response([PhoneMappingResponse.from_model(m).dump() for m in mappings])


@router.post("")
async def create_phone_mapping(
    request: CreateMappingRequest,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_admin)
):
    mapping = PhoneConfigService(db).create_mapping(
        request.phone_number,
        request.agent_id,
        user.context(),
        tenant_id=request.tenant_id
    )
    return success_response(PhoneMappingResponse.from_model(mapping).dump(), 201)


@router.put("/{phone_number}")
async def update_phone_mapping(
    phone_number: str,
    request: UpdateMappingRequest,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_admin)
):
    """Re-route a number; agentId null removes the mapping"""
    config = PhoneConfigService(db).update_mapping(
        phone_number,
        request.agent_id,
        user.context(),
        tenant_id=request.tenant_id
    )
    if not config:
        raise NotFound("Phone mapping not found")
    return success_response(PhoneConfigResponse.from_model(config).dump())


@router.delete("/{phone_number}")
async def delete_phone_mapping(
    phone_number: str,
    tenant_id: Optional[str] = Query(default=None, alias="tenantId"),
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_admin)
):
    config = PhoneConfigService(db).delete_mapping(phone_number, user.context(), tenant_id=tenant_id)
    if not config:
        raise NotFound("Phone mapping not found")
    return success_response(PhoneConfigResponse.from_model(config).dump())
