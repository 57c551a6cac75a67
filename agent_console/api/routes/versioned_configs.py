"""
Versioned Config Routes
Route set shared by RAG and voice configs: CRUD, dropdown, versions, activation
"""

from datetime import datetime
from typing import Any, Dict, Optional, Type

from fastapi import APIRouter, Depends
from pydantic import Field
from sqlalchemy.orm import Session

from agent_console.core.exceptions import NotFound
from agent_console.core.logging import get_logger
from agent_console.db import get_db
from agent_console.api.middleware.auth import SessionUser, get_current_user, require_admin
from agent_console.api.responses import CamelModel, success_response
from agent_console.services import VersionedConfigService

logger = get_logger(__name__)

METADATA_FIELDS = {"name", "description", "tenant_id", "notes"}


class UpdateConfigRequest(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)


class ConfigResponse(CamelModel):
    id: str
    tenant_id: str
    name: str
    description: Optional[str] = None
    is_active: bool
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class DropdownItem(CamelModel):
    id: str
    name: str


def _version_fields(request: CamelModel) -> Dict[str, Any]:
    return request.model_dump(exclude=METADATA_FIELDS)


def build_versioned_config_router(
    service_class: Type[VersionedConfigService],
    create_model: Type[CamelModel],
    version_model: Type[CamelModel],
    version_response: Type[CamelModel]
) -> APIRouter:
    """
    Build the router for one versioned config family

    Args:
        service_class: Service implementing the config store
        create_model: Body of POST / (metadata plus version-1 fields)
        version_model: Body of POST /{id}/versions
        version_response: Schema of a single version
    """
    router = APIRouter()
    not_found = f"{service_class.label} not found"

    def detail(row: Dict[str, Any]) -> Dict[str, Any]:
        data = ConfigResponse.model_validate(row["config"]).dump()
        active = row.get("active_version")
        data["activeVersion"] = version_response.model_validate(active).dump() if active else None
        data["versionCount"] = row.get("version_count", 0)
        return data

    @router.get("")
    async def list_configs(
        db: Session = Depends(get_db),
        user: SessionUser = Depends(get_current_user)
    ):
        rows = service_class(db).list_configs(user.context())
        return success_response([detail(row) for row in rows])

    @router.get("/dropdown")
    async def config_dropdown(
        db: Session = Depends(get_db),
        user: SessionUser = Depends(get_current_user)
    ):
        configs = service_class(db).list_dropdown(user.context())
        return success_response([DropdownItem.model_validate(c).dump() for c in configs])

    @router.post("")
    async def create_config(
        request: create_model,
        db: Session = Depends(get_db),
        user: SessionUser = Depends(require_admin)
    ):
        created = service_class(db).create_config(
            request.name,
            user.context(),
            created_by=user.email,
            description=request.description,
            tenant_id=request.tenant_id,
            **_version_fields(request)
        )
        return success_response(detail(created), 201)

    @router.get("/{config_id}")
    async def get_config(
        config_id: str,
        db: Session = Depends(get_db),
        user: SessionUser = Depends(get_current_user)
    ):
        row = service_class(db).get_config_detail(config_id, user.context())
        if not row:
            raise NotFound(not_found)
        return success_response(detail(row))

    @router.put("/{config_id}")
    async def update_config(
        config_id: str,
        request: UpdateConfigRequest,
        db: Session = Depends(get_db),
        user: SessionUser = Depends(require_admin)
    ):
        config = service_class(db).update_config(
            config_id,
            user.context(),
            name=request.name,
            description=request.description
        )
        if not config:
            raise NotFound(not_found)
        return success_response(ConfigResponse.model_validate(config).dump())

    @router.delete("/{config_id}")
    async def delete_config(
        config_id: str,
        db: Session = Depends(get_db),
        user: SessionUser = Depends(require_admin)
    ):
        config = service_class(db).delete_config(config_id, user.context())
        if not config:
            raise NotFound(not_found)
        return success_response(ConfigResponse.model_validate(config).dump())

    @router.get("/{config_id}/versions")
    async def list_versions(
        config_id: str,
        db: Session = Depends(get_db),
        user: SessionUser = Depends(get_current_user)
    ):
        versions = service_class(db).list_versions(config_id, user.context())
        if versions is None:
            raise NotFound(not_found)
        return success_response([version_response.model_validate(v).dump() for v in versions])

    @router.post("/{config_id}/versions")
    async def create_version(
        config_id: str,
        request: version_model,
        db: Session = Depends(get_db),
        user: SessionUser = Depends(require_admin)
    ):
        """Unspecified fields are inherited from the latest version"""
        version = service_class(db).create_version(
            config_id,
            user.context(),
            created_by=user.email,
            notes=request.notes,
            **_version_fields(request)
        )
        if not version:
            raise NotFound(not_found)
        return success_response(version_response.model_validate(version).dump(), 201)

    @router.put("/{config_id}/versions/{version_id}/activate")
    async def activate_version(
        config_id: str,
        version_id: str,
        db: Session = Depends(get_db),
        user: SessionUser = Depends(require_admin)
    ):
        version = service_class(db).activate_version(config_id, version_id, user.context())
        if not version:
            raise NotFound("Version not found")
        logger.info(f"Activated {service_class.label} version", config_id=config_id, version=version.version)
        return success_response(version_response.model_validate(version).dump())

    return router
