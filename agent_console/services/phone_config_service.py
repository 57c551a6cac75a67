"""
Phone Config Service
Tenant phone-number pool and the phone-to-agent routing table
"""

from datetime import datetime
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from agent_console.core.exceptions import Conflict, NotFound, ValidationFailed
from agent_console.core.logging import get_logger
from agent_console.db.models import Agent, PhoneConfig, PhoneConfigMapping
from .context import QueryContext

logger = get_logger(__name__)

DUPLICATE_PHONE_MESSAGE = "A phone config with this number already exists"
ALREADY_MAPPED_MESSAGE = "Phone number is already mapped"

_UNSET = object()


class PhoneConfigService:
    """
    Service for phone config and phone mapping operations
    """

    def __init__(self, db: Session):
        self.db = db

    # ============================================
    # LOOKUPS
    # ============================================

    def _active_configs(self, ctx: QueryContext):
        query = self.db.query(PhoneConfig).filter(PhoneConfig.is_active == True)
        return ctx.scope(query, PhoneConfig.tenant_id)

    def get_phone_config(self, config_id: str, ctx: QueryContext) -> Optional[PhoneConfig]:
        return self._active_configs(ctx).filter(PhoneConfig.id == config_id).first()

    def get_by_phone_number(
        self,
        phone_number: str,
        ctx: QueryContext,
        tenant_id: Optional[str] = None
    ) -> Optional[PhoneConfig]:
        """Active config for the number; tenant_id pins the owner when the caller sees several tenants"""
        query = self._active_configs(ctx).filter(PhoneConfig.phone_number == phone_number)
        if tenant_id:
            query = query.filter(PhoneConfig.tenant_id == tenant_id)
        return query.first()

    def _owned_config(self, phone_number: str, ctx: QueryContext, tenant_id: Optional[str]) -> Optional[PhoneConfig]:
        return self.get_by_phone_number(phone_number, ctx, tenant_id=ctx.resolve_tenant(tenant_id))

    def list_phone_configs(self, ctx: QueryContext) -> List[PhoneConfig]:
        """Active phone configs with their mapping loaded"""
        return self._active_configs(ctx).order_by(PhoneConfig.created_at.desc()).all()

    def list_dropdown(self, ctx: QueryContext) -> List[PhoneConfig]:
        return self._active_configs(ctx).order_by(PhoneConfig.phone_number).all()

    def list_unmapped(self, ctx: QueryContext) -> List[PhoneConfig]:
        """Active phone configs not routed to any agent"""
        return self._active_configs(ctx).outerjoin(
            PhoneConfigMapping, PhoneConfigMapping.phone_config_id == PhoneConfig.id
        ).filter(
            PhoneConfigMapping.phone_config_id.is_(None)
        ).order_by(PhoneConfig.phone_number).all()

    def is_phone_number_exists(
        self,
        phone_number: str,
        tenant_id: str,
        exclude_id: Optional[str] = None
    ) -> bool:
        """Whether an active config in the tenant already uses the number"""
        query = self.db.query(PhoneConfig.id).filter(
            PhoneConfig.phone_number == phone_number,
            PhoneConfig.tenant_id == tenant_id,
            PhoneConfig.is_active == True
        )
        if exclude_id:
            query = query.filter(PhoneConfig.id != exclude_id)
        return query.first() is not None

    def get_agent_for_phone_number(self, phone_number: str, ctx: QueryContext) -> Optional[Agent]:
        """Agent that inbound calls to this number are routed to"""
        config = self.get_by_phone_number(phone_number, ctx)
        if not config or not config.mapping:
            return None
        agent = config.mapping.agent
        return agent if agent and agent.is_active else None

    def _require_agent(self, agent_id: str, tenant_id: str) -> Agent:
        agent = self.db.query(Agent).filter(
            Agent.id == agent_id,
            Agent.tenant_id == tenant_id,
            Agent.is_active == True
        ).first()
        if not agent:
            raise NotFound("Agent not found")
        return agent

    def _set_mapping(self, config: PhoneConfig, agent_id: Optional[str]) -> None:
        if config.mapping is not None:
            self.db.delete(config.mapping)
            self.db.flush()
            self.db.expire(config, ["mapping"])

        if agent_id:
            self._require_agent(agent_id, config.tenant_id)
            self.db.add(PhoneConfigMapping(
                phone_config_id=config.id,
                agent_id=agent_id,
                tenant_id=config.tenant_id
            ))

    # ============================================
    # PHONE CONFIGS
    # ============================================

    def create_phone_config(
        self,
        phone_number: str,
        ctx: QueryContext,
        name: Optional[str] = None,
        description: Optional[str] = None,
        agent_id: Optional[str] = None,
        tenant_id: Optional[str] = None
    ) -> PhoneConfig:
        """
        Add a phone number to the tenant pool

        Raises:
            Conflict: If the tenant already has an active config for the number,
                including one committed concurrently
            NotFound: If agent_id does not name an agent in the tenant
        """
        owner = ctx.resolve_tenant(tenant_id)

        if self.is_phone_number_exists(phone_number, owner):
            raise Conflict(DUPLICATE_PHONE_MESSAGE)

        config = PhoneConfig(
            tenant_id=owner,
            phone_number=phone_number,
            name=name,
            description=description
        )
        try:
            self.db.add(config)
            self.db.flush()
            if agent_id:
                self._set_mapping(config, agent_id)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise Conflict(DUPLICATE_PHONE_MESSAGE)
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(config)
        logger.info(f"Created phone config: {config.id} ({phone_number})", tenant_id=owner)
        return config

    def update_phone_config(
        self,
        config_id: str,
        ctx: QueryContext,
        phone_number: Optional[str] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
        agent_id=_UNSET
    ) -> Optional[PhoneConfig]:
        """
        Update number, labels or routing of a phone config

        agent_id left unset keeps the current mapping; None removes it.
        """
        config = self.get_phone_config(config_id, ctx)
        if not config:
            return None

        if phone_number and phone_number != config.phone_number:
            if self.is_phone_number_exists(phone_number, config.tenant_id, exclude_id=config.id):
                raise Conflict(DUPLICATE_PHONE_MESSAGE)
            config.phone_number = phone_number

        if name is not None:
            config.name = name
        if description is not None:
            config.description = description

        try:
            if agent_id is not _UNSET:
                current = config.mapping.agent_id if config.mapping else None
                if agent_id != current:
                    self._set_mapping(config, agent_id)
            config.updated_at = datetime.utcnow()
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise Conflict(DUPLICATE_PHONE_MESSAGE)
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(config)
        logger.info(f"Updated phone config: {config_id}")
        return config

    def delete_phone_config(self, config_id: str, ctx: QueryContext) -> Optional[PhoneConfig]:
        """Soft delete a phone config and drop its mapping"""
        config = self.get_phone_config(config_id, ctx)
        if not config:
            return None

        if config.mapping is not None:
            self.db.delete(config.mapping)
        config.is_active = False
        config.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(config)

        logger.info(f"Deactivated phone config: {config_id}")
        return config

    # ============================================
    # PHONE MAPPINGS (keyed by phone number)
    # ============================================

    def list_mappings(self, ctx: QueryContext) -> List[PhoneConfigMapping]:
        query = self.db.query(PhoneConfigMapping).join(
            PhoneConfig, PhoneConfig.id == PhoneConfigMapping.phone_config_id
        ).filter(PhoneConfig.is_active == True)
        return ctx.scope(query, PhoneConfigMapping.tenant_id).order_by(PhoneConfig.phone_number).all()

    def create_mapping(
        self,
        phone_number: str,
        agent_id: Optional[str],
        ctx: QueryContext,
        tenant_id: Optional[str] = None
    ) -> PhoneConfigMapping:
        """
        Route a pooled phone number to an agent

        Raises:
            NotFound: Unknown phone number or agent
            Conflict: Number already routed
            ValidationFailed: No agent given, or a global caller named no tenant
        """
        config = self._owned_config(phone_number, ctx, tenant_id)
        if not config:
            raise NotFound("Phone config not found")
        if config.mapping is not None:
            raise Conflict(ALREADY_MAPPED_MESSAGE)
        if not agent_id:
            raise ValidationFailed("agentId is required to create a mapping", field="agentId")

        try:
            self._set_mapping(config, agent_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(config)
        logger.info(f"Mapped phone number {phone_number} to agent {agent_id}")
        return config.mapping

    def update_mapping(
        self,
        phone_number: str,
        agent_id: Optional[str],
        ctx: QueryContext,
        tenant_id: Optional[str] = None
    ) -> Optional[PhoneConfig]:
        """Re-route a mapped number. A null agent removes the mapping."""
        config = self._owned_config(phone_number, ctx, tenant_id)
        if not config or config.mapping is None:
            return None

        try:
            self._set_mapping(config, agent_id)
            config.updated_at = datetime.utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(config)
        logger.info(f"Updated mapping for {phone_number}", agent_id=agent_id)
        return config

    def delete_mapping(
        self,
        phone_number: str,
        ctx: QueryContext,
        tenant_id: Optional[str] = None
    ) -> Optional[PhoneConfig]:
        config = self._owned_config(phone_number, ctx, tenant_id)
        if not config or config.mapping is None:
            return None

        self.db.delete(config.mapping)
        self.db.commit()
        self.db.refresh(config)

        logger.info(f"Removed mapping for {phone_number}")
        return config
