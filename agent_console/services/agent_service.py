"""
Agent Service
Tenant-scoped agent CRUD, config versions and activation
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from agent_console.core.exceptions import ValidationFailed
from agent_console.core.logging import get_logger
from agent_console.db.models import (
    Agent,
    AgentVersion,
    PhoneConfig,
    PhoneConfigMapping,
    RagConfig,
    VoiceConfig
)
from . import versioning
from .call_service import CallService
from .context import QueryContext

logger = get_logger(__name__)

INITIAL_VERSION_NOTES = "Initial version"


class AgentService:
    """
    Service for agent management operations
    """

    def __init__(self, db: Session):
        self.db = db

    # ============================================
    # AGENTS
    # ============================================

    def get_agent(self, agent_id: str, ctx: QueryContext) -> Optional[Agent]:
        """Get an active agent visible to the caller"""
        query = self.db.query(Agent).filter(
            Agent.id == agent_id,
            Agent.is_active == True
        )
        return ctx.scope(query, Agent.tenant_id).first()

    def list_agents(self, ctx: QueryContext) -> List[Dict[str, Any]]:
        """List agents with their active version number, version count and call count"""
        query = ctx.scope(self.db.query(Agent), Agent.tenant_id).filter(Agent.is_active == True)
        agents = query.order_by(Agent.created_at.desc()).all()
        if not agents:
            return []

        agent_ids = [agent.id for agent in agents]
        version_counts = dict(
            self.db.query(AgentVersion.agent_id, func.count(AgentVersion.id))
            .filter(AgentVersion.agent_id.in_(agent_ids))
            .group_by(AgentVersion.agent_id)
            .all()
        )
        active_numbers = dict(
            self.db.query(AgentVersion.agent_id, AgentVersion.version)
            .filter(AgentVersion.agent_id.in_(agent_ids), AgentVersion.is_active == True)
            .all()
        )
        call_counts = CallService(self.db).count_by_agent(agent_ids)

        return [
            {
                "agent": agent,
                "active_version": active_numbers.get(agent.id),
                "version_count": version_counts.get(agent.id, 0),
                "call_count": call_counts.get(agent.id, 0)
            }
            for agent in agents
        ]

    def get_agent_detail(self, agent_id: str, ctx: QueryContext) -> Optional[Dict[str, Any]]:
        """Agent with its active version and related counts"""
        agent = self.get_agent(agent_id, ctx)
        if not agent:
            return None

        phone_mapping_count = self.db.query(func.count(PhoneConfigMapping.phone_config_id)).filter(
            PhoneConfigMapping.agent_id == agent.id
        ).scalar() or 0

        return {
            "agent": agent,
            "active_version": versioning.active_version(
                self.db, AgentVersion, AgentVersion.agent_id, agent.id
            ),
            "phone_mapping_count": phone_mapping_count,
            "call_count": CallService(self.db).count_by_agent([agent.id]).get(agent.id, 0),
            "version_count": versioning.count_versions(
                self.db, AgentVersion, AgentVersion.agent_id, agent.id
            )
        }

    def create_agent(
        self,
        name: str,
        config_json: Dict[str, Any],
        ctx: QueryContext,
        created_by: Optional[str] = None,
        description: Optional[str] = None,
        tenant_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create an agent together with its first config version

        Version 1 is active immediately.

        Args:
            name: Agent name
            config_json: Validated workflow config
            ctx: Caller scope
            created_by: Email recorded on the version
            description: Optional description
            tenant_id: Target tenant (global users only)

        Returns:
            Dict with the agent and its active version
        """
        owner = ctx.resolve_tenant(tenant_id)

        agent = Agent(tenant_id=owner, name=name, description=description)
        self.db.add(agent)
        self.db.flush()

        version = AgentVersion(
            agent_id=agent.id,
            tenant_id=owner,
            version=1,
            config_json=config_json,
            is_active=True,
            created_by=created_by,
            notes=INITIAL_VERSION_NOTES
        )
        self.db.add(version)
        self.db.commit()
        self.db.refresh(agent)
        self.db.refresh(version)

        logger.info(f"Created agent: {agent.id} ({agent.name})", tenant_id=owner)
        return {"agent": agent, "active_version": version}

    def update_agent(
        self,
        agent_id: str,
        ctx: QueryContext,
        **changes
    ) -> Optional[Agent]:
        """Update agent metadata (name, description)"""
        agent = self.get_agent(agent_id, ctx)
        if not agent:
            return None

        for key in ("name", "description"):
            if key in changes:
                setattr(agent, key, changes[key])

        agent.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(agent)

        logger.info(f"Updated agent: {agent_id}")
        return agent

    def delete_agent(self, agent_id: str, ctx: QueryContext) -> Optional[Agent]:
        """Soft delete an agent and release its phone numbers"""
        agent = self.get_agent(agent_id, ctx)
        if not agent:
            return None

        self.db.query(PhoneConfigMapping).filter(
            PhoneConfigMapping.agent_id == agent.id
        ).delete(synchronize_session=False)

        agent.is_active = False
        agent.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(agent)

        logger.info(f"Deactivated agent: {agent_id}")
        return agent

    def get_agent_phone_configs(self, agent_id: str, ctx: QueryContext) -> Optional[List[PhoneConfig]]:
        """Phone configs routed to an agent"""
        agent = self.get_agent(agent_id, ctx)
        if not agent:
            return None

        return self.db.query(PhoneConfig).join(
            PhoneConfigMapping, PhoneConfigMapping.phone_config_id == PhoneConfig.id
        ).filter(
            PhoneConfigMapping.agent_id == agent.id,
            PhoneConfig.is_active == True
        ).order_by(PhoneConfig.phone_number).all()

    # ============================================
    # VERSIONS
    # ============================================

    def list_versions(self, agent_id: str, ctx: QueryContext) -> Optional[List[AgentVersion]]:
        """All versions of an agent, newest first"""
        agent = self.get_agent(agent_id, ctx)
        if not agent:
            return None

        return self.db.query(AgentVersion).filter(
            AgentVersion.agent_id == agent.id
        ).order_by(AgentVersion.version.desc()).all()

    def get_version(self, agent_id: str, version_id: str, ctx: QueryContext) -> Optional[AgentVersion]:
        agent = self.get_agent(agent_id, ctx)
        if not agent:
            return None

        return self.db.query(AgentVersion).filter(
            AgentVersion.id == version_id,
            AgentVersion.agent_id == agent.id
        ).first()

    def _check_linked_config(self, model, config_id: Optional[str], tenant_id: str, field: str) -> None:
        if not config_id:
            return
        exists = self.db.query(model.id).filter(
            model.id == config_id,
            model.tenant_id == tenant_id,
            model.is_active == True
        ).first()
        if not exists:
            raise ValidationFailed(f"{field} does not reference an existing configuration", field=field)

    def create_version(
        self,
        agent_id: str,
        config_json: Dict[str, Any],
        ctx: QueryContext,
        created_by: Optional[str] = None,
        notes: Optional[str] = None,
        global_prompt: Optional[str] = None,
        rag_enabled: bool = False,
        rag_config_id: Optional[str] = None,
        voice_config_id: Optional[str] = None
    ) -> Optional[AgentVersion]:
        """
        Create the next (inactive) config version for an agent

        Returns:
            The new version, or None if the agent is not visible
        """
        agent = self.get_agent(agent_id, ctx)
        if not agent:
            return None

        self._check_linked_config(RagConfig, rag_config_id, agent.tenant_id, "ragConfigId")
        self._check_linked_config(VoiceConfig, voice_config_id, agent.tenant_id, "voiceConfigId")

        def build(number: int) -> AgentVersion:
            return AgentVersion(
                agent_id=agent.id,
                tenant_id=agent.tenant_id,
                version=number,
                config_json=config_json,
                global_prompt=global_prompt,
                rag_enabled=bool(rag_enabled),
                rag_config_id=rag_config_id,
                voice_config_id=voice_config_id,
                is_active=False,
                created_by=created_by,
                notes=notes
            )

        version = versioning.insert_version(
            self.db, AgentVersion, AgentVersion.agent_id, agent.id, build
        )
        logger.info(f"Created agent version: {agent.id} v{version.version}")
        return version

    def activate_version(self, agent_id: str, version_id: str, ctx: QueryContext) -> Optional[AgentVersion]:
        """Make a version the single active version of its agent"""
        return versioning.activate_version(
            self.db,
            Agent,
            AgentVersion,
            AgentVersion.agent_id,
            agent_id,
            version_id,
            ctx
        )
