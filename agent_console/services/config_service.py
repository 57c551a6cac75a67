"""
Versioned Config Services
RAG and voice configs share one lifecycle: a named, tenant-scoped parent
with immutable numbered versions and a single active version.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from agent_console.core.exceptions import Conflict
from agent_console.core.logging import get_logger
from agent_console.db.models import (
    RagConfig,
    RagConfigVersion,
    VoiceConfig,
    VoiceConfigVersion
)
from . import versioning
from .context import QueryContext

logger = get_logger(__name__)

INITIAL_VERSION_NOTES = "Initial version"


class VersionedConfigService:
    """
    Base service for configs that are edited by adding versions

    Subclasses name the parent/version models, the foreign key column and
    the version fields with their defaults. A new version copies every
    field it does not set from the latest version.
    """

    parent_model = None
    version_model = None
    parent_key: str = ""
    label: str = "Config"
    version_defaults: Dict[str, Any] = {}

    def __init__(self, db: Session):
        self.db = db

    @property
    def parent_column(self):
        return getattr(self.version_model, self.parent_key)

    def _active_parents(self, ctx: QueryContext):
        query = self.db.query(self.parent_model).filter(self.parent_model.is_active == True)
        return ctx.scope(query, self.parent_model.tenant_id)

    def _name_taken(self, name: str, tenant_id: str, exclude_id: Optional[str] = None) -> bool:
        query = self.db.query(self.parent_model.id).filter(
            self.parent_model.name == name,
            self.parent_model.tenant_id == tenant_id,
            self.parent_model.is_active == True
        )
        if exclude_id:
            query = query.filter(self.parent_model.id != exclude_id)
        return query.first() is not None

    def _duplicate_name(self) -> Conflict:
        return Conflict(f"A {self.label} with this name already exists")

    # ============================================
    # PARENT CRUD
    # ============================================

    def get_config(self, config_id: str, ctx: QueryContext):
        return self._active_parents(ctx).filter(self.parent_model.id == config_id).first()

    def list_configs(self, ctx: QueryContext) -> List[Dict[str, Any]]:
        """Configs with their active version, newest first"""
        configs = self._active_parents(ctx).order_by(self.parent_model.created_at.desc()).all()
        return [self._with_versions(config) for config in configs]

    def list_dropdown(self, ctx: QueryContext) -> List[Any]:
        return self._active_parents(ctx).order_by(self.parent_model.name).all()

    def get_config_detail(self, config_id: str, ctx: QueryContext) -> Optional[Dict[str, Any]]:
        config = self.get_config(config_id, ctx)
        if not config:
            return None
        return self._with_versions(config)

    def _with_versions(self, config) -> Dict[str, Any]:
        return {
            "config": config,
            "active_version": versioning.active_version(
                self.db, self.version_model, self.parent_column, config.id
            ),
            "version_count": versioning.count_versions(
                self.db, self.version_model, self.parent_column, config.id
            )
        }

    def create_config(
        self,
        name: str,
        ctx: QueryContext,
        created_by: Optional[str] = None,
        description: Optional[str] = None,
        tenant_id: Optional[str] = None,
        **version_fields
    ) -> Dict[str, Any]:
        """
        Create a config and its active version 1

        Raises:
            Conflict: If the tenant already has an active config with this name
        """
        owner = ctx.resolve_tenant(tenant_id)
        if self._name_taken(name, owner):
            raise self._duplicate_name()

        config = self.parent_model(
            tenant_id=owner,
            name=name,
            description=description,
            created_by=created_by
        )
        self.db.add(config)
        self.db.flush()

        values = dict(self.version_defaults)
        values.update({k: v for k, v in version_fields.items() if v is not None})
        version = self.version_model(
            tenant_id=owner,
            version=1,
            is_active=True,
            created_by=created_by,
            notes=INITIAL_VERSION_NOTES,
            **{self.parent_key: config.id},
            **values
        )
        self.db.add(version)
        self.db.commit()
        self.db.refresh(config)
        self.db.refresh(version)

        logger.info(f"Created {self.label}: {config.id} ({name})", tenant_id=owner)
        return {"config": config, "active_version": version, "version_count": 1}

    def update_config(
        self,
        config_id: str,
        ctx: QueryContext,
        name: Optional[str] = None,
        description: Optional[str] = None
    ):
        config = self.get_config(config_id, ctx)
        if not config:
            return None

        if name is not None and name != config.name:
            if self._name_taken(name, config.tenant_id, exclude_id=config.id):
                raise self._duplicate_name()
            config.name = name
        if description is not None:
            config.description = description

        config.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(config)

        logger.info(f"Updated {self.label}: {config_id}")
        return config

    def delete_config(self, config_id: str, ctx: QueryContext):
        """Soft delete"""
        config = self.get_config(config_id, ctx)
        if not config:
            return None

        config.is_active = False
        config.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(config)

        logger.info(f"Deactivated {self.label}: {config_id}")
        return config

    # ============================================
    # VERSIONS
    # ============================================

    def list_versions(self, config_id: str, ctx: QueryContext) -> Optional[List[Any]]:
        config = self.get_config(config_id, ctx)
        if not config:
            return None

        return self.db.query(self.version_model).filter(
            self.parent_column == config.id
        ).order_by(self.version_model.version.desc()).all()

    def create_version(
        self,
        config_id: str,
        ctx: QueryContext,
        created_by: Optional[str] = None,
        notes: Optional[str] = None,
        **version_fields
    ):
        """
        Add an inactive version; unspecified fields carry over from the latest

        Returns:
            The new version, or None if the config is not visible
        """
        config = self.get_config(config_id, ctx)
        if not config:
            return None

        latest = versioning.latest_version(self.db, self.version_model, self.parent_column, config.id)
        values = {}
        for field_name, default in self.version_defaults.items():
            inherited = getattr(latest, field_name) if latest is not None else default
            supplied = version_fields.get(field_name)
            values[field_name] = supplied if supplied is not None else inherited

        def build(number: int):
            return self.version_model(
                tenant_id=config.tenant_id,
                version=number,
                is_active=False,
                created_by=created_by,
                notes=notes,
                **{self.parent_key: config.id},
                **values
            )

        version = versioning.insert_version(
            self.db, self.version_model, self.parent_column, config.id, build
        )
        logger.info(f"Created {self.label} version: {config.id} v{version.version}")
        return version

    def activate_version(self, config_id: str, version_id: str, ctx: QueryContext):
        return versioning.activate_version(
            self.db,
            self.parent_model,
            self.version_model,
            self.parent_column,
            config_id,
            version_id,
            ctx
        )


class RagConfigService(VersionedConfigService):
    """Retrieval parameter configs"""

    parent_model = RagConfig
    version_model = RagConfigVersion
    parent_key = "rag_config_id"
    label = "RAG config"
    version_defaults = {
        "search_mode": "hybrid",
        "top_k": 5,
        "relevance_filter": True,
        "rrf_k": 60,
        "vector_weight": "0.6",
        "fts_weight": "0.4",
        "hnsw_ef_search": 64,
        "bedrock_model": "amazon.titan-embed-text-v2:0",
        "bedrock_dimensions": 1024,
        "faiss_index_path": "data/faiss/index.faiss",
        "faiss_mapping_path": "data/faiss/mapping.pkl",
        "sqlite_db_path": "data/metadata/healthcare_rag.db",
    }


class VoiceConfigService(VersionedConfigService):
    """TTS voice configs"""

    parent_model = VoiceConfig
    version_model = VoiceConfigVersion
    parent_key = "voice_config_id"
    label = "Voice config"
    version_defaults = {
        "voice_id": None,
        "model": "eleven_turbo_v2_5",
        "stability": "0.5",
        "similarity_boost": "0.75",
        "style": "0.0",
        "use_speaker_boost": True,
        "enable_ssml_parsing": False,
        "pronunciation_dictionaries_enabled": True,
        "pronunciation_dictionary_ids": [],
    }
