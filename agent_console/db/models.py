"""
Agent Console Database Models
SQLAlchemy models for tenants, agents, their versioned configurations and call records
"""

from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, Float, Text, JSON,
    ForeignKey, Index, UniqueConstraint, true
)
from sqlalchemy.orm import declarative_base, relationship
import uuid
import enum

Base = declarative_base()


def generate_uuid() -> str:
    """Generate a UUID string"""
    return str(uuid.uuid4())


class UserRole(str, enum.Enum):
    """User role enumeration"""
    ADMIN = "admin"
    USER = "user"
    VIEWER = "viewer"


class SearchMode(str, enum.Enum):
    """RAG search mode enumeration"""
    VECTOR = "vector"
    FTS = "fts"
    HYBRID = "hybrid"


class CallDirection(str, enum.Enum):
    """Call direction enumeration"""
    INBOUND = "inbound"
    OUTBOUND = "outbound"


# ============================================
# TENANT & USER MODELS
# ============================================

class Tenant(Base):
    """Isolation boundary for every configuration record"""
    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    agents = relationship("Agent", back_populates="tenant")
    users = relationship("User", back_populates="tenant")


class User(Base):
    """Console user. Global users have no tenant and read across tenants."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), default=UserRole.VIEWER.value, nullable=False)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=True)
    is_global_user = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="users")


# ============================================
# AGENT MODELS
# ============================================

class Agent(Base):
    """Conversational workflow agent"""
    __tablename__ = "agents"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="agents")
    versions = relationship(
        "AgentVersion",
        back_populates="agent",
        order_by="desc(AgentVersion.version)",
        cascade="all, delete-orphan"
    )
    phone_mappings = relationship("PhoneConfigMapping", back_populates="agent")

    __table_args__ = (
        Index("idx_agent_tenant", "tenant_id"),
    )


class AgentVersion(Base):
    """Immutable snapshot of an agent's workflow configuration"""
    __tablename__ = "agent_config_versions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    agent_id = Column(String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False)
    version = Column(Integer, nullable=False)
    config_json = Column(JSON, nullable=False)
    global_prompt = Column(Text, nullable=True)
    rag_enabled = Column(Boolean, default=False, nullable=False)
    rag_config_id = Column(String(36), ForeignKey("rag_configs.id"), nullable=True)
    voice_config_id = Column(String(36), ForeignKey("voice_configs.id"), nullable=True)
    is_active = Column(Boolean, default=False, nullable=False)
    created_by = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    agent = relationship("Agent", back_populates="versions")

    __table_args__ = (
        UniqueConstraint("agent_id", "version", name="uq_agent_version"),
        Index("idx_agent_version_active", "agent_id", "is_active"),
        Index("idx_agent_version_tenant", "tenant_id"),
    )


# ============================================
# PHONE MODELS
# ============================================

class PhoneConfig(Base):
    """Phone number in a tenant's pool (E.164)"""
    __tablename__ = "phone_configs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False)
    phone_number = Column(String(20), nullable=False)
    name = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    mapping = relationship(
        "PhoneConfigMapping",
        back_populates="phone_config",
        uselist=False,
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_phone_config_tenant", "tenant_id"),
        Index("idx_phone_config_number", "phone_number"),
        Index(
            "uq_phone_config_tenant_number_active",
            "tenant_id",
            "phone_number",
            unique=True,
            sqlite_where=is_active == true(),
            postgresql_where=is_active == true()
        ),
    )


class PhoneConfigMapping(Base):
    """Routes one phone config to one agent"""
    __tablename__ = "phone_mappings"

    phone_config_id = Column(
        String(36),
        ForeignKey("phone_configs.id", ondelete="CASCADE"),
        primary_key=True
    )
    agent_id = Column(String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    phone_config = relationship("PhoneConfig", back_populates="mapping")
    agent = relationship("Agent", back_populates="phone_mappings")

    __table_args__ = (
        Index("idx_phone_mapping_agent", "agent_id"),
        Index("idx_phone_mapping_tenant", "tenant_id"),
    )


# ============================================
# RAG CONFIG MODELS
# ============================================

class RagConfig(Base):
    """Named retrieval configuration"""
    __tablename__ = "rag_configs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    versions = relationship(
        "RagConfigVersion",
        back_populates="rag_config",
        order_by="desc(RagConfigVersion.version)",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_rag_config_tenant", "tenant_id"),
    )


class RagConfigVersion(Base):
    """Immutable snapshot of retrieval parameters"""
    __tablename__ = "rag_config_versions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    rag_config_id = Column(String(36), ForeignKey("rag_configs.id", ondelete="CASCADE"), nullable=False)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False)
    version = Column(Integer, nullable=False)

    search_mode = Column(String(20), default=SearchMode.HYBRID.value, nullable=False)
    top_k = Column(Integer, default=5, nullable=False)
    relevance_filter = Column(Boolean, default=True, nullable=False)
    rrf_k = Column(Integer, default=60, nullable=False)
    vector_weight = Column(String(10), default="0.6", nullable=False)
    fts_weight = Column(String(10), default="0.4", nullable=False)
    hnsw_ef_search = Column(Integer, default=64, nullable=False)
    bedrock_model = Column(String(255), default="amazon.titan-embed-text-v2:0", nullable=False)
    bedrock_dimensions = Column(Integer, default=1024, nullable=False)
    faiss_index_path = Column(String(500), default="data/faiss/index.faiss", nullable=False)
    faiss_mapping_path = Column(String(500), default="data/faiss/mapping.pkl", nullable=False)
    sqlite_db_path = Column(String(500), default="data/metadata/healthcare_rag.db", nullable=False)

    is_active = Column(Boolean, default=False, nullable=False)
    created_by = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    rag_config = relationship("RagConfig", back_populates="versions")

    __table_args__ = (
        UniqueConstraint("rag_config_id", "version", name="uq_rag_config_version"),
        Index("idx_rag_version_active", "rag_config_id", "is_active"),
    )


# ============================================
# VOICE CONFIG MODELS
# ============================================

class VoiceConfig(Base):
    """Named TTS voice configuration"""
    __tablename__ = "voice_configs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    versions = relationship(
        "VoiceConfigVersion",
        back_populates="voice_config",
        order_by="desc(VoiceConfigVersion.version)",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_voice_config_tenant", "tenant_id"),
    )


class VoiceConfigVersion(Base):
    """Immutable snapshot of TTS voice parameters"""
    __tablename__ = "voice_config_versions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    voice_config_id = Column(String(36), ForeignKey("voice_configs.id", ondelete="CASCADE"), nullable=False)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False)
    version = Column(Integer, nullable=False)

    voice_id = Column(String(255), nullable=False)
    model = Column(String(100), default="eleven_turbo_v2_5", nullable=False)
    stability = Column(String(10), default="0.5", nullable=False)
    similarity_boost = Column(String(10), default="0.75", nullable=False)
    style = Column(String(10), default="0.0", nullable=False)
    use_speaker_boost = Column(Boolean, default=True, nullable=False)
    enable_ssml_parsing = Column(Boolean, default=False, nullable=False)
    pronunciation_dictionaries_enabled = Column(Boolean, default=True, nullable=False)
    pronunciation_dictionary_ids = Column(JSON, default=list, nullable=False)

    is_active = Column(Boolean, default=False, nullable=False)
    created_by = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    voice_config = relationship("VoiceConfig", back_populates="versions")

    __table_args__ = (
        UniqueConstraint("voice_config_id", "version", name="uq_voice_config_version"),
        Index("idx_voice_version_active", "voice_config_id", "is_active"),
    )


# ============================================
# CALL MODELS (written by the orchestrator, read here)
# ============================================

class Call(Base):
    """One inbound or outbound call handled by an agent"""
    __tablename__ = "calls"

    call_id = Column(String(36), primary_key=True, default=generate_uuid)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False)
    agent_id = Column(String(36), ForeignKey("agents.id"), nullable=True)
    agent_name = Column(String(255), nullable=True)
    agent_version_id = Column(String(36), nullable=True)
    twilio_call_sid = Column(String(64), nullable=True)
    twilio_stream_sid = Column(String(64), nullable=True)
    from_number = Column(String(20), nullable=True)
    to_number = Column(String(20), nullable=True)
    status = Column(String(50), nullable=False)
    direction = Column(String(20), default=CallDirection.INBOUND.value, nullable=False)

    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    ended_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Integer, nullable=True)

    recording_enabled = Column(Boolean, default=False, nullable=False)
    recording_url = Column(Text, nullable=True)
    initial_node_id = Column(String(255), nullable=True)
    final_node_id = Column(String(255), nullable=True)

    total_turns = Column(Integer, default=0, nullable=False)
    total_messages = Column(Integer, default=0, nullable=False)
    total_transitions = Column(Integer, default=0, nullable=False)
    total_rag_queries = Column(Integer, default=0, nullable=False)
    total_user_interruptions = Column(Integer, default=0, nullable=False)
    analysis_pending = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("idx_call_tenant", "tenant_id"),
        Index("idx_call_agent", "agent_id"),
        Index("idx_call_started_at", "started_at"),
        Index("idx_call_status", "status"),
    )


class CallMessage(Base):
    """One user or assistant turn in a call"""
    __tablename__ = "call_messages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    call_id = Column(String(36), ForeignKey("calls.call_id", ondelete="CASCADE"), nullable=False)
    sequence = Column(Integer, nullable=False)
    timestamp = Column(DateTime, nullable=True)
    role = Column(String(20), nullable=False)
    content = Column(Text, nullable=False)
    node_id = Column(String(255), nullable=True)
    turn_number = Column(Integer, nullable=True)
    was_interrupted = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("idx_call_message_call", "call_id"),
    )


class CallTransition(Base):
    """Workflow node change during a call"""
    __tablename__ = "call_transitions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    call_id = Column(String(36), ForeignKey("calls.call_id", ondelete="CASCADE"), nullable=False)
    sequence = Column(Integer, nullable=False)
    timestamp = Column(DateTime, nullable=False)
    from_node_id = Column(String(255), nullable=True)
    from_node_name = Column(String(255), nullable=True)
    to_node_id = Column(String(255), nullable=False)
    to_node_name = Column(String(255), nullable=True)
    reason = Column(Text, nullable=True)
    condition = Column(Text, nullable=True)
    turn_number = Column(Integer, nullable=True)

    __table_args__ = (
        Index("idx_call_transition_call", "call_id"),
    )


class CallTranscript(Base):
    """Transcript as plain text, structured entries, or both"""
    __tablename__ = "call_transcripts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    call_id = Column(String(36), ForeignKey("calls.call_id", ondelete="CASCADE"), nullable=False, unique=True)
    transcript_text = Column(Text, nullable=True)
    transcript_data = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class CallMetricsSummary(Base):
    """Per-call latency and usage aggregates"""
    __tablename__ = "call_metrics_summary"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    call_id = Column(String(36), ForeignKey("calls.call_id", ondelete="CASCADE"), nullable=False, unique=True)
    metrics_data = Column(JSON, nullable=True)

    avg_user_to_bot_latency_ms = Column(Float, nullable=True)
    avg_llm_ttfb_ms = Column(Float, nullable=True)
    avg_stt_ttfb_ms = Column(Float, nullable=True)
    avg_tts_ttfb_ms = Column(Float, nullable=True)
    avg_rag_processing_ms = Column(Float, nullable=True)
    avg_pipeline_total_ms = Column(Float, nullable=True)
    total_llm_tokens = Column(Integer, nullable=True)
    total_tts_characters = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class CallAnalysis(Base):
    """Post-call sentiment, summary and topics"""
    __tablename__ = "call_analysis"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    call_id = Column(String(36), ForeignKey("calls.call_id", ondelete="CASCADE"), nullable=False, unique=True)
    sentiment = Column(String(20), nullable=True)
    sentiment_score = Column(Float, nullable=True)
    summary = Column(Text, nullable=True)
    call_successful = Column(Boolean, nullable=True)
    success_confidence = Column(Float, nullable=True)
    keywords_detected = Column(JSON, default=list, nullable=False)
    topics_discussed = Column(JSON, default=list, nullable=False)
    status = Column(String(20), default="completed", nullable=False)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


# ============================================
# LLM CATALOG
# ============================================

class LlmModel(Base):
    """Platform-wide LLM catalog entry offered in agent config dropdowns"""
    __tablename__ = "llm_models"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    model_name = Column(String(255), unique=True, nullable=False)
    provider = Column(String(50), nullable=False)
    actual_model_id = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    default_temperature = Column(String(10), default="1.0", nullable=False)
    default_max_tokens = Column(Integer, default=150, nullable=False)
    default_service_tier = Column(String(20), default="auto", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
