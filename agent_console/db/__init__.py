"""
Database Module
"""

from .base import (
    init_database,
    reset_database,
    get_engine,
    get_db,
    close_database
)
from .models import (
    Base,
    Tenant,
    User,
    UserRole,
    Agent,
    AgentVersion,
    PhoneConfig,
    PhoneConfigMapping,
    RagConfig,
    RagConfigVersion,
    SearchMode,
    VoiceConfig,
    VoiceConfigVersion,
    CallDirection,
    Call,
    CallMessage,
    CallTransition,
    CallTranscript,
    CallMetricsSummary,
    CallAnalysis,
    LlmModel,
    generate_uuid
)

__all__ = [
    # Base
    "init_database",
    "reset_database",
    "get_engine",
    "get_db",
    "close_database",
    # Models
    "Base",
    "Tenant",
    "User",
    "UserRole",
    "Agent",
    "AgentVersion",
    "PhoneConfig",
    "PhoneConfigMapping",
    "RagConfig",
    "RagConfigVersion",
    "SearchMode",
    "VoiceConfig",
    "VoiceConfigVersion",
    "CallDirection",
    "Call",
    "CallMessage",
    "CallTransition",
    "CallTranscript",
    "CallMetricsSummary",
    "CallAnalysis",
    "LlmModel",
    "generate_uuid"
]
