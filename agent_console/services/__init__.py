"""
Services Module
Config store, validation and orchestrator integrations
"""

from .context import QueryContext
from .agent_service import AgentService
from .phone_config_service import PhoneConfigService
from .config_service import VersionedConfigService, RagConfigService, VoiceConfigService
from .call_service import CallService
from .llm_model_service import LlmModelService
from .user_service import UserService
from .validation import validate_agent_config, ConfigValidationResult
from .orchestrator import AdminApiClient, TextChatApiClient

__all__ = [
    "QueryContext",

    # Config Store
    "AgentService",
    "PhoneConfigService",
    "VersionedConfigService",
    "RagConfigService",
    "VoiceConfigService",
    "UserService",

    # Call History
    "CallService",
    "LlmModelService",

    # Validation
    "validate_agent_config",
    "ConfigValidationResult",

    # Orchestrator
    "AdminApiClient",
    "TextChatApiClient"
]
