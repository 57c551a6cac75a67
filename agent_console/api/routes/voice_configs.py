"""
Voice Config API Routes
TTS voice parameter sets that agent versions link to
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from agent_console.api.responses import CamelModel
from agent_console.api.routes.versioned_configs import build_versioned_config_router
from agent_console.services import VoiceConfigService
from agent_console.services.validation import DecimalString


class VoiceVersionFields(CamelModel):
    model: Optional[str] = None
    stability: Optional[DecimalString] = None
    similarity_boost: Optional[DecimalString] = None
    style: Optional[DecimalString] = None
    use_speaker_boost: Optional[bool] = None
    enable_ssml_parsing: Optional[bool] = None
    pronunciation_dictionaries_enabled: Optional[bool] = None
    pronunciation_dictionary_ids: Optional[List[str]] = None


class CreateVoiceConfigRequest(VoiceVersionFields):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    tenant_id: Optional[str] = None
    voice_id: str = Field(..., min_length=1, description="Voice ID is required")


class CreateVoiceVersionRequest(VoiceVersionFields):
    voice_id: Optional[str] = Field(default=None, min_length=1)
    notes: Optional[str] = Field(default=None, max_length=500)


class VoiceConfigVersionResponse(CamelModel):
    id: str
    voice_config_id: str
    tenant_id: str
    version: int
    voice_id: str
    model: str
    stability: str
    similarity_boost: str
    style: str
    use_speaker_boost: bool
    enable_ssml_parsing: bool
    pronunciation_dictionaries_enabled: bool
    pronunciation_dictionary_ids: List[str] = []
    is_active: bool
    created_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


router = build_versioned_config_router(
    VoiceConfigService,
    CreateVoiceConfigRequest,
    CreateVoiceVersionRequest,
    VoiceConfigVersionResponse
)
