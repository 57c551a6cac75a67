"""
RAG Config API Routes
Retrieval parameter sets that agent versions link to
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from agent_console.api.responses import CamelModel
from agent_console.api.routes.versioned_configs import build_versioned_config_router
from agent_console.services import RagConfigService
from agent_console.services.validation import DecimalString

SearchModeName = Literal["vector", "fts", "hybrid"]


class RagVersionFields(CamelModel):
    """Retrieval parameters; None means default (create) or inherit (new version)"""
    search_mode: Optional[SearchModeName] = None
    top_k: Optional[int] = Field(default=None, ge=1, le=50)
    relevance_filter: Optional[bool] = None
    rrf_k: Optional[int] = Field(default=None, ge=1, le=200)
    vector_weight: Optional[DecimalString] = None
    fts_weight: Optional[DecimalString] = None
    hnsw_ef_search: Optional[int] = Field(default=None, ge=1)
    bedrock_model: Optional[str] = None
    bedrock_dimensions: Optional[int] = Field(default=None, ge=1)
    faiss_index_path: Optional[str] = None
    faiss_mapping_path: Optional[str] = None
    sqlite_db_path: Optional[str] = None


class CreateRagConfigRequest(RagVersionFields):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    tenant_id: Optional[str] = None


class CreateRagVersionRequest(RagVersionFields):
    notes: Optional[str] = Field(default=None, max_length=500)


class RagConfigVersionResponse(CamelModel):
    id: str
    rag_config_id: str
    tenant_id: str
    version: int
    search_mode: str
    top_k: int
    relevance_filter: bool
    rrf_k: int
    vector_weight: str
    fts_weight: str
    hnsw_ef_search: int
    bedrock_model: str
    bedrock_dimensions: int
    faiss_index_path: str
    faiss_mapping_path: str
    sqlite_db_path: str
    is_active: bool
    created_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


router = build_versioned_config_router(
    RagConfigService,
    CreateRagConfigRequest,
    CreateRagVersionRequest,
    RagConfigVersionResponse
)
