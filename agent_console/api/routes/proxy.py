"""
Orchestrator Proxy Routes
Outbound calls, RAG queries, text chat sessions and agent import/export,
forwarded to the orchestrator with HMAC signing
"""

from typing import Annotated, Any, Dict, List, Optional, Sequence, Tuple, Union

from fastapi import APIRouter, Depends, Query
from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from agent_console.core.exceptions import (
    Conflict,
    ConsoleException,
    Forbidden,
    Gone,
    InternalError,
    NotFound,
    OrchestratorError,
    UpstreamNotConfigured,
    ValidationFailed
)
from agent_console.core.logging import get_logger
from agent_console.db import get_db
from agent_console.db.models import Agent
from agent_console.api.middleware.auth import SessionUser, get_current_user, require_admin
from agent_console.api.responses import CamelModel, success_response
from agent_console.api.routes.rag_configs import SearchModeName
from agent_console.services import AgentService
from agent_console.services.orchestrator import (
    AdminApiClient,
    TextChatApiClient,
    get_admin_api,
    get_text_chat_api
)
from agent_console.services.validation import PhoneNumber

logger = get_logger(__name__)
router = APIRouter()

# (substring or remote status, status, message or None to keep the remote one, code or None for the default)
ErrorRule = Tuple[Union[str, int], int, Optional[str], Optional[str]]

UNIQUE_VIOLATION: ErrorRule = ("unique", 409, "Resource already exists", None)

OUTBOUND_ERRORS: Sequence[ErrorRule] = (
    ("Invalid phone number format", 400, "Invalid phone number format", None),
    ("does not belong to tenant", 403, None, None),
    ("not found", 404, None, None),
    ("No phone number mapped", 404, None, None),
    ("RECORDING_WEBHOOK_BASE_URL", 503, "Outbound calls are not fully configured on the server.", None),
)

RAG_QUERY_ERRORS: Sequence[ErrorRule] = (
    ("RAG is not enabled", 400, None, None),
    ("not found", 404, None, None),
    ("Invalid search_mode", 400, None, None),
)

CHAT_CREATE_ERRORS: Sequence[ErrorRule] = (
    (404, 404, "Agent not found or has no active version", None),
    ("not found", 404, "Agent not found or has no active version", None),
    ("no active version", 400, "Agent has no active version. Activate a version first.", None),
)

CHAT_SESSION_ERRORS: Sequence[ErrorRule] = (
    (404, 404, "Chat session not found", "SESSION_NOT_FOUND"),
    (410, 410, "Chat session has expired or ended", "SESSION_EXPIRED"),
    ("not active", 410, "Chat session has expired or ended", "SESSION_EXPIRED"),
)

IMPORT_ERRORS: Sequence[ErrorRule] = (
    ("Missing required top-level key", 400, None, None),
    ("Tenant not found", 404, None, None),
    ("Workflow validation failed", 422, None, None),
)

EXPORT_ERRORS: Sequence[ErrorRule] = (
    ("not found", 404, None, None),
    ("Invalid", 400, None, None),
)


def _build_error(status_code: int, message: str, code: Optional[str]) -> ConsoleException:
    if status_code in (400, 422):
        return ValidationFailed(message, status_code=status_code)
    if status_code == 403:
        return Forbidden(message)
    if status_code == 404:
        return NotFound(message, error_code=code or "NOT_FOUND")
    if status_code == 409:
        return Conflict(message)
    if status_code == 410:
        return Gone(message, error_code=code or "GONE")
    if status_code == 503:
        return UpstreamNotConfigured(message)
    raise ValueError(f"No client error for status {status_code}")


def unexpected_orchestrator_error(error: OrchestratorError) -> InternalError:
    """Log the remote failure in full; the client only sees the generic message"""
    logger.error(
        "Orchestrator request failed",
        service=error.service,
        status_code=error.status_code,
        detail=error.message
    )
    return InternalError()


def translate_orchestrator_error(error: OrchestratorError, rules: Sequence[ErrorRule]) -> ConsoleException:
    """
    Map an orchestrator failure to the client-facing error

    The first matching rule wins. Anything unmatched becomes a generic 500.
    """
    for match, status_code, message, code in (*rules, UNIQUE_VIOLATION):
        if isinstance(match, int):
            hit = error.status_code == match
        else:
            hit = match in error.message
        if hit:
            return _build_error(status_code, message or error.message, code)
    return unexpected_orchestrator_error(error)


def _require_agent(db: Session, agent_id: str, user: SessionUser) -> Agent:
    agent = AgentService(db).get_agent(agent_id, user.context())
    if not agent:
        raise NotFound("Agent not found")
    return agent


def require_configured(client, message: str) -> None:
    if not client.is_configured():
        raise UpstreamNotConfigured(message)


# ============================================
# REQUEST MODELS
# ============================================

class OutboundCallRequest(CamelModel):
    to_number: PhoneNumber
    from_number: Optional[PhoneNumber] = None
    version: Optional[int] = Field(default=None, ge=1)
    metadata: Optional[Dict[str, Any]] = None


class RagQueryRequest(CamelModel):
    query: str = Field(..., min_length=1)
    version: Optional[int] = Field(default=None, ge=1)
    search_mode: Optional[SearchModeName] = None
    top_k: Optional[int] = Field(default=None, ge=1, le=50)


class CreateChatSessionRequest(CamelModel):
    metadata: Optional[Dict[str, Any]] = None


class ChatMessageRequest(CamelModel):
    content: str = Field(..., min_length=1, max_length=10000)


class _ImportedAgent(BaseModel):
    model_config = ConfigDict(extra="allow")
    name: str = Field(..., min_length=1)


class _ImportedWorkflow(BaseModel):
    model_config = ConfigDict(extra="allow")
    initial_node: str = Field(..., min_length=1)
    nodes: List[Dict[str, Any]] = Field(..., min_length=1)


class _ImportedAgentJson(BaseModel):
    model_config = ConfigDict(extra="allow")
    agent: _ImportedAgent
    workflow: _ImportedWorkflow


def _check_agent_json(value: Dict[str, Any]) -> Dict[str, Any]:
    """Check the import shape but hand the original dict on untouched"""
    _ImportedAgentJson.model_validate(value)
    return value


AgentJson = Annotated[Dict[str, Any], AfterValidator(_check_agent_json)]


class ImportAgentRequest(CamelModel):
    agent_json: AgentJson
    phone_numbers: Optional[List[PhoneNumber]] = None
    notes: Optional[str] = Field(default=None, max_length=500)
    dry_run: Optional[bool] = None
    tenant_id: Optional[str] = None


class BulkImportItem(CamelModel):
    agent_json: AgentJson
    notes: Optional[str] = Field(default=None, max_length=500)


class BulkImportRequest(CamelModel):
    agents: List[BulkImportItem] = Field(..., min_length=1, max_length=50)
    tenant_id: Optional[str] = None


# ============================================
# OUTBOUND CALLS & RAG
# ============================================

@router.post("/agents/{agent_id}/calls/outbound")
async def initiate_outbound_call(
    agent_id: str,
    request: OutboundCallRequest,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(require_admin),
    admin_api: AdminApiClient = Depends(get_admin_api)
):
    """Place an outbound call with the agent; accepted calls return 202"""
    require_configured(admin_api, "Outbound calls are not configured. Please contact your administrator.")
    agent = _require_agent(db, agent_id, user)

    try:
        result = await admin_api.initiate_outbound_call(
            tenant_id=agent.tenant_id,
            agent_id=agent.id,
            to_number=request.to_number,
            from_number=request.from_number,
            version=request.version,
            metadata=request.metadata
        )
    except OrchestratorError as e:
        raise translate_orchestrator_error(e, OUTBOUND_ERRORS)

    return success_response(result, 202)


@router.post("/agents/{agent_id}/rag/query")
async def query_rag(
    agent_id: str,
    request: RagQueryRequest,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user),
    admin_api: AdminApiClient = Depends(get_admin_api)
):
    """Run a test query against the agent's knowledge base"""
    require_configured(admin_api, "RAG query service is not configured. Contact your administrator.")
    agent = _require_agent(db, agent_id, user)

    try:
        result = await admin_api.query_rag(
            tenant_id=agent.tenant_id,
            agent_id=agent.id,
            query=request.query,
            version=request.version,
            search_mode=request.search_mode,
            top_k=request.top_k
        )
    except OrchestratorError as e:
        raise translate_orchestrator_error(e, RAG_QUERY_ERRORS)

    return success_response(result)


# ============================================
# TEXT CHAT SESSIONS
# ============================================

CHAT_NOT_CONFIGURED = "Text chat service is not configured. Contact your administrator."


@router.post("/agents/{agent_id}/chat/sessions")
async def create_chat_session(
    agent_id: str,
    request: CreateChatSessionRequest,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user),
    chat_api: TextChatApiClient = Depends(get_text_chat_api)
):
    require_configured(chat_api, CHAT_NOT_CONFIGURED)
    agent = _require_agent(db, agent_id, user)

    metadata = dict(request.metadata or {})
    metadata.update({
        "userId": user.user_id,
        "userEmail": user.email,
        "channel": "web-admin"
    })

    try:
        result = await chat_api.create_session(
            tenant_id=agent.tenant_id,
            agent_id=agent.id,
            metadata=metadata
        )
    except OrchestratorError as e:
        raise translate_orchestrator_error(e, CHAT_CREATE_ERRORS)

    return success_response(result, 201)


@router.get("/agents/{agent_id}/chat/sessions/{session_id}")
async def get_chat_session(
    agent_id: str,
    session_id: str,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user),
    chat_api: TextChatApiClient = Depends(get_text_chat_api)
):
    require_configured(chat_api, CHAT_NOT_CONFIGURED)
    _require_agent(db, agent_id, user)

    try:
        result = await chat_api.get_session_status(session_id)
    except OrchestratorError as e:
        raise translate_orchestrator_error(e, CHAT_SESSION_ERRORS[:1])

    return success_response(result)


@router.post("/agents/{agent_id}/chat/sessions/{session_id}/messages")
async def send_chat_message(
    agent_id: str,
    session_id: str,
    request: ChatMessageRequest,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user),
    chat_api: TextChatApiClient = Depends(get_text_chat_api)
):
    """Send one user turn; the reply carries node transitions"""
    require_configured(chat_api, CHAT_NOT_CONFIGURED)
    _require_agent(db, agent_id, user)

    try:
        result = await chat_api.send_message(session_id, request.content)
    except OrchestratorError as e:
        raise translate_orchestrator_error(e, CHAT_SESSION_ERRORS)

    return success_response(result)


@router.delete("/agents/{agent_id}/chat/sessions/{session_id}")
async def end_chat_session(
    agent_id: str,
    session_id: str,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user),
    chat_api: TextChatApiClient = Depends(get_text_chat_api)
):
    """End a session; one that is already gone counts as ended"""
    require_configured(chat_api, CHAT_NOT_CONFIGURED)
    _require_agent(db, agent_id, user)

    try:
        result = await chat_api.end_session(session_id)
    except OrchestratorError as e:
        if e.status_code not in (404, 410):
            raise unexpected_orchestrator_error(e)
        logger.info("Chat session already ended", session_id=session_id, status_code=e.status_code)
        result = {
            "success": True,
            "conversationId": None,
            "finalNode": None,
            "totalTurns": 0,
            "totalTransitions": 0
        }

    return success_response(result)


# ============================================
# IMPORT / EXPORT
# ============================================

@router.get("/agents/{agent_id}/export")
async def export_agent(
    agent_id: str,
    version: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user),
    admin_api: AdminApiClient = Depends(get_admin_api)
):
    """Import-compatible agent JSON; keys stay snake_case"""
    require_configured(admin_api, "Agent export is not configured. Please contact your administrator.")
    agent = _require_agent(db, agent_id, user)

    try:
        result = await admin_api.export_agent(agent.tenant_id, agent.id, version)
    except OrchestratorError as e:
        raise translate_orchestrator_error(e, EXPORT_ERRORS)

    return success_response(result)


@router.post("/agents/import")
async def import_agent(
    request: ImportAgentRequest,
    user: SessionUser = Depends(require_admin),
    admin_api: AdminApiClient = Depends(get_admin_api)
):
    """Create or version an agent from exported JSON; 201 when created"""
    require_configured(admin_api, "Agent import is not configured. Please contact your administrator.")
    tenant_id = user.context().resolve_tenant(request.tenant_id)

    try:
        result = await admin_api.import_agent(
            tenant_id=tenant_id,
            agent_json=request.agent_json,
            phone_numbers=request.phone_numbers,
            notes=request.notes,
            created_by=user.email,
            dry_run=request.dry_run
        )
    except OrchestratorError as e:
        raise translate_orchestrator_error(e, IMPORT_ERRORS)

    status_code = 201 if isinstance(result, dict) and result.get("action") == "created" else 200
    logger.info(
        "Agent imported",
        tenant_id=tenant_id,
        action=result.get("action") if isinstance(result, dict) else None
    )
    return success_response(result, status_code)


@router.post("/agents/import/bulk")
async def bulk_import_agents(
    request: BulkImportRequest,
    user: SessionUser = Depends(require_admin),
    admin_api: AdminApiClient = Depends(get_admin_api)
):
    require_configured(admin_api, "Agent import is not configured. Please contact your administrator.")
    tenant_id = user.context().resolve_tenant(request.tenant_id)

    try:
        result = await admin_api.bulk_import_agents([
            {
                "tenant_id": tenant_id,
                "agent_json": item.agent_json,
                "notes": item.notes,
                "created_by": user.email
            }
            for item in request.agents
        ])
    except OrchestratorError as e:
        raise translate_orchestrator_error(e, IMPORT_ERRORS)

    return success_response(result)
