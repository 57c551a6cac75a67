"""
Call API Routes
Call history, transcripts, timelines, metrics and live call status
"""

import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agent_console.core.exceptions import NotFound, OrchestratorError
from agent_console.db import get_db
from agent_console.db.models import CallAnalysis, CallDirection, CallTransition
from agent_console.api.middleware.auth import SessionUser, get_current_user
from agent_console.api.responses import CamelModel, success_response
from agent_console.api.routes.proxy import ErrorRule, require_configured, translate_orchestrator_error
from agent_console.services import CallService
from agent_console.services.orchestrator import AdminApiClient, get_admin_api

router = APIRouter()

CALL_NOT_FOUND = "Call not found"

CALL_STATUS_ERRORS: List[ErrorRule] = [
    (404, 404, CALL_NOT_FOUND, None),
    ("not found", 404, CALL_NOT_FOUND, None),
]


# ============================================
# RESPONSE MODELS
# ============================================

class CallSummaryResponse(CamelModel):
    call_id: str
    tenant_id: str
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    from_number: Optional[str] = None
    to_number: Optional[str] = None
    status: str
    direction: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    total_messages: int = 0
    total_transitions: int = 0
    recording_url: Optional[str] = None


class CallDetailResponse(CallSummaryResponse):
    agent_version_id: Optional[str] = None
    twilio_call_sid: Optional[str] = None
    recording_enabled: bool = False
    initial_node_id: Optional[str] = None
    final_node_id: Optional[str] = None
    total_turns: int = 0
    total_rag_queries: int = 0
    total_user_interruptions: int = 0
    analysis_pending: bool = False


class CallMessageResponse(CamelModel):
    id: str
    role: str
    content: str
    timestamp: Optional[datetime] = None
    node_id: Optional[str] = None
    turn_number: Optional[int] = None
    was_interrupted: bool = False


class CallTransitionResponse(CamelModel):
    id: str
    from_state: Optional[str] = None
    to_state: str
    from_node_name: Optional[str] = None
    to_node_name: Optional[str] = None
    timestamp: datetime
    reason: Optional[str] = None

    @classmethod
    def from_model(cls, transition: CallTransition) -> "CallTransitionResponse":
        return cls(
            id=transition.id,
            from_state=transition.from_node_id,
            to_state=transition.to_node_id,
            from_node_name=transition.from_node_name,
            to_node_name=transition.to_node_name,
            timestamp=transition.timestamp,
            reason=transition.reason
        )


class CallMetricsResponse(CamelModel):
    call_id: str
    avg_user_to_bot_latency_ms: Optional[float] = None
    avg_llm_ttfb_ms: Optional[float] = None
    avg_stt_ttfb_ms: Optional[float] = None
    avg_tts_ttfb_ms: Optional[float] = None
    avg_rag_processing_ms: Optional[float] = None
    avg_pipeline_total_ms: Optional[float] = None
    total_llm_tokens: Optional[int] = None
    total_tts_characters: Optional[int] = None


class CallAnalysisResponse(CamelModel):
    call_id: str
    sentiment: Optional[str] = None
    sentiment_score: Optional[float] = None
    summary: Optional[str] = None
    call_successful: Optional[bool] = None
    key_topics: List[str] = []
    keywords: List[str] = []
    action_items: List[str] = []

    @classmethod
    def from_model(cls, analysis: CallAnalysis) -> "CallAnalysisResponse":
        return cls(
            call_id=analysis.call_id,
            sentiment=analysis.sentiment,
            sentiment_score=analysis.sentiment_score,
            summary=analysis.summary,
            call_successful=analysis.call_successful,
            key_topics=analysis.topics_discussed or [],
            keywords=analysis.keywords_detected or []
        )


def _timeline_event(event: Dict[str, Any]) -> Dict[str, Any]:
    data = event["data"]
    if event["type"] == "message":
        data = CallMessageResponse.model_validate(data).dump()
    elif event["type"] == "transition":
        data = CallTransitionResponse.from_model(data).dump()
    return {**event, "data": data}


# ============================================
# CALL ENDPOINTS
# ============================================

@router.get("")
async def list_calls(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100, alias="pageSize"),
    status: Optional[str] = None,
    direction: Optional[CallDirection] = None,
    agent_id: Optional[str] = Query(default=None, alias="agentId"),
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    from_number: Optional[str] = Query(default=None, alias="fromNumber"),
    to_number: Optional[str] = Query(default=None, alias="toNumber"),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user)
):
    """Page through calls visible to the caller, newest first"""
    calls, total = CallService(db).list_calls(
        user.context(),
        page=page,
        page_size=page_size,
        agent_id=agent_id,
        status=status,
        direction=direction.value if direction else None,
        start_date=start_date,
        end_date=end_date,
        from_number=from_number,
        to_number=to_number,
        search=search
    )
    pagination = {
        "page": page,
        "pageSize": page_size,
        "totalCount": total,
        "totalPages": math.ceil(total / page_size)
    }
    return success_response(
        [CallSummaryResponse.model_validate(call).dump() for call in calls],
        extra={"pagination": pagination}
    )


@router.get("/stats")
async def get_call_stats(
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user)
):
    stats = CallService(db).get_stats(user.context(), start_date=start_date, end_date=end_date)
    return success_response({
        "totalCalls": stats["total_calls"],
        "averageDuration": stats["average_duration"],
        "successRate": stats["success_rate"],
        "averageLatency": stats["average_latency"]
    })


@router.get("/{call_id}")
async def get_call(
    call_id: str,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user)
):
    call = CallService(db).get_call(call_id, user.context())
    if not call:
        raise NotFound(CALL_NOT_FOUND)
    return success_response(CallDetailResponse.model_validate(call).dump())


@router.get("/{call_id}/transcript")
async def get_call_transcript(
    call_id: str,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user)
):
    entries = CallService(db).get_transcript(call_id, user.context())
    if entries is None:
        raise NotFound(CALL_NOT_FOUND)
    return success_response(entries)


@router.get("/{call_id}/timeline")
async def get_call_timeline(
    call_id: str,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user)
):
    """Messages, node transitions and transcript entries in time order"""
    events = CallService(db).get_timeline(call_id, user.context())
    if events is None:
        raise NotFound(CALL_NOT_FOUND)
    return success_response([_timeline_event(event) for event in events])


@router.get("/{call_id}/metrics")
async def get_call_metrics(
    call_id: str,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user)
):
    metrics = CallService(db).get_metrics(call_id, user.context())
    if not metrics:
        raise NotFound("Metrics not found")
    return success_response(CallMetricsResponse.model_validate(metrics).dump())


@router.get("/{call_id}/analysis")
async def get_call_analysis(
    call_id: str,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user)
):
    analysis = CallService(db).get_analysis(call_id, user.context())
    if not analysis:
        raise NotFound("Analysis not found")
    return success_response(CallAnalysisResponse.from_model(analysis).dump())


@router.get("/{call_id}/status")
async def get_call_status(
    call_id: str,
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user),
    admin_api: AdminApiClient = Depends(get_admin_api)
):
    """Live call status from the orchestrator, for calls the caller can see"""
    require_configured(admin_api, "Call status API is not configured. Please contact your administrator.")
    if not CallService(db).get_call(call_id, user.context()):
        raise NotFound(CALL_NOT_FOUND)

    try:
        result = await admin_api.get_call_status(call_id)
    except OrchestratorError as e:
        raise translate_orchestrator_error(e, CALL_STATUS_ERRORS)

    return success_response(result)
