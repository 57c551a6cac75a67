"""
Call Service
Read-only, tenant-scoped views over the call records the orchestrator writes
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from agent_console.db.models import (
    Call,
    CallAnalysis,
    CallMessage,
    CallMetricsSummary,
    CallTranscript,
    CallTransition
)
from .context import QueryContext

ENDED_STATUS = "ended"


def _naive_utc(value: Any) -> Optional[datetime]:
    """Datetime or ISO string as a naive UTC datetime; None when unparseable"""
    if isinstance(value, str) and value:
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _contains(column, value: str):
    return column.ilike(f"%{value}%")


class CallService:
    """
    Service for call history, transcripts and call statistics
    """

    def __init__(self, db: Session):
        self.db = db

    def _calls(self, ctx: QueryContext):
        return ctx.scope(self.db.query(Call), Call.tenant_id)

    @staticmethod
    def _in_range(query, start_date: Optional[datetime], end_date: Optional[datetime]):
        start_date = _naive_utc(start_date)
        end_date = _naive_utc(end_date)
        if start_date:
            query = query.filter(Call.started_at >= start_date)
        if end_date:
            query = query.filter(Call.started_at <= end_date)
        return query

    # ============================================
    # CALLS
    # ============================================

    def get_call(self, call_id: str, ctx: QueryContext) -> Optional[Call]:
        return self._calls(ctx).filter(Call.call_id == call_id).first()

    def list_calls(
        self,
        ctx: QueryContext,
        page: int = 1,
        page_size: int = 20,
        agent_id: Optional[str] = None,
        status: Optional[str] = None,
        direction: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        from_number: Optional[str] = None,
        to_number: Optional[str] = None,
        search: Optional[str] = None
    ) -> Tuple[List[Call], int]:
        """
        One page of calls, newest first

        Number filters and search match substrings, case-insensitively.
        search looks at the call id, agent name and both numbers.

        Returns:
            The page of calls and the total number of matching calls
        """
        query = self._calls(ctx)
        if agent_id:
            query = query.filter(Call.agent_id == agent_id)
        if status:
            query = query.filter(Call.status == status)
        if direction:
            query = query.filter(Call.direction == direction)
        query = self._in_range(query, start_date, end_date)
        if from_number:
            query = query.filter(_contains(Call.from_number, from_number))
        if to_number:
            query = query.filter(_contains(Call.to_number, to_number))
        if search:
            query = query.filter(or_(
                _contains(Call.call_id, search),
                _contains(Call.agent_name, search),
                _contains(Call.from_number, search),
                _contains(Call.to_number, search)
            ))

        total = query.count()
        calls = query.order_by(Call.started_at.desc()).offset((page - 1) * page_size).limit(page_size).all()
        return calls, total

    def count_by_agent(self, agent_ids: List[str]) -> Dict[str, int]:
        if not agent_ids:
            return {}
        return dict(
            self.db.query(Call.agent_id, func.count(Call.call_id))
            .filter(Call.agent_id.in_(agent_ids))
            .group_by(Call.agent_id)
            .all()
        )

    # ============================================
    # CALL DETAILS
    # ============================================

    def _messages(self, call_id: str) -> List[CallMessage]:
        return self.db.query(CallMessage).filter(
            CallMessage.call_id == call_id
        ).order_by(CallMessage.timestamp, CallMessage.sequence).all()

    def _transitions(self, call_id: str) -> List[CallTransition]:
        return self.db.query(CallTransition).filter(
            CallTransition.call_id == call_id
        ).order_by(CallTransition.timestamp, CallTransition.sequence).all()

    def _transcript_entries(self, call_id: str) -> List[Dict[str, Any]]:
        transcript = self.db.query(CallTranscript).filter(CallTranscript.call_id == call_id).first()
        if not transcript:
            return []

        if isinstance(transcript.transcript_data, list):
            entries = []
            for index, entry in enumerate(transcript.transcript_data):
                if not isinstance(entry, dict):
                    entry = {}
                entries.append({
                    "id": f"{call_id}-{index}",
                    "speaker": entry.get("speaker") or "Unknown",
                    "text": entry.get("text") or entry.get("content") or "",
                    "timestamp": _naive_utc(entry.get("timestamp")),
                    "confidence": entry.get("confidence")
                })
            return entries

        if transcript.transcript_text:
            return [{
                "id": call_id,
                "speaker": "System",
                "text": transcript.transcript_text,
                "timestamp": None,
                "confidence": None
            }]
        return []

    def get_transcript(self, call_id: str, ctx: QueryContext) -> Optional[List[Dict[str, Any]]]:
        """
        Transcript entries for a call

        Structured entries win over plain text, which comes back as a
        single "System" entry. None when the call is not visible.
        """
        if not self.get_call(call_id, ctx):
            return None
        return self._transcript_entries(call_id)

    def get_timeline(self, call_id: str, ctx: QueryContext) -> Optional[List[Dict[str, Any]]]:
        """
        Messages, transitions and transcript entries merged by timestamp

        Items without a timestamp are left out. Each event is
        {id, type, timestamp, data}; data is the ORM row or transcript entry.
        """
        if not self.get_call(call_id, ctx):
            return None

        events = []
        for message in self._messages(call_id):
            if message.timestamp:
                events.append({"id": f"msg-{message.id}", "type": "message", "timestamp": message.timestamp, "data": message})
        for transition in self._transitions(call_id):
            events.append({"id": f"trans-{transition.id}", "type": "transition", "timestamp": transition.timestamp, "data": transition})
        for entry in self._transcript_entries(call_id):
            if entry["timestamp"]:
                events.append({"id": f"transcript-{entry['id']}", "type": "transcript", "timestamp": entry["timestamp"], "data": entry})

        events.sort(key=lambda event: event["timestamp"])
        return events

    def get_metrics(self, call_id: str, ctx: QueryContext) -> Optional[CallMetricsSummary]:
        if not self.get_call(call_id, ctx):
            return None
        return self.db.query(CallMetricsSummary).filter(CallMetricsSummary.call_id == call_id).first()

    def get_analysis(self, call_id: str, ctx: QueryContext) -> Optional[CallAnalysis]:
        if not self.get_call(call_id, ctx):
            return None
        return self.db.query(CallAnalysis).filter(CallAnalysis.call_id == call_id).first()

    # ============================================
    # STATISTICS
    # ============================================

    def get_stats(
        self,
        ctx: QueryContext,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Call totals for the stats cards

        success_rate is the percentage of calls with status "ended",
        rounded to one decimal. Durations are seconds, latency milliseconds.
        """
        calls = self._in_range(self._calls(ctx), start_date, end_date)

        total, average_duration, ended = calls.with_entities(
            func.count(Call.call_id),
            func.avg(Call.duration_seconds),
            func.sum(case((Call.status == ENDED_STATUS, 1), else_=0))
        ).one()

        average_latency = calls.join(
            CallMetricsSummary, CallMetricsSummary.call_id == Call.call_id
        ).with_entities(
            func.avg(CallMetricsSummary.avg_user_to_bot_latency_ms)
        ).scalar()

        total = total or 0
        return {
            "total_calls": total,
            "average_duration": round(float(average_duration)) if average_duration is not None else 0,
            "success_rate": round(float(ended or 0) / total * 100, 1) if total else 0.0,
            "average_latency": round(float(average_latency)) if average_latency is not None else 0
        }

    def call_volume(self, ctx: QueryContext, days: int = 7) -> List[Dict[str, Any]]:
        """
        Calls per day since midnight UTC `days` days ago

        Days without calls are absent from the series.
        """
        start = (datetime.utcnow() - timedelta(days=days)).replace(hour=0, minute=0, second=0, microsecond=0)
        day = func.date(Call.started_at)

        rows = self._calls(ctx).filter(
            Call.started_at >= start
        ).with_entities(
            day, func.count(Call.call_id)
        ).group_by(day).order_by(day).all()

        return [{"date": str(date), "count": count} for date, count in rows]
