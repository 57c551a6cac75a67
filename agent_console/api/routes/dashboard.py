"""
Dashboard API Routes
Chart series for the console home page
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agent_console.db import get_db
from agent_console.api.middleware.auth import SessionUser, get_current_user
from agent_console.api.responses import success_response
from agent_console.services import CallService

router = APIRouter()


@router.get("/call-volume")
async def get_call_volume(
    days: int = Query(default=7, ge=1, le=90),
    db: Session = Depends(get_db),
    user: SessionUser = Depends(get_current_user)
):
    """Calls per day over the last `days` days"""
    return success_response(CallService(db).call_volume(user.context(), days=days))
