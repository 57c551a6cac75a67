"""
Health Check Routes
Liveness and readiness endpoints
"""

from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agent_console.core.config import settings
from agent_console.core.logging import get_logger
from agent_console.db import get_db
from agent_console.services.orchestrator import get_admin_api, get_text_chat_api

logger = get_logger(__name__)
router = APIRouter()

_startup_time = datetime.utcnow()


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint
    Returns immediately to indicate the service is running
    """
    return {
        "status": "healthy",
        "service": "agent-console",
        "version": settings.app_version,
        "environment": settings.environment,
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/health/ready")
async def readiness_check(db: Session = Depends(get_db)) -> Dict[str, Any]:
    """
    Readiness check - database reachable, orchestrator settings present
    """
    checks = {
        "database": False,
        "admin_api": get_admin_api().is_configured(),
        "text_chat_api": get_text_chat_api().is_configured()
    }
    errors = []

    try:
        db.execute(text("SELECT 1"))
        checks["database"] = True
    except SQLAlchemyError as e:
        logger.error("Readiness database check failed", error=str(e))
        errors.append(f"Database: {e}")

    if not checks["admin_api"]:
        errors.append("Admin API: URL or key not configured")

    uptime = datetime.utcnow() - _startup_time
    return {
        "status": "ready" if checks["database"] else "not_ready",
        "checks": checks,
        "errors": errors or None,
        "uptime_seconds": int(uptime.total_seconds()),
        "timestamp": datetime.utcnow().isoformat()
    }
