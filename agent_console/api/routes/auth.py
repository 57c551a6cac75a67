"""
Authentication API Routes
Login, token refresh, logout and the current session
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import EmailStr, Field
from sqlalchemy.orm import Session

from agent_console.core.config import settings
from agent_console.core.exceptions import Unauthorized
from agent_console.core.jwt_auth import create_access_token, create_refresh_token, refresh_access_token
from agent_console.core.logging import get_logger
from agent_console.db import get_db
from agent_console.api.middleware.auth import (
    SessionUser,
    clear_auth_cookies,
    get_current_user,
    set_access_cookie,
    set_auth_cookies
)
from agent_console.api.responses import CamelModel, success_response
from agent_console.services import UserService
from agent_console.services.user_service import session_claims

logger = get_logger(__name__)
router = APIRouter()


# ============================================
# REQUEST/RESPONSE MODELS
# ============================================

class LoginRequest(CamelModel):
    """User login request"""
    email: EmailStr = Field(..., description="User email")
    password: str = Field(..., min_length=1, description="Password")


class SessionResponse(CamelModel):
    user_id: str
    email: Optional[str] = None
    role: str
    tenant_id: Optional[str] = None
    is_global_user: bool = False

    @classmethod
    def from_user(cls, user: SessionUser) -> "SessionResponse":
        return cls(**user.model_dump())


# ============================================
# ENDPOINTS
# ============================================

@router.post("/login")
async def login(request: LoginRequest, db: Session = Depends(get_db)):
    """
    Sign in with email and password

    Sets the access and refresh cookies and returns the session user.
    """
    user = UserService(db).authenticate(request.email, request.password)
    if not user:
        raise Unauthorized("Invalid email or password")

    claims = session_claims(user)
    response = success_response(
        SessionResponse.from_user(SessionUser.from_claims(claims)).dump()
    )
    set_auth_cookies(response, create_access_token(claims), create_refresh_token(claims))
    return response


@router.post("/refresh")
async def refresh(request: Request):
    """Exchange the refresh cookie for a new access cookie"""
    refresh_token = request.cookies.get(settings.refresh_cookie_name)
    access_token = refresh_access_token(refresh_token) if refresh_token else None
    if not access_token:
        raise Unauthorized()

    response = success_response({"refreshed": True})
    set_access_cookie(response, access_token)
    return response


@router.post("/logout")
async def logout():
    response = success_response({"loggedOut": True})
    clear_auth_cookies(response)
    return response


@router.get("/me")
async def me(user: SessionUser = Depends(get_current_user)):
    """Current session"""
    return success_response(SessionResponse.from_user(user).dump())
