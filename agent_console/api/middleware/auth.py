"""
Session Authentication
Resolves the caller from the access cookie (or Bearer header), refreshing
it from the refresh cookie when needed, and gates mutations on role
"""

from typing import Optional

from fastapi import Depends, Header, Request, Response
from pydantic import BaseModel

from agent_console.core.config import settings
from agent_console.core.exceptions import Forbidden, Unauthorized
from agent_console.core.jwt_auth import ACCESS_TOKEN, decode_jwt_token, refresh_access_token
from agent_console.core.logging import get_logger
from agent_console.db.models import UserRole
from agent_console.services.context import QueryContext

logger = get_logger(__name__)

REFRESHED_TOKEN_STATE = "refreshed_access_token"


class SessionUser(BaseModel):
    """Authenticated caller"""
    user_id: str
    email: Optional[str] = None
    role: str
    tenant_id: Optional[str] = None
    is_global_user: bool = False

    @classmethod
    def from_claims(cls, claims: dict) -> "SessionUser":
        return cls(
            user_id=str(claims["userId"]),
            email=claims.get("email"),
            role=claims.get("role") or UserRole.VIEWER.value,
            tenant_id=claims.get("tenantId"),
            is_global_user=bool(claims.get("isGlobalUser"))
        )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def context(self) -> QueryContext:
        return QueryContext(tenant_id=self.tenant_id, is_global_user=self.is_global_user)


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return None


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> SessionUser:
    """
    Dependency that requires a valid session

    An expired or missing access token is replaced from a valid refresh
    cookie; the new token is written back by the session cookie middleware.

    Raises:
        Unauthorized: No valid access or refresh credential
    """
    token = request.cookies.get(settings.access_cookie_name) or _bearer_token(authorization)
    payload = decode_jwt_token(token, token_type=ACCESS_TOKEN) if token else None

    if payload is None:
        refresh_token = request.cookies.get(settings.refresh_cookie_name)
        new_token = refresh_access_token(refresh_token) if refresh_token else None
        if new_token:
            setattr(request.state, REFRESHED_TOKEN_STATE, new_token)
            payload = decode_jwt_token(new_token, token_type=ACCESS_TOKEN)
            logger.debug("Access token refreshed from refresh cookie")

    if payload is None:
        raise Unauthorized()

    return SessionUser.from_claims(payload)


async def require_admin(user: SessionUser = Depends(get_current_user)) -> SessionUser:
    """Dependency that requires the admin role"""
    if not user.is_admin:
        logger.warning("Mutation rejected for non-admin user", user_id=user.user_id, role=user.role)
        raise Forbidden("You do not have permission to perform this action")
    return user


# ============================================
# COOKIE HELPERS
# ============================================

def set_access_cookie(response: Response, access_token: str) -> None:
    response.set_cookie(
        settings.access_cookie_name,
        access_token,
        max_age=settings.access_token_minutes * 60,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/"
    )


def set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    set_access_cookie(response, access_token)
    response.set_cookie(
        settings.refresh_cookie_name,
        refresh_token,
        max_age=settings.refresh_token_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/"
    )


def clear_auth_cookies(response: Response) -> None:
    response.delete_cookie(settings.access_cookie_name, path="/")
    response.delete_cookie(settings.refresh_cookie_name, path="/")


async def session_cookie_middleware(request: Request, call_next):
    """Write back an access token that was refreshed while handling the request"""
    response = await call_next(request)
    refreshed = getattr(request.state, REFRESHED_TOKEN_STATE, None)
    if refreshed:
        set_access_cookie(response, refreshed)
    return response
