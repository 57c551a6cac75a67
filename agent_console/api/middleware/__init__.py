"""
Middleware Module
"""

from .auth import (
    SessionUser,
    get_current_user,
    require_admin,
    session_cookie_middleware,
    set_auth_cookies,
    clear_auth_cookies
)

__all__ = [
    "SessionUser",
    "get_current_user",
    "require_admin",
    "session_cookie_middleware",
    "set_auth_cookies",
    "clear_auth_cookies"
]
