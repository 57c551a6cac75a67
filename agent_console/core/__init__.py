"""
Core module for the Agent Console
"""

from .config import settings, get_settings
from .logging import setup_logging, get_logger
from .exceptions import (
    ConsoleException,
    Unauthorized,
    Forbidden,
    ValidationFailed,
    NotFound,
    Conflict,
    Gone,
    UpstreamNotConfigured,
    UpstreamError,
    OrchestratorError,
    InternalError
)

__all__ = [
    "settings",
    "get_settings",
    "setup_logging",
    "get_logger",
    "ConsoleException",
    "Unauthorized",
    "Forbidden",
    "ValidationFailed",
    "NotFound",
    "Conflict",
    "Gone",
    "UpstreamNotConfigured",
    "UpstreamError",
    "OrchestratorError",
    "InternalError"
]
