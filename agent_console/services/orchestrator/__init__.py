"""
Orchestrator proxy clients
"""

from .admin_api import AdminApiClient
from .text_chat_api import TextChatApiClient
from .case_mapping import to_camel_keys
from .signing import sign_request, verify_signature


def get_admin_api() -> AdminApiClient:
    """Dependency returning an Admin API client built from settings"""
    return AdminApiClient()


def get_text_chat_api() -> TextChatApiClient:
    """Dependency returning a Text Chat API client built from settings"""
    return TextChatApiClient()


__all__ = [
    "AdminApiClient",
    "TextChatApiClient",
    "to_camel_keys",
    "sign_request",
    "verify_signature",
    "get_admin_api",
    "get_text_chat_api"
]
