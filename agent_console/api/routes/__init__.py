"""
API Routes Module
"""

from . import (
    agents,
    auth,
    calls,
    dashboard,
    health,
    llm_models,
    phone_configs,
    phone_mappings,
    proxy,
    rag_configs,
    voice_configs
)

__all__ = [
    "agents",
    "auth",
    "calls",
    "dashboard",
    "health",
    "llm_models",
    "phone_configs",
    "phone_mappings",
    "proxy",
    "rag_configs",
    "voice_configs"
]
