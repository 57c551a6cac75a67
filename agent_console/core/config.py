"""
Agent Console Configuration
Settings for the multi-tenant agent admin API and its orchestrator proxy
"""

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import List, Optional
from functools import lru_cache


class Settings(BaseSettings):
    """
    Configuration for the Agent Console
    Values are read from the environment and an optional .env file
    """

    # ============================================
    # APPLICATION SETTINGS
    # ============================================
    app_name: str = Field(default="Agent Console", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment (development/staging/production/test)")
    debug: bool = Field(default=False, description="Debug mode")

    # Server Configuration
    server_host: str = Field(default="0.0.0.0", description="Server host")
    server_port: int = Field(default=8000, description="Server port")

    # CORS Configuration
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        description="Comma-separated allowed origins"
    )

    @property
    def cors_origins(self) -> List[str]:
        """Parse allowed origins into list"""
        if self.allowed_origins:
            return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]
        return ["*"]

    # ============================================
    # AUTHENTICATION & SESSIONS
    # ============================================
    secret_key: str = Field(default="change-me-in-env", description="Secret key for JWT signing")
    jwt_algorithm: str = Field(default="HS256", description="JWT algorithm")
    access_token_minutes: int = Field(default=15, description="Access token lifetime in minutes")
    refresh_token_days: int = Field(default=7, description="Refresh token lifetime in days")
    access_cookie_name: str = Field(default="access_token", description="Access token cookie name")
    refresh_cookie_name: str = Field(default="refresh_token", description="Refresh token cookie name")
    cookie_secure: bool = Field(default=False, description="Mark auth cookies as Secure")

    # ============================================
    # DATABASE CONFIGURATION
    # ============================================
    database_url: str = Field(default="", description="SQLAlchemy URL (overrides sqlite path)")
    sqlite_database_path: str = Field(default="./data/agent_console.db", description="SQLite database path")

    # ============================================
    # ORCHESTRATOR (Admin API / Text Chat API)
    # ============================================
    orchestrator_admin_api_url: str = Field(default="", description="Orchestrator Admin API base URL")
    orchestrator_admin_api_key: str = Field(default="", description="Shared key for signing Admin API requests")
    text_chat_api_url: Optional[str] = Field(default=None, description="Text Chat API base URL (defaults to Admin API URL)")
    text_chat_api_key: Optional[str] = Field(default=None, description="Text Chat API key (defaults to Admin API key)")
    orchestrator_timeout_seconds: float = Field(default=10.0, description="Timeout for orchestrator requests")
    signature_max_skew_seconds: int = Field(default=300, description="Accepted clock skew for signed requests")

    # ============================================
    # LOGGING
    # ============================================
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "case_sensitive": False
    }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Global settings instance
settings = get_settings()
