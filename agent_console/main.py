"""
Agent Console - Main Application Entry Point

Admin API for a multi-tenant voice AI platform:
- Agent configs with immutable versions and single-active activation
- Phone number pool and phone-to-agent routing
- RAG and voice parameter sets
- Signed proxy to the orchestrator (outbound calls, RAG queries,
  text chat sessions, agent import/export)
- Call history, transcripts and call statistics
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agent_console.core.config import settings
from agent_console.core.logging import setup_logging, get_logger
from agent_console.core.exceptions import ConsoleException, InternalError, UpstreamError, Unauthorized
from agent_console.api.middleware import session_cookie_middleware
from agent_console.api.responses import error_response
from agent_console.api.routes import (
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
from agent_console.db import init_database, close_database

# Setup logging
setup_logging(
    level=settings.log_level,
    format_type=settings.log_format,
    environment=settings.environment
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler for startup and shutdown events
    """
    logger.info("=" * 60)
    logger.info("Starting Agent Console")
    logger.info(f"Version: {settings.app_version}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Admin API: {settings.orchestrator_admin_api_url or 'not configured'}")
    logger.info("=" * 60)

    init_database()
    logger.info("Database initialized successfully")

    yield

    logger.info("Shutting down Agent Console")
    await close_database()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Agent Console API",
    description="""
    ## Agent Console

    Configuration and testing console for tenant voice AI agents.

    ### Authentication

    Sign in through `POST /api/auth/login`. The session is carried in the
    `access_token` and `refresh_token` httpOnly cookies; an
    `Authorization: Bearer <jwt>` header is also accepted.

    Only the `admin` role may change configuration.
    """,
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# Configure CORS
cors_origins = settings.cors_origins
if settings.debug:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.middleware("http")(session_cookie_middleware)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests"""
    logger.debug(
        f"[REQUEST] {request.method} {request.url.path}",
        origin=request.headers.get("origin", "None")
    )
    response = await call_next(request)
    logger.debug(f"[RESPONSE] {response.status_code}")
    return response


# Custom Exception Handlers
@app.exception_handler(Unauthorized)
async def unauthorized_exception_handler(request: Request, exc: Unauthorized):
    """Handle authentication errors"""
    logger.warning(f"Unauthorized: {request.method} {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers={"WWW-Authenticate": "Bearer"}
    )


@app.exception_handler(UpstreamError)
async def upstream_exception_handler(request: Request, exc: UpstreamError):
    """Remote failures nobody translated; details stay in the logs"""
    logger.error(
        f"Upstream error: {request.method} {request.url.path}",
        service=exc.service,
        status_code=exc.status_code,
        detail=exc.message
    )
    error = InternalError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(ConsoleException)
async def console_exception_handler(request: Request, exc: ConsoleException):
    """Handle custom exceptions"""
    logger.warning(f"ConsoleException: {exc.error_code} - {exc.message}", status_code=exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies, params and queries"""
    issues = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        message = str(error.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        issues.append({"path": ".".join(location), "message": message})

    logger.info(f"Request validation failed: {request.method} {request.url.path}", issues=len(issues))
    return error_response("Invalid input", 400, code="VALIDATION_ERROR", details=issues)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    error = InternalError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(proxy.router, prefix="/api", tags=["Orchestrator"])
app.include_router(agents.router, prefix="/api/agents", tags=["Agents"])
app.include_router(phone_configs.router, prefix="/api/phone-configs", tags=["Phone Configs"])
app.include_router(phone_mappings.router, prefix="/api/phone-mappings", tags=["Phone Mappings"])
app.include_router(rag_configs.router, prefix="/api/rag-configs", tags=["RAG Configs"])
app.include_router(voice_configs.router, prefix="/api/voice-configs", tags=["Voice Configs"])
app.include_router(calls.router, prefix="/api/calls", tags=["Calls"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"])
app.include_router(llm_models.router, prefix="/api", tags=["LLM Catalog"])


@app.get("/", include_in_schema=False)
async def root():
    """API root endpoint"""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "agent_console.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug
    )
