"""
Pytest configuration and fixtures
"""

import copy
import os
import pytest
from unittest.mock import AsyncMock, MagicMock

# Set test environment variables before importing app modules
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("ORCHESTRATOR_ADMIN_API_URL", "http://orchestrator.test")
os.environ.setdefault("ORCHESTRATOR_ADMIN_API_KEY", "test-admin-key")

from fastapi.testclient import TestClient

from agent_console.core.jwt_auth import create_access_token, create_refresh_token
from agent_console.db import reset_database
from agent_console.db.base import get_session_factory
from agent_console.db.models import Call
from agent_console.services.user_service import UserService, session_claims


VALID_CONFIG = {
    "agent": {"id": "intake-agent", "name": "Intake Agent"},
    "workflow": {
        "initial_node": "greeting",
        "nodes": [
            {
                "id": "greeting",
                "name": "Greeting",
                "type": "standard",
                "system_prompt": "Greet the caller and ask how you can help.",
                "transitions": [{"condition": "caller is done", "target": "goodbye"}]
            },
            {"id": "goodbye", "name": "Goodbye", "type": "end_call"}
        ],
        "llm": {"model": "gpt-4o-mini", "temperature": 0.7},
        "tts": {"voice_id": "voice-123"},
        "stt": {"model": "flux-general-en"}
    }
}


@pytest.fixture(autouse=True)
def database(tmp_path):
    """Fresh file-backed SQLite database per test"""
    reset_database(f"sqlite:///{tmp_path / 'console.db'}")
    yield


@pytest.fixture
def db_session(database):
    """Session on the test database"""
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def workflow_config():
    """A valid workflow config (deep copy, safe to mutate)"""
    return copy.deepcopy(VALID_CONFIG)


@pytest.fixture
def tenants(db_session):
    """Two tenants, a and b"""
    service = UserService(db_session)
    return {
        "a": service.create_tenant("Tenant A", "tenant-a"),
        "b": service.create_tenant("Tenant B", "tenant-b")
    }


@pytest.fixture
def users(db_session, tenants):
    """Admin and viewer in tenant a, admin in tenant b, and a global admin"""
    service = UserService(db_session)
    return {
        "admin_a": service.create_user("admin@tenant-a.example.com", "password-a", "admin", tenants["a"].id),
        "viewer_a": service.create_user("viewer@tenant-a.example.com", "password-v", "viewer", tenants["a"].id),
        "admin_b": service.create_user("admin@tenant-b.example.com", "password-b", "admin", tenants["b"].id),
        "global_admin": service.create_user(
            "root@platform.example.com", "password-g", "admin", None, is_global_user=True
        )
    }


@pytest.fixture
def auth_headers(users):
    """Bearer header for a seeded user, e.g. auth_headers("admin_a")"""
    def _headers(name: str):
        token = create_access_token(session_claims(users[name]))
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def auth_cookies(users):
    """Access/refresh cookie values for a seeded user"""
    def _cookies(name: str):
        claims = session_claims(users[name])
        return {
            "access_token": create_access_token(claims),
            "refresh_token": create_refresh_token(claims)
        }
    return _cookies


@pytest.fixture
def test_client():
    """Fixture for test client"""
    from agent_console.main import app
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def mock_admin_api(test_client):
    """Admin API client replaced in route dependencies"""
    from agent_console.main import app
    from agent_console.services.orchestrator import get_admin_api

    instance = MagicMock()
    instance.is_configured.return_value = True
    instance.refresh_cache_best_effort = AsyncMock(return_value=True)
    instance.query_rag = AsyncMock(return_value={"results": [], "totalResults": 0})
    instance.initiate_outbound_call = AsyncMock(return_value={"callId": "call-1", "status": "queued"})
    instance.import_agent = AsyncMock(return_value={"success": True, "action": "created", "version": 1})
    instance.bulk_import_agents = AsyncMock(return_value={"total": 1, "succeeded": 1, "failed": 0, "results": []})
    instance.export_agent = AsyncMock(return_value={})
    instance.get_call_status = AsyncMock(return_value={"callId": "call-1", "status": "in-progress"})
    instance.list_llm_providers = AsyncMock(return_value=[])
    app.dependency_overrides[get_admin_api] = lambda: instance
    yield instance


@pytest.fixture
def mock_chat_api(test_client):
    """Text Chat API client replaced in route dependencies"""
    from agent_console.main import app
    from agent_console.services.orchestrator import get_text_chat_api

    instance = MagicMock()
    instance.is_configured.return_value = True
    instance.create_session = AsyncMock(return_value={"sessionId": "sess-1", "currentNode": "greeting"})
    instance.send_message = AsyncMock(return_value={"response": "Hello!", "transitions": []})
    instance.get_session_status = AsyncMock(return_value={"sessionId": "sess-1", "isActive": True})
    instance.end_session = AsyncMock(return_value={"success": True, "totalTurns": 2})
    app.dependency_overrides[get_text_chat_api] = lambda: instance
    yield instance


@pytest.fixture
def create_agent(test_client, auth_headers, workflow_config):
    """Create an agent through the API and return its data"""
    def _create(user: str = "admin_a", name: str = "Intake Agent", **extra):
        response = test_client.post(
            "/api/agents",
            json={"name": name, "configJson": workflow_config, **extra},
            headers=auth_headers(user)
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]
    return _create


@pytest.fixture
def seed_call(db_session):
    """Insert a call row the way the orchestrator records one"""
    def _seed(tenant_id: str, status: str = "ended", **fields):
        call = Call(tenant_id=tenant_id, status=status, **fields)
        db_session.add(call)
        db_session.commit()
        return call
    return _seed
