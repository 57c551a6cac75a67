"""
Tests for core session tokens, errors and logging helpers
"""

import json
import logging
from datetime import timedelta

from agent_console.api.routes.proxy import (
    CHAT_SESSION_ERRORS,
    IMPORT_ERRORS,
    OUTBOUND_ERRORS,
    translate_orchestrator_error
)
from agent_console.core.exceptions import (
    Conflict,
    ConsoleException,
    Forbidden,
    Gone,
    InternalError,
    NotFound,
    OrchestratorError,
    UpstreamNotConfigured,
    ValidationFailed
)
from agent_console.core.jwt_auth import (
    ACCESS_TOKEN,
    REFRESH_TOKEN,
    create_access_token,
    create_jwt_token,
    create_refresh_token,
    decode_jwt_token,
    refresh_access_token
)
from agent_console.core.logging import JSONFormatter, redact
from agent_console.services.user_service import hash_password, verify_password


CLAIMS = {
    "userId": "user-1",
    "email": "admin@tenant-a.example.com",
    "role": "admin",
    "tenantId": "tenant-1",
    "isGlobalUser": False
}


class TestSessionTokens:
    """Tests for JWT access and refresh tokens"""

    def test_access_token_round_trip(self):
        payload = decode_jwt_token(create_access_token(CLAIMS), token_type=ACCESS_TOKEN)
        assert payload["userId"] == "user-1"
        assert payload["tenantId"] == "tenant-1"

    def test_token_types_are_not_interchangeable(self):
        """Test a refresh token is never accepted as an access token"""
        refresh = create_refresh_token(CLAIMS)
        assert decode_jwt_token(refresh, token_type=ACCESS_TOKEN) is None
        assert decode_jwt_token(refresh, token_type=REFRESH_TOKEN) is not None

    def test_expired_token(self):
        token = create_jwt_token({**CLAIMS, "type": ACCESS_TOKEN}, timedelta(seconds=-5))
        assert decode_jwt_token(token) is None

    def test_garbage_token(self):
        assert decode_jwt_token("not.a.jwt") is None

    def test_refresh_issues_access_token(self):
        access = refresh_access_token(create_refresh_token(CLAIMS))
        assert decode_jwt_token(access, token_type=ACCESS_TOKEN)["email"] == CLAIMS["email"]
        assert refresh_access_token(create_access_token(CLAIMS)) is None


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("s3cret")
        assert hashed != "s3cret"
        assert verify_password("s3cret", hashed)
        assert not verify_password("wrong", hashed)

    def test_malformed_hash(self):
        assert verify_password("s3cret", "plain-text") is False


class TestExceptions:
    """Tests for the error envelope"""

    def test_envelope(self):
        body = NotFound("Agent not found").to_dict()
        assert body == {"success": False, "error": "Agent not found", "code": "NOT_FOUND"}

    def test_validation_details_and_warnings(self):
        error = ValidationFailed(
            "Invalid workflow configuration",
            issues=[{"path": "workflow.nodes", "message": "Required"}],
            warnings=["Node 'x' is unreachable"]
        )
        body = error.to_dict()
        assert error.status_code == 400
        assert body["details"] == [{"path": "workflow.nodes", "message": "Required"}]
        assert body["warnings"] == ["Node 'x' is unreachable"]

    def test_field_shortcut(self):
        error = ValidationFailed("agentId is required", field="agentId")
        assert error.details == [{"path": "agentId", "message": "agentId is required"}]

    def test_base_defaults(self):
        error = ConsoleException("Boom")
        assert error.status_code == 500
        assert "details" not in error.to_dict()

    def test_upstream_error_envelope_has_no_details(self):
        """Test the service name stays out of the client envelope"""
        error = OrchestratorError("Admin API timeout", status_code=504, service="admin-api")
        assert error.service == "admin-api"
        assert error.to_dict() == {"success": False, "error": "Admin API timeout", "code": "UPSTREAM_ERROR"}


class TestLogging:
    """Tests for structured log output"""

    def test_redact_masks_credentials(self):
        fields = {"agent_id": "a1", "api_key": "k", "headers": {"X-Signature": "abc", "X-Nonce": "n"}}
        assert redact(fields) == {"agent_id": "a1", "api_key": "***", "headers": {"X-Signature": "***", "X-Nonce": "n"}}

    def test_json_formatter_nests_fields(self):
        record = logging.LogRecord("agent_console.test", logging.INFO, __file__, 1, "Agent created", (), None)
        record.extra_fields = {"agent_id": "a1", "refresh_token": "t"}

        entry = json.loads(JSONFormatter(environment="test").format(record))

        assert entry["message"] == "Agent created"
        assert entry["service"] == "agent-console"
        assert entry["environment"] == "test"
        assert entry["fields"] == {"agent_id": "a1", "refresh_token": "***"}


class TestOrchestratorErrorTranslation:
    """Tests for mapping orchestrator failures to client errors"""

    def test_rules_build_typed_errors(self):
        cases = [
            (OrchestratorError("Invalid phone number format: 555", 400), OUTBOUND_ERRORS, ValidationFailed, 400),
            (OrchestratorError("Agent does not belong to tenant", 400), OUTBOUND_ERRORS, Forbidden, 403),
            (OrchestratorError("Agent not found", 400), OUTBOUND_ERRORS, NotFound, 404),
            (OrchestratorError("RECORDING_WEBHOOK_BASE_URL missing", 500), OUTBOUND_ERRORS, UpstreamNotConfigured, 503),
            (OrchestratorError("Workflow validation failed", 400), IMPORT_ERRORS, ValidationFailed, 422),
        ]
        for error, rules, expected_type, status_code in cases:
            translated = translate_orchestrator_error(error, rules)
            assert type(translated) is expected_type
            assert translated.status_code == status_code

    def test_session_codes(self):
        expired = translate_orchestrator_error(OrchestratorError("gone", 410), CHAT_SESSION_ERRORS)
        assert isinstance(expired, Gone)
        assert expired.to_dict() == {
            "success": False,
            "error": "Chat session has expired or ended",
            "code": "SESSION_EXPIRED"
        }

        missing = translate_orchestrator_error(OrchestratorError("nope", 404), CHAT_SESSION_ERRORS)
        assert isinstance(missing, NotFound)
        assert missing.error_code == "SESSION_NOT_FOUND"

    def test_unique_violation_is_conflict(self):
        translated = translate_orchestrator_error(
            OrchestratorError("duplicate key value violates unique constraint", 500), IMPORT_ERRORS
        )
        assert isinstance(translated, Conflict)

    def test_unmatched_error_is_generic_and_logged(self, caplog):
        error = OrchestratorError("Invalid signature", 401)

        with caplog.at_level(logging.ERROR):
            translated = translate_orchestrator_error(error, OUTBOUND_ERRORS)

        assert isinstance(translated, InternalError)
        assert translated.status_code == 500
        assert translated.message == "Something went wrong on our end. Please try again later."
        assert "Orchestrator request failed" in caplog.text
        assert caplog.records[-1].extra_fields["detail"] == "Invalid signature"
        assert caplog.records[-1].extra_fields["status_code"] == 401
