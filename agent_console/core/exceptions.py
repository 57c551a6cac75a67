"""
Agent Console Exception Classes
Every error maps to an HTTP status and the standard response envelope
"""

from typing import Any, Dict, List, Optional


class ConsoleException(Exception):
    """Base exception for the Agent Console"""

    def __init__(
        self,
        message: str,
        error_code: str = "CONSOLE_ERROR",
        status_code: int = 500,
        details: Optional[Any] = None
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to the response envelope"""
        body: Dict[str, Any] = {
            "success": False,
            "error": self.message,
            "code": self.error_code
        }
        if self.details:
            body["details"] = self.details
        return body


class Unauthorized(ConsoleException):
    """Missing, invalid or expired session"""

    def __init__(self, message: str = "Your session has expired. Please sign in again."):
        super().__init__(
            message=message,
            error_code="UNAUTHORIZED",
            status_code=401
        )


class Forbidden(ConsoleException):
    """Authenticated but not allowed"""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(
            message=message,
            error_code="FORBIDDEN",
            status_code=403
        )


class ValidationFailed(ConsoleException):
    """Input validation errors, with field-level issues"""

    def __init__(
        self,
        message: str = "Invalid input",
        issues: Optional[List[Dict[str, Any]]] = None,
        warnings: Optional[List[str]] = None,
        field: Optional[str] = None,
        status_code: int = 400
    ):
        issues = list(issues or [])
        if field and not issues:
            issues.append({"path": field, "message": message})
        self.warnings = warnings or []
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=status_code,
            details=issues
        )

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.warnings:
            body["warnings"] = self.warnings
        return body


class NotFound(ConsoleException):
    """Resource missing or outside the caller's tenant"""

    def __init__(self, message: str = "Resource not found", error_code: str = "NOT_FOUND"):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=404
        )


class Conflict(ConsoleException):
    """Uniqueness violations such as duplicate phone numbers or names"""

    def __init__(self, message: str = "Resource already exists"):
        super().__init__(
            message=message,
            error_code="CONFLICT",
            status_code=409
        )


class Gone(ConsoleException):
    """Expired or ended resource"""

    def __init__(self, message: str = "Resource is no longer available", error_code: str = "GONE"):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=410
        )


class UpstreamNotConfigured(ConsoleException):
    """Orchestrator URL or key missing from settings"""

    def __init__(self, message: str = "Admin API is not configured"):
        super().__init__(
            message=message,
            error_code="UPSTREAM_NOT_CONFIGURED",
            status_code=503
        )


class UpstreamError(ConsoleException):
    """Orchestrator failures, carrying the remote status code and service name for logs"""

    def __init__(
        self,
        message: str = "Upstream service error",
        status_code: int = 502,
        service: str = "orchestrator"
    ):
        self.service = service
        super().__init__(
            message=message,
            error_code="UPSTREAM_ERROR",
            status_code=status_code
        )


class OrchestratorError(UpstreamError):
    """Non-2xx or transport failure from the orchestrator Admin/Text Chat API"""

    def __init__(self, message: str, status_code: int = 502, service: str = "orchestrator"):
        super().__init__(message=message, status_code=status_code, service=service)


class InternalError(ConsoleException):
    """Catch-all. The message shown to clients never carries internals."""

    def __init__(self, message: str = "Something went wrong on our end. Please try again later."):
        super().__init__(
            message=message,
            error_code="INTERNAL_ERROR",
            status_code=500
        )
