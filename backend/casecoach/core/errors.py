"""Error Hierarchy — typed, categorized exceptions for all CaseCoach failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Client errors (400-level) are recoverable; dependency errors (500-level) are critical
    - to_response() produces the REST envelope
    - Credential and token failures never reveal which factor was wrong

Design Decisions:
    - Single hierarchy with CaseCoachError base: FastAPI global handler catches all
    - AuthError carries an internal AuthFailure reason for logs; the public message
      depends only on the reason's public class
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    CONFLICT = "conflict"
    UNAVAILABLE = "unavailable"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: str | None = None
    interview_id: str | None = None
    room_name: str | None = None
    debug_info: dict[str, Any] | None = None


class CaseCoachError(Exception):
    """Base exception for all CaseCoach errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
            }
        }


# ─── Client Errors (400-level) ──────────────────────────────────

class ValidationError(CaseCoachError):
    """Input rejected before domain logic runs."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class ConflictError(CaseCoachError):
    """Unique identity constraint would be violated (duplicate email)."""
    def __init__(self, message: str = "Email already registered", context: ErrorContext | None = None):
        super().__init__(
            message, "CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, context, 409,
        )


class AuthFailure(str, Enum):
    """Internal reason for an authentication failure — logged, never returned."""
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_OR_EXPIRED_TOKEN = "invalid_or_expired_token"
    INACTIVE_ACCOUNT = "inactive_account"


# Inactive accounts are reported exactly like bad credentials.
_PUBLIC_AUTH_FAILURE = {
    AuthFailure.INVALID_CREDENTIALS: ("INVALID_CREDENTIALS", "Invalid credentials"),
    AuthFailure.INACTIVE_ACCOUNT: ("INVALID_CREDENTIALS", "Invalid credentials"),
    AuthFailure.INVALID_OR_EXPIRED_TOKEN: (
        "INVALID_OR_EXPIRED_TOKEN", "Invalid or expired token",
    ),
}


class AuthError(CaseCoachError):
    """Authentication failed — credentials or token."""
    def __init__(self, reason: AuthFailure, context: ErrorContext | None = None):
        code, message = _PUBLIC_AUTH_FAILURE[reason]
        super().__init__(
            message, code, ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )
        self.reason = reason


class NotFoundError(CaseCoachError):
    """Requested resource does not exist (or is not visible to the caller)."""
    def __init__(self, resource_type: str, context: ErrorContext | None = None):
        super().__init__(
            f"{resource_type} not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type


class InvalidTransitionError(CaseCoachError):
    """Interview job state change attempted from a terminal state."""
    def __init__(self, current: str, target: str, context: ErrorContext | None = None):
        super().__init__(
            f"Cannot transition interview from '{current}' to '{target}'",
            "INVALID_TRANSITION", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 409,
        )
        self.current = current
        self.target = target


# ─── Dependency Errors (500-level) ──────────────────────────────

class DependencyError(CaseCoachError):
    """An external collaborator failed."""
    def __init__(
        self, message: str, code: str = "DEPENDENCY_ERROR",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, context, 503,
        )


class AssessmentEngineError(DependencyError):
    """Assessment engine call failed or returned an unusable result."""
    def __init__(self, message: str, error_type: str, context: ErrorContext | None = None):
        super().__init__(
            f"Assessment engine error ({error_type}): {message}",
            "ASSESSMENT_ENGINE_ERROR", context,
        )
        self.error_type = error_type


class LiveSessionError(DependencyError):
    """Live-session gateway call failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Live session {operation} failed: {message}",
            "LIVE_SESSION_ERROR", context,
        )
        self.operation = operation


class ServiceBusyError(CaseCoachError):
    """Analysis queue is full — back-pressure signal to the client."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Analysis queue is full, try again later",
            "SERVICE_BUSY", ErrorCategory.UNAVAILABLE,
            ErrorSeverity.WARNING, context, 503,
        )


class DatabaseError(CaseCoachError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
