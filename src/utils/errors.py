"""
Custom Exceptions
Typed failures raised by the membership engine.

Each error carries a machine-readable reason code and a human-readable
message. ``status_code`` is the HTTP status the request layer should map it
to; the engine itself never builds responses.
Source: https://fastapi.tiangolo.com/tutorial/handling-errors/
"""

from typing import Any, Optional

from fastapi import status


class GymEngineError(Exception):
    """Base class for all engine failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_reason: str = "ENGINE_ERROR"
    default_message: str = "Membership engine error"

    def __init__(
        self,
        message: Optional[str] = None,
        reason: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.reason = reason or self.default_reason
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses and logs."""
        payload: dict[str, Any] = {"error": self.message, "reason": self.reason}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(GymEngineError):
    """Raised when a member or waiver is absent"""

    status_code = status.HTTP_404_NOT_FOUND
    default_reason = "NOT_FOUND"
    default_message = "Resource not found"


class PolicyDeniedError(GymEngineError):
    """Raised when a status, payment or waiver rule denies an action"""

    status_code = status.HTTP_403_FORBIDDEN
    default_reason = "POLICY_DENIED"
    default_message = "Action not permitted"


class ConflictError(GymEngineError):
    """Raised when a uniqueness rule is violated"""

    status_code = status.HTTP_409_CONFLICT
    default_reason = "CONFLICT"
    default_message = "Resource conflict"


class UpstreamFailureError(GymEngineError):
    """Raised when the billing processor call fails"""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_reason = "UPSTREAM_FAILURE"
    default_message = "Billing processor request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        reason: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message, reason, details)
        self.operation = operation


class ValidationFailureError(GymEngineError):
    """Raised when input is malformed"""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_reason = "VALIDATION_FAILURE"
    default_message = "Validation error"
