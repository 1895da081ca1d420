from typing import Any, Dict, Optional

from fastapi import status
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standard error payload returned by every JSON endpoint:
    {
        "error": "not_found",
        "message": "会话不存在",
        "code": 404,
        "details": {...}
    }
    """

    error: str = Field(..., description="Machine-readable error type")
    message: str = Field(..., description="Human-readable error message")
    code: int = Field(..., description="HTTP status code for this error")
    details: Optional[Dict[str, Any]] = Field(
        default=None, description="Optional structured error details"
    )


class AIGuideError(Exception):
    """
    Base class for domain errors. Each subclass knows how it is rendered
    over HTTP so route handlers can simply let it propagate.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type: str = "internal_error"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error=self.error_type,
            message=self.message,
            code=self.status_code,
            details=self.details,
        )


class ValidationError(AIGuideError):
    """Missing or empty required input (task text, feedback, session id)."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "bad_request"


class NotFoundError(AIGuideError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found"


class InvalidSessionStateError(AIGuideError):
    status_code = status.HTTP_409_CONFLICT
    error_type = "invalid_state"


class SessionBusyError(AIGuideError):
    """Another request for the same session is still in flight."""

    status_code = status.HTTP_409_CONFLICT
    error_type = "session_busy"


class PromptTemplateError(AIGuideError):
    error_type = "prompt_template_unavailable"


class UpstreamError(AIGuideError):
    """
    Network, transport or HTTP status failure while calling the upstream
    chat-completion API. Never retried.
    """

    status_code = status.HTTP_502_BAD_GATEWAY
    error_type = "upstream_error"

    def __init__(
        self,
        message: str,
        *,
        upstream_status: Optional[int] = None,
        text: str = "",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details=details)
        self.upstream_status = upstream_status
        self.text = text


class UpstreamConfigurationError(UpstreamError):
    """The upstream credential is not configured."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type = "configuration_error"


class ParseError(ValueError):
    """
    Malformed JSON in upstream output. Always caught, logged and turned
    into an "absent" result by the caller.
    """


__all__ = [
    "ErrorResponse",
    "AIGuideError",
    "ValidationError",
    "NotFoundError",
    "InvalidSessionStateError",
    "SessionBusyError",
    "PromptTemplateError",
    "UpstreamError",
    "UpstreamConfigurationError",
    "ParseError",
]
