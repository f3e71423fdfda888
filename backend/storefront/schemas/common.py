"""
Shared response envelopes.

Every successful mutation answers `{"success": true, ...}`; every failure
answers `{"error": "<message>"}` (plus the request id for support).
"""

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field


class SuccessResponse(BaseModel):
    success: bool = True


class ErrorResponse(BaseModel):
    """Body of every non-2xx response produced by the exception handlers."""

    error: str = Field(description="Human-readable error message")
    request_id: Optional[str] = Field(default=None, description="X-Request-ID of the failing call")


class HealthResponse(BaseModel):
    status: str = Field(description="healthy or unhealthy")
    version: str
    database: str = Field(description="connected or disconnected")
    uptime_seconds: float


_ERROR_DESCRIPTIONS: Dict[int, str] = {
    400: "Invalid input",
    401: "No valid session",
    404: "Not found (or not owned by the caller)",
    409: "Duplicate name",
    429: "Upstream rate limit",
    500: "Server error",
    502: "Upstream provider failure",
}


def error_responses(*codes: int) -> Dict[Union[int, str], Dict[str, Any]]:
    """OpenAPI `responses=` entries for the given error statuses."""
    return {
        code: {"description": _ERROR_DESCRIPTIONS.get(code, "Error"), "model": ErrorResponse}
        for code in codes
    }
