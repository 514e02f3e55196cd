"""
ChampStep Backend — Shared Response Schemas
=============================================

What:  Error and health response models shared by every route module.
Why:   Clients parse one error shape regardless of which endpoint failed.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "type": "error",
            "error": "conflict",
            "message": "A claim request for this dancer is already in progress",
            "request_id": "a1b2c3d4"
        }

    `type` is always "error" so clients can branch on the same key they use
    for registration outcomes (success / pending / error).
    """
    type: Literal["error"] = Field(default="error")
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    retryable: bool = Field(default=False, description="Whether retrying the same request may succeed")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
