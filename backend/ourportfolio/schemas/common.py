"""
OurPortfolio Backend — Shared Response Schemas
===============================================

What:  Error, message, and health response models used across routes.
Why:   Clients parse every error the same way regardless of endpoint.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "forbidden",
            "message": "You do not have permission to modify this portfolio",
            "details": {"resource": "portfolio", "resource_id": "7"},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class MessageResponse(BaseModel):
    """Plain acknowledgment for operations with no resource to return."""
    message: str


class HealthResponse(BaseModel):
    """
    Health check response showing service and dependency status.

    `index` is "ready" once the startup rebuild has completed.
    """
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    index: str = Field(description="Tech-stack index state: ready, warming")
    indexed_keywords: int = Field(description="Distinct keywords currently indexed")
    uptime_seconds: float = Field(description="Seconds since service started")
