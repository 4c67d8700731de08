"""Pydantic models for API requests and responses."""

from typing import Any, Optional

from pydantic import BaseModel


class ApiResponse(BaseModel):
    """Envelope shared by every JSON endpoint."""
    success: bool
    data: Optional[Any] = None
    message: str = ""
    error: Optional[str] = None


class HealthStatus(BaseModel):
    status: str  # healthy, degraded, unhealthy
    store: bool
    table: bool
    scheduler: bool
