"""
Common Pydantic models for the Tipjar API
"""
from datetime import datetime

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """
    Health check response model
    """
    status: str
    message: str
    timestamp: datetime
    version: str
    # Per-dependency status, readiness only
    checks: dict[str, str] | None = None
