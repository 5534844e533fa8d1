"""Generic API response schemas"""

from pydantic import BaseModel, Field
from typing import Optional, Any, Dict
from datetime import datetime, timezone


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class APIResponse(BaseModel):
    """Generic API success response"""
    success: bool = True
    message: str
    data: Optional[Any] = None
    timestamp: str = Field(default_factory=_now_iso)


class ErrorResponse(BaseModel):
    """Error body rendered by the exception handlers"""
    success: bool = False
    error: str
    details: Optional[Any] = None
    path: Optional[str] = None
    timestamp: str = Field(default_factory=_now_iso)


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    data_mode: str
    auth_enabled: bool
    readiness: Dict[str, Any] = {}
    timestamp: str = Field(default_factory=_now_iso)
