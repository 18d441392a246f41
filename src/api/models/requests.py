"""
API Request Models

Profiles and goals arrive as raw mappings so that missing or out-of-range
fields come back as typed issues rather than generic validation errors.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from src.schemas import Season


class ContextRequest(BaseModel):
    """Request model for context detection."""

    profile: Dict[str, Any] = Field(..., description="User biometric profile")
    season: Optional[Season] = Field(None, description="Current season, if known")
    country: Optional[str] = Field(None, description="Location override, ISO-3166 alpha-2")
    region: Optional[str] = Field(None, description="Location override, state code")


class MetricsRequest(BaseModel):
    """Request model for metric calculation."""

    profile: Dict[str, Any] = Field(..., description="User biometric profile")
    goal: Optional[Dict[str, Any]] = Field(None, description="Optional goal")
    season: Optional[Season] = Field(None, description="Current season, if known")


class ValidationRequest(BaseModel):
    """Request model for goal validation."""

    profile: Dict[str, Any] = Field(..., description="User biometric profile")
    goal: Dict[str, Any] = Field(..., description="Goal to validate")
    season: Optional[Season] = Field(None, description="Current season, if known")
