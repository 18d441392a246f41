"""
API Response Models

Pydantic models for API responses.
"""

from typing import List

from pydantic import BaseModel, Field

from src.schemas import (
    CalculatedMetrics,
    DetectionContext,
    HealthScores,
    ValidationResult,
    ValidationTier,
)


class ContextResponse(BaseModel):
    """Response for POST /api/context."""

    context: DetectionContext = Field(..., description="Detected calculation context")
    should_ask_user: bool = Field(..., description="Whether a detection needs confirmation")


class MetricsResponse(BaseModel):
    """Response for POST /api/metrics."""

    metrics: CalculatedMetrics = Field(..., description="Full metrics bundle")
    context: DetectionContext = Field(..., description="Context the metrics were calculated with")


class ValidationResponse(BaseModel):
    """Response for POST /api/validate."""

    allowed: bool = Field(..., description="Whether the goal may proceed")
    tier: ValidationTier = Field(..., description="Severity tier")
    requires_acknowledgment: bool = Field(..., description="Whether the user must acknowledge risks")
    reasoning_trace: List[str] = Field(..., description="Step-by-step reasoning")
    messages: List[str] = Field(default_factory=list, description="User-facing messages")
    validation_result: ValidationResult = Field(..., description="Full validation result")


class ScoresResponse(BaseModel):
    """Response for POST /api/scores."""

    scores: HealthScores = Field(..., description="Informational health scores")
