"""
Context API Routes

Endpoint for calculation context detection, plus the input loading helpers
shared by the other routes.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, status

from src.api.models.requests import ContextRequest
from src.api.models.responses import ContextResponse
from src.config import get_settings
from src.context import ContextDetector
from src.errors import IssueResponse, load_goal, load_profile
from src.metrics import MetricsCalculator
from src.schemas import DetectionContext, Goal, Location, Season, UserBiometricProfile

router = APIRouter()


def _load_profile(data: Dict[str, Any]) -> UserBiometricProfile:
    """Load a profile or raise 422 with the typed issue."""
    profile = load_profile(data)
    if not isinstance(profile, UserBiometricProfile):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=IssueResponse(issue=profile).model_dump(mode="json"),
        )
    return profile


def _load_goal(data: Optional[Dict[str, Any]]) -> Optional[Goal]:
    if data is None:
        return None
    goal = load_goal(data)
    if not isinstance(goal, Goal):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=IssueResponse(issue=goal).model_dump(mode="json"),
        )
    return goal


def _detect(
    profile: UserBiometricProfile,
    season: Optional[Season] = None,
    location: Optional[Location] = None,
) -> DetectionContext:
    return ContextDetector(get_settings().ask_threshold).detect(profile, season, location)


def _calculator() -> MetricsCalculator:
    return MetricsCalculator(water_overrides=get_settings().water_overrides)


@router.post("/context", response_model=ContextResponse)
async def detect_context(request: ContextRequest) -> ContextResponse:
    """
    Detect population group, climate zone and BMR formula accuracy.

    Low-confidence detections are returned with should_ask_user set; they
    never fail the request.
    """
    profile = _load_profile(request.profile)
    location = None
    if request.country or request.region:
        location = Location(
            country=request.country.upper() if request.country else None,
            region=request.region.upper() if request.region else None,
        )
    context = _detect(profile, request.season, location)
    return ContextResponse(context=context, should_ask_user=context.should_ask_user)
