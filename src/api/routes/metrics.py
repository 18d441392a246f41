"""
Metrics API Routes

Endpoint for the complete metrics bundle.
"""

from fastapi import APIRouter

from src.api.models.requests import MetricsRequest
from src.api.models.responses import MetricsResponse
from src.api.routes.context import _calculator, _detect, _load_goal, _load_profile

router = APIRouter()


@router.post("/metrics", response_model=MetricsResponse)
async def calculate_metrics(request: MetricsRequest) -> MetricsResponse:
    """
    Calculate BMR, TDEE, calorie target, macros, water, heart rate zones,
    body composition, sleep and scores for a profile.
    """
    profile = _load_profile(request.profile)
    goal = _load_goal(request.goal)
    context = _detect(profile, request.season)
    metrics = _calculator().calculate_all(profile, context, goal)
    return MetricsResponse(metrics=metrics, context=context)
