"""
Scores API Routes

Endpoint for the informational health and readiness scores.
"""

from fastapi import APIRouter

from src.api.models.requests import MetricsRequest
from src.api.models.responses import ScoresResponse
from src.api.routes.context import _calculator, _detect, _load_goal, _load_profile

router = APIRouter()


@router.post("/scores", response_model=ScoresResponse)
async def calculate_scores(request: MetricsRequest) -> ScoresResponse:
    """Overall health, diet and fitness readiness, goal realism and sleep efficiency."""
    profile = _load_profile(request.profile)
    goal = _load_goal(request.goal)
    metrics = _calculator().calculate_all(profile, _detect(profile, request.season), goal)
    return ScoresResponse(scores=metrics.scores)
