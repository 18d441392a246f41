"""
Validation API Routes

Endpoint for goal validation against physiological safety thresholds.
"""

from fastapi import APIRouter

from src.api.models.requests import ValidationRequest
from src.api.models.responses import ValidationResponse
from src.api.routes.context import _calculator, _detect, _load_goal, _load_profile
from src.schemas import BlockedOutcome
from src.validator import GoalValidator

router = APIRouter()


@router.post("/validate", response_model=ValidationResponse)
async def validate_goal(request: ValidationRequest) -> ValidationResponse:
    """
    Validate a goal for a profile.

    Performs:
    - Context detection and metric calculation
    - Conflict, rate, floor and ceiling checks
    - Reasoning trace generation

    A blocked goal is a normal 200 response with allowed=false; only
    malformed input produces an error status.
    """
    profile = _load_profile(request.profile)
    goal = _load_goal(request.goal)
    context = _detect(profile, request.season)
    metrics = _calculator().calculate_all(profile, context, goal)
    result = GoalValidator().validate(goal, metrics, profile)

    trace = result.reasoning_trace
    reasoning_steps = [f"Goals: {', '.join(g.value for g in trace.goal_types)}"]
    for check in trace.checks:
        status_str = "PASS" if check.passed else "FAIL"
        reasoning_steps.append(f"[{status_str}] {check.rule}: {check.reasoning}")
    if isinstance(result.outcome, BlockedOutcome):
        reasoning_steps.append(f"[BLOCKED] {result.outcome.reason.value}")
    reasoning_steps.append(f"Final Result: {trace.result.upper()} ({result.tier.value})")

    return ValidationResponse(
        allowed=result.is_allowed,
        tier=result.tier,
        requires_acknowledgment=result.requires_acknowledgment,
        reasoning_trace=reasoning_steps,
        messages=result.messages,
        validation_result=result,
    )
