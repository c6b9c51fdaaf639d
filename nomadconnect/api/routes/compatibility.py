from fastapi import APIRouter, Depends

from nomadconnect.api.deps import get_compatibility_checker
from nomadconnect.core.auth import get_current_user_id
from nomadconnect.schemas.compatibility import CompatibilityOut, CompatibilityRequest, CompatibilityResponse
from nomadconnect.services.compatibility import CompatibilityChecker

router = APIRouter()


@router.post("/check", response_model=CompatibilityResponse)
def check_compatibility(
    payload: CompatibilityRequest,
    checker: CompatibilityChecker = Depends(get_compatibility_checker),
    user_id: str = Depends(get_current_user_id),
):
    outcome = checker.check(user_id, payload.other_user_id, payload.tier)
    return CompatibilityResponse(
        result=CompatibilityOut.model_validate(outcome.result),
        cached=outcome.cached,
    )
