from typing import Optional

from fastapi import APIRouter, Depends

from nomadconnect.api.deps import get_quota_tracker
from nomadconnect.core.auth import get_current_user_id
from nomadconnect.schemas.usage import UsageCounter, UsageResponse
from nomadconnect.services.quota import QuotaTracker

router = APIRouter()


@router.get("", response_model=UsageResponse)
def get_usage(
    tier: Optional[str] = None,
    quota: QuotaTracker = Depends(get_quota_tracker),
    user_id: str = Depends(get_current_user_id),
):
    counters = quota.usage(user_id, tier)
    return UsageResponse(
        user_id=user_id,
        tier=tier,
        counters={op: UsageCounter.model_validate(status) for op, status in counters.items()},
    )
