from typing import List

from fastapi import APIRouter, Depends

from nomadconnect.api.deps import get_swipe_ledger
from nomadconnect.core.auth import get_current_user_id
from nomadconnect.schemas.profile import ProfileSummaryOut
from nomadconnect.schemas.swipes import MatchOut, SwipeRequest, SwipeResponse
from nomadconnect.services.matching import SwipeLedger

router = APIRouter()


@router.post("/swipes", response_model=SwipeResponse)
def record_swipe(
    payload: SwipeRequest,
    ledger: SwipeLedger = Depends(get_swipe_ledger),
    user_id: str = Depends(get_current_user_id),
):
    result = ledger.record_swipe(user_id, payload.swiped_id, payload.direction.value)
    return SwipeResponse.model_validate(result)


@router.get("/swipes/liked", response_model=List[ProfileSummaryOut])
def liked_profiles(
    ledger: SwipeLedger = Depends(get_swipe_ledger),
    user_id: str = Depends(get_current_user_id),
):
    return [ProfileSummaryOut.model_validate(p) for p in ledger.list_liked(user_id)]


@router.get("/matches", response_model=List[MatchOut])
def list_matches(
    ledger: SwipeLedger = Depends(get_swipe_ledger),
    user_id: str = Depends(get_current_user_id),
):
    return [MatchOut.model_validate(m) for m in ledger.list_matches(user_id)]
