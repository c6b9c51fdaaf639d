from typing import Optional

from pydantic import BaseModel

from nomadconnect.schemas.base import BaseSchema, PairSchema
from nomadconnect.schemas.enums import SwipeDirection
from nomadconnect.schemas.profile import ProfileSummaryOut


class SwipeRequest(BaseModel):
    swiped_id: str
    direction: SwipeDirection


class MatchOut(PairSchema):
    matched_user_id: str
    matched_user: ProfileSummaryOut
    is_new: bool = False


class SwipeResponse(BaseSchema):
    success: bool
    match: Optional[MatchOut] = None
