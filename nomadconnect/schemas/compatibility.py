from typing import List, Optional

from pydantic import BaseModel

from nomadconnect.schemas.base import BaseSchema


class CompatibilityRequest(BaseModel):
    other_user_id: str
    tier: Optional[str] = None


class CompatibilityOut(BaseSchema):
    id: str
    user_a: str
    user_b: str
    score: int
    strengths: List[str] = []
    conflicts: List[str] = []
    icebreakers: List[str] = []
    first_message: Optional[str] = None
    date_idea: Optional[str] = None


class CompatibilityResponse(BaseModel):
    result: CompatibilityOut
    cached: bool
