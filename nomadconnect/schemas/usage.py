from typing import Dict, Optional

from pydantic import BaseModel

from nomadconnect.schemas.base import BaseSchema


class UsageCounter(BaseSchema):
    used: int
    limit: Optional[int] = None


class UsageResponse(BaseModel):
    user_id: str
    tier: Optional[str] = None
    counters: Dict[str, UsageCounter]
