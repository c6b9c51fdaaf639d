from typing import List, Optional

from nomadconnect.schemas.base import BaseSchema


class ProfileSummaryOut(BaseSchema):
    id: str
    name: str
    age: Optional[int] = None
    bio: str = ""
    photos: List[str] = []
    interests: List[str] = []
    location: Optional[str] = None
    verified: bool = False
    badge: str = "none"
