from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from nomadconnect.schemas.base import BaseSchema


# ---------- requests ----------
class ScanRequest(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None
    radius_km: Optional[float] = None
    tier: Optional[str] = None


class LocationUpdateRequest(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None


class VisibilityRequest(BaseModel):
    is_visible: bool = True


# ---------- responses ----------
class NearbyUserOut(BaseSchema):
    user_id: str
    lat: float
    lng: float
    distance_km: float
    last_seen: datetime
    name: str
    age: Optional[int] = None
    bio: str = ""
    interests: List[str] = []
    photos: List[str] = []
    location: Optional[str] = None
    verified: bool = False
    badge: str = "none"


class NearbyActivityOut(BaseSchema):
    id: str
    title: str
    type: str
    location: str
    date: datetime
    distance_km: float
    host_id: str
    attendee_count: int = 0
    description: Optional[str] = None
    max_attendees: Optional[int] = None
    image_url: Optional[str] = None


class ScanResponse(BaseSchema):
    users: List[NearbyUserOut]
    activities: List[NearbyActivityOut]
    scans_used: int
    scans_limit: int


class LocationUpdateResponse(BaseModel):
    success: bool
    updated_at: datetime


class VisibilityResponse(BaseModel):
    success: bool
    is_visible: bool
