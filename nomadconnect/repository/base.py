from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from nomadconnect.services.geo import BoundingBox

DEFAULT_PROFILE_NAME = "Nomad"


def canonical_pair(a: str, b: str) -> Tuple[str, str]:
    a_str = str(a)
    b_str = str(b)
    return (a_str, b_str) if a_str < b_str else (b_str, a_str)


# ------------------------------------------------------------------
# Records
# ------------------------------------------------------------------

@dataclass
class LocationRecord:
    user_id: str
    lat: float
    lng: float
    updated_at: datetime


@dataclass
class ProfileSummary:
    id: str
    name: str = DEFAULT_PROFILE_NAME
    age: Optional[int] = None
    bio: str = ""
    photos: List[str] = field(default_factory=list)
    interests: List[str] = field(default_factory=list)
    location: Optional[str] = None
    verified: bool = False
    badge: str = "none"
    visible: bool = True

    @classmethod
    def placeholder(cls, user_id: str) -> "ProfileSummary":
        return cls(id=user_id)


@dataclass
class ActivityRecord:
    id: str
    title: str
    date: datetime
    location: str
    host_id: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    description: Optional[str] = None
    category: Optional[str] = None
    attendee_ids: List[str] = field(default_factory=list)
    max_attendees: Optional[int] = None
    image_url: Optional[str] = None


@dataclass
class SwipeRecord:
    swiper_id: str
    swiped_id: str
    direction: str
    created_at: datetime


@dataclass
class MatchRecord:
    id: str
    user_a_id: str
    user_b_id: str
    created_at: datetime

    def other(self, user_id: str) -> str:
        return self.user_b_id if self.user_a_id == user_id else self.user_a_id


@dataclass
class ChatRequestRecord:
    id: str
    sender_id: str
    receiver_id: str
    message: str
    status: str
    created_at: datetime
    updated_at: datetime


@dataclass
class QuotaRecord:
    user_id: str
    operation: str
    count: int
    window_started_at: datetime


@dataclass
class CompatibilityRecord:
    id: str
    user_a: str
    user_b: str
    score: int
    strengths: List[str]
    conflicts: List[str]
    icebreakers: List[str]
    first_message: Optional[str]
    date_idea: Optional[str]
    created_at: datetime


# ------------------------------------------------------------------
# Interface
# ------------------------------------------------------------------

class Repository(ABC):
    """Storage seen by the core. One implementation per backend.

    Every method is a single store call; none holds a lock across calls.
    Driver failures surface as ``Unavailable``.
    """

    # --- locations ---
    @abstractmethod
    def upsert_location(self, user_id: str, lat: float, lng: float, now: datetime) -> LocationRecord: ...

    @abstractmethod
    def locations_in_box(self, box: BoundingBox, since: datetime, exclude_user_id: str) -> List[LocationRecord]: ...

    # --- profiles ---
    @abstractmethod
    def get_profiles(self, user_ids: Sequence[str]) -> Dict[str, ProfileSummary]: ...

    @abstractmethod
    def set_visibility(self, user_id: str, visible: bool) -> bool:
        """Returns False when the profile does not exist."""

    # --- activities ---
    @abstractmethod
    def upcoming_activities(self, box: BoundingBox, now: datetime) -> List[ActivityRecord]: ...

    # --- swipes ---
    @abstractmethod
    def upsert_swipe(self, swiper_id: str, swiped_id: str, direction: str, now: datetime) -> SwipeRecord: ...

    @abstractmethod
    def get_swipe(self, swiper_id: str, swiped_id: str) -> Optional[SwipeRecord]: ...

    @abstractmethod
    def right_swipes_by(self, swiper_id: str) -> List[SwipeRecord]:
        """Newest first."""

    # --- matches ---
    @abstractmethod
    def insert_match_if_absent(self, user_a_id: str, user_b_id: str, now: datetime) -> Tuple[MatchRecord, bool]:
        """Insert-or-ignore on the canonical pair; returns (match, created)."""

    @abstractmethod
    def matches_for(self, user_id: str) -> List[MatchRecord]:
        """Newest first."""

    # --- chat requests ---
    @abstractmethod
    def find_active_request(self, user_x: str, user_y: str) -> Optional[ChatRequestRecord]:
        """Pending or accepted request between the unordered pair; accepted wins."""

    @abstractmethod
    def insert_chat_request(self, sender_id: str, receiver_id: str, message: str, now: datetime) -> ChatRequestRecord: ...

    @abstractmethod
    def get_chat_request(self, request_id: str) -> Optional[ChatRequestRecord]: ...

    @abstractmethod
    def transition_chat_request(self, request_id: str, from_status: str, to_status: str, now: datetime) -> bool:
        """Conditional status update; False when the row was not in ``from_status``."""

    @abstractmethod
    def received_requests(self, user_id: str, status: str) -> List[ChatRequestRecord]: ...

    @abstractmethod
    def sent_requests(self, user_id: str, limit: int) -> List[ChatRequestRecord]: ...

    # --- quotas ---
    @abstractmethod
    def get_quota(self, user_id: str, operation: str) -> Optional[QuotaRecord]: ...

    @abstractmethod
    def increment_quota(self, user_id: str, operation: str, now: datetime, window_start_cutoff: datetime) -> QuotaRecord:
        """Reset when ``window_started_at < window_start_cutoff``, then add one."""

    # --- compatibility ---
    @abstractmethod
    def latest_compatibility(self, user_x: str, user_y: str, since: datetime) -> Optional[CompatibilityRecord]: ...

    @abstractmethod
    def insert_compatibility(self, record: CompatibilityRecord) -> CompatibilityRecord: ...
