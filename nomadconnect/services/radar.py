from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from loguru import logger

from nomadconnect.core.clock import Clock, utcnow
from nomadconnect.core.errors import InvalidInput, NotFound
from nomadconnect.core.radar_config import RADAR_SCAN, RadarSettings
from nomadconnect.repository.base import LocationRecord, ProfileSummary, Repository
from nomadconnect.services.geo import BoundingBox, bounding_box, haversine_km, is_valid_coordinate
from nomadconnect.services.quota import QuotaTracker


@dataclass
class NearbyUser:
    user_id: str
    lat: float
    lng: float
    distance_km: float
    last_seen: datetime
    name: str
    age: Optional[int] = None
    bio: str = ""
    interests: List[str] = field(default_factory=list)
    photos: List[str] = field(default_factory=list)
    location: Optional[str] = None
    verified: bool = False
    badge: str = "none"


@dataclass
class NearbyActivity:
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


@dataclass
class ScanResult:
    users: List[NearbyUser]
    activities: List[NearbyActivity]
    scans_used: int
    scans_limit: int


def _display_km(distance: float) -> float:
    return round(distance, 1)


class RadarScanner:
    def __init__(
        self,
        repo: Repository,
        quota: QuotaTracker,
        settings: Optional[RadarSettings] = None,
        clock: Clock = utcnow,
    ):
        self.repo = repo
        self.quota = quota
        self.settings = settings or RadarSettings()
        self.clock = clock

    # ------------------------------------------------------------------
    # Input handling
    # ------------------------------------------------------------------

    @staticmethod
    def _require_coordinates(lat, lng) -> None:
        if lat is None or lng is None:
            raise InvalidInput("lat and lng are required")
        if not is_valid_coordinate(lat, lng):
            raise InvalidInput("lat and lng must be finite coordinates within range")

    def _radius(self, radius_km) -> float:
        if (
            radius_km is None
            or isinstance(radius_km, bool)
            or not isinstance(radius_km, (int, float))
            or not math.isfinite(radius_km)
            or radius_km <= 0
        ):
            return self.settings.default_radius_km
        return float(radius_km)

    def is_placeholder(self, user_id: str) -> bool:
        return str(user_id).startswith(self.settings.placeholder_prefix)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def scan(self, user_id: str, lat, lng, radius_km=None, tier: Optional[str] = None) -> ScanResult:
        self._require_coordinates(lat, lng)
        radius = self._radius(radius_km)

        status = self.quota.check(user_id, tier, RADAR_SCAN)

        now = self.clock()
        self.repo.upsert_location(user_id, lat, lng, now)

        box = bounding_box(lat, lng, radius)
        users = self._nearby_users(user_id, lat, lng, radius, box, now)
        activities = self._nearby_activities(lat, lng, radius, box, now)

        # only a completed query consumes a scan
        scans_used = self.quota.increment(user_id, RADAR_SCAN)

        logger.info(
            f"Radar scan | user={user_id} radius_km={radius} users={len(users)} "
            f"activities={len(activities)} scans={scans_used}/{status.limit}"
        )
        return ScanResult(
            users=users,
            activities=activities,
            scans_used=scans_used,
            scans_limit=status.limit,
        )

    def update_location(self, user_id: str, lat, lng) -> LocationRecord:
        self._require_coordinates(lat, lng)
        record = self.repo.upsert_location(user_id, lat, lng, self.clock())
        logger.debug(f"Location updated | user={user_id}")
        return record

    def set_visibility(self, user_id: str, visible: bool) -> bool:
        if not self.repo.set_visibility(user_id, visible):
            raise NotFound(f"Profile {user_id} not found")
        logger.info(f"Radar visibility | user={user_id} visible={visible}")
        return visible

    # ------------------------------------------------------------------
    # Candidate selection
    # ------------------------------------------------------------------

    def _nearby_users(
        self,
        user_id: str,
        lat: float,
        lng: float,
        radius: float,
        box: BoundingBox,
        now: datetime,
    ) -> List[NearbyUser]:
        since = now - self.settings.location_recency
        rows = self.repo.locations_in_box(box, since=since, exclude_user_id=user_id)

        in_radius: List[Tuple[LocationRecord, float]] = []
        for loc in rows:
            if loc.user_id == user_id or self.is_placeholder(loc.user_id):
                continue
            distance = haversine_km(lat, lng, loc.lat, loc.lng, self.settings.earth_radius_km)
            if distance <= radius:
                in_radius.append((loc, distance))

        if not in_radius:
            logger.debug(f"Radar prefilter | user={user_id} box={len(rows)} in_radius=0")
            return []

        profiles = self.repo.get_profiles([loc.user_id for loc, _ in in_radius])
        visible: List[Tuple[LocationRecord, float, ProfileSummary]] = []
        for loc, distance in in_radius:
            profile = profiles.get(loc.user_id)
            if profile is None or not profile.visible:
                continue
            visible.append((loc, distance, profile))

        # nearest first; among equal distances the most recently seen wins
        visible.sort(key=lambda c: c[0].updated_at, reverse=True)
        visible.sort(key=lambda c: c[1])

        logger.debug(
            f"Radar prefilter | user={user_id} box={len(rows)} in_radius={len(in_radius)} visible={len(visible)}"
        )
        return [
            NearbyUser(
                user_id=loc.user_id,
                lat=loc.lat,
                lng=loc.lng,
                distance_km=_display_km(distance),
                last_seen=loc.updated_at,
                name=profile.name,
                age=profile.age,
                bio=profile.bio,
                interests=list(profile.interests),
                photos=list(profile.photos),
                location=profile.location,
                verified=profile.verified,
                badge=profile.badge,
            )
            for loc, distance, profile in visible[: self.settings.max_users]
        ]

    def _nearby_activities(
        self,
        lat: float,
        lng: float,
        radius: float,
        box: BoundingBox,
        now: datetime,
    ) -> List[NearbyActivity]:
        found: List[NearbyActivity] = []
        for act in self.repo.upcoming_activities(box, now):
            if act.latitude is None or act.longitude is None:
                continue
            distance = haversine_km(lat, lng, act.latitude, act.longitude, self.settings.earth_radius_km)
            if distance > radius:
                continue
            found.append(
                NearbyActivity(
                    id=act.id,
                    title=act.title,
                    type=act.category or "other",
                    location=act.location,
                    date=act.date,
                    distance_km=_display_km(distance),
                    host_id=act.host_id,
                    attendee_count=len(act.attendee_ids),
                    description=act.description,
                    max_attendees=act.max_attendees,
                    image_url=act.image_url,
                )
            )

        found.sort(key=lambda a: a.date)
        return found[: self.settings.max_activities]
