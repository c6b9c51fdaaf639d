from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger

from nomadconnect.core.radar_config import COMPATIBILITY_CACHE_WINDOW, LOCATION_RECENCY, QUOTA_WINDOW
from nomadconnect.repository.base import (
    ActivityRecord,
    ChatRequestRecord,
    CompatibilityRecord,
    LocationRecord,
    MatchRecord,
    ProfileSummary,
    QuotaRecord,
    Repository,
    SwipeRecord,
    canonical_pair,
)
from nomadconnect.services.geo import BoundingBox


class MemoryRepository(Repository):
    """Process-local backend for development and tests.

    State lives until the process exits; nothing survives a restart, so
    quota counters reset with the process. Stale locations, quota rows
    whose window has elapsed and compatibility results older than the
    cache window are evicted on every location or compatibility write.
    """

    def __init__(
        self,
        location_ttl: timedelta = LOCATION_RECENCY,
        quota_ttl: timedelta = QUOTA_WINDOW,
        compatibility_ttl: timedelta = COMPATIBILITY_CACHE_WINDOW,
    ):
        self.location_ttl = location_ttl
        self.quota_ttl = quota_ttl
        self.compatibility_ttl = compatibility_ttl
        self._lock = threading.RLock()

        self.locations: Dict[str, LocationRecord] = {}
        self.profiles: Dict[str, ProfileSummary] = {}
        self.activities: Dict[str, ActivityRecord] = {}
        self.swipes: Dict[Tuple[str, str], SwipeRecord] = {}
        self.matches: Dict[Tuple[str, str], MatchRecord] = {}
        self.chat_requests: Dict[str, ChatRequestRecord] = {}
        self.quotas: Dict[Tuple[str, str], QuotaRecord] = {}
        self.compatibility: List[CompatibilityRecord] = []

        logger.info("In-memory repository initialized")

    # --- seeding (profiles and activities are owned by other services) ---
    def add_profile(self, profile: ProfileSummary) -> None:
        with self._lock:
            self.profiles[profile.id] = profile

    def add_activity(self, activity: ActivityRecord) -> None:
        with self._lock:
            self.activities[activity.id] = activity

    def evict_expired(self, now: datetime) -> int:
        with self._lock:
            stale_locations = [
                uid for uid, loc in self.locations.items()
                if now - loc.updated_at > self.location_ttl
            ]
            stale_quotas = [
                key for key, q in self.quotas.items()
                if now - q.window_started_at > self.quota_ttl
            ]
            for uid in stale_locations:
                del self.locations[uid]
            for key in stale_quotas:
                del self.quotas[key]

            kept = [c for c in self.compatibility if now - c.created_at <= self.compatibility_ttl]
            stale_results = len(self.compatibility) - len(kept)
            self.compatibility = kept

        evicted = len(stale_locations) + len(stale_quotas) + stale_results
        if evicted:
            logger.debug(f"Evicted {evicted} expired in-memory rows")
        return evicted

    # --- locations ---
    def upsert_location(self, user_id: str, lat: float, lng: float, now: datetime) -> LocationRecord:
        record = LocationRecord(user_id=user_id, lat=lat, lng=lng, updated_at=now)
        with self._lock:
            self.locations[user_id] = record
        self.evict_expired(now)
        return record

    def locations_in_box(self, box: BoundingBox, since: datetime, exclude_user_id: str) -> List[LocationRecord]:
        with self._lock:
            return [
                replace(loc) for loc in self.locations.values()
                if loc.user_id != exclude_user_id
                and loc.updated_at >= since
                and box.contains(loc.lat, loc.lng)
            ]

    # --- profiles ---
    def get_profiles(self, user_ids: Sequence[str]) -> Dict[str, ProfileSummary]:
        with self._lock:
            return {uid: replace(self.profiles[uid]) for uid in user_ids if uid in self.profiles}

    def set_visibility(self, user_id: str, visible: bool) -> bool:
        with self._lock:
            profile = self.profiles.get(user_id)
            if profile is None:
                return False
            profile.visible = visible
            return True

    # --- activities ---
    def upcoming_activities(self, box: BoundingBox, now: datetime) -> List[ActivityRecord]:
        with self._lock:
            found = [
                replace(a) for a in self.activities.values()
                if a.date >= now
                and a.latitude is not None
                and a.longitude is not None
                and box.contains(a.latitude, a.longitude)
            ]
        return sorted(found, key=lambda a: a.date)

    # --- swipes ---
    def upsert_swipe(self, swiper_id: str, swiped_id: str, direction: str, now: datetime) -> SwipeRecord:
        record = SwipeRecord(swiper_id=swiper_id, swiped_id=swiped_id, direction=direction, created_at=now)
        with self._lock:
            self.swipes[(swiper_id, swiped_id)] = record
        return replace(record)

    def get_swipe(self, swiper_id: str, swiped_id: str) -> Optional[SwipeRecord]:
        with self._lock:
            record = self.swipes.get((swiper_id, swiped_id))
            return replace(record) if record else None

    def right_swipes_by(self, swiper_id: str) -> List[SwipeRecord]:
        with self._lock:
            found = [
                replace(s) for (swiper, _), s in self.swipes.items()
                if swiper == swiper_id and s.direction == "right"
            ]
        return sorted(found, key=lambda s: s.created_at, reverse=True)

    # --- matches ---
    def insert_match_if_absent(self, user_a_id: str, user_b_id: str, now: datetime) -> Tuple[MatchRecord, bool]:
        key = canonical_pair(user_a_id, user_b_id)
        with self._lock:
            existing = self.matches.get(key)
            if existing is not None:
                return replace(existing), False
            record = MatchRecord(id=str(uuid.uuid4()), user_a_id=key[0], user_b_id=key[1], created_at=now)
            self.matches[key] = record
            return replace(record), True

    def matches_for(self, user_id: str) -> List[MatchRecord]:
        with self._lock:
            found = [replace(m) for key, m in self.matches.items() if user_id in key]
        return sorted(found, key=lambda m: m.created_at, reverse=True)

    # --- chat requests ---
    def find_active_request(self, user_x: str, user_y: str) -> Optional[ChatRequestRecord]:
        pair = {user_x, user_y}
        with self._lock:
            active = [
                replace(r) for r in self.chat_requests.values()
                if {r.sender_id, r.receiver_id} == pair and r.status in ("pending", "accepted")
            ]
        if not active:
            return None
        active.sort(key=lambda r: r.created_at, reverse=True)
        active.sort(key=lambda r: 0 if r.status == "accepted" else 1)
        return active[0]

    def insert_chat_request(self, sender_id: str, receiver_id: str, message: str, now: datetime) -> ChatRequestRecord:
        record = ChatRequestRecord(
            id=str(uuid.uuid4()),
            sender_id=sender_id,
            receiver_id=receiver_id,
            message=message,
            status="pending",
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self.chat_requests[record.id] = record
        return replace(record)

    def get_chat_request(self, request_id: str) -> Optional[ChatRequestRecord]:
        with self._lock:
            record = self.chat_requests.get(request_id)
            return replace(record) if record else None

    def transition_chat_request(self, request_id: str, from_status: str, to_status: str, now: datetime) -> bool:
        with self._lock:
            record = self.chat_requests.get(request_id)
            if record is None or record.status != from_status:
                return False
            record.status = to_status
            record.updated_at = now
            return True

    def received_requests(self, user_id: str, status: str) -> List[ChatRequestRecord]:
        with self._lock:
            found = [
                replace(r) for r in self.chat_requests.values()
                if r.receiver_id == user_id and r.status == status
            ]
        return sorted(found, key=lambda r: r.created_at, reverse=True)

    def sent_requests(self, user_id: str, limit: int) -> List[ChatRequestRecord]:
        with self._lock:
            found = [replace(r) for r in self.chat_requests.values() if r.sender_id == user_id]
        return sorted(found, key=lambda r: r.created_at, reverse=True)[:limit]

    # --- quotas ---
    def get_quota(self, user_id: str, operation: str) -> Optional[QuotaRecord]:
        with self._lock:
            record = self.quotas.get((user_id, operation))
            return replace(record) if record else None

    def increment_quota(self, user_id: str, operation: str, now: datetime, window_start_cutoff: datetime) -> QuotaRecord:
        key = (user_id, operation)
        with self._lock:
            record = self.quotas.get(key)
            if record is None or record.window_started_at < window_start_cutoff:
                record = QuotaRecord(user_id=user_id, operation=operation, count=0, window_started_at=now)
                self.quotas[key] = record
            record.count += 1
            return replace(record)

    # --- compatibility ---
    def latest_compatibility(self, user_x: str, user_y: str, since: datetime) -> Optional[CompatibilityRecord]:
        pair = {user_x, user_y}
        with self._lock:
            found = [
                replace(c) for c in self.compatibility
                if {c.user_a, c.user_b} == pair and c.created_at >= since
            ]
        if not found:
            return None
        return max(found, key=lambda c: c.created_at)

    def insert_compatibility(self, record: CompatibilityRecord) -> CompatibilityRecord:
        with self._lock:
            self.compatibility.append(replace(record))
        self.evict_expired(record.created_at)
        return record
