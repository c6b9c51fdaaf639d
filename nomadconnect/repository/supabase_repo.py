from __future__ import annotations

import functools
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
from loguru import logger
from postgrest.exceptions import APIError
from supabase import Client, create_client

from nomadconnect.core.config import SUPABASE_SERVICE_ROLE_KEY, SUPABASE_URL
from nomadconnect.core.errors import Unavailable
from nomadconnect.repository.base import (
    DEFAULT_PROFILE_NAME,
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

_SUPABASE: Client | None = None


def supabase_admin() -> Client:
    global _SUPABASE
    if _SUPABASE is not None:
        return _SUPABASE

    if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError("Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY")

    _SUPABASE = create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)
    return _SUPABASE


def _storage_call(fn):
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except (APIError, httpx.HTTPError) as exc:
            logger.error(f"Supabase {fn.__name__} failed: {exc}")
            raise Unavailable(f"Storage unavailable ({fn.__name__})") from exc

    return wrapper


def _ts(value: datetime) -> str:
    return value.isoformat()


def _parse_ts(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _float_or_none(value: Any) -> Optional[float]:
    # activity coordinates were historically stored as text
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _quote(value: str) -> str:
    """Double-quote a value for a PostgREST logic filter so `,()` stay literal."""
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _pair_filter(first: str, second: str, user_x: str, user_y: str) -> str:
    x, y = _quote(user_x), _quote(user_y)
    return (
        f"and({first}.eq.{x},{second}.eq.{y}),"
        f"and({first}.eq.{y},{second}.eq.{x})"
    )


# ------------------------------------------------------------------
# Row -> record
# ------------------------------------------------------------------

def _location(row: Dict[str, Any]) -> LocationRecord:
    return LocationRecord(
        user_id=row["user_id"],
        lat=float(row["lat"]),
        lng=float(row["lng"]),
        updated_at=_parse_ts(row["updated_at"]),
    )


def _profile(row: Dict[str, Any]) -> ProfileSummary:
    return ProfileSummary(
        id=row["id"],
        name=row.get("name") or DEFAULT_PROFILE_NAME,
        age=row.get("age"),
        bio=row.get("bio") or "",
        photos=list(row.get("photos") or []),
        interests=list(row.get("interests") or []),
        location=row.get("location"),
        verified=bool(row.get("is_travel_verified")),
        badge=row.get("travel_badge") or "none",
        visible=row.get("is_visible_on_radar") is not False,
    )


def _activity(row: Dict[str, Any]) -> ActivityRecord:
    max_attendees = row.get("max_attendees")
    return ActivityRecord(
        id=row["id"],
        title=row["title"],
        date=_parse_ts(row["date"]),
        location=row.get("location") or "",
        host_id=row["host_id"],
        latitude=_float_or_none(row.get("latitude")),
        longitude=_float_or_none(row.get("longitude")),
        description=row.get("description"),
        category=row.get("category"),
        attendee_ids=list(row.get("attendee_ids") or []),
        max_attendees=int(max_attendees) if max_attendees not in (None, "") else None,
        image_url=row.get("image_url"),
    )


def _swipe(row: Dict[str, Any]) -> SwipeRecord:
    return SwipeRecord(
        swiper_id=row["swiper_id"],
        swiped_id=row["swiped_id"],
        direction=row["direction"],
        created_at=_parse_ts(row["created_at"]),
    )


def _match(row: Dict[str, Any]) -> MatchRecord:
    return MatchRecord(
        id=row["id"],
        user_a_id=row["user_a_id"],
        user_b_id=row["user_b_id"],
        created_at=_parse_ts(row["created_at"]),
    )


def _chat_request(row: Dict[str, Any]) -> ChatRequestRecord:
    return ChatRequestRecord(
        id=row["id"],
        sender_id=row["sender_id"],
        receiver_id=row["receiver_id"],
        message=row.get("message") or "",
        status=row["status"],
        created_at=_parse_ts(row["created_at"]),
        updated_at=_parse_ts(row["updated_at"]),
    )


def _quota(row: Dict[str, Any]) -> QuotaRecord:
    return QuotaRecord(
        user_id=row["user_id"],
        operation=row["operation"],
        count=int(row["count"]),
        window_started_at=_parse_ts(row["window_started_at"]),
    )


def _compatibility(row: Dict[str, Any]) -> CompatibilityRecord:
    return CompatibilityRecord(
        id=row["id"],
        user_a=row["user_a"],
        user_b=row["user_b"],
        score=int(row["score"]),
        strengths=list(row.get("strengths") or []),
        conflicts=list(row.get("conflicts") or []),
        icebreakers=list(row.get("icebreakers") or []),
        first_message=row.get("first_message"),
        date_idea=row.get("date_idea"),
        created_at=_parse_ts(row["created_at"]),
    )


# ------------------------------------------------------------------
# Repository
# ------------------------------------------------------------------

class SupabaseRepository(Repository):
    """PostgREST backend. Tables mirror the SQLAlchemy models, including the
    unique constraints on (swiper_id, swiped_id), (user_a_id, user_b_id) and
    (user_id, operation)."""

    def __init__(self, client: Client | None = None):
        self.sb = client or supabase_admin()

    # --- locations ---
    @_storage_call
    def upsert_location(self, user_id: str, lat: float, lng: float, now: datetime) -> LocationRecord:
        self.sb.table("user_locations").upsert(
            {"user_id": user_id, "lat": lat, "lng": lng, "updated_at": _ts(now)},
            on_conflict="user_id",
        ).execute()
        return LocationRecord(user_id=user_id, lat=lat, lng=lng, updated_at=now)

    @_storage_call
    def locations_in_box(self, box: BoundingBox, since: datetime, exclude_user_id: str) -> List[LocationRecord]:
        res = (
            self.sb.table("user_locations")
            .select("user_id, lat, lng, updated_at")
            .neq("user_id", exclude_user_id)
            .gte("lat", box.min_lat)
            .lte("lat", box.max_lat)
            .gte("lng", box.min_lng)
            .lte("lng", box.max_lng)
            .gte("updated_at", _ts(since))
            .execute()
        )
        return [_location(r) for r in res.data or []]

    # --- profiles ---
    @_storage_call
    def get_profiles(self, user_ids: Sequence[str]) -> Dict[str, ProfileSummary]:
        if not user_ids:
            return {}
        res = (
            self.sb.table("user_profiles")
            .select("id, name, age, bio, interests, photos, location, is_visible_on_radar, is_travel_verified, travel_badge")
            .in_("id", list(user_ids))
            .execute()
        )
        return {r["id"]: _profile(r) for r in res.data or []}

    @_storage_call
    def set_visibility(self, user_id: str, visible: bool) -> bool:
        res = (
            self.sb.table("user_profiles")
            .update({"is_visible_on_radar": visible})
            .eq("id", user_id)
            .execute()
        )
        return bool(res.data)

    # --- activities ---
    @_storage_call
    def upcoming_activities(self, box: BoundingBox, now: datetime) -> List[ActivityRecord]:
        res = (
            self.sb.table("activities")
            .select("*")
            .gte("date", _ts(now))
            .order("date", desc=False)
            .execute()
        )
        # coordinates may be text columns, so the box is applied here
        found = []
        for row in res.data or []:
            activity = _activity(row)
            if activity.latitude is None or activity.longitude is None:
                continue
            if box.contains(activity.latitude, activity.longitude):
                found.append(activity)
        return found

    # --- swipes ---
    @_storage_call
    def upsert_swipe(self, swiper_id: str, swiped_id: str, direction: str, now: datetime) -> SwipeRecord:
        self.sb.table("swipes").upsert(
            {
                "swiper_id": swiper_id,
                "swiped_id": swiped_id,
                "direction": direction,
                "created_at": _ts(now),
            },
            on_conflict="swiper_id,swiped_id",
        ).execute()
        return SwipeRecord(swiper_id=swiper_id, swiped_id=swiped_id, direction=direction, created_at=now)

    @_storage_call
    def get_swipe(self, swiper_id: str, swiped_id: str) -> Optional[SwipeRecord]:
        res = (
            self.sb.table("swipes")
            .select("swiper_id, swiped_id, direction, created_at")
            .eq("swiper_id", swiper_id)
            .eq("swiped_id", swiped_id)
            .limit(1)
            .execute()
        )
        return _swipe(res.data[0]) if res.data else None

    @_storage_call
    def right_swipes_by(self, swiper_id: str) -> List[SwipeRecord]:
        res = (
            self.sb.table("swipes")
            .select("swiper_id, swiped_id, direction, created_at")
            .eq("swiper_id", swiper_id)
            .eq("direction", "right")
            .order("created_at", desc=True)
            .execute()
        )
        return [_swipe(r) for r in res.data or []]

    # --- matches ---
    @_storage_call
    def insert_match_if_absent(self, user_a_id: str, user_b_id: str, now: datetime) -> Tuple[MatchRecord, bool]:
        low, high = canonical_pair(user_a_id, user_b_id)
        inserted = (
            self.sb.table("matches")
            .upsert(
                {"id": str(uuid.uuid4()), "user_a_id": low, "user_b_id": high, "created_at": _ts(now)},
                on_conflict="user_a_id,user_b_id",
                ignore_duplicates=True,
            )
            .execute()
        )
        res = (
            self.sb.table("matches")
            .select("id, user_a_id, user_b_id, created_at")
            .eq("user_a_id", low)
            .eq("user_b_id", high)
            .limit(1)
            .execute()
        )
        if not res.data:
            raise Unavailable("Match row missing after insert")
        return _match(res.data[0]), bool(inserted.data)

    @_storage_call
    def matches_for(self, user_id: str) -> List[MatchRecord]:
        res = (
            self.sb.table("matches")
            .select("id, user_a_id, user_b_id, created_at")
            .or_(f"user_a_id.eq.{_quote(user_id)},user_b_id.eq.{_quote(user_id)}")
            .order("created_at", desc=True)
            .execute()
        )
        return [_match(r) for r in res.data or []]

    # --- chat requests ---
    @_storage_call
    def find_active_request(self, user_x: str, user_y: str) -> Optional[ChatRequestRecord]:
        res = (
            self.sb.table("radar_chat_requests")
            .select("*")
            .or_(_pair_filter("sender_id", "receiver_id", user_x, user_y))
            .in_("status", ["pending", "accepted"])
            .order("created_at", desc=True)
            .execute()
        )
        rows = [_chat_request(r) for r in res.data or []]
        if not rows:
            return None
        accepted = [r for r in rows if r.status == "accepted"]
        return accepted[0] if accepted else rows[0]

    @_storage_call
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
        self.sb.table("radar_chat_requests").insert(
            {
                "id": record.id,
                "sender_id": sender_id,
                "receiver_id": receiver_id,
                "message": message,
                "status": "pending",
                "created_at": _ts(now),
                "updated_at": _ts(now),
            }
        ).execute()
        return record

    @_storage_call
    def get_chat_request(self, request_id: str) -> Optional[ChatRequestRecord]:
        res = self.sb.table("radar_chat_requests").select("*").eq("id", request_id).limit(1).execute()
        return _chat_request(res.data[0]) if res.data else None

    @_storage_call
    def transition_chat_request(self, request_id: str, from_status: str, to_status: str, now: datetime) -> bool:
        res = (
            self.sb.table("radar_chat_requests")
            .update({"status": to_status, "updated_at": _ts(now)})
            .eq("id", request_id)
            .eq("status", from_status)
            .execute()
        )
        return bool(res.data)

    @_storage_call
    def received_requests(self, user_id: str, status: str) -> List[ChatRequestRecord]:
        res = (
            self.sb.table("radar_chat_requests")
            .select("*")
            .eq("receiver_id", user_id)
            .eq("status", status)
            .order("created_at", desc=True)
            .execute()
        )
        return [_chat_request(r) for r in res.data or []]

    @_storage_call
    def sent_requests(self, user_id: str, limit: int) -> List[ChatRequestRecord]:
        res = (
            self.sb.table("radar_chat_requests")
            .select("*")
            .eq("sender_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [_chat_request(r) for r in res.data or []]

    # --- quotas ---
    @_storage_call
    def get_quota(self, user_id: str, operation: str) -> Optional[QuotaRecord]:
        res = (
            self.sb.table("quota_states")
            .select("user_id, operation, count, window_started_at")
            .eq("user_id", user_id)
            .eq("operation", operation)
            .limit(1)
            .execute()
        )
        return _quota(res.data[0]) if res.data else None

    def increment_quota(self, user_id: str, operation: str, now: datetime, window_start_cutoff: datetime) -> QuotaRecord:
        # read-modify-write: concurrent increments may collapse (bounded overrun)
        current = self.get_quota(user_id, operation)
        if current is None or current.window_started_at < window_start_cutoff:
            record = QuotaRecord(user_id=user_id, operation=operation, count=1, window_started_at=now)
        else:
            record = QuotaRecord(
                user_id=user_id,
                operation=operation,
                count=current.count + 1,
                window_started_at=current.window_started_at,
            )
        self._write_quota(record)
        return record

    @_storage_call
    def _write_quota(self, record: QuotaRecord) -> None:
        self.sb.table("quota_states").upsert(
            {
                "user_id": record.user_id,
                "operation": record.operation,
                "count": record.count,
                "window_started_at": _ts(record.window_started_at),
            },
            on_conflict="user_id,operation",
        ).execute()

    # --- compatibility ---
    @_storage_call
    def latest_compatibility(self, user_x: str, user_y: str, since: datetime) -> Optional[CompatibilityRecord]:
        res = (
            self.sb.table("compatibility_history")
            .select("*")
            .or_(_pair_filter("user_a", "user_b", user_x, user_y))
            .gte("created_at", _ts(since))
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        return _compatibility(res.data[0]) if res.data else None

    @_storage_call
    def insert_compatibility(self, record: CompatibilityRecord) -> CompatibilityRecord:
        self.sb.table("compatibility_history").insert(
            {
                "id": record.id,
                "user_a": record.user_a,
                "user_b": record.user_b,
                "score": record.score,
                "strengths": record.strengths,
                "conflicts": record.conflicts,
                "icebreakers": record.icebreakers,
                "first_message": record.first_message,
                "date_idea": record.date_idea,
                "created_at": _ts(record.created_at),
            }
        ).execute()
        return record
