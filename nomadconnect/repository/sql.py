from __future__ import annotations

import functools
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger
from sqlalchemy import and_, case, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nomadconnect.core.errors import Unavailable
from nomadconnect.models.activity import Activity
from nomadconnect.models.chat_request import ChatRequest
from nomadconnect.models.compatibility import CompatibilityResult
from nomadconnect.models.location import UserLocation
from nomadconnect.models.match import Match
from nomadconnect.models.profile import UserProfile
from nomadconnect.models.quota import QuotaState
from nomadconnect.models.swipe import Swipe
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

# Dialects with INSERT ... ON CONFLICT support
_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def _storage_call(fn):
    @functools.wraps(fn)
    def wrapper(self: "SqlRepository", *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"SQL {fn.__name__} failed: {exc}")
            raise Unavailable(f"Storage unavailable ({fn.__name__})") from exc

    return wrapper


# ------------------------------------------------------------------
# Row -> record
# ------------------------------------------------------------------

def _location(row: UserLocation) -> LocationRecord:
    return LocationRecord(user_id=row.user_id, lat=row.lat, lng=row.lng, updated_at=row.updated_at)


def _profile(row: UserProfile) -> ProfileSummary:
    return ProfileSummary(
        id=row.id,
        name=row.name or DEFAULT_PROFILE_NAME,
        age=row.age,
        bio=row.bio or "",
        photos=list(row.photos or []),
        interests=list(row.interests or []),
        location=row.location,
        verified=bool(row.is_travel_verified),
        badge=row.travel_badge or "none",
        visible=row.is_visible_on_radar is not False,
    )


def _activity(row: Activity) -> ActivityRecord:
    return ActivityRecord(
        id=row.id,
        title=row.title,
        date=row.date,
        location=row.location,
        host_id=row.host_id,
        latitude=row.latitude,
        longitude=row.longitude,
        description=row.description,
        category=row.category,
        attendee_ids=list(row.attendee_ids or []),
        max_attendees=row.max_attendees,
        image_url=row.image_url,
    )


def _swipe(row: Swipe) -> SwipeRecord:
    return SwipeRecord(
        swiper_id=row.swiper_id,
        swiped_id=row.swiped_id,
        direction=row.direction,
        created_at=row.created_at,
    )


def _match(row: Match) -> MatchRecord:
    return MatchRecord(id=row.id, user_a_id=row.user_a_id, user_b_id=row.user_b_id, created_at=row.created_at)


def _chat_request(row: ChatRequest) -> ChatRequestRecord:
    return ChatRequestRecord(
        id=row.id,
        sender_id=row.sender_id,
        receiver_id=row.receiver_id,
        message=row.message or "",
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _quota(row: QuotaState) -> QuotaRecord:
    return QuotaRecord(
        user_id=row.user_id,
        operation=row.operation,
        count=row.count,
        window_started_at=row.window_started_at,
    )


def _compatibility(row: CompatibilityResult) -> CompatibilityRecord:
    return CompatibilityRecord(
        id=row.id,
        user_a=row.user_a,
        user_b=row.user_b,
        score=row.score,
        strengths=list(row.strengths or []),
        conflicts=list(row.conflicts or []),
        icebreakers=list(row.icebreakers or []),
        first_message=row.first_message,
        date_idea=row.date_idea,
        created_at=row.created_at,
    )


def _pair_clause(columns, user_x: str, user_y: str):
    first, second = columns
    return or_(
        and_(first == user_x, second == user_y),
        and_(first == user_y, second == user_x),
    )


# ------------------------------------------------------------------
# Repository
# ------------------------------------------------------------------

class SqlRepository(Repository):
    """PostgreSQL / SQLite backend over one request-scoped session.

    Each method commits its own work.
    """

    def __init__(self, db: Session):
        self.db = db
        dialect = db.get_bind().dialect.name
        if dialect not in _INSERTS:
            raise RuntimeError(f"Unsupported SQL dialect for upserts: {dialect}")
        self._insert = _INSERTS[dialect]

    # --- locations ---
    @_storage_call
    def upsert_location(self, user_id: str, lat: float, lng: float, now: datetime) -> LocationRecord:
        stmt = self._insert(UserLocation).values(user_id=user_id, lat=lat, lng=lng, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_={
                "lat": stmt.excluded.lat,
                "lng": stmt.excluded.lng,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        self.db.execute(stmt)
        self.db.commit()
        return LocationRecord(user_id=user_id, lat=lat, lng=lng, updated_at=now)

    @_storage_call
    def locations_in_box(self, box: BoundingBox, since: datetime, exclude_user_id: str) -> List[LocationRecord]:
        rows = self.db.execute(
            select(UserLocation).where(
                UserLocation.user_id != exclude_user_id,
                UserLocation.lat.between(box.min_lat, box.max_lat),
                UserLocation.lng.between(box.min_lng, box.max_lng),
                UserLocation.updated_at >= since,
            )
        ).scalars().all()
        return [_location(r) for r in rows]

    # --- profiles ---
    @_storage_call
    def get_profiles(self, user_ids: Sequence[str]) -> Dict[str, ProfileSummary]:
        if not user_ids:
            return {}
        rows = self.db.execute(
            select(UserProfile).where(UserProfile.id.in_(list(user_ids)))
        ).scalars().all()
        return {r.id: _profile(r) for r in rows}

    @_storage_call
    def set_visibility(self, user_id: str, visible: bool) -> bool:
        result = self.db.execute(
            update(UserProfile)
            .where(UserProfile.id == user_id)
            .values(is_visible_on_radar=visible)
        )
        self.db.commit()
        return result.rowcount > 0

    # --- activities ---
    @_storage_call
    def upcoming_activities(self, box: BoundingBox, now: datetime) -> List[ActivityRecord]:
        rows = self.db.execute(
            select(Activity)
            .where(
                Activity.date >= now,
                Activity.latitude.is_not(None),
                Activity.longitude.is_not(None),
                Activity.latitude.between(box.min_lat, box.max_lat),
                Activity.longitude.between(box.min_lng, box.max_lng),
            )
            .order_by(Activity.date.asc())
        ).scalars().all()
        return [_activity(r) for r in rows]

    # --- swipes ---
    @_storage_call
    def upsert_swipe(self, swiper_id: str, swiped_id: str, direction: str, now: datetime) -> SwipeRecord:
        stmt = self._insert(Swipe).values(
            id=str(uuid.uuid4()),
            swiper_id=swiper_id,
            swiped_id=swiped_id,
            direction=direction,
            created_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["swiper_id", "swiped_id"],
            set_={
                "direction": stmt.excluded.direction,
                "created_at": stmt.excluded.created_at,
            },
        )
        self.db.execute(stmt)
        self.db.commit()
        return SwipeRecord(swiper_id=swiper_id, swiped_id=swiped_id, direction=direction, created_at=now)

    @_storage_call
    def get_swipe(self, swiper_id: str, swiped_id: str) -> Optional[SwipeRecord]:
        row = self.db.execute(
            select(Swipe).where(Swipe.swiper_id == swiper_id, Swipe.swiped_id == swiped_id)
        ).scalars().first()
        return _swipe(row) if row else None

    @_storage_call
    def right_swipes_by(self, swiper_id: str) -> List[SwipeRecord]:
        rows = self.db.execute(
            select(Swipe)
            .where(Swipe.swiper_id == swiper_id, Swipe.direction == "right")
            .order_by(Swipe.created_at.desc())
        ).scalars().all()
        return [_swipe(r) for r in rows]

    # --- matches ---
    @_storage_call
    def insert_match_if_absent(self, user_a_id: str, user_b_id: str, now: datetime) -> Tuple[MatchRecord, bool]:
        low, high = canonical_pair(user_a_id, user_b_id)

        stmt = (
            self._insert(Match)
            .values(id=str(uuid.uuid4()), user_a_id=low, user_b_id=high, created_at=now)
            .on_conflict_do_nothing(index_elements=["user_a_id", "user_b_id"])
        )
        result = self.db.execute(stmt)
        self.db.commit()

        row = self.db.execute(
            select(Match).where(Match.user_a_id == low, Match.user_b_id == high)
        ).scalars().one()
        return _match(row), result.rowcount == 1

    @_storage_call
    def matches_for(self, user_id: str) -> List[MatchRecord]:
        rows = self.db.execute(
            select(Match)
            .where(or_(Match.user_a_id == user_id, Match.user_b_id == user_id))
            .order_by(Match.created_at.desc())
        ).scalars().all()
        return [_match(r) for r in rows]

    # --- chat requests ---
    @_storage_call
    def find_active_request(self, user_x: str, user_y: str) -> Optional[ChatRequestRecord]:
        row = self.db.execute(
            select(ChatRequest)
            .where(
                _pair_clause((ChatRequest.sender_id, ChatRequest.receiver_id), user_x, user_y),
                ChatRequest.status.in_(["pending", "accepted"]),
            )
            .order_by(
                case((ChatRequest.status == "accepted", 0), else_=1),
                ChatRequest.created_at.desc(),
            )
        ).scalars().first()
        return _chat_request(row) if row else None

    @_storage_call
    def insert_chat_request(self, sender_id: str, receiver_id: str, message: str, now: datetime) -> ChatRequestRecord:
        row = ChatRequest(
            id=str(uuid.uuid4()),
            sender_id=sender_id,
            receiver_id=receiver_id,
            message=message,
            status="pending",
            created_at=now,
            updated_at=now,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return _chat_request(row)

    @_storage_call
    def get_chat_request(self, request_id: str) -> Optional[ChatRequestRecord]:
        row = self.db.get(ChatRequest, request_id)
        return _chat_request(row) if row else None

    @_storage_call
    def transition_chat_request(self, request_id: str, from_status: str, to_status: str, now: datetime) -> bool:
        result = self.db.execute(
            update(ChatRequest)
            .where(ChatRequest.id == request_id, ChatRequest.status == from_status)
            .values(status=to_status, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount == 1

    @_storage_call
    def received_requests(self, user_id: str, status: str) -> List[ChatRequestRecord]:
        rows = self.db.execute(
            select(ChatRequest)
            .where(ChatRequest.receiver_id == user_id, ChatRequest.status == status)
            .order_by(ChatRequest.created_at.desc())
        ).scalars().all()
        return [_chat_request(r) for r in rows]

    @_storage_call
    def sent_requests(self, user_id: str, limit: int) -> List[ChatRequestRecord]:
        rows = self.db.execute(
            select(ChatRequest)
            .where(ChatRequest.sender_id == user_id)
            .order_by(ChatRequest.created_at.desc())
            .limit(limit)
        ).scalars().all()
        return [_chat_request(r) for r in rows]

    # --- quotas ---
    @_storage_call
    def get_quota(self, user_id: str, operation: str) -> Optional[QuotaRecord]:
        row = self.db.execute(
            select(QuotaState).where(QuotaState.user_id == user_id, QuotaState.operation == operation)
        ).scalars().first()
        return _quota(row) if row else None

    @_storage_call
    def increment_quota(self, user_id: str, operation: str, now: datetime, window_start_cutoff: datetime) -> QuotaRecord:
        table = QuotaState.__table__
        elapsed = table.c.window_started_at < window_start_cutoff

        stmt = self._insert(QuotaState).values(
            user_id=user_id,
            operation=operation,
            count=1,
            window_started_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "operation"],
            set_={
                "count": case((elapsed, 1), else_=table.c.count + 1),
                "window_started_at": case(
                    (elapsed, stmt.excluded.window_started_at),
                    else_=table.c.window_started_at,
                ),
            },
        )
        self.db.execute(stmt)
        self.db.commit()

        row = self.db.execute(
            select(QuotaState).where(QuotaState.user_id == user_id, QuotaState.operation == operation)
        ).scalars().one()
        return _quota(row)

    # --- compatibility ---
    @_storage_call
    def latest_compatibility(self, user_x: str, user_y: str, since: datetime) -> Optional[CompatibilityRecord]:
        row = self.db.execute(
            select(CompatibilityResult)
            .where(
                _pair_clause((CompatibilityResult.user_a, CompatibilityResult.user_b), user_x, user_y),
                CompatibilityResult.created_at >= since,
            )
            .order_by(CompatibilityResult.created_at.desc())
        ).scalars().first()
        return _compatibility(row) if row else None

    @_storage_call
    def insert_compatibility(self, record: CompatibilityRecord) -> CompatibilityRecord:
        self.db.add(
            CompatibilityResult(
                id=record.id,
                user_a=record.user_a,
                user_b=record.user_b,
                score=record.score,
                strengths=record.strengths,
                conflicts=record.conflicts,
                icebreakers=record.icebreakers,
                first_message=record.first_message,
                date_idea=record.date_idea,
                created_at=record.created_at,
            )
        )
        self.db.commit()
        return record
