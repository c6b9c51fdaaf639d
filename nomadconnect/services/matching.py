from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from loguru import logger

from nomadconnect.core.clock import Clock, utcnow
from nomadconnect.core.errors import InvalidInput
from nomadconnect.core.radar_config import PLACEHOLDER_PREFIX
from nomadconnect.repository.base import MatchRecord, ProfileSummary, Repository

DIRECTIONS = ("left", "right")


@dataclass
class MatchView:
    id: str
    user_a_id: str
    user_b_id: str
    created_at: datetime
    matched_user_id: str
    matched_user: ProfileSummary
    is_new: bool = False


@dataclass
class SwipeResult:
    success: bool
    match: Optional[MatchView] = None


def ensure_match(repo: Repository, user_x: str, user_y: str, now: datetime) -> Tuple[MatchRecord, bool]:
    """Create the match for the unordered pair unless it already exists.

    The store's unique constraint on the sorted pair decides; losing a race
    (or finding a match from another path) is a success, not an error.
    """
    match, created = repo.insert_match_if_absent(user_x, user_y, now)
    if created:
        logger.info(f"Match created | id={match.id} a={match.user_a_id} b={match.user_b_id}")
    else:
        logger.debug(f"Match already exists | id={match.id} a={match.user_a_id} b={match.user_b_id}")
    return match, created


class SwipeLedger:
    """Records swipe intents and reconciles mutual right swipes into matches."""

    def __init__(self, repo: Repository, placeholder_prefix: str = PLACEHOLDER_PREFIX, clock: Clock = utcnow):
        self.repo = repo
        self.placeholder_prefix = placeholder_prefix
        self.clock = clock

    def _validate(self, swiper_id: str, swiped_id: str, direction: str) -> None:
        if not swiper_id or not swiped_id:
            raise InvalidInput("swiper_id and swiped_id are required")
        if swiper_id == swiped_id:
            raise InvalidInput("Cannot swipe on yourself")
        if str(swiped_id).startswith(self.placeholder_prefix):
            raise InvalidInput("Cannot swipe on a placeholder profile")
        if direction not in DIRECTIONS:
            raise InvalidInput("direction must be 'left' or 'right'")

    def record_swipe(self, swiper_id: str, swiped_id: str, direction: str) -> SwipeResult:
        self._validate(swiper_id, swiped_id, direction)

        now = self.clock()
        self.repo.upsert_swipe(swiper_id, swiped_id, direction, now)
        logger.debug(f"Swipe recorded | swiper={swiper_id} swiped={swiped_id} direction={direction}")

        if direction != "right":
            return SwipeResult(success=True)

        reverse = self.repo.get_swipe(swiped_id, swiper_id)
        if reverse is None or reverse.direction != "right":
            return SwipeResult(success=True)

        # the swipe above stays recorded even if this fails
        match, created = ensure_match(self.repo, swiper_id, swiped_id, now)
        return SwipeResult(success=True, match=self._view(match, swiper_id, created))

    def list_matches(self, user_id: str) -> List[MatchView]:
        matches = self.repo.matches_for(user_id)
        profiles = self.repo.get_profiles([m.other(user_id) for m in matches])
        return [self._view(m, user_id, False, profiles) for m in matches]

    def list_liked(self, user_id: str) -> List[ProfileSummary]:
        """Profiles the user liked that have not turned into a match yet."""
        matched = {m.other(user_id) for m in self.repo.matches_for(user_id)}
        liked_ids = [s.swiped_id for s in self.repo.right_swipes_by(user_id) if s.swiped_id not in matched]
        profiles = self.repo.get_profiles(liked_ids)
        return [profiles[uid] for uid in liked_ids if uid in profiles]

    def _view(
        self,
        match: MatchRecord,
        viewer_id: str,
        created: bool,
        profiles: Optional[Dict[str, ProfileSummary]] = None,
    ) -> MatchView:
        other = match.other(viewer_id)
        if profiles is None:
            profiles = self.repo.get_profiles([other])
        return MatchView(
            id=match.id,
            user_a_id=match.user_a_id,
            user_b_id=match.user_b_id,
            created_at=match.created_at,
            matched_user_id=other,
            matched_user=profiles.get(other) or ProfileSummary.placeholder(other),
            is_new=created,
        )
