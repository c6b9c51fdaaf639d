from __future__ import annotations

import json
import re
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional

from loguru import logger

from nomadconnect.core.clock import Clock, utcnow
from nomadconnect.core.errors import InvalidInput
from nomadconnect.core.radar_config import COMPATIBILITY_CACHE_WINDOW, COMPATIBILITY_CHECK
from nomadconnect.repository.base import CompatibilityRecord, ProfileSummary, Repository
from nomadconnect.services.ai_client import TextCompleter
from nomadconnect.services.quota import QuotaTracker

SYSTEM_PROMPT = "You are a compatibility analyzer. Return ONLY valid JSON. No markdown code blocks."

# used when the model answers with something that is not the expected JSON
FALLBACK_RESULT: Dict[str, Any] = {
    "score": 65,
    "strengths": ["Both enjoy travel and adventure"],
    "conflicts": ["May have different travel paces"],
    "icebreakers": ["What's your favorite travel destination?"],
    "first_message": "Hey! Looks like we're both on the road!",
    "date_idea": "Explore a new hiking trail together",
}

_FENCE_RE = re.compile(r"```(?:json)?\s*")

# marks a reply field that cannot be stored as text
_INVALID = object()


@dataclass
class CompatibilityOutcome:
    result: CompatibilityRecord
    cached: bool


def _describe(profile: ProfileSummary) -> str:
    return (
        f"Name: {profile.name}, Age: {profile.age or 'unknown'}, "
        f"Bio: \"{profile.bio or 'No bio'}\", Interests: {json.dumps(profile.interests)}, "
        f"Location: \"{profile.location or 'unknown'}\""
    )


def build_prompt(profile_a: ProfileSummary, profile_b: ProfileSummary) -> str:
    return (
        "You are a compatibility analyzer for a travel/nomad dating app. Analyze these two profiles "
        "and return ONLY valid JSON (no markdown, no explanation).\n\n"
        f"Profile A: {_describe(profile_a)}\n\n"
        f"Profile B: {_describe(profile_b)}\n\n"
        "Return ONLY this JSON structure:\n"
        '{"score":75,"strengths":["shared interest 1"],"conflicts":["potential conflict 1"],'
        '"icebreakers":["conversation starter 1"],"first_message":"Hey! I noticed we both...",'
        '"date_idea":"A cool activity idea based on shared interests"}'
    )


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


def _optional_text(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return _INVALID


def parse_compatibility(reply: str) -> Optional[Dict[str, Any]]:
    """Model output -> result fields, or None when it is not usable JSON."""
    cleaned = _FENCE_RE.sub("", reply or "").strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    try:
        score = int(data.get("score"))
    except (TypeError, ValueError, OverflowError):
        return None

    first_message = _optional_text(data.get("first_message"))
    date_idea = _optional_text(data.get("date_idea"))
    if first_message is _INVALID or date_idea is _INVALID:
        return None

    return {
        "score": max(0, min(100, score)),
        "strengths": _str_list(data.get("strengths")),
        "conflicts": _str_list(data.get("conflicts")),
        "icebreakers": _str_list(data.get("icebreakers")),
        "first_message": first_message,
        "date_idea": date_idea,
    }


class CompatibilityChecker:
    def __init__(
        self,
        repo: Repository,
        quota: QuotaTracker,
        completer: TextCompleter,
        cache_window: timedelta = COMPATIBILITY_CACHE_WINDOW,
        clock: Clock = utcnow,
    ):
        self.repo = repo
        self.quota = quota
        self.completer = completer
        self.cache_window = cache_window
        self.clock = clock

    def check(self, user_id: str, other_user_id: str, tier: Optional[str] = None) -> CompatibilityOutcome:
        if not other_user_id:
            raise InvalidInput("other_user_id is required")
        if user_id == other_user_id:
            raise InvalidInput("Cannot check compatibility with yourself")

        self.quota.check(user_id, tier, COMPATIBILITY_CHECK)

        now = self.clock()
        cached = self.repo.latest_compatibility(user_id, other_user_id, since=now - self.cache_window)
        if cached is not None:
            logger.debug(f"Compatibility cache hit | a={user_id} b={other_user_id} id={cached.id}")
            return CompatibilityOutcome(result=cached, cached=True)

        profiles = self.repo.get_profiles([user_id, other_user_id])
        prompt = build_prompt(
            profiles.get(user_id) or ProfileSummary.placeholder(user_id),
            profiles.get(other_user_id) or ProfileSummary.placeholder(other_user_id),
        )
        reply = self.completer.complete(
            [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ]
        )

        fields = parse_compatibility(reply)
        if fields is None:
            logger.warning(f"Compatibility reply unparsable, using fallback | a={user_id} b={other_user_id}")
            fields = dict(FALLBACK_RESULT)

        record = self.repo.insert_compatibility(
            CompatibilityRecord(
                id=str(uuid.uuid4()),
                user_a=user_id,
                user_b=other_user_id,
                score=fields["score"],
                strengths=list(fields["strengths"]),
                conflicts=list(fields["conflicts"]),
                icebreakers=list(fields["icebreakers"]),
                first_message=fields["first_message"],
                date_idea=fields["date_idea"],
                created_at=now,
            )
        )
        used = self.quota.increment(user_id, COMPATIBILITY_CHECK)
        logger.info(f"Compatibility checked | a={user_id} b={other_user_id} score={record.score} used={used}")
        return CompatibilityOutcome(result=record, cached=False)
