from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from loguru import logger

from nomadconnect.core.clock import Clock, utcnow
from nomadconnect.core.errors import InvalidInput, QuotaExceeded
from nomadconnect.core.radar_config import UNLIMITED, QuotaSettings
from nomadconnect.repository.base import QuotaRecord, Repository


@dataclass
class QuotaStatus:
    operation: str
    used: int
    limit: Optional[int] = None
    tier: Optional[str] = None

    @property
    def unlimited(self) -> bool:
        return self.limit == UNLIMITED


class QuotaTracker:
    """Rolling-window usage counters per (user, operation).

    The window restarts at the first increment after ``now - window_started_at``
    exceeds the configured window; it is never aligned to calendar days.
    ``check`` and ``increment`` are separate store calls and are not
    serialized per user, so two concurrent callers can both pass ``check``.
    """

    def __init__(self, repo: Repository, settings: Optional[QuotaSettings] = None, clock: Clock = utcnow):
        self.repo = repo
        self.settings = settings or QuotaSettings()
        self.clock = clock

    def limit_for(self, operation: str, tier: Optional[str]) -> int:
        tiers = self.settings.tier_limits.get(operation)
        if tiers is None:
            raise InvalidInput(f"Unknown metered operation: {operation}")
        tier = tier or self.settings.default_tier
        if tier in tiers:
            return tiers[tier]
        return tiers.get(self.settings.default_tier, 0)

    def _window_elapsed(self, record: QuotaRecord, now: datetime) -> bool:
        return now - record.window_started_at > self.settings.window

    def _used(self, record: Optional[QuotaRecord], now: datetime) -> int:
        if record is None or self._window_elapsed(record, now):
            return 0
        return record.count

    def check(self, user_id: str, tier: Optional[str], operation: str) -> QuotaStatus:
        tier = tier or self.settings.default_tier
        limit = self.limit_for(operation, tier)
        used = self._used(self.repo.get_quota(user_id, operation), self.clock())

        if limit != UNLIMITED and used >= limit:
            logger.warning(f"Quota exceeded | user={user_id} op={operation} used={used} limit={limit} tier={tier}")
            raise QuotaExceeded(operation=operation, limit=limit, used=used, tier=tier)

        return QuotaStatus(operation=operation, used=used, limit=limit, tier=tier)

    def increment(self, user_id: str, operation: str) -> int:
        now = self.clock()
        record = self.repo.increment_quota(
            user_id,
            operation,
            now=now,
            window_start_cutoff=now - self.settings.window,
        )
        logger.debug(f"Quota incremented | user={user_id} op={operation} count={record.count}")
        return record.count

    def usage(self, user_id: str, tier: Optional[str] = None) -> Dict[str, QuotaStatus]:
        now = self.clock()
        out: Dict[str, QuotaStatus] = {}
        for operation in self.settings.tier_limits:
            used = self._used(self.repo.get_quota(user_id, operation), now)
            limit = self.limit_for(operation, tier) if tier else None
            out[operation] = QuotaStatus(operation=operation, used=used, limit=limit, tier=tier)
        return out
