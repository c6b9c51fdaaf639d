import json
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Optional

from nomadconnect.core.config import TIER_LIMITS_JSON

# --------------------------------------------------
# RADAR
# --------------------------------------------------

DEFAULT_RADIUS_KM = 75.0
MAX_USER_RESULTS = 25
MAX_ACTIVITY_RESULTS = 10

# Locations older than this are not shown on radar
LOCATION_RECENCY = timedelta(days=7)

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = 111.0

# Synthetic profiles seeded for demos; never discoverable or swipeable
PLACEHOLDER_PREFIX = "mock_"

# --------------------------------------------------
# QUOTAS
# --------------------------------------------------

RADAR_SCAN = "radarScan"
COMPATIBILITY_CHECK = "compatibilityCheck"
OPERATIONS = (RADAR_SCAN, COMPATIBILITY_CHECK)

QUOTA_WINDOW = timedelta(hours=24)

DEFAULT_TIER = "starter"
UNLIMITED = -1

_DEFAULT_TIER_LIMITS = {
    "starter": 2,
    "free": 2,
    "explorer": 15,
    "pro": 15,
    "adventurer": UNLIMITED,
    "expert": UNLIMITED,
    "lifetime": UNLIMITED,
}

# Compatibility results younger than this are served from history
COMPATIBILITY_CACHE_WINDOW = timedelta(hours=24)

TierLimits = Dict[str, Dict[str, int]]


def load_tier_limits(raw: Optional[str] = TIER_LIMITS_JSON) -> TierLimits:
    """operation -> tier -> limit. ``TIER_LIMITS_JSON`` entries override the defaults."""
    limits: TierLimits = {op: dict(_DEFAULT_TIER_LIMITS) for op in OPERATIONS}
    if not raw:
        return limits

    overrides = json.loads(raw)
    for operation, tiers in overrides.items():
        limits.setdefault(operation, {}).update({t: int(v) for t, v in tiers.items()})
    return limits


@dataclass
class RadarSettings:
    default_radius_km: float = DEFAULT_RADIUS_KM
    max_users: int = MAX_USER_RESULTS
    max_activities: int = MAX_ACTIVITY_RESULTS
    location_recency: timedelta = LOCATION_RECENCY
    earth_radius_km: float = EARTH_RADIUS_KM
    placeholder_prefix: str = PLACEHOLDER_PREFIX


@dataclass
class QuotaSettings:
    tier_limits: TierLimits = field(default_factory=load_tier_limits)
    window: timedelta = QUOTA_WINDOW
    default_tier: str = DEFAULT_TIER
