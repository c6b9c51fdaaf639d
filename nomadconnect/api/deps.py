from functools import lru_cache

from fastapi import Depends

from nomadconnect.core.radar_config import QuotaSettings, RadarSettings
from nomadconnect.repository.base import Repository
from nomadconnect.repository.provider import get_repository
from nomadconnect.services.ai_client import GroqCompleter, TextCompleter
from nomadconnect.services.chat_requests import ChatRequestHandshake
from nomadconnect.services.compatibility import CompatibilityChecker
from nomadconnect.services.matching import SwipeLedger
from nomadconnect.services.quota import QuotaTracker
from nomadconnect.services.radar import RadarScanner


@lru_cache(maxsize=1)
def get_quota_settings() -> QuotaSettings:
    return QuotaSettings()


@lru_cache(maxsize=1)
def get_radar_settings() -> RadarSettings:
    return RadarSettings()


@lru_cache(maxsize=1)
def get_text_completer() -> TextCompleter:
    return GroqCompleter()


def get_quota_tracker(
    repo: Repository = Depends(get_repository),
    settings: QuotaSettings = Depends(get_quota_settings),
) -> QuotaTracker:
    return QuotaTracker(repo, settings)


def get_radar_scanner(
    repo: Repository = Depends(get_repository),
    quota: QuotaTracker = Depends(get_quota_tracker),
    settings: RadarSettings = Depends(get_radar_settings),
) -> RadarScanner:
    return RadarScanner(repo, quota, settings)


def get_swipe_ledger(
    repo: Repository = Depends(get_repository),
    settings: RadarSettings = Depends(get_radar_settings),
) -> SwipeLedger:
    return SwipeLedger(repo, placeholder_prefix=settings.placeholder_prefix)


def get_chat_handshake(repo: Repository = Depends(get_repository)) -> ChatRequestHandshake:
    return ChatRequestHandshake(repo)


def get_compatibility_checker(
    repo: Repository = Depends(get_repository),
    quota: QuotaTracker = Depends(get_quota_tracker),
    completer: TextCompleter = Depends(get_text_completer),
) -> CompatibilityChecker:
    return CompatibilityChecker(repo, quota, completer)
