from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Naive UTC; every stored timestamp uses this convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
