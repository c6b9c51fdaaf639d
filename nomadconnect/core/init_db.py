from loguru import logger

from nomadconnect.core.db import Base, get_engine

# Import all models so SQLAlchemy registers them
from nomadconnect.models.location import UserLocation  # noqa: F401
from nomadconnect.models.swipe import Swipe  # noqa: F401
from nomadconnect.models.match import Match  # noqa: F401
from nomadconnect.models.chat_request import ChatRequest  # noqa: F401
from nomadconnect.models.quota import QuotaState  # noqa: F401
from nomadconnect.models.profile import UserProfile  # noqa: F401
from nomadconnect.models.activity import Activity  # noqa: F401
from nomadconnect.models.compatibility import CompatibilityResult  # noqa: F401


def init_db(engine=None):
    logger.info("Creating database tables")
    Base.metadata.create_all(bind=engine or get_engine())
    logger.info("Database tables created")
