from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text, JSON, func

from nomadconnect.core.db import Base


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id = Column(String, primary_key=True)

    name = Column(String, nullable=True)
    age = Column(Integer, nullable=True)
    bio = Column(Text, nullable=True)

    # stored as JSON lists: ["hiking", "surfing"]
    interests = Column(JSON, nullable=True)
    photos = Column(JSON, nullable=True)

    location = Column(String, nullable=True)

    is_visible_on_radar = Column(Boolean, nullable=False, default=True)
    is_travel_verified = Column(Boolean, nullable=False, default=False)
    travel_badge = Column(String, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )
