import uuid

from sqlalchemy import Column, String, Integer, Float, DateTime, Text, JSON, Index

from nomadconnect.core.db import Base


class Activity(Base):
    __tablename__ = "activities"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=False, default="other")
    date = Column(DateTime, nullable=False)
    location = Column(String, nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    host_id = Column(String, nullable=False)
    attendee_ids = Column(JSON, nullable=True)
    max_attendees = Column(Integer, nullable=True)
    image_url = Column(String, nullable=True)

    __table_args__ = (
        Index("idx_activities_date", "date"),
    )
