from sqlalchemy import Column, String, Float, DateTime, Index

from nomadconnect.core.db import Base


class UserLocation(Base):
    __tablename__ = "user_locations"

    user_id = Column(String, primary_key=True)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)

    # naive UTC, written by the owner's own scan / location update
    updated_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("idx_user_locations_lat_lng", "lat", "lng"),
        Index("idx_user_locations_updated_at", "updated_at"),
    )
