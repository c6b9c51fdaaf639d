import uuid

from sqlalchemy import Column, String, DateTime, CheckConstraint, UniqueConstraint, Index

from nomadconnect.core.db import Base


class Swipe(Base):
    __tablename__ = "swipes"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    swiper_id = Column(String, nullable=False)
    swiped_id = Column(String, nullable=False)
    direction = Column(
        String,
        CheckConstraint("direction IN ('left','right')", name="swipes_direction_check"),
        nullable=False,
    )
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("swiper_id", "swiped_id", name="uq_swipes_swiper_swiped"),
        Index("idx_swipes_swiped_id", "swiped_id"),
    )
