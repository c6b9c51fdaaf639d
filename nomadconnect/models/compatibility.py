import uuid

from sqlalchemy import Column, String, Integer, DateTime, Text, JSON, Index

from nomadconnect.core.db import Base


class CompatibilityResult(Base):
    __tablename__ = "compatibility_history"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_a = Column(String, nullable=False)
    user_b = Column(String, nullable=False)
    score = Column(Integer, nullable=False)
    strengths = Column(JSON, nullable=True)
    conflicts = Column(JSON, nullable=True)
    icebreakers = Column(JSON, nullable=True)
    first_message = Column(Text, nullable=True)
    date_idea = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("idx_compatibility_pair", "user_a", "user_b", "created_at"),
    )
