import uuid

from sqlalchemy import Column, String, DateTime, UniqueConstraint, Index

from nomadconnect.core.db import Base


class Match(Base):
    __tablename__ = "matches"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    # canonical pair, sorted in Python (not by DB collation)
    user_a_id = Column(String, nullable=False)
    user_b_id = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_a_id", "user_b_id", name="uq_matches_pair"),
        Index("idx_matches_user_b_id", "user_b_id"),
    )
