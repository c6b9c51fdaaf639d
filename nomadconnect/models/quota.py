from sqlalchemy import Column, String, Integer, DateTime, UniqueConstraint

from nomadconnect.core.db import Base


class QuotaState(Base):
    __tablename__ = "quota_states"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False)
    operation = Column(String(50), nullable=False)
    count = Column(Integer, nullable=False, default=0)
    window_started_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "operation", name="uq_quota_states_user_operation"),
    )
