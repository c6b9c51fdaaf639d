import uuid

from sqlalchemy import Column, String, Text, DateTime, CheckConstraint, Index

from nomadconnect.core.db import Base


class ChatRequest(Base):
    __tablename__ = "radar_chat_requests"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    sender_id = Column(String, nullable=False)
    receiver_id = Column(String, nullable=False)
    message = Column(Text, nullable=False, default="")
    status = Column(
        String,
        CheckConstraint(
            "status IN ('pending','accepted','declined')",
            name="radar_chat_requests_status_check",
        ),
        nullable=False,
    )
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("idx_chat_requests_sender", "sender_id", "receiver_id"),
        Index("idx_chat_requests_receiver", "receiver_id", "status"),
    )
