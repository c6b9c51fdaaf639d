from datetime import datetime

from pydantic import BaseModel


class BaseSchema(BaseModel):
    """Response models are built straight from service dataclasses."""

    class Config:
        from_attributes = True


class TimestampedSchema(BaseSchema):
    created_at: datetime
    updated_at: datetime


class PairSchema(BaseSchema):
    """Canonical (sorted) user pair shared by matches."""

    id: str
    user_a_id: str
    user_b_id: str
    created_at: datetime
