from typing import List, Optional

from pydantic import BaseModel, Field

from nomadconnect.schemas.base import TimestampedSchema
from nomadconnect.schemas.enums import ChatRequestAction, ChatRequestStatus


class ChatRequestCreate(BaseModel):
    receiver_id: str
    message: Optional[str] = Field(default=None, max_length=500)


class ChatRequestRespond(BaseModel):
    action: ChatRequestAction


class ChatRequestSendResponse(BaseModel):
    request_id: str
    success: bool = False
    already_requested: bool = False
    already_connected: bool = False


class ChatRequestRespondResponse(BaseModel):
    success: bool
    status: ChatRequestStatus
    match_id: Optional[str] = None


class ChatRequestOut(TimestampedSchema):
    id: str
    sender_id: str
    receiver_id: str
    message: str
    status: ChatRequestStatus


class ChatRequestListResponse(BaseModel):
    received: List[ChatRequestOut]
    sent: List[ChatRequestOut]
