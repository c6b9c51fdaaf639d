from fastapi import APIRouter, Depends

from nomadconnect.api.deps import get_chat_handshake
from nomadconnect.core.auth import get_current_user_id
from nomadconnect.schemas.chat_requests import (
    ChatRequestCreate,
    ChatRequestListResponse,
    ChatRequestOut,
    ChatRequestRespond,
    ChatRequestRespondResponse,
    ChatRequestSendResponse,
)
from nomadconnect.services.chat_requests import (
    ALREADY_CONNECTED,
    ALREADY_REQUESTED,
    SENT,
    ChatRequestHandshake,
)

router = APIRouter()


@router.post("", response_model=ChatRequestSendResponse)
def send_chat_request(
    payload: ChatRequestCreate,
    handshake: ChatRequestHandshake = Depends(get_chat_handshake),
    user_id: str = Depends(get_current_user_id),
):
    result = handshake.send(user_id, payload.receiver_id, payload.message)
    return ChatRequestSendResponse(
        request_id=result.request_id,
        success=result.outcome == SENT,
        already_requested=result.outcome == ALREADY_REQUESTED,
        already_connected=result.outcome == ALREADY_CONNECTED,
    )


@router.get("", response_model=ChatRequestListResponse)
def list_chat_requests(
    handshake: ChatRequestHandshake = Depends(get_chat_handshake),
    user_id: str = Depends(get_current_user_id),
):
    lists = handshake.list_requests(user_id)
    return ChatRequestListResponse(
        received=[ChatRequestOut.model_validate(r) for r in lists.received],
        sent=[ChatRequestOut.model_validate(r) for r in lists.sent],
    )


@router.post("/{request_id}/respond", response_model=ChatRequestRespondResponse)
def respond_chat_request(
    request_id: str,
    payload: ChatRequestRespond,
    handshake: ChatRequestHandshake = Depends(get_chat_handshake),
    user_id: str = Depends(get_current_user_id),
):
    result = handshake.respond(request_id, user_id, payload.action.value)
    return ChatRequestRespondResponse(success=result.success, status=result.status, match_id=result.match_id)
