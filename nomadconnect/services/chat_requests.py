from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from loguru import logger

from nomadconnect.core.clock import Clock, utcnow
from nomadconnect.core.errors import Forbidden, InvalidInput, NotFound
from nomadconnect.repository.base import ChatRequestRecord, Repository
from nomadconnect.services.matching import ensure_match

PENDING = "pending"
ACCEPTED = "accepted"
DECLINED = "declined"
RESPONSES = (ACCEPTED, DECLINED)

# send() outcomes
SENT = "sent"
ALREADY_REQUESTED = "already_requested"
ALREADY_CONNECTED = "already_connected"

SENT_HISTORY_LIMIT = 20


@dataclass
class SendResult:
    outcome: str
    request_id: str


@dataclass
class RespondResult:
    success: bool
    status: str
    match_id: Optional[str] = None


@dataclass
class ChatRequestLists:
    received: List[ChatRequestRecord]
    sent: List[ChatRequestRecord]


class ChatRequestHandshake:
    """pending -> accepted | declined. Accepting creates the pair's match."""

    def __init__(self, repo: Repository, clock: Clock = utcnow):
        self.repo = repo
        self.clock = clock

    def send(self, sender_id: str, receiver_id: str, message: Optional[str] = None) -> SendResult:
        if not sender_id or not receiver_id:
            raise InvalidInput("sender_id and receiver_id are required")
        if sender_id == receiver_id:
            raise InvalidInput("Cannot send a chat request to yourself")

        existing = self.repo.find_active_request(sender_id, receiver_id)
        if existing is not None:
            outcome = ALREADY_CONNECTED if existing.status == ACCEPTED else ALREADY_REQUESTED
            logger.debug(f"Chat request deduped | sender={sender_id} receiver={receiver_id} outcome={outcome}")
            return SendResult(outcome=outcome, request_id=existing.id)

        request = self.repo.insert_chat_request(sender_id, receiver_id, message or "", self.clock())
        logger.info(f"Chat request sent | id={request.id} sender={sender_id} receiver={receiver_id}")
        return SendResult(outcome=SENT, request_id=request.id)

    def respond(self, request_id: str, responder_id: str, action: str) -> RespondResult:
        if action not in RESPONSES:
            raise InvalidInput("action must be 'accepted' or 'declined'")

        request = self.repo.get_chat_request(request_id)
        if request is None:
            raise NotFound(f"Chat request {request_id} not found")
        if request.receiver_id != responder_id:
            raise Forbidden("Only the receiver can respond to a chat request")
        if request.status != PENDING:
            raise NotFound(f"No pending chat request {request_id}")

        now = self.clock()
        if not self.repo.transition_chat_request(request_id, PENDING, action, now):
            # another response landed between the read and the update
            raise NotFound(f"No pending chat request {request_id}")

        logger.info(f"Chat request {action} | id={request_id} responder={responder_id}")

        match_id = None
        if action == ACCEPTED:
            match, _ = ensure_match(self.repo, request.sender_id, request.receiver_id, now)
            match_id = match.id

        return RespondResult(success=True, status=action, match_id=match_id)

    def list_requests(self, user_id: str) -> ChatRequestLists:
        return ChatRequestLists(
            received=self.repo.received_requests(user_id, PENDING),
            sent=self.repo.sent_requests(user_id, SENT_HISTORY_LIMIT),
        )
