from enum import Enum

class SwipeDirection(str, Enum):
    left = "left"
    right = "right"

class ChatRequestAction(str, Enum):
    accepted = "accepted"
    declined = "declined"

class ChatRequestStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    declined = "declined"
