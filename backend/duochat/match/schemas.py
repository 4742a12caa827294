"""Wire schemas for the matchmaking WebSocket protocol.

Every frame in either direction is a JSON object with a ``type`` field
naming the event; the remaining fields are the event payload. Inbound
payloads are validated with the models below, outbound frames are plain
dicts built by the ``*_event`` helpers so every sender produces the same
shape.

Signaling payloads (``sdp``, ``candidate``) are opaque: they are typed as
``Any`` and forwarded exactly as received.
"""
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

# Sender labels on relayed chat messages
FROM_YOU = "you"
FROM_STRANGER = "stranger"
FROM_BOT = "bot"

# partnerId reported to a handle paired with the bot
BOT_PARTNER_ID = "bot"


class EventType(str, Enum):
    """Event names used in the ``type`` field of every frame."""
    # client -> server
    FIND = "find"
    LEAVE = "leave"
    NEW = "new"
    # server -> client
    CONNECTED = "connected"
    STATUS = "status"
    RETRY = "retry"
    PAIRED = "paired"
    PARTNER_LEFT = "partner-left"
    ERROR = "error"
    # both directions
    MESSAGE = "message"
    TYPING = "typing"
    OFFER = "webrtc-offer"
    ANSWER = "webrtc-answer"
    ICE_CANDIDATE = "webrtc-ice-candidate"


class StatusMessage(str, Enum):
    """Informational texts carried by ``status`` events."""
    ALREADY_CONNECTED = "Already connected"
    ALREADY_WAITING = "Already waiting for a partner..."
    WAITING = "Waiting for a partner..."
    CANDIDATE_GONE = "Candidate disconnected; retrying..."
    LEFT_BOT = "Left bot conversation."
    STOPPED_WAITING = "Stopped waiting."
    PARTNER_LEFT = "Partner left the chat."
    YOU_LEFT = "You left the chat."
    PARTNER_DISCONNECTED = "Partner disconnected."
    NO_PARTNER = "No partner to send to."
    NO_ANSWER_SESSION = "No matching session for answer."


# =============================================================================
# Inbound payloads
# =============================================================================


class ChatPayload(BaseModel):
    text: str = Field(..., description="Chat text to relay")


class TypingPayload(BaseModel):
    isTyping: bool = Field(..., description="Whether the sender is typing")


class OfferPayload(BaseModel):
    sdp: Any = Field(..., description="Opaque session description")


class AnswerPayload(BaseModel):
    """Answer addressed explicitly to the original offerer."""
    to: Optional[str] = Field(default=None, description="Handle of the offerer")
    sdp: Any = Field(..., description="Opaque session description")


class IceCandidatePayload(BaseModel):
    candidate: Any = Field(..., description="Opaque ICE candidate")


class MatchStats(BaseModel):
    """Snapshot of engine occupancy returned by ``GET /match/stats``."""
    connections: int = 0
    waiting: int = 0
    pairs: int = 0
    botPairs: int = 0


# =============================================================================
# Outbound frames
# =============================================================================


def connected_event(handle: str) -> dict:
    return {"type": EventType.CONNECTED.value, "id": handle}


def status_event(msg: StatusMessage) -> dict:
    return {"type": EventType.STATUS.value, "msg": msg.value}


def retry_event() -> dict:
    return {"type": EventType.RETRY.value}


def paired_event(partner_id: str, bot: bool = False) -> dict:
    event = {"type": EventType.PAIRED.value, "partnerId": partner_id}
    if bot:
        event["bot"] = True
    return event


def partner_left_event() -> dict:
    return {"type": EventType.PARTNER_LEFT.value}


def message_event(sender: str, text: str) -> dict:
    return {"type": EventType.MESSAGE.value, "from": sender, "text": text}


def typing_event(is_typing: bool) -> dict:
    return {"type": EventType.TYPING.value, "isTyping": is_typing}


def error_event(error: str) -> dict:
    return {"type": EventType.ERROR.value, "error": error}


def signal_event(kind: EventType, sender: str, **payload: Any) -> dict:
    """Build a relayed signaling frame annotated with its sender handle."""
    return {"type": kind.value, "from": sender, **payload}
