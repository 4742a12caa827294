"""Matchmaking router providing the WebSocket and stats endpoints.

This module provides:
    - WebSocket /ws: Pairing, chat relay and WebRTC signaling
    - GET /match/stats: Current queue and pairing counts

Protocol Flow:
    1. Client connects → Server assigns an opaque handle
       → Server sends: {type: "connected", id: "xxx"}
    2. Client sends: {type: "find"}
       → Server sends: {type: "status", msg: "Waiting for a partner..."}
       → or, when a waiter exists, both sides get {type: "paired", partnerId}
       → after the fallback delay with no human: {type: "paired", partnerId: "bot", bot: true}
    3. Paired clients exchange:
       {type: "message", text} → partner {type: "message", from: "stranger", text}
                                 sender  {type: "message", from: "you", text}
       {type: "typing", isTyping}
       {type: "webrtc-offer", sdp} / {type: "webrtc-answer", to, sdp}
       {type: "webrtc-ice-candidate", candidate}
    4. Client sends: {type: "leave"} or {type: "new"}
       → partner gets {type: "status"} and {type: "partner-left"}
    5. On disconnect → partner gets the same teardown as for "leave"

Malformed frames (binary, non-JSON, unknown type, bad payload) get
{type: "error", error} and are otherwise ignored.
"""
import asyncio
import json
import logging

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from .engine import MatchEngine
from .schemas import (
    AnswerPayload,
    ChatPayload,
    EventType,
    IceCandidatePayload,
    MatchStats,
    OfferPayload,
    TypingPayload,
    connected_event,
    error_event,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_engine(app) -> MatchEngine:
    return app.state.engine


@router.get("/match/stats", response_model=MatchStats)
async def match_stats(request: Request) -> MatchStats:
    """Get current matchmaking occupancy.

    Returns:
        MatchStats with counts of connections, waiting handles, human
        pairs and bot pairs.
    """
    return get_engine(request.app).stats()


def dispatch(engine: MatchEngine, handle: str, data: dict) -> None:
    """Route one decoded client frame to the engine.

    Raises:
        ValidationError: If the payload does not match the event's schema.
        ValueError: If the event type is unknown.
    """
    message_type = data.get("type")

    if message_type == EventType.FIND.value:
        engine.find(handle)
        return

    if message_type == EventType.LEAVE.value:
        engine.leave(handle)
        return

    if message_type == EventType.NEW.value:
        engine.new_request(handle)
        return

    if message_type == EventType.MESSAGE.value:
        payload = ChatPayload.model_validate(data)
        if not payload.text.strip():
            raise ValueError("Invalid message format: text is required")
        engine.messages.message(handle, payload.text)
        return

    if message_type == EventType.TYPING.value:
        payload = TypingPayload.model_validate(data)
        engine.messages.typing(handle, payload.isTyping)
        return

    if message_type == EventType.OFFER.value:
        payload = OfferPayload.model_validate(data)
        engine.signaling.offer(handle, payload.sdp)
        return

    if message_type == EventType.ANSWER.value:
        payload = AnswerPayload.model_validate(data)
        engine.signaling.answer(handle, payload.sdp, payload.to)
        return

    if message_type == EventType.ICE_CANDIDATE.value:
        payload = IceCandidatePayload.model_validate(data)
        engine.signaling.ice_candidate(handle, payload.candidate)
        return

    raise ValueError(f"Unknown event type: {message_type}")


@router.websocket("/ws")
async def websocket_match_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for one anonymous client.

    The server assigns the handle; clients never choose their own. Every
    engine call is synchronous, and outbound frames are written by the
    connection's writer task.

    Args:
        websocket: The WebSocket connection.
    """
    engine = get_engine(websocket.app)
    await websocket.accept()
    connection = engine.connect(websocket)
    handle = connection.handle
    writer = asyncio.create_task(connection.pump())

    connection.send(connected_event(handle))

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            raw = message.get("text")
            if raw is None:
                connection.send(error_event("Invalid message format: expected text"))
                continue
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                connection.send(error_event("Invalid message format: expected JSON"))
                continue
            if not isinstance(data, dict):
                connection.send(error_event("Invalid message format: expected an object"))
                continue

            logger.debug("[WS] %s received: type=%s", handle, data.get("type", "?"))
            try:
                dispatch(engine, handle, data)
            except ValidationError as e:
                connection.send(error_event(
                    f"Invalid {data.get('type')} payload: {e.error_count()} error(s)"
                ))
            except ValueError as e:
                connection.send(error_event(str(e)))

    except WebSocketDisconnect:
        logger.info(f"[WS] {handle} closed the connection")
    finally:
        engine.disconnect(handle)
        await writer
