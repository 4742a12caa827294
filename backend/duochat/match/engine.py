"""Matchmaking engine: pairing lifecycle for anonymous one-to-one chat.

``MatchEngine`` owns all shared matchmaking state:
    - ConnectionRegistry: handle -> live connection
    - WaitingQueue: FIFO of unpaired handles, each with its bot-fallback timer
    - PartnerDirectory: symmetric handle -> partner mapping

and drives it through the session lifecycle (find, leave, new request,
disconnect) plus the bot-fallback timer. Relaying between paired handles
is delegated to ``SignalingRelay`` and ``MessageRelay``.

Concurrency:
    Every state transition is a synchronous method with no ``await``
    inside, called on the event loop thread. Each call therefore runs as
    one uninterrupted critical section: two ``find`` calls can never both
    claim the same waiter, and a bot-fallback timer callback re-validates
    its preconditions in the same step that mutates the queue. The engine
    is NOT thread-safe for access from other threads.

Delivery:
    Outbound events go through ``Connection.send``, which only enqueues;
    socket writes happen in each connection's writer task. Failures are
    never raised into the engine.
"""
import asyncio
import logging
import time
from enum import Enum
from typing import Any, Optional

from duochat.config import MatchSettings

from .directory import BOT, BotPartner, PartnerDirectory
from .registry import Connection, ConnectionRegistry
from .relay import MessageRelay, SignalingRelay
from .schemas import (
    FROM_BOT,
    MatchStats,
    StatusMessage,
    message_event,
    paired_event,
    partner_left_event,
    retry_event,
    status_event,
)
from .waiting import WaitingQueue

logger = logging.getLogger(__name__)


class FindOutcome(str, Enum):
    """Result of a ``find`` request.

    Attributes:
        PAIRED: Matched with the oldest waiter.
        WAITING: Queue was empty; the handle now waits.
        RETRY: The head waiter was gone; the client was told to retry.
        ALREADY_PAIRED: Rejected, the handle has a partner.
        ALREADY_WAITING: Rejected, the handle is already queued.
    """
    PAIRED = "paired"
    WAITING = "waiting"
    RETRY = "retry"
    ALREADY_PAIRED = "already_paired"
    ALREADY_WAITING = "already_waiting"


class LeaveOutcome(str, Enum):
    LEFT_BOT = "left_bot"
    STOPPED_WAITING = "stopped_waiting"
    LEFT_PARTNER = "left_partner"


class MatchEngine:
    """Pairs waiting handles and tears pairings down on leave or disconnect."""

    def __init__(self, settings: Optional[MatchSettings] = None) -> None:
        self.settings = settings or MatchSettings()
        self.registry = ConnectionRegistry(self.settings.outbox_limit)
        self.queue = WaitingQueue()
        self.directory = PartnerDirectory()
        self.signaling = SignalingRelay(self.registry, self.directory)
        self.messages = MessageRelay(self.registry, self.directory, self.settings)

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    def connect(self, websocket: Any) -> Connection:
        """Register a newly accepted transport and return its connection."""
        connection = self.registry.register(websocket)
        logger.info(f"[Match] New connection {connection.handle}")
        return connection

    def disconnect(self, handle: str) -> None:
        """Clean up after a closed transport. Idempotent, never raises.

        Cancels the pending bot fallback, drops *handle* from the queue,
        removes its pairing and tells a human partner it is gone.
        """
        connection = self.registry.unregister(handle)
        if connection is not None:
            connection.close()
            logger.info(f"[Match] Disconnect {handle}")

        self.queue.discard(handle)

        partner = self.directory.unpair(handle)
        if partner is None or isinstance(partner, BotPartner):
            return
        self.registry.send(partner.handle, status_event(StatusMessage.PARTNER_DISCONNECTED))
        self.registry.send(partner.handle, partner_left_event())
        logger.info(f"[Match] Unpaired {partner.handle} after partner {handle} disconnected")

    # =========================================================================
    # Matching
    # =========================================================================

    def find(self, handle: str) -> FindOutcome:
        """Pair *handle* with the oldest waiter, or enqueue it.

        If the head waiter's transport is gone it is discarded and *handle*
        is told to retry; the client re-issues ``find`` immediately.
        """
        if handle in self.directory:
            self.registry.send(handle, status_event(StatusMessage.ALREADY_CONNECTED))
            return FindOutcome.ALREADY_PAIRED
        if handle in self.queue:
            self.registry.send(handle, status_event(StatusMessage.ALREADY_WAITING))
            return FindOutcome.ALREADY_WAITING

        waiter = self.queue.pop()
        if waiter is not None:
            other = waiter.handle
            if self.registry.is_live(other):
                self.directory.pair(handle, other)
                self.registry.send(handle, paired_event(self.directory.get(handle).partner_id))
                self.registry.send(other, paired_event(self.directory.get(other).partner_id))
                logger.info(f"[Match] Paired {handle} <-> {other}")
                return FindOutcome.PAIRED

            logger.info(f"[Match] Discarded stale waiter {other}; {handle} will retry")
            self.registry.send(handle, status_event(StatusMessage.CANDIDATE_GONE))
            self.registry.send(handle, retry_event())
            return FindOutcome.RETRY

        timer = None
        if self.settings.bot_fallback_enabled:
            timer = asyncio.get_running_loop().call_later(
                self.settings.bot_fallback_seconds,
                self.fire_bot_fallback,
                handle,
            )
        self.queue.push(handle, timer)
        self.registry.send(handle, status_event(StatusMessage.WAITING))
        logger.info(f"[Match] {handle} is waiting ({len(self.queue)} in queue)")
        return FindOutcome.WAITING

    def fire_bot_fallback(self, handle: str) -> bool:
        """Pair a still-waiting *handle* with the bot.

        Called by the fallback timer. Does nothing unless *handle* is still
        queued and unpaired at fire time.

        Returns:
            True if a bot pairing was created.
        """
        entry = self.queue.get(handle)
        if entry is None or handle in self.directory:
            return False

        waited = time.monotonic() - entry.enqueued_at
        self.queue.discard(handle)
        self.directory.pair_bot(handle)
        self.registry.send(handle, paired_event(BOT.partner_id, bot=True))
        self.registry.send(handle, message_event(FROM_BOT, self.settings.bot_greeting))
        logger.info(f"[Match] No human for {handle} after {waited:.1f}s; paired with bot")
        return True

    # =========================================================================
    # Leaving
    # =========================================================================

    def leave(self, handle: str) -> LeaveOutcome:
        """End *handle*'s current pairing or wait."""
        partner = self.directory.get(handle)

        if partner is BOT:
            self.directory.unpair(handle)
            self.registry.send(handle, status_event(StatusMessage.LEFT_BOT))
            return LeaveOutcome.LEFT_BOT

        if partner is None:
            self.queue.discard(handle)
            self.registry.send(handle, status_event(StatusMessage.STOPPED_WAITING))
            return LeaveOutcome.STOPPED_WAITING

        self.registry.send(partner.handle, status_event(StatusMessage.PARTNER_LEFT))
        self.registry.send(partner.handle, partner_left_event())
        self.directory.unpair(handle)
        self.registry.send(handle, status_event(StatusMessage.YOU_LEFT))
        logger.info(f"[Match] {handle} left {partner.handle}")
        return LeaveOutcome.LEFT_PARTNER

    def new_request(self, handle: str) -> FindOutcome:
        """Skip to a new stranger: leave, then find."""
        self.leave(handle)
        return self.find(handle)

    # =========================================================================
    # Introspection
    # =========================================================================

    def stats(self) -> MatchStats:
        return MatchStats(
            connections=len(self.registry),
            waiting=len(self.queue),
            pairs=self.directory.pair_count,
            botPairs=self.directory.bot_pair_count,
        )
