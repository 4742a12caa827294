"""Relays for traffic between the two sides of a pairing.

``SignalingRelay`` forwards the WebRTC handshake (offer, answer, ICE
candidate) and ``MessageRelay`` forwards chat text and typing indicators.
Neither inspects payload content: signaling bodies are forwarded exactly
as received and only the ``from`` routing field is added.

Both relays are stateless. They resolve the partner through the
``PartnerDirectory`` on every call and deliver through the
``ConnectionRegistry``, whose ``send`` never raises, so a missing or dead
partner results in a silent drop unless noted otherwise.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Optional

from duochat.config import MatchSettings

from .directory import BOT, BotPartner, PartnerDirectory
from .registry import ConnectionRegistry
from .schemas import (
    FROM_BOT,
    FROM_STRANGER,
    FROM_YOU,
    EventType,
    StatusMessage,
    message_event,
    signal_event,
    status_event,
    typing_event,
)

logger = logging.getLogger(__name__)


class MessageOutcome(str, Enum):
    """Result of relaying one chat message."""
    NO_PARTNER = "no_partner"
    BOT_REPLY_SCHEDULED = "bot_reply_scheduled"
    DELIVERED = "delivered"
    PARTNER_GONE = "partner_gone"


# =============================================================================
# Signaling
# =============================================================================


class SignalingRelay:
    """Forwards handshake messages between the two handles of a human pair."""

    def __init__(self, registry: ConnectionRegistry, directory: PartnerDirectory) -> None:
        self.registry = registry
        self.directory = directory

    def _forward_to_partner(self, handle: str, kind: EventType, **payload: Any) -> bool:
        partner = self.directory.human_partner(handle)
        if partner is None:
            # No partner, or the bot: it cannot negotiate media
            logger.debug("[Signal] %s from %s dropped: no human partner", kind.value, handle)
            return False
        delivered = self.registry.send(partner, signal_event(kind, handle, **payload))
        if not delivered:
            logger.debug("[Signal] %s from %s dropped: partner %s gone", kind.value, handle, partner)
        return delivered

    def offer(self, handle: str, sdp: Any) -> bool:
        """Forward an offer to *handle*'s partner, tagged ``from=handle``."""
        return self._forward_to_partner(handle, EventType.OFFER, sdp=sdp)

    def answer(self, handle: str, sdp: Any, to: Optional[str]) -> bool:
        """Forward an answer to the explicitly addressed offerer.

        The target must still record *handle* as its partner; otherwise the
        sender gets a status and nothing is forwarded.
        """
        if (
            not to
            or self.directory.human_partner(to) != handle
            or not self.registry.is_live(to)
        ):
            logger.debug("[Signal] answer from %s rejected: no session with %s", handle, to)
            self.registry.send(handle, status_event(StatusMessage.NO_ANSWER_SESSION))
            return False
        return self.registry.send(to, signal_event(EventType.ANSWER, handle, sdp=sdp))

    def ice_candidate(self, handle: str, candidate: Any) -> bool:
        """Forward an ICE candidate to *handle*'s partner."""
        return self._forward_to_partner(handle, EventType.ICE_CANDIDATE, candidate=candidate)


# =============================================================================
# Chat
# =============================================================================


class MessageRelay:
    """Forwards chat text and typing indicators, answering for the bot."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        directory: PartnerDirectory,
        settings: MatchSettings,
    ) -> None:
        self.registry = registry
        self.directory = directory
        self.settings = settings

    def message(self, handle: str, text: str) -> MessageOutcome:
        """Relay *text* from *handle* to its partner.

        Human partners receive it as ``from=stranger`` and the sender gets
        an echo as ``from=you``. A bot partner answers the sender alone
        after ``bot_reply_delay_seconds``. If the human partner is gone,
        the stale pairing is removed and the sender is told.
        """
        partner = self.directory.get(handle)
        if partner is None:
            self.registry.send(handle, status_event(StatusMessage.NO_PARTNER))
            return MessageOutcome.NO_PARTNER

        if isinstance(partner, BotPartner):
            self._schedule_bot_reply(handle, text)
            return MessageOutcome.BOT_REPLY_SCHEDULED

        if self.registry.send(partner.handle, message_event(FROM_STRANGER, text)):
            self.registry.send(handle, message_event(FROM_YOU, text))
            return MessageOutcome.DELIVERED

        logger.info(f"[Relay] Partner {partner.handle} of {handle} is gone; unpairing")
        self.registry.send(handle, status_event(StatusMessage.PARTNER_DISCONNECTED))
        self.directory.unpair(handle)
        return MessageOutcome.PARTNER_GONE

    def _schedule_bot_reply(self, handle: str, text: str) -> None:
        reply = self.settings.bot_reply_template.replace("{text}", text)
        loop = asyncio.get_running_loop()
        loop.call_later(
            self.settings.bot_reply_delay_seconds,
            self._deliver_bot_reply,
            handle,
            message_event(FROM_BOT, reply),
        )

    def _deliver_bot_reply(self, handle: str, event: dict) -> bool:
        # Only while the bot is still the partner; a reply must never land
        # in a later human conversation
        if self.directory.get(handle) is not BOT:
            logger.debug("[Relay] Bot reply to %s dropped: no longer paired with bot", handle)
            return False
        return self.registry.send(handle, event)

    def typing(self, handle: str, is_typing: bool) -> bool:
        """Forward a typing flag to a live human partner; no-op otherwise."""
        partner = self.directory.human_partner(handle)
        if partner is None:
            return False
        return self.registry.send(partner, typing_event(is_typing))
