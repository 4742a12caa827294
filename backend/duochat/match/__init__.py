"""Matchmaking: waiting queue, partner directory, bot fallback and relays."""
from .directory import BOT, BotPartner, HumanPartner, PairingError, PartnerDirectory, PartnerRef
from .engine import FindOutcome, LeaveOutcome, MatchEngine
from .registry import Connection, ConnectionRegistry
from .relay import MessageOutcome, MessageRelay, SignalingRelay
from .waiting import WaitingEntry, WaitingQueue

__all__ = [
    "BOT",
    "BotPartner",
    "Connection",
    "ConnectionRegistry",
    "FindOutcome",
    "HumanPartner",
    "LeaveOutcome",
    "MatchEngine",
    "MessageOutcome",
    "MessageRelay",
    "PairingError",
    "PartnerDirectory",
    "PartnerRef",
    "SignalingRelay",
    "WaitingEntry",
    "WaitingQueue",
]
