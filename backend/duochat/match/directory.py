"""Symmetric partner directory.

Maps a handle to its current partner: another handle (``HumanPartner``)
or the synthetic bot (``BOT``). Human pairings are always written and
removed as a unit, so at any point between calls ``a -> b`` implies
``b -> a``.
"""
from dataclasses import dataclass
from typing import Dict, Optional, Union

from .schemas import BOT_PARTNER_ID


class PairingError(Exception):
    """Raised when a directory mutation would break the pairing invariants."""


@dataclass(frozen=True)
class HumanPartner:
    handle: str

    @property
    def partner_id(self) -> str:
        return self.handle


@dataclass(frozen=True)
class BotPartner:
    @property
    def partner_id(self) -> str:
        return BOT_PARTNER_ID


BOT = BotPartner()

PartnerRef = Union[HumanPartner, BotPartner]


class PartnerDirectory:
    """Handle -> PartnerRef mapping with at most one entry per handle."""

    def __init__(self) -> None:
        self._partners: Dict[str, PartnerRef] = {}

    def get(self, handle: str) -> Optional[PartnerRef]:
        return self._partners.get(handle)

    def human_partner(self, handle: str) -> Optional[str]:
        """Return the partner handle if *handle* is paired with a human."""
        partner = self._partners.get(handle)
        if isinstance(partner, HumanPartner):
            return partner.handle
        return None

    def pair(self, a: str, b: str) -> None:
        """Record the human pairing {a, b}."""
        if a == b:
            raise PairingError(f"cannot pair {a} with itself")
        for handle in (a, b):
            if handle in self._partners:
                raise PairingError(f"{handle} is already paired")
        self._partners[a] = HumanPartner(b)
        self._partners[b] = HumanPartner(a)

    def pair_bot(self, handle: str) -> None:
        """Record the bot pairing {handle, BOT}."""
        if handle in self._partners:
            raise PairingError(f"{handle} is already paired")
        self._partners[handle] = BOT

    def unpair(self, handle: str) -> Optional[PartnerRef]:
        """Remove *handle*'s pairing and, for a human pair, the back-entry.

        Returns:
            The partner *handle* had, or None if it had no entry.
        """
        partner = self._partners.pop(handle, None)
        if isinstance(partner, HumanPartner):
            if self._partners.get(partner.handle) == HumanPartner(handle):
                del self._partners[partner.handle]
        return partner

    def is_consistent(self) -> bool:
        """Check that every human entry has its mirror entry."""
        for handle, partner in self._partners.items():
            if isinstance(partner, HumanPartner):
                if partner.handle == handle:
                    return False
                if self._partners.get(partner.handle) != HumanPartner(handle):
                    return False
        return True

    @property
    def pair_count(self) -> int:
        humans = sum(1 for p in self._partners.values() if isinstance(p, HumanPartner))
        return humans // 2

    @property
    def bot_pair_count(self) -> int:
        return sum(1 for p in self._partners.values() if isinstance(p, BotPartner))

    def __len__(self) -> int:
        return len(self._partners)

    def __contains__(self, handle: object) -> bool:
        return handle in self._partners
