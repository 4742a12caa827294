"""FIFO queue of handles waiting for a partner.

Each entry carries the bot-fallback timer scheduled for its handle, so the
timer's lifetime is tied to queue membership: every path that removes an
entry (``pop`` on a match, ``discard`` on leave or disconnect) cancels it.
"""
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Iterator, Optional, Protocol


class Cancellable(Protocol):
    def cancel(self) -> None: ...


@dataclass
class WaitingEntry:
    """A handle in the waiting queue.

    Attributes:
        handle: The waiting connection handle.
        timer: Pending bot-fallback timer, or None when the fallback is disabled.
        enqueued_at: Monotonic timestamp of enqueue.
    """
    handle: str
    timer: Optional[Cancellable] = None
    enqueued_at: float = field(default_factory=time.monotonic)

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class WaitingQueue:
    """Ordered, duplicate-free sequence of waiting handles (oldest first)."""

    def __init__(self) -> None:
        self._entries: "OrderedDict[str, WaitingEntry]" = OrderedDict()

    def push(self, handle: str, timer: Optional[Cancellable] = None) -> WaitingEntry:
        """Append *handle* to the tail.

        Raises:
            ValueError: If *handle* is already waiting.
        """
        if handle in self._entries:
            raise ValueError(f"{handle} is already waiting")
        entry = WaitingEntry(handle=handle, timer=timer)
        self._entries[handle] = entry
        return entry

    def pop(self) -> Optional[WaitingEntry]:
        """Remove and return the oldest entry, cancelling its timer."""
        if not self._entries:
            return None
        _, entry = self._entries.popitem(last=False)
        entry.cancel_timer()
        return entry

    def discard(self, handle: str) -> bool:
        """Remove *handle* wherever it is. Returns True if it was waiting."""
        entry = self._entries.pop(handle, None)
        if entry is None:
            return False
        entry.cancel_timer()
        return True

    def get(self, handle: str) -> Optional[WaitingEntry]:
        return self._entries.get(handle)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, handle: object) -> bool:
        return handle in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))
