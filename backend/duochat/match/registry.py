"""Registry of live WebSocket connections keyed by opaque handle.

Each connection owns an outbound queue. Engine code never awaits a socket
write: it calls :meth:`Connection.send`, which enqueues the frame and
returns immediately, and the connection's writer task (:meth:`Connection.pump`)
delivers frames in order. A failed write, or an outbox that fills up because
the peer stopped reading, marks the connection closed; from then on ``send``
reports ``False`` and the engine treats the handle as stale.
"""
import asyncio
import logging
import uuid
from typing import Any, Dict, Iterator, Optional

logger = logging.getLogger(__name__)

DEFAULT_OUTBOX_LIMIT = 256


class Connection:
    """One registered transport and its outbound frame queue.

    Attributes:
        handle: Server-assigned identifier, unique for the process lifetime.
        websocket: The underlying transport (anything with ``send_json``).
        open: False once the transport closed, a write failed or the
            outbox overflowed.
    """

    def __init__(self, handle: str, websocket: Any, outbox_limit: int = DEFAULT_OUTBOX_LIMIT) -> None:
        self.handle = handle
        self.websocket = websocket
        self.open = True
        # One slot is kept free for the stop sentinel
        self.outbox: "asyncio.Queue[Optional[dict]]" = asyncio.Queue(maxsize=outbox_limit + 1)
        self._outbox_limit = outbox_limit

    def send(self, event: dict) -> bool:
        """Queue *event* for delivery. Returns False if the connection is closed."""
        if not self.open:
            return False
        if self.outbox.qsize() >= self._outbox_limit:
            logger.warning(
                f"[Registry] Outbox for {self.handle} is full "
                f"({self._outbox_limit} frames); treating connection as closed"
            )
            self._abandon_backlog()
            return False
        self.outbox.put_nowait(event)
        return True

    def _abandon_backlog(self) -> None:
        self.open = False
        while not self.outbox.empty():
            self.outbox.get_nowait()
        self.outbox.put_nowait(None)

    async def pump(self) -> None:
        """Deliver queued frames until :meth:`close` or a write failure."""
        while True:
            event = await self.outbox.get()
            if event is None:
                return
            try:
                await self.websocket.send_json(event)
            except Exception as e:
                logger.debug(f"[Registry] Send to {self.handle} failed: {e}")
                self.open = False
                return

    def close(self) -> None:
        """Mark the connection closed and stop the writer task."""
        if self.open:
            self.open = False
            self.outbox.put_nowait(None)


class ConnectionRegistry:
    """Process-wide table mapping a handle to its live connection."""

    def __init__(self, outbox_limit: int = DEFAULT_OUTBOX_LIMIT) -> None:
        self.outbox_limit = outbox_limit
        self._connections: Dict[str, Connection] = {}

    def register(self, websocket: Any) -> Connection:
        """Register *websocket* under a freshly generated handle."""
        handle = str(uuid.uuid4())
        connection = Connection(handle, websocket, self.outbox_limit)
        self._connections[handle] = connection
        return connection

    def unregister(self, handle: str) -> Optional[Connection]:
        return self._connections.pop(handle, None)

    def is_live(self, handle: str) -> bool:
        connection = self._connections.get(handle)
        return connection is not None and connection.open

    def send(self, handle: str, event: dict) -> bool:
        """Attempt to send *event* to *handle*; never raises."""
        connection = self._connections.get(handle)
        if connection is None:
            return False
        return connection.send(event)

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, handle: object) -> bool:
        return handle in self._connections

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._connections))
