"""Registry of open websocket connections with per-connection outbound queues."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional
import asyncio
import logging
import uuid

logger = logging.getLogger("pixelmap_api.connection_hub")


@dataclass(eq=False)
class ClientConnection:
    queue: asyncio.Queue
    connection_id: str = field(default_factory=lambda: f"conn-{uuid.uuid4().hex[:10]}")
    dropped: bool = False


class ConnectionHub:
    """Fans frames out to every open connection without ever awaiting.

    Each connection has a bounded queue drained by its own sender task. A
    connection whose queue is full is dropped instead of slowing the others.
    A ``None`` in a queue tells its sender to close the socket.
    """

    def __init__(self, *, max_queue: int = 256) -> None:
        self.max_queue = max(1, int(max_queue))
        self._connections: dict[str, ClientConnection] = {}

    def register(self, first_frame: Optional[str] = None) -> ClientConnection:
        # One slot more than the bound so the close marker always fits.
        conn = ClientConnection(queue=asyncio.Queue(maxsize=self.max_queue + 1))
        if first_frame is not None:
            conn.queue.put_nowait(first_frame)
        self._connections[conn.connection_id] = conn
        logger.info("[WS] Connection registered: id=%s, open=%d", conn.connection_id, len(self._connections))
        return conn

    def unregister(self, conn: ClientConnection) -> None:
        if self._connections.pop(conn.connection_id, None) is not None:
            logger.info("[WS] Connection closed: id=%s, open=%d", conn.connection_id, len(self._connections))

    def broadcast(self, frame: str) -> int:
        delivered = 0
        for conn in list(self._connections.values()):
            if conn.queue.qsize() >= self.max_queue:
                self.drop(conn)
                continue
            conn.queue.put_nowait(frame)
            delivered += 1
        return delivered

    def drop(self, conn: ClientConnection) -> None:
        logger.warning("[WS] Dropping slow connection: id=%s, backlog=%d", conn.connection_id, conn.queue.qsize())
        conn.dropped = True
        self.unregister(conn)
        conn.queue.put_nowait(None)

    def __len__(self) -> int:
        return len(self._connections)
