"""Owner of the authoritative cell store and everything wired to it."""

from __future__ import annotations

from typing import Any, Iterable, Optional, Union
import logging

from packages.pixelmap_core.grid.cells import CellStore
from packages.pixelmap_core.sync.effects import Broadcast, Effect, PersistSnapshot
from packages.pixelmap_core.sync.handlers import PaintOutcome, handle_client_frame, handle_connect
from packages.pixelmap_core.sync.messages import ProtocolError, encode_message

from ..config import grid_meters as configured_grid_meters
from ..config import outbound_queue_size
from ..storage.pixels import describe_backend, load_pixels, save_pixels
from .connection_hub import ClientConnection, ConnectionHub
from .snapshot_writer import SnapshotWriter

logger = logging.getLogger("pixelmap_api.pixel_server")


class PixelServer:
    """Single-threaded paint processor.

    Frames are handled to completion one at a time on the event loop:
    validation, store mutation, broadcast enqueue and persistence hand-off are
    all synchronous, so no two batches interleave and the store needs no lock.
    """

    def __init__(
        self,
        *,
        store: CellStore,
        grid_meters: float,
        hub: ConnectionHub,
        writer: SnapshotWriter,
    ) -> None:
        self.store = store
        self.grid_meters = grid_meters
        self.hub = hub
        self.writer = writer
        self.batches_applied = 0
        self.frames_rejected = 0

    def connect(self) -> ClientConnection:
        snapshot = handle_connect(self.store, self.grid_meters)
        return self.hub.register(encode_message(snapshot.message))

    def disconnect(self, conn: ClientConnection) -> None:
        self.hub.unregister(conn)

    def handle_text(self, raw: Union[str, bytes], *, connection_id: str = "-") -> PaintOutcome:
        try:
            outcome = handle_client_frame(self.store, raw)
        except ProtocolError as exc:
            self.frames_rejected += 1
            logger.debug("[WS] Ignoring frame from %s (%s): %s", connection_id, exc.error_code, exc)
            return PaintOutcome()
        if outcome.changed:
            self.batches_applied += 1
            logger.info(
                "[PAINT] Applied batch from %s: changes=%d, cells=%d",
                connection_id,
                len(outcome.applied),
                len(self.store),
            )
        self.execute(outcome.effects)
        return outcome

    def execute(self, effects: Iterable[Effect]) -> None:
        for effect in effects:
            if isinstance(effect, Broadcast):
                self.hub.broadcast(encode_message(effect.message))
            elif isinstance(effect, PersistSnapshot):
                self.writer.submit(effect.records)

    def health(self) -> dict[str, Any]:
        return {
            "ok": True,
            "status": "ok",
            "pixels": len(self.store),
            "connections": len(self.hub),
            "grid_meters": self.grid_meters,
        }

    def status(self) -> dict[str, Any]:
        payload = self.health()
        payload["persistence"] = dict(self.writer.status(), **describe_backend())
        payload["batches_applied"] = self.batches_applied
        payload["frames_rejected"] = self.frames_rejected
        return payload

    def shutdown(self) -> None:
        self.writer.stop(flush=True)


def build_pixel_server(*, grid_meters: Optional[float] = None) -> PixelServer:
    """Load the persisted snapshot and start the persistence worker."""
    store = CellStore()
    try:
        store.load(load_pixels())
    except Exception as e:
        logger.error("[STARTUP] Failed to load persisted pixels, starting empty: %s", e)
    writer = SnapshotWriter(save_pixels)
    writer.start()
    server = PixelServer(
        store=store,
        grid_meters=configured_grid_meters() if grid_meters is None else grid_meters,
        hub=ConnectionHub(max_queue=outbound_queue_size()),
        writer=writer,
    )
    logger.info("[STARTUP] Pixel server ready: cells=%d, grid_meters=%s", len(store), server.grid_meters)
    return server
