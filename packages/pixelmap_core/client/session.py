"""Client session controller.

Threads the player's :class:`Session`, the :class:`BudgetScheduler` and the
:class:`ClientReconciler` through UI events and server frames. Every operation
returns the effects the host should carry out (send a frame, re-render) so the
whole flow can be exercised without a live socket.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union
import logging

from ..grid.projection import cell_of
from ..sync.effects import Effect, RequestRender, SendMessage
from ..sync.messages import (
    PixelsMessage,
    ProtocolError,
    SnapshotMessage,
    paint_message,
    parse_message,
    parse_records,
)
from .budget import BudgetScheduler
from .local_state import LocalStateStore
from .reconciler import ClientReconciler

logger = logging.getLogger("pixelmap_core.client.session")

NAME_PALETTE: tuple[str, ...] = (
    "#ff4d4f", "#ff7a45", "#ffa940", "#ffc53d", "#fadb14", "#73d13d", "#36cfc9",
    "#40a9ff", "#597ef7", "#9254de", "#eb2f96", "#13c2c2", "#2f54eb", "#fa541c",
)


def color_for_name(name: str) -> str:
    digest = 0
    for ch in name:
        digest = (digest * 31 + ord(ch)) & 0xFFFFFFFF
    return NAME_PALETTE[digest % len(NAME_PALETTE)]


@dataclass
class Session:
    display_name: str
    color: str


class PaintSession:
    def __init__(
        self,
        *,
        local_state: LocalStateStore,
        budget: Optional[BudgetScheduler] = None,
        reconciler: Optional[ClientReconciler] = None,
    ) -> None:
        self.local_state = local_state
        self.budget = budget or BudgetScheduler()
        self.reconciler = reconciler or ClientReconciler()
        self.session: Optional[Session] = None
        self.eraser = False

    @property
    def active(self) -> bool:
        return self.session is not None

    def start(self, display_name: str) -> Session:
        name = str(display_name or "").strip()
        if not name:
            raise ValueError("display name must not be empty")
        self.session = Session(display_name=name, color=color_for_name(name))
        self.local_state.save_display_name(name)
        self.budget.ensure_deadline()
        logger.info("[CLIENT] Session started for '%s'", name)
        return self.session

    def restore(self) -> bool:
        """Resume a previously named session from the local side channel."""
        name = self.local_state.load_display_name()
        if not name:
            return False
        self.session = Session(display_name=name, color=color_for_name(name))
        self.budget.restore(self.local_state.load_remaining())
        logger.info("[CLIENT] Session restored for '%s' with %d pixels left", name, self.budget.remaining)
        return True

    def reset(self) -> None:
        self.session = None
        self.reconciler.clear_queue()
        self.local_state.clear()

    def set_color(self, color: str) -> list[Effect]:
        if self.session is None or not color:
            return []
        self.session.color = color
        return [RequestRender("color")]

    def enable_unlimited(self) -> list[Effect]:
        self.budget.enable_unlimited()
        return [RequestRender("budget")]

    def toggle_eraser(self) -> bool:
        self.eraser = not self.eraser
        return self.eraser

    def _save_budget(self) -> None:
        if self.session is not None and not self.budget.unlimited:
            self.local_state.save_remaining(self.budget.remaining)

    def place(self, i: int, j: int) -> list[Effect]:
        if self.session is None or not self.budget.can_place():
            return []
        if not self.reconciler.queue(i, j, color=self.session.color, owner_name=self.session.display_name):
            return []
        self.budget.consume()
        self._save_budget()
        return [RequestRender("queue")]

    def erase(self, i: int, j: int) -> list[Effect]:
        if self.session is None or not self.reconciler.unqueue(i, j):
            return []
        self.budget.refund(1)
        self._save_budget()
        return [RequestRender("queue")]

    def click_at(self, lon: float, lat: float) -> list[Effect]:
        i, j = cell_of(lon, lat, self.reconciler.grid_meters)
        if self.eraser:
            return self.erase(i, j)
        return self.place(i, j)

    def cancel_all(self) -> list[Effect]:
        returned = self.reconciler.clear_queue()
        if not returned:
            return []
        self.budget.refund(returned)
        self._save_budget()
        return [RequestRender("queue")]

    def submit(self) -> list[Effect]:
        if not self.reconciler.queued:
            return []
        batch = self.reconciler.drain()
        self.eraser = False
        return [SendMessage(paint_message(batch)), RequestRender("queue")]

    def tick_budget(self, now: Optional[float] = None) -> list[Effect]:
        if self.budget.tick(now) <= 0:
            return []
        self._save_budget()
        return [RequestRender("budget")]

    def handle_server_text(self, raw: Union[str, bytes]) -> list[Effect]:
        try:
            message = parse_message(raw)
        except ProtocolError as exc:
            logger.debug("[CLIENT] Dropping server frame (%s): %s", exc.error_code, exc)
            return []
        if isinstance(message, SnapshotMessage):
            self.reconciler.apply_snapshot(parse_records(message.pixels), message.gridMeters)
            logger.info(
                "[CLIENT] Snapshot applied: cells=%d, grid_meters=%s",
                len(self.reconciler.committed),
                self.reconciler.grid_meters,
            )
            return [RequestRender("snapshot")]
        if isinstance(message, PixelsMessage):
            touched = self.reconciler.apply_pixels(parse_records(message.pixels))
            return [RequestRender("pixels")] if touched else []
        return []
