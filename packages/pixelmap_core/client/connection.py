"""Websocket client loop for the pixel map."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Iterable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from ..sync.effects import Effect, RequestRender, SendMessage
from ..sync.messages import encode_message
from .budget import REFILL_POLL_SECONDS
from .session import PaintSession

logger = logging.getLogger("pixelmap_core.client.connection")

RECONNECT_DELAY_SECONDS = 1.5

RenderFn = Callable[[PaintSession], None]


class RenderCoalescer:
    """Collapse any number of render requests into one call per loop turn."""

    def __init__(self, render: Optional[Callable[[], None]] = None) -> None:
        self._render = render
        self._scheduled = False
        self.renders = 0

    def request(self) -> None:
        if self._render is None or self._scheduled:
            return
        self._scheduled = True
        asyncio.get_running_loop().call_soon(self._flush)

    def _flush(self) -> None:
        self._scheduled = False
        self.renders += 1
        if self._render is not None:
            self._render()


class PixelMapConnection:
    """Keeps one :class:`PaintSession` attached to the server.

    After a dropped connection it waits a fixed delay and reconnects, forever,
    and relies on the fresh snapshot as the only basis for resuming. Nothing
    unsent is replayed across the gap.
    """

    def __init__(
        self,
        url: str,
        session: PaintSession,
        *,
        render: Optional[RenderFn] = None,
        reconnect_delay_seconds: float = RECONNECT_DELAY_SECONDS,
        refill_poll_seconds: float = REFILL_POLL_SECONDS,
        connect: Callable[..., Any] = websockets.connect,
    ) -> None:
        self.url = url
        self.session = session
        self.reconnect_delay_seconds = max(0.0, float(reconnect_delay_seconds))
        self.refill_poll_seconds = max(0.01, float(refill_poll_seconds))
        self._connect = connect
        self._ws: Any = None
        self._stop = asyncio.Event()
        self._refill_task: Optional[asyncio.Task[None]] = None
        self.snapshot_received = asyncio.Event()
        self.connect_attempts = 0
        self.render = RenderCoalescer((lambda: render(session)) if render is not None else None)

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def run(self) -> None:
        while not self._stop.is_set():
            self.connect_attempts += 1
            try:
                async with self._connect(self.url) as ws:
                    self._ws = ws
                    self.snapshot_received.clear()
                    logger.info("[CLIENT] Connected to %s", self.url)
                    async for raw in ws:
                        effects = self.session.handle_server_text(raw)
                        if any(isinstance(e, RequestRender) and e.reason == "snapshot" for e in effects):
                            self.snapshot_received.set()
                        await self.dispatch(effects)
            except (OSError, asyncio.TimeoutError, ConnectionClosed, InvalidHandshake) as exc:
                logger.warning("[CLIENT] Connection to %s lost: %s", self.url, exc)
            finally:
                self._ws = None
            if self._stop.is_set():
                break
            logger.info("[CLIENT] Reconnecting in %.1fs", self.reconnect_delay_seconds)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.reconnect_delay_seconds)
            except asyncio.TimeoutError:
                pass
        self._stop_refill_timer()

    async def stop(self) -> None:
        self._stop.set()
        ws = self._ws
        if ws is not None:
            await ws.close()

    async def dispatch(self, effects: Iterable[Effect]) -> None:
        for effect in effects:
            if isinstance(effect, SendMessage):
                if self._ws is None:
                    logger.debug("[CLIENT] Dropping outbound %s frame while disconnected", effect.message.get("type"))
                    continue
                try:
                    await self._ws.send(encode_message(effect.message))
                except ConnectionClosed as exc:
                    logger.warning("[CLIENT] Send failed, batch dropped: %s", exc)
            elif isinstance(effect, RequestRender):
                self.render.request()
        self.ensure_refill_timer()

    async def submit(self) -> bool:
        """Send the queued batch; a disconnected client keeps its queue."""
        if not self.connected:
            return False
        effects = self.session.submit()
        if not effects:
            return False
        await self.dispatch(effects)
        return True

    async def click_at(self, lon: float, lat: float) -> None:
        await self.dispatch(self.session.click_at(lon, lat))

    async def cancel_all(self) -> None:
        await self.dispatch(self.session.cancel_all())

    def ensure_refill_timer(self) -> None:
        budget = self.session.budget
        if budget.is_full or not budget.timer_active:
            return
        if self._refill_task is not None and not self._refill_task.done():
            return
        self._refill_task = asyncio.get_running_loop().create_task(self._refill_loop())

    def _stop_refill_timer(self) -> None:
        if self._refill_task is not None:
            self._refill_task.cancel()
            self._refill_task = None

    async def _refill_loop(self) -> None:
        budget = self.session.budget
        while budget.timer_active and not budget.is_full:
            await asyncio.sleep(self.refill_poll_seconds)
            for effect in self.session.tick_budget():
                if isinstance(effect, RequestRender):
                    self.render.request()
        # Re-render once more so a visible countdown can hide itself.
        self.render.request()
