"""Websocket sync endpoint and liveness probe for the pixel map."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, FastAPI, Request, WebSocket
from fastapi.websockets import WebSocketDisconnect

from ..services.connection_hub import ClientConnection
from ..services.pixel_server import PixelServer, build_pixel_server

logger = logging.getLogger("pixelmap_api.pixels")

router = APIRouter(tags=["pixels"])


def get_pixel_server(app: FastAPI) -> PixelServer:
    server = getattr(app.state, "pixel_server", None)
    if server is None:
        server = build_pixel_server()
        app.state.pixel_server = server
    return server


async def _pump_outbound(websocket: WebSocket, conn: ClientConnection) -> None:
    while True:
        frame = await conn.queue.get()
        if frame is None or conn.dropped:
            try:
                await websocket.close(code=1013)
            except Exception as exc:
                logger.debug("[WS] Close after drop failed for %s: %s", conn.connection_id, exc)
            return
        try:
            await websocket.send_text(frame)
        except Exception as exc:
            logger.info("[WS] Send failed, stopping sender for %s: %s", conn.connection_id, exc)
            return


@router.websocket("/ws")
async def pixels_ws(websocket: WebSocket) -> None:
    server = get_pixel_server(websocket.app)
    await websocket.accept()
    conn = server.connect()
    sender = asyncio.create_task(_pump_outbound(websocket, conn))
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            server.handle_text(raw, connection_id=conn.connection_id)
    except WebSocketDisconnect:
        pass
    finally:
        server.disconnect(conn)
        sender.cancel()


@router.get("/health")
def health(request: Request) -> dict[str, Any]:
    return get_pixel_server(request.app).health()
