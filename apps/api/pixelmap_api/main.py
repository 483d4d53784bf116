"""FastAPI entrypoint for the Pixel Map server."""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import cors_origins
from .routers.pixels import get_pixel_server
from .routers.pixels import router as pixels_router
from .services.pixel_server import build_pixel_server

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("pixelmap_api")

app = FastAPI(title="Pixel Map API", version="0.1.0")

_cors_origins = cors_origins()
_cors_allow_credentials = "*" not in _cors_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=_cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(pixels_router)


@app.on_event("startup")
def startup() -> None:
    logger.info("[STARTUP] Pixel Map API starting up at %s", datetime.now(timezone.utc).isoformat())
    try:
        app.state.pixel_server = build_pixel_server()
    except Exception as e:
        logger.error("[STARTUP] Failed to start pixel server: %s", e)
        raise
    logger.info("[STARTUP] Pixel Map API startup complete")


@app.on_event("shutdown")
def shutdown() -> None:
    server = getattr(app.state, "pixel_server", None)
    if server is None:
        return
    logger.info("[SHUTDOWN] Flushing %d pixels before exit", len(server.store))
    server.shutdown()
    app.state.pixel_server = None


@app.get("/healthz")
def healthz():
    logger.debug("[HEALTH] Health check requested")
    try:
        return get_pixel_server(app).status()
    except Exception as exc:
        logger.warning("[HEALTH] Pixel server unavailable: %s", exc)
        return JSONResponse(status_code=503, content={"status": "error", "detail": str(exc)})
