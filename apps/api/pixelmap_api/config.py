"""Environment-driven settings for the pixel map API."""

from __future__ import annotations

import logging
import math
import os
from pathlib import Path

from packages.pixelmap_core.grid.projection import DEFAULT_GRID_METERS

logger = logging.getLogger("pixelmap_api.config")

WORKSPACE_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_OUTBOUND_QUEUE = 256


def _env_text(name: str) -> str:
    return str(os.environ.get(name) or "").strip()


def grid_meters() -> float:
    raw = _env_text("PIXELMAP_GRID_METERS")
    if not raw:
        return DEFAULT_GRID_METERS
    try:
        value = float(raw)
    except ValueError:
        value = float("nan")
    if not math.isfinite(value) or value <= 0:
        logger.warning("[CONFIG] Ignoring invalid PIXELMAP_GRID_METERS=%r, using %s", raw, DEFAULT_GRID_METERS)
        return DEFAULT_GRID_METERS
    return value


def data_file_path() -> Path:
    raw = _env_text("PIXELMAP_DATA_FILE") or str(WORKSPACE_ROOT / "data" / "pixels.json")
    p = Path(raw)
    if not p.is_absolute():
        p = (WORKSPACE_ROOT / p).resolve()
    return p


def cors_origins() -> list[str]:
    raw = os.environ.get("PIXELMAP_CORS_ORIGINS", "*")
    return [o.strip() for o in raw.split(",") if o.strip()] or ["*"]


def outbound_queue_size() -> int:
    raw = _env_text("PIXELMAP_OUTBOUND_QUEUE")
    try:
        return max(1, int(raw)) if raw else DEFAULT_OUTBOUND_QUEUE
    except ValueError:
        return DEFAULT_OUTBOUND_QUEUE
