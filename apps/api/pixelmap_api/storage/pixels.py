"""Durable pixel snapshot store backed by a JSON file."""

from __future__ import annotations

from abc import ABC, abstractmethod
from functools import lru_cache
from logging import getLogger
from pathlib import Path
from typing import Any, Iterable, Optional
import json
import math
import os

from packages.pixelmap_core.grid.cells import ERASE_COLOR, CellRecord, utc_now_iso
from packages.pixelmap_core.grid.projection import cell_of

from ..config import data_file_path, grid_meters

logger = getLogger("pixelmap_api.storage.pixels")


def _finite_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


def coerce_snapshot_entry(entry: Any, *, grid_meters: float) -> Optional[CellRecord]:
    """Turn one stored entry into a record, or ``None`` if it is unusable.

    Accepts the canonical ``{i, j, color, ownerName, timestamp}`` shape and the
    legacy ``{lat, lon, color, playerName, ts}`` shape; legacy coordinates are
    snapped with the same floor rule the clients use.
    """
    if not isinstance(entry, dict):
        return None
    color = entry.get("color")
    owner = entry.get("ownerName", entry.get("playerName"))
    if not _non_empty_str(color) or not _non_empty_str(owner) or color == ERASE_COLOR:
        return None
    timestamp = entry.get("timestamp", entry.get("ts"))
    if not _non_empty_str(timestamp):
        timestamp = utc_now_iso()

    if _finite_number(entry.get("i")) and _finite_number(entry.get("j")):
        i, j = math.floor(entry["i"]), math.floor(entry["j"])
    elif _finite_number(entry.get("lat")) and _finite_number(entry.get("lon")):
        i, j = cell_of(entry["lon"], entry["lat"], grid_meters)
    else:
        return None
    return CellRecord(i=i, j=j, color=color, owner_name=owner, timestamp=timestamp)


class PixelSnapshotStore(ABC):
    @abstractmethod
    def load(self) -> list[CellRecord]:
        raise NotImplementedError

    @abstractmethod
    def save(self, records: Iterable[CellRecord]) -> None:
        raise NotImplementedError

    @abstractmethod
    def describe(self) -> dict[str, Any]:
        raise NotImplementedError


class JsonFilePixelStore(PixelSnapshotStore):
    def __init__(self, path: Path, *, grid_meters: float) -> None:
        self.path = path
        self.grid_meters = grid_meters

    def load(self) -> list[CellRecord]:
        if not self.path.exists():
            logger.info("[STORAGE] No pixel snapshot at '%s', starting empty", self.path)
            return []
        payload = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(payload, list):
            logger.warning("[STORAGE] Pixel snapshot at '%s' is not a JSON array, ignoring", self.path)
            return []
        records: list[CellRecord] = []
        skipped = 0
        for entry in payload:
            record = coerce_snapshot_entry(entry, grid_meters=self.grid_meters)
            if record is None:
                skipped += 1
                continue
            records.append(record)
        logger.info("[STORAGE] Loaded %d pixels from '%s' (skipped=%d)", len(records), self.path, skipped)
        return records

    def save(self, records: Iterable[CellRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        rows = [record.as_wire() for record in records]
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(rows, separators=(",", ":"), ensure_ascii=False), encoding="utf-8")
        os.replace(tmp_path, self.path)
        logger.debug("[STORAGE] Wrote %d pixels to '%s'", len(rows), self.path)

    def describe(self) -> dict[str, Any]:
        return {"backend": "json_file", "path": str(self.path)}


@lru_cache(maxsize=1)
def _backend() -> PixelSnapshotStore:
    return JsonFilePixelStore(data_file_path(), grid_meters=grid_meters())


def reset_backend_cache_for_tests() -> None:
    _backend.cache_clear()


def load_pixels() -> list[CellRecord]:
    return _backend().load()


def save_pixels(records: Iterable[CellRecord]) -> None:
    _backend().save(records)


def describe_backend() -> dict[str, Any]:
    return _backend().describe()
