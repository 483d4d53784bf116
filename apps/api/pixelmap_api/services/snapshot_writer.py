"""Background writer that persists the latest cell snapshot off the hot path."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Iterable, Optional
import logging
import threading

from packages.pixelmap_core.grid.cells import CellRecord

logger = logging.getLogger("pixelmap_api.snapshot_writer")

SaveFn = Callable[[Iterable[CellRecord]], None]


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class SnapshotWriter:
    """Coalescing persistence worker.

    ``submit`` only swaps in the newest full snapshot and wakes the thread, so
    a broadcast never waits on disk. Every write is a full dump, so a failed
    write needs no recovery; the next submitted snapshot supersedes it.
    """

    def __init__(self, save: SaveFn, *, idle_wait_seconds: float = 0.5) -> None:
        self._save = save
        self._idle_wait_seconds = max(0.01, float(idle_wait_seconds))
        self._pending: Optional[tuple[CellRecord, ...]] = None
        self._pending_lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._wake = threading.Event()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.writes = 0
        self.failures = 0
        self.last_error: Optional[str] = None
        self.last_write_at: Optional[str] = None

    def start(self) -> bool:
        with self._state_lock:
            if self._thread and self._thread.is_alive():
                return False
            self._stop_event.clear()
            thread = threading.Thread(
                target=self._run_loop,
                name="pixelmap-snapshot-writer",
                daemon=True,
            )
            thread.start()
            self._thread = thread
            logger.info("[STORAGE] Snapshot writer started")
            return True

    def stop(self, *, join_timeout_seconds: float = 3.0, flush: bool = True) -> bool:
        with self._state_lock:
            thread = self._thread
            self._stop_event.set()
            self._wake.set()
        if thread:
            thread.join(timeout=max(0.1, float(join_timeout_seconds)))
        with self._state_lock:
            if self._thread is thread:
                self._thread = None
        if flush:
            self.flush()
        logger.info("[STORAGE] Snapshot writer stopped (writes=%d, failures=%d)", self.writes, self.failures)
        return thread is not None

    def submit(self, records: Iterable[CellRecord]) -> None:
        with self._pending_lock:
            self._pending = tuple(records)
        self._wake.set()

    @property
    def has_pending(self) -> bool:
        with self._pending_lock:
            return self._pending is not None

    def flush(self) -> bool:
        """Write any pending snapshot on the calling thread."""
        return self._write_pending()

    def status(self) -> dict[str, object]:
        with self._state_lock:
            running = bool(self._thread and self._thread.is_alive())
        return {
            "running": running,
            "pending": self.has_pending,
            "writes": self.writes,
            "failures": self.failures,
            "last_error": self.last_error,
            "last_write_at": self.last_write_at,
        }

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self._wake.wait(self._idle_wait_seconds)
            self._wake.clear()
            self._write_pending()

    def _write_pending(self) -> bool:
        with self._write_lock:
            with self._pending_lock:
                records = self._pending
                self._pending = None
            if records is None:
                return False
            try:
                self._save(records)
            except Exception as exc:
                self.failures += 1
                self.last_error = f"{exc.__class__.__name__}: {exc}"
                logger.exception("[STORAGE] Failed to persist %d pixels: %s", len(records), exc)
                return False
            self.writes += 1
            self.last_write_at = _utc_now_iso()
            return True
