"""Durable client key-value side channel (display name, remaining budget)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional
import json
import logging
import os

logger = logging.getLogger("pixelmap_core.client.local_state")


class LocalStateStore(ABC):
    @abstractmethod
    def load_display_name(self) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def save_display_name(self, name: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def load_remaining(self) -> Optional[int]:
        raise NotImplementedError

    @abstractmethod
    def save_remaining(self, remaining: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        raise NotImplementedError


class InMemoryLocalStateStore(LocalStateStore):
    def __init__(self, *, display_name: Optional[str] = None, remaining: Optional[int] = None) -> None:
        self._values: dict[str, Any] = {}
        if display_name is not None:
            self._values["guestName"] = display_name
        if remaining is not None:
            self._values["pixelCount"] = remaining

    def load_display_name(self) -> Optional[str]:
        return self._values.get("guestName")

    def save_display_name(self, name: str) -> None:
        self._values["guestName"] = name

    def load_remaining(self) -> Optional[int]:
        return self._values.get("pixelCount")

    def save_remaining(self, remaining: int) -> None:
        self._values["pixelCount"] = int(remaining)

    def clear(self) -> None:
        self._values.clear()


class JsonFileLocalStateStore(LocalStateStore):
    """Small JSON document on disk, rewritten atomically on every save."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self._explicit_path = path

    def _resolve_path(self) -> Path:
        if self._explicit_path is not None:
            return Path(self._explicit_path)
        configured = str(os.environ.get("PIXELMAP_CLIENT_STATE") or "").strip()
        if configured:
            return Path(configured)
        return Path.home() / ".pixelmap" / "client_state.json"

    def _read(self) -> dict[str, Any]:
        path = self._resolve_path()
        if not path.exists():
            return {}
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except Exception as exc:
            logger.warning("[CLIENT] Ignoring unreadable local state at '%s': %s", path, exc)
            return {}
        return payload if isinstance(payload, dict) else {}

    def _write(self, payload: dict[str, Any]) -> None:
        path = self._resolve_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload, separators=(",", ":")), encoding="utf-8")
        os.replace(tmp_path, path)

    def _update(self, key: str, value: Any) -> None:
        payload = self._read()
        payload[key] = value
        self._write(payload)

    def load_display_name(self) -> Optional[str]:
        name = self._read().get("guestName")
        if isinstance(name, str) and name.strip():
            return name.strip()
        return None

    def save_display_name(self, name: str) -> None:
        self._update("guestName", name)

    def load_remaining(self) -> Optional[int]:
        raw = self._read().get("pixelCount")
        if isinstance(raw, bool):
            return None
        try:
            return int(raw)
        except (TypeError, ValueError, OverflowError):
            return None

    def save_remaining(self, remaining: int) -> None:
        self._update("pixelCount", int(remaining))

    def clear(self) -> None:
        path = self._resolve_path()
        if path.exists():
            path.unlink()
