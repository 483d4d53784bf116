"""Side effects requested by protocol handlers.

Handlers never touch sockets, files or timers; they return these values and
the hosting process (API server or client connection) carries them out.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from ..grid.cells import CellRecord


@dataclass(frozen=True)
class Broadcast:
    message: dict[str, Any]


@dataclass(frozen=True)
class PersistSnapshot:
    records: tuple[CellRecord, ...]


@dataclass(frozen=True)
class SendMessage:
    message: dict[str, Any]


@dataclass(frozen=True)
class RequestRender:
    reason: str = "state"


Effect = Union[Broadcast, PersistSnapshot, SendMessage, RequestRender]
