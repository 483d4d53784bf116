"""Server-side protocol handlers: state + event in, changes + effects out."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from ..grid.cells import CellRecord, CellStore
from .effects import Broadcast, Effect, PersistSnapshot, SendMessage
from .messages import (
    PaintMessage,
    parse_candidates,
    parse_message,
    pixels_message,
    snapshot_message,
)


@dataclass(frozen=True)
class PaintOutcome:
    applied: tuple[CellRecord, ...] = ()
    effects: tuple[Effect, ...] = field(default_factory=tuple)

    @property
    def changed(self) -> bool:
        return bool(self.applied)


def handle_connect(store: CellStore, grid_meters: float) -> SendMessage:
    """Build the snapshot every new connection receives first."""
    return SendMessage(message=snapshot_message(grid_meters, store.snapshot()))


def handle_paint(store: CellStore, message: PaintMessage) -> PaintOutcome:
    applied: list[CellRecord] = []
    for candidate in parse_candidates(message.pixels):
        change = store.apply(candidate)
        if change is not None:
            applied.append(change.record)
    if not applied:
        return PaintOutcome()
    return PaintOutcome(
        applied=tuple(applied),
        effects=(
            Broadcast(message=pixels_message(applied)),
            PersistSnapshot(records=tuple(store.snapshot())),
        ),
    )


def handle_client_frame(store: CellStore, raw: Union[str, bytes]) -> PaintOutcome:
    """Dispatch one inbound frame.

    Raises ``ProtocolError`` for frames that fail to decode or validate.
    Server-to-client tags arriving from a client are ignored.
    """
    message = parse_message(raw)
    if isinstance(message, PaintMessage):
        return handle_paint(store, message)
    return PaintOutcome()
