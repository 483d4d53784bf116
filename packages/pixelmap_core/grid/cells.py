"""Authoritative cell store with last-write-wins and erase semantics."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Optional

ERASE_COLOR = "transparent"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class CellRecord:
    i: int
    j: int
    color: str
    owner_name: str
    timestamp: str

    @property
    def key(self) -> tuple[int, int]:
        return (self.i, self.j)

    @property
    def is_erase(self) -> bool:
        return self.color == ERASE_COLOR

    def as_wire(self) -> dict[str, Any]:
        return {
            "i": self.i,
            "j": self.j,
            "color": self.color,
            "ownerName": self.owner_name,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class CandidatePixel:
    """A validated, index-normalized placement request."""

    i: int
    j: int
    color: str
    owner_name: str

    @property
    def key(self) -> tuple[int, int]:
        return (self.i, self.j)

    @property
    def is_erase(self) -> bool:
        return self.color == ERASE_COLOR

    def as_wire(self) -> dict[str, Any]:
        return {"i": self.i, "j": self.j, "color": self.color, "ownerName": self.owner_name}


@dataclass(frozen=True)
class AppliedChange:
    kind: str  # "upsert" | "delete"
    record: CellRecord


class CellStore:
    """In-memory ``(i, j) -> CellRecord`` map.

    Only the server's message handling path mutates it; there is no history,
    a new record for a cell replaces the old one unconditionally.
    """

    def __init__(self, records: Iterable[CellRecord] = ()) -> None:
        self._cells: dict[tuple[int, int], CellRecord] = {}
        self.load(records)

    def load(self, records: Iterable[CellRecord]) -> None:
        for record in records:
            self._cells[record.key] = record

    def apply(self, candidate: CandidatePixel, *, timestamp: Optional[str] = None) -> Optional[AppliedChange]:
        ts = timestamp or utc_now_iso()
        record = CellRecord(
            i=candidate.i,
            j=candidate.j,
            color=candidate.color,
            owner_name=candidate.owner_name,
            timestamp=ts,
        )
        if candidate.is_erase:
            if self._cells.pop(candidate.key, None) is None:
                return None
            return AppliedChange(kind="delete", record=record)
        self._cells[candidate.key] = record
        return AppliedChange(kind="upsert", record=record)

    def get(self, i: int, j: int) -> Optional[CellRecord]:
        return self._cells.get((int(i), int(j)))

    def snapshot(self) -> list[CellRecord]:
        return list(self._cells.values())

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, key: object) -> bool:
        return key in self._cells

    def __iter__(self) -> Iterator[CellRecord]:
        return iter(list(self._cells.values()))
