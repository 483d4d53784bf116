"""Client-side committed/queued layers merged under server authority."""

from __future__ import annotations

from typing import Iterable, Optional

from ..grid.cells import CandidatePixel, CellRecord
from ..grid.projection import DEFAULT_GRID_METERS, normalize_grid_meters

CellKey = tuple[int, int]


class ClientReconciler:
    """Tracks what one client believes the grid looks like.

    ``committed`` mirrors what the server has confirmed; ``queued`` holds local
    placements that have not been submitted yet. Server messages always win:
    a snapshot discards every queued entry and a ``pixels`` batch drops the
    queued entry of each key it lists, whatever color was pending.
    """

    def __init__(self, *, grid_meters: float = DEFAULT_GRID_METERS) -> None:
        self.grid_meters = float(grid_meters)
        self.committed: dict[CellKey, CellRecord] = {}
        self.queued: dict[CellKey, CandidatePixel] = {}

    def queue(self, i: int, j: int, *, color: str, owner_name: str) -> bool:
        key = (int(i), int(j))
        if key in self.queued:
            return False
        self.queued[key] = CandidatePixel(i=key[0], j=key[1], color=color, owner_name=owner_name)
        return True

    def unqueue(self, i: int, j: int) -> bool:
        return self.queued.pop((int(i), int(j)), None) is not None

    def clear_queue(self) -> int:
        count = len(self.queued)
        self.queued.clear()
        return count

    def drain(self) -> list[CandidatePixel]:
        """Hand every queued entry to the caller and clear the queue.

        The queue is cleared before the server answers; the following
        ``pixels`` broadcast is the only confirmation and nothing is retried.
        """
        pending = list(self.queued.values())
        self.queued.clear()
        return pending

    def apply_snapshot(self, records: Iterable[CellRecord], grid_meters: object = None) -> None:
        self.grid_meters = normalize_grid_meters(grid_meters, default=self.grid_meters)
        self.committed = {record.key: record for record in records if not record.is_erase}
        self.queued.clear()

    def apply_pixels(self, records: Iterable[CellRecord]) -> list[CellKey]:
        touched: list[CellKey] = []
        for record in records:
            if record.is_erase:
                self.committed.pop(record.key, None)
            else:
                self.committed[record.key] = record
            self.queued.pop(record.key, None)
            touched.append(record.key)
        return touched

    def visible(self, i: int, j: int) -> Optional[str]:
        key = (int(i), int(j))
        pending = self.queued.get(key)
        if pending is not None:
            return pending.color
        record = self.committed.get(key)
        return record.color if record is not None else None

    def owner_at(self, i: int, j: int, *, viewer: Optional[str] = None) -> Optional[str]:
        """Name to show in a "painted by" hint, hiding the viewer's own queue."""
        key = (int(i), int(j))
        pending = self.queued.get(key)
        if pending is not None:
            if viewer is not None and pending.owner_name == viewer:
                return None
            return pending.owner_name
        record = self.committed.get(key)
        return record.owner_name if record is not None else None
