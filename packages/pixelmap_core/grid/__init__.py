"""Grid addressing and the authoritative cell store."""

from .cells import ERASE_COLOR, AppliedChange, CandidatePixel, CellRecord, CellStore, utc_now_iso
from .projection import (
    DEFAULT_GRID_METERS,
    MAX_MERCATOR_LAT,
    cell_bounds,
    cell_center,
    cell_key,
    cell_of,
    normalize_grid_meters,
    project,
    unproject,
)

__all__ = [
    "ERASE_COLOR",
    "AppliedChange",
    "CandidatePixel",
    "CellRecord",
    "CellStore",
    "utc_now_iso",
    "DEFAULT_GRID_METERS",
    "MAX_MERCATOR_LAT",
    "cell_bounds",
    "cell_center",
    "cell_key",
    "cell_of",
    "normalize_grid_meters",
    "project",
    "unproject",
]
