#!/usr/bin/env python3
"""Rewrite a pixel snapshot file into the canonical ``{i, j}`` record form.

Legacy snapshots stored ``{lat, lon, color, playerName, ts}`` entries. They are
snapped to cells with the server's floor rule; entries that land on the same
cell collapse to the last one, as they would on a live server.
"""

from __future__ import annotations

import argparse
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from apps.api.pixelmap_api.storage.pixels import JsonFilePixelStore
from packages.pixelmap_core.grid.cells import CellStore
from packages.pixelmap_core.grid.projection import DEFAULT_GRID_METERS


def convert_snapshot(in_path: Path, out_path: Path, *, grid_meters: float = DEFAULT_GRID_METERS) -> int:
    records = JsonFilePixelStore(in_path, grid_meters=grid_meters).load()
    store = CellStore(records)
    JsonFilePixelStore(out_path, grid_meters=grid_meters).save(store.snapshot())
    return len(store)


def main() -> int:
    parser = argparse.ArgumentParser(description="Convert a legacy pixel snapshot to cell indices")
    parser.add_argument("snapshot_path", type=Path, help="Path to the snapshot JSON array")
    parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Output path (default: rewrite the input file in place)",
    )
    parser.add_argument(
        "--grid-meters",
        type=float,
        default=DEFAULT_GRID_METERS,
        help="Cell edge in Web Mercator meters (must match the server)",
    )
    args = parser.parse_args()

    if not args.snapshot_path.exists():
        print(f"ERROR: snapshot not found: {args.snapshot_path}")
        return 1
    if args.grid_meters <= 0:
        print("ERROR: --grid-meters must be positive")
        return 1

    out_path = args.out or args.snapshot_path
    try:
        count = convert_snapshot(args.snapshot_path, out_path, grid_meters=args.grid_meters)
    except ValueError as exc:
        print(f"ERROR: snapshot is not valid JSON: {args.snapshot_path}: {exc}")
        return 1
    print(f"Wrote {count} pixels to {out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
