#!/usr/bin/env python3
"""Command-line client for a running Pixel Map server."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
import sys
from typing import Optional

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from packages.pixelmap_core.client.connection import PixelMapConnection
from packages.pixelmap_core.client.local_state import JsonFileLocalStateStore
from packages.pixelmap_core.client.session import PaintSession
from packages.pixelmap_core.grid.cells import ERASE_COLOR
from packages.pixelmap_core.grid.projection import cell_of


def _build_session(state_file: Optional[Path]) -> PaintSession:
    return PaintSession(local_state=JsonFileLocalStateStore(state_file))


async def _wait_for(predicate, *, timeout: float, poll: float = 0.05) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(poll)
    return predicate()


async def run_paint(args: argparse.Namespace) -> int:
    session = _build_session(args.state_file)
    if args.name:
        session.start(args.name)
    elif not session.restore():
        print("ERROR: no saved display name; pass --name")
        return 1
    if args.color:
        session.set_color(args.color)

    connection = PixelMapConnection(args.url, session)
    runner = asyncio.create_task(connection.run())
    try:
        try:
            await asyncio.wait_for(connection.snapshot_received.wait(), timeout=args.timeout)
        except asyncio.TimeoutError:
            print(f"ERROR: no snapshot from {args.url} within {args.timeout:.1f}s")
            return 1

        grid_meters = session.reconciler.grid_meters
        targets = []
        for lon, lat in args.at:
            before = len(session.reconciler.queued)
            await connection.click_at(lon, lat)
            if len(session.reconciler.queued) > before:
                targets.append(cell_of(lon, lat, grid_meters))
        if not targets:
            print(f"Nothing queued ({session.budget.remaining_label()})")
            return 1

        erasing = session.session is not None and session.session.color == ERASE_COLOR
        await connection.submit()
        confirmed = await _wait_for(
            lambda: all((key in session.reconciler.committed) != erasing for key in targets),
            timeout=args.timeout,
        )
        for i, j in targets:
            record = session.reconciler.committed.get((i, j))
            if record is not None:
                status = f"{record.color} by {record.owner_name}"
            else:
                status = "erased" if erasing and confirmed else "unconfirmed"
            print(f"cell {i},{j}: {status}")
        print(session.budget.remaining_label())
        return 0 if confirmed else 2
    finally:
        await connection.stop()
        await runner


async def run_watch(args: argparse.Namespace) -> int:
    session = _build_session(args.state_file)

    def render(current: PaintSession) -> None:
        print(f"cells={len(current.reconciler.committed)} grid_meters={current.reconciler.grid_meters}")

    connection = PixelMapConnection(args.url, session, render=render)
    runner = asyncio.create_task(connection.run())
    try:
        if args.seconds > 0:
            await asyncio.sleep(args.seconds)
        else:
            await runner
    finally:
        await connection.stop()
        await runner
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Paint cells on a Pixel Map server")
    parser.add_argument("--url", default="ws://127.0.0.1:3000/ws", help="Server websocket URL")
    parser.add_argument("--state-file", type=Path, default=None, help="Local session state JSON path")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log connection activity")
    sub = parser.add_subparsers(dest="command", required=True)

    paint = sub.add_parser("paint", help="Queue cells and submit them as one batch")
    paint.add_argument("--name", default=None, help="Display name (saved for later runs)")
    paint.add_argument("--color", default=None, help="CSS color, or 'transparent' to erase")
    paint.add_argument(
        "--at",
        nargs=2,
        type=float,
        action="append",
        required=True,
        metavar=("LON", "LAT"),
        help="Point to paint; repeat for several cells",
    )
    paint.add_argument("--timeout", type=float, default=5.0, help="Seconds to wait for the server")

    watch = sub.add_parser("watch", help="Print the cell count as updates arrive")
    watch.add_argument("--seconds", type=float, default=0.0, help="Stop after N seconds (0 = forever)")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    handler = run_paint if args.command == "paint" else run_watch
    try:
        return asyncio.run(handler(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
