#!/usr/bin/env python3
"""Run the Pixel Map API with uvicorn."""

from __future__ import annotations

import argparse
import os
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import uvicorn


def main() -> int:
    parser = argparse.ArgumentParser(description="Serve the Pixel Map websocket API")
    parser.add_argument("--host", default="127.0.0.1", help="Bind host")
    parser.add_argument("--port", "-p", type=int, default=3000, help="Bind port")
    parser.add_argument("--grid-meters", type=float, default=None, help="Cell edge in Web Mercator meters")
    parser.add_argument("--data-file", type=Path, default=None, help="Pixel snapshot JSON file")
    args = parser.parse_args()

    if args.grid_meters is not None:
        os.environ["PIXELMAP_GRID_METERS"] = str(args.grid_meters)
    if args.data_file is not None:
        os.environ["PIXELMAP_DATA_FILE"] = str(args.data_file)

    uvicorn.run("apps.api.pixelmap_api.main:app", host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
