#!/usr/bin/env python3
"""
Inspect a speed limit pack and query coordinates against it.

Loads the pack the same way the HUD does, then prints the detected schema,
sample count, bounds and the limit at each requested coordinate.
"""

import argparse
import logging
import sqlite3
import sys
import os
import time
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from speedlimit.config import MAX_SAMPLES_PER_LINE, ROADS_TABLE
from speedlimit.schema import NoGeometryColumn, detect_roads_schema
from speedlimit.store import SpeedLimitStore


def print_schema(path: str, table: str) -> None:
    """Print resolved columns for the roads table."""
    try:
        conn = sqlite3.connect(Path(path).resolve().as_uri() + "?mode=ro", uri=True)
    except sqlite3.Error as e:
        print(f"  Schema: unavailable ({e})")
        return
    try:
        schema = detect_roads_schema(conn, table)
        print(f"  Geometry column: {schema.geometry_column}")
        print(f"  maxspeed column: {schema.maxspeed_column or '-'}")
        print(f"  highway column:  {schema.highway_column or '-'}")
    except NoGeometryColumn as e:
        print(f"  Schema: {e}")
    except sqlite3.Error as e:
        print(f"  Schema: unreadable ({e})")
    finally:
        conn.close()


def main():
    parser = argparse.ArgumentParser(
        description="Inspect an openHUD speed limit pack",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Summary of a pack
  python pack_info.py Istanbul.sqlite

  # Limit at two coordinates
  python pack_info.py Istanbul.sqlite --query 41.0082 28.9784 --query 41.04 29.0
        """,
    )
    parser.add_argument("pack", help="Path to pack file (.sqlite)")
    parser.add_argument(
        "--query", "-q",
        nargs=2,
        type=float,
        action="append",
        metavar=("LAT", "LON"),
        default=[],
        help="Coordinate to look up (repeatable)",
    )
    parser.add_argument(
        "--table",
        default=ROADS_TABLE,
        help=f"Roads table name (default: {ROADS_TABLE})",
    )
    parser.add_argument(
        "--max-samples",
        type=int,
        default=MAX_SAMPLES_PER_LINE,
        help=f"Samples kept per line (default: {MAX_SAMPLES_PER_LINE})",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug logging",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    print("=" * 60)
    print(f"Pack: {args.pack}")
    print("=" * 60)
    print_schema(args.pack, args.table)

    store = SpeedLimitStore(table=args.table, max_samples_per_line=args.max_samples)
    start = time.perf_counter()
    if not store.load_sync(args.pack):
        print(f"ERROR: {store.last_error}")
        sys.exit(1)
    elapsed = time.perf_counter() - start

    index = store.index
    print(f"  Samples: {len(index):,} (loaded in {elapsed:.2f}s)")
    bounds = index.bounds()
    if bounds:
        print(f"  Bounds:  lat {bounds[0]:.5f}..{bounds[2]:.5f}, "
              f"lon {bounds[1]:.5f}..{bounds[3]:.5f}")

    for lat, lon in args.query:
        start = time.perf_counter()
        match = store.query_match(lat, lon)
        query_ms = (time.perf_counter() - start) * 1000.0
        if match:
            print(f"  ({lat:.5f}, {lon:.5f}): {match.speed_limit_kmh} km/h "
                  f"[{match.source}, {match.distance_m:.0f} m, {query_ms:.1f} ms]")
        else:
            print(f"  ({lat:.5f}, {lon:.5f}): no limit [{query_ms:.1f} ms]")


if __name__ == "__main__":
    main()
