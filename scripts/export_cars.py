"""Export cars to CSV for backup or analysis.

Usage:
    python scripts/export_cars.py                      # cars-export.csv, import format
    python scripts/export_cars.py out.csv --with-status
"""

import argparse
import asyncio
from pathlib import Path

from car_tracker.core.config import get_settings
from car_tracker.db.base import close_db, get_session_factory, init_db
from car_tracker.services.car_import import format_cars_csv
from car_tracker.services.car_store import CarStore


async def main(args: argparse.Namespace) -> None:
    await init_db(args.database_url or get_settings().database_url)
    try:
        cars = await CarStore(get_session_factory()).get_all()
    finally:
        await close_db()

    Path(args.output).write_text(format_cars_csv(cars, include_status=args.with_status), encoding="utf-8")
    print(f"Exported {len(cars)} car(s) to {args.output}")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Export cars to CSV")
    parser.add_argument("output", nargs="?", default="cars-export.csv")
    parser.add_argument("--with-status", action="store_true", help="include status and stage timestamps")
    parser.add_argument("--database-url", default=None)
    return parser.parse_args()


if __name__ == "__main__":
    asyncio.run(main(parse_args()))
