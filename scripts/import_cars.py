"""Import cars from CSV into the database for pre-event seeding.

Usage:
    python scripts/import_cars.py cars.csv
    python scripts/import_cars.py cars.csv --mode replace
    python scripts/import_cars.py cars.csv --skip-invalid

Cars land in PRE_ARRIVAL with no status history and nothing is broadcast.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from car_tracker.core.config import get_settings
from car_tracker.core.exceptions import CarTrackerError, CarValidationError
from car_tracker.db.base import close_db, get_session_factory, init_db
from car_tracker.services.car_import import parse_cars_csv
from car_tracker.services.car_store import CarStore


async def main(args: argparse.Namespace) -> int:
    path = Path(args.csv_file)
    if not path.exists():
        print(f"File not found: {path}")
        return 1

    print(f"Reading CSV file: {path}")
    try:
        result = parse_cars_csv(path.read_text(encoding="utf-8"))
    except CarValidationError as e:
        print(f"Invalid CSV: {e}")
        return 1

    if result.errors:
        print(f"{result.invalid_row_count} invalid row(s):")
        for error in result.errors:
            print(f"  {error}")
        if not args.skip_invalid:
            print("Nothing imported. Fix the rows or pass --skip-invalid.")
            return 1

    if not result.cars:
        print("No valid cars to import.")
        return 1

    await init_db(args.database_url or get_settings().database_url)
    try:
        store = CarStore(get_session_factory())
        imported = await store.import_cars(result.cars, mode=args.mode)
    except CarTrackerError as e:
        print(f"Import failed: {e}")
        return 1
    finally:
        await close_db()

    print(f"Imported {imported} car(s) in {args.mode} mode.")
    return 0


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import cars from CSV")
    parser.add_argument("csv_file")
    parser.add_argument("--mode", choices=["append", "replace"], default="append")
    parser.add_argument("--skip-invalid", action="store_true", help="import valid rows even if some rows fail")
    parser.add_argument("--database-url", default=None)
    return parser.parse_args()


if __name__ == "__main__":
    sys.exit(asyncio.run(main(parse_args())))
