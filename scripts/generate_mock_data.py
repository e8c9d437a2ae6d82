"""Generate a CSV of random cars for local testing.

Usage:
    python scripts/generate_mock_data.py [count] [output] [--seed N]
"""

import argparse
import random
import sys
from pathlib import Path

from car_tracker.services.car_import import format_cars_csv, generate_mock_cars


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate mock car data")
    parser.add_argument("count", nargs="?", type=int, default=50)
    parser.add_argument("output", nargs="?", default="mock-cars.csv")
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args()

    if args.count <= 0:
        print("Error: number of cars must be a positive integer")
        return 1

    cars = generate_mock_cars(args.count, random.Random(args.seed))
    Path(args.output).write_text(format_cars_csv(cars), encoding="utf-8")
    print(f"Generated {len(cars)} mock car(s) in {args.output}")
    print(f"Import with: python scripts/import_cars.py {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
