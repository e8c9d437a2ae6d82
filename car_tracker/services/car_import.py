"""CSV interchange for pre-event car seeding.

Format (header required, case-insensitive):

    id,make,model,color,license_plate
    1,Toyota,Camry,white,ABC1234

Rows are validated through the CarCreate schema, so the CSV path and the
JSON import route enforce the same limits. Colors are matched
case-insensitively against the allowed set.
"""

import csv
import io
import random
import string
from collections.abc import Iterable
from dataclasses import dataclass, field

from pydantic import ValidationError

from car_tracker.core.exceptions import CarValidationError
from car_tracker.domain.stages import CarColor
from car_tracker.schemas.cars import CarCreate

CSV_HEADER = ["id", "make", "model", "color", "license_plate"]
EXPORT_HEADER = CSV_HEADER + ["status", "created_at", "registered_at", "on_deck_at", "completed_at", "picked_up_at"]

MOCK_MAKES_MODELS: dict[str, list[str]] = {
    "Toyota": ["Camry", "Corolla", "RAV4", "Highlander", "Prius", "Sienna", "Tacoma"],
    "Honda": ["Civic", "Accord", "CR-V", "Pilot", "HR-V", "Passport", "Ridgeline"],
    "Ford": ["F-150", "Escape", "Explorer", "Focus", "Mustang", "Edge", "Ranger"],
    "Chevrolet": ["Silverado", "Equinox", "Malibu", "Tahoe", "Impala", "Traverse", "Camaro"],
    "Nissan": ["Altima", "Sentra", "Rogue", "Pathfinder", "Murano", "Frontier", "Maxima"],
    "Hyundai": ["Elantra", "Sonata", "Tucson", "Santa Fe", "Accent", "Palisade", "Kona"],
    "Subaru": ["Outback", "Forester", "Impreza", "Legacy", "Ascent", "Crosstrek", "WRX"],
    "Mazda": ["CX-5", "Mazda3", "CX-9", "Mazda6", "CX-30", "MX-5 Miata", "CX-50"],
    "Volkswagen": ["Jetta", "Passat", "Tiguan", "Atlas", "Golf", "Arteon"],
    "BMW": ["3 Series", "5 Series", "X3", "X5", "X1", "4 Series"],
}


@dataclass
class CsvParseResult:
    cars: list[CarCreate] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def invalid_row_count(self) -> int:
        return len(self.errors)


def _format_errors(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )


def parse_cars_csv(content: str) -> CsvParseResult:
    """Parse CSV text into validated cars.

    Invalid rows are collected as "Row N: ..." messages (N counts the header
    as row 1) rather than aborting the parse; the caller decides whether to
    import the valid remainder. IDs repeated within the file are reported.

    Raises:
        CarValidationError: If the file is empty or the header is wrong
    """
    reader = csv.reader(io.StringIO(content.strip()))
    header = next(reader, None)
    if header is None:
        raise CarValidationError({"file": ["CSV file is empty"]})

    normalized = [column.strip().lower() for column in header]
    if normalized != CSV_HEADER:
        raise CarValidationError(
            {"header": [f"Expected: {','.join(CSV_HEADER)}, got: {','.join(normalized)}"]}
        )

    result = CsvParseResult()
    seen_ids: set[int] = set()
    for row_number, row in enumerate(reader, start=2):
        if not any(cell.strip() for cell in row):
            continue
        if len(row) != len(CSV_HEADER):
            result.errors.append(f"Row {row_number}: expected {len(CSV_HEADER)} fields, got {len(row)}")
            continue

        record = dict(zip(CSV_HEADER, (cell.strip() for cell in row)))
        record["color"] = record["color"].lower()
        try:
            car = CarCreate.model_validate(record)
        except ValidationError as exc:
            result.errors.append(f"Row {row_number}: {_format_errors(exc)}")
            continue

        if car.id in seen_ids:
            result.errors.append(f"Row {row_number}: duplicate id {car.id}")
            continue
        seen_ids.add(car.id)
        result.cars.append(car)

    return result


def _plain(value) -> str:
    """Enum members render as their value."""
    return getattr(value, "value", value)


def format_cars_csv(cars: Iterable, include_status: bool = False) -> str:
    """Render cars (ORM rows or CarResponse) as CSV text.

    With include_status, the status and stage timestamps are appended; the
    plain form round-trips through parse_cars_csv.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_HEADER if include_status else CSV_HEADER)
    for car in cars:
        row = [car.id, car.make, car.model, _plain(car.color), car.license_plate]
        if include_status:
            row.append(_plain(car.status))
            for column in EXPORT_HEADER[6:]:
                value = getattr(car, column)
                row.append(value.isoformat() if value is not None else "")
        writer.writerow(row)
    return buffer.getvalue()


def _random_plate(rng: random.Random) -> str:
    letters = "".join(rng.choice(string.ascii_uppercase) for _ in range(3))
    if rng.random() < 0.5:
        return f"{letters}{rng.randrange(10000):04d}"
    return f"{rng.randrange(10)}{letters}{rng.randrange(1000):03d}"


def generate_mock_cars(count: int, rng: random.Random | None = None) -> list[CarCreate]:
    """Generate count cars with IDs 1..count and unique plates."""
    if count <= 0:
        raise ValueError("count must be a positive integer")

    rng = rng or random.Random()
    colors = list(CarColor)
    used_plates: set[str] = set()
    cars: list[CarCreate] = []
    for car_id in range(1, count + 1):
        plate = _random_plate(rng)
        attempts = 1
        while plate in used_plates:
            attempts += 1
            plate = _random_plate(rng) if attempts <= 100 else f"{plate[:15]}{car_id}"
        used_plates.add(plate)

        make = rng.choice(list(MOCK_MAKES_MODELS))
        cars.append(
            CarCreate(
                id=car_id,
                make=make,
                model=rng.choice(MOCK_MAKES_MODELS[make]),
                color=rng.choice(colors),
                license_plate=plate,
            )
        )
    return cars
