"""CarStore: the durable source of truth for cars.

Every read opens a fresh session against the database. There is no caching
layer, so an observer that re-pulls after a broadcast always sees the latest
committed transition even if it missed intermediate updates.

Status changes do NOT happen here; they go through TransitionService so that
each change is paired with a history entry. Bulk import is the one write path
that inserts cars without history (pre-event seeding).
"""

from collections.abc import Sequence

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from car_tracker.core.exceptions import CarNotFoundError, DuplicateCarError, StorageError
from car_tracker.db.models.car import Car
from car_tracker.db.models.status_history import StatusHistory
from car_tracker.domain.stages import MAX_CAR_ID, PROJECTOR_DONE, PROJECTOR_IN_PROGRESS, CarStatus
from car_tracker.schemas.cars import CarCreate, CarDetails

logger = structlog.get_logger(__name__)


def _as_car_id(term: str) -> int | None:
    """The term as a car ID, or None when it is not an integer in the ID column range."""
    if not (term.isascii() and term.isdigit()):
        return None
    value = int(term)
    return value if 0 < value <= MAX_CAR_ID else None


class CarStore:
    """Read and administrative write operations on the cars table.

    Uses dependency injection (takes session_factory) for testability.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_by_id(self, car_id: int) -> Car | None:
        async with self.session_factory() as session:
            return await session.get(Car, car_id)

    async def get_all_by_status(self, status: CarStatus) -> list[Car]:
        return await self.get_all_by_statuses([status])

    async def get_all_by_statuses(self, statuses: Sequence[CarStatus]) -> list[Car]:
        """Return cars in any of the given statuses, ordered by ID."""
        values = [status.value for status in statuses]
        async with self.session_factory() as session:
            result = await session.execute(
                select(Car).where(Car.status.in_(values)).order_by(Car.id.asc())
            )
            return list(result.scalars().all())

    async def get_all(self) -> list[Car]:
        async with self.session_factory() as session:
            result = await session.execute(select(Car).order_by(Car.id.asc()))
            return list(result.scalars().all())

    async def search(self, term: str) -> Car | None:
        """Find one car by ID, falling back to exact license plate match.

        Integer-shaped terms within the ID column range try an exact ID match first. If that misses, or the
        term is not integer-shaped, the plate is matched exactly. Plate matches
        are ordered by ID so an ambiguous plate returns the lowest ID.

        Args:
            term: Raw search input (surrounding whitespace ignored)

        Returns:
            The matching Car, or None
        """
        term = term.strip()
        if not term:
            return None

        async with self.session_factory() as session:
            car_id = _as_car_id(term)
            if car_id is not None:
                car = await session.get(Car, car_id)
                if car is not None:
                    return car

            result = await session.execute(
                select(Car).where(Car.license_plate == term).order_by(Car.id.asc()).limit(1)
            )
            return result.scalar_one_or_none()

    async def get_board(self) -> dict[CarStatus, list[Car]]:
        """Group all cars by status. Every status key is present."""
        board: dict[CarStatus, list[Car]] = {status: [] for status in CarStatus}
        for car in await self.get_all():
            board[CarStatus(car.status)].append(car)
        return board

    async def get_projector_cars(self) -> tuple[list[Car], list[Car]]:
        """Return (in_progress, done) cars for the public display."""
        in_progress = await self.get_all_by_statuses(PROJECTOR_IN_PROGRESS)
        done = await self.get_all_by_statuses(PROJECTOR_DONE)
        return in_progress, done

    async def get_statistics(self) -> tuple[int, dict[CarStatus, int]]:
        """Return total car count and per-status counts (zero-filled)."""
        by_status: dict[CarStatus, int] = {status: 0 for status in CarStatus}
        async with self.session_factory() as session:
            result = await session.execute(
                select(Car.status, func.count(Car.id)).group_by(Car.status)
            )
            for status, count in result.all():
                by_status[CarStatus(status)] = count
        return sum(by_status.values()), by_status

    # ------------------------------------------------------------------
    # Administrative writes
    # ------------------------------------------------------------------

    async def create_car(self, car_in: CarCreate) -> Car:
        """Register a single car in PRE_ARRIVAL.

        Raises:
            DuplicateCarError: If the ID is already taken
            StorageError: If the insert fails for any other reason
        """
        car = Car(
            id=car_in.id,
            make=car_in.make,
            model=car_in.model,
            color=car_in.color.value,
            license_plate=car_in.license_plate,
            status=CarStatus.PRE_ARRIVAL.value,
        )
        async with self.session_factory() as session:
            if await session.get(Car, car_in.id) is not None:
                raise DuplicateCarError(car_in.id)
            session.add(car)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateCarError(car_in.id) from exc
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error("car_create_failed", car_id=car_in.id, error=str(exc))
                raise StorageError(f"Failed to register car {car_in.id}") from exc

        logger.info("car_registered", car_id=car.id)
        return car

    async def update_details(self, car_id: int, details: CarDetails) -> Car:
        """Edit descriptive attributes. Status is never touched here.

        Raises:
            CarNotFoundError: If the car does not exist
            StorageError: If the update fails
        """
        async with self.session_factory() as session:
            car = await session.get(Car, car_id)
            if car is None:
                raise CarNotFoundError(car_id)

            car.make = details.make
            car.model = details.model
            car.color = details.color.value
            car.license_plate = details.license_plate
            try:
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error("car_update_failed", car_id=car_id, error=str(exc))
                raise StorageError(f"Failed to update car {car_id}") from exc

        logger.info("car_details_updated", car_id=car_id)
        return car

    async def delete_car(self, car_id: int) -> None:
        """Delete a car and its history. Administrative/test use only.

        Raises:
            CarNotFoundError: If the car does not exist
        """
        async with self.session_factory() as session:
            car = await session.get(Car, car_id)
            if car is None:
                raise CarNotFoundError(car_id)
            try:
                await session.execute(delete(StatusHistory).where(StatusHistory.car_id == car_id))
                await session.delete(car)
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error("car_delete_failed", car_id=car_id, error=str(exc))
                raise StorageError(f"Failed to delete car {car_id}") from exc

        logger.info("car_deleted", car_id=car_id)

    async def import_cars(self, cars: Sequence[CarCreate], mode: str = "append") -> int:
        """Bulk load cars directly into the store, bypassing TransitionService.

        All rows land in one transaction: either every car is inserted or none.
        No history entries are written and nothing is broadcast.

        Args:
            cars: Validated car rows
            mode: "append" adds to existing cars; "replace" wipes cars and history first

        Returns:
            Number of cars inserted

        Raises:
            DuplicateCarError: If an ID repeats within the batch or (append) already exists
            StorageError: If the transaction fails
        """
        seen: set[int] = set()
        for car_in in cars:
            if car_in.id in seen:
                raise DuplicateCarError(car_in.id)
            seen.add(car_in.id)

        async with self.session_factory() as session:
            try:
                if mode == "replace":
                    await session.execute(delete(StatusHistory))
                    await session.execute(delete(Car))
                else:
                    result = await session.execute(select(Car.id).where(Car.id.in_(sorted(seen))).limit(1))
                    existing = result.scalar_one_or_none()
                    if existing is not None:
                        raise DuplicateCarError(existing)

                session.add_all(
                    Car(
                        id=car_in.id,
                        make=car_in.make,
                        model=car_in.model,
                        color=car_in.color.value,
                        license_plate=car_in.license_plate,
                        status=CarStatus.PRE_ARRIVAL.value,
                    )
                    for car_in in cars
                )
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error("car_import_failed", mode=mode, rows=len(cars), error=str(exc))
                raise StorageError("Failed to import cars") from exc

        logger.info("cars_imported", mode=mode, imported=len(cars))
        return len(cars)
