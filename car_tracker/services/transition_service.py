"""TransitionService: the only path by which a car's status changes.

Each transition is one unit of work:
1. Read the current status (recorded as the history's previous status)
2. Replace the status unconditionally (any stage may move to any stage)
3. Set the target stage's first-arrival timestamp only if it is still NULL
4. Append a StatusHistory row
5. Commit, then hand a CarStatusUpdate to the broadcast hub

The broadcast is fire-and-forget. The committed row is authoritative whether or
not anybody was listening, so hub problems are logged and never raised.
"""

from datetime import datetime, timezone

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from car_tracker.core.exceptions import CarNotFoundError, StorageError
from car_tracker.db.models.car import Car
from car_tracker.domain.stages import CarStatus, timestamp_field_for
from car_tracker.schemas.updates import CarStatusUpdate, build_update
from car_tracker.services.broadcast_hub import BroadcastHub
from car_tracker.services.status_history import StatusHistoryLedger

logger = structlog.get_logger(__name__)


class TransitionService:
    """Applies status transitions atomically with their history entry.

    Uses dependency injection (session factory and hub) so tests can supply
    isolated databases and hubs.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        hub: BroadcastHub | None = None,
    ):
        self.session_factory = session_factory
        self.hub = hub

    async def apply_transition(
        self,
        car_id: int,
        target_status: CarStatus,
        now: datetime | None = None,
    ) -> Car:
        """Move a car to target_status and record the change.

        Re-entering the current stage is allowed: the stage timestamp keeps its
        first value and a new history entry is still appended.

        Args:
            car_id: Car to transition
            target_status: Any CarStatus (no transition table is enforced)
            now: Current time (for deterministic testing)

        Returns:
            The car as committed

        Raises:
            CarNotFoundError: Car does not exist (no mutation, no broadcast)
            StorageError: Commit failed (rolled back, no broadcast), or the
                committed car could not be reloaded (already broadcast)
        """
        now = now or datetime.now(timezone.utc)

        values: dict = {"status": target_status.value}
        timestamp_field = timestamp_field_for(target_status)
        if timestamp_field is not None:
            column = getattr(Car, timestamp_field)
            # First arrival only: never overwrite an existing stage timestamp
            values[timestamp_field] = func.coalesce(column, now)

        async with self.session_factory() as session:
            try:
                result = await session.execute(select(Car.status).where(Car.id == car_id))
                current = result.scalar_one_or_none()
                if current is None:
                    raise CarNotFoundError(car_id)
                previous_status = CarStatus(current)

                await session.execute(
                    update(Car)
                    .where(Car.id == car_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                StatusHistoryLedger.append(session, car_id, previous_status, target_status, now)
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error(
                    "car_status_transition_failed",
                    car_id=car_id,
                    target_status=target_status.value,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                raise StorageError(f"Failed to update car {car_id} to status {target_status.value}") from exc

            logger.info(
                "car_status_transitioned",
                car_id=car_id,
                previous_status=previous_status.value,
                new_status=target_status.value,
            )
            # Committed: observers hear about it whatever happens to the reload below
            self._announce(build_update(car_id, previous_status, target_status, now))

            try:
                car = await session.get(Car, car_id, populate_existing=True)
            except SQLAlchemyError as exc:
                logger.error(
                    "car_status_reload_failed",
                    car_id=car_id,
                    new_status=target_status.value,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                raise StorageError(f"Car {car_id} moved to {target_status.value} but could not be reloaded") from exc

        if car is None:
            # Deleted between the commit and the reload
            raise CarNotFoundError(car_id)
        return car

    def _announce(self, update: CarStatusUpdate) -> None:
        """Schedule the broadcast without waiting for delivery. Never raises."""
        if self.hub is None:
            logger.debug("car_status_broadcast_skipped", car_id=update.car_id, reason="no_hub")
            return
        try:
            self.hub.notify(update)
        except Exception as exc:
            logger.warning(
                "car_status_broadcast_failed",
                car_id=update.car_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
