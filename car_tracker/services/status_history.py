"""StatusHistoryLedger: append-only audit log of car status transitions.

append() is only ever called by TransitionService inside its own unit of work,
so every history row is committed together with the status it records.
Reads back history per car and aggregates per-stage durations for reporting.
"""

from collections import defaultdict
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from car_tracker.db.models.status_history import StatusHistory
from car_tracker.domain.stages import MEASURED_STAGES, CarStatus
from car_tracker.schemas.cars import DurationStats


def _as_utc(dt: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def summarize_durations(samples: list[float]) -> DurationStats:
    """Reduce duration samples (minutes) to count/min/max/avg."""
    if not samples:
        return DurationStats()
    return DurationStats(
        count=len(samples),
        min=round(min(samples), 2),
        max=round(max(samples), 2),
        avg=round(sum(samples) / len(samples), 2),
    )


class StatusHistoryLedger:
    """History reads and the in-transaction append used by transitions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @staticmethod
    def append(
        session: AsyncSession,
        car_id: int,
        previous_status: CarStatus | None,
        new_status: CarStatus,
        changed_at: datetime,
    ) -> StatusHistory:
        """Stage a history row on the caller's session. The caller commits."""
        entry = StatusHistory(
            car_id=car_id,
            previous_status=previous_status.value if previous_status is not None else None,
            new_status=new_status.value,
            changed_at=changed_at,
        )
        session.add(entry)
        return entry

    async def get_history(self, car_id: int) -> list[StatusHistory]:
        """Return history for a car, newest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(StatusHistory)
                .where(StatusHistory.car_id == car_id)
                .order_by(StatusHistory.changed_at.desc(), StatusHistory.id.desc())
            )
            return list(result.scalars().all())

    async def get_aggregate_durations(self) -> dict[CarStatus, DurationStats]:
        """Per-stage duration statistics in minutes.

        For each pair of consecutive history entries of the same car, the elapsed
        time between them is attributed to the newer entry's new_status. Only
        REGISTERED, ON_DECK and DONE are reported; PRE_ARRIVAL and PICKED_UP are
        boundary stages.
        """
        async with self.session_factory() as session:
            result = await session.execute(
                select(StatusHistory).order_by(
                    StatusHistory.car_id.asc(),
                    StatusHistory.changed_at.asc(),
                    StatusHistory.id.asc(),
                )
            )
            entries = list(result.scalars().all())

        samples: dict[str, list[float]] = defaultdict(list)
        previous: StatusHistory | None = None
        for entry in entries:
            if previous is not None and previous.car_id == entry.car_id:
                elapsed = _as_utc(entry.changed_at) - _as_utc(previous.changed_at)
                samples[entry.new_status].append(elapsed.total_seconds() / 60)
            previous = entry

        return {stage: summarize_durations(samples[stage.value]) for stage in MEASURED_STAGES}
