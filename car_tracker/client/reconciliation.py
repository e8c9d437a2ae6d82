"""Client-side reconciliation: treat updates as invalidation signals.

An incoming CarStatusUpdate only tells a view that something it cares about
may have changed. The view then re-pulls from the API; it never merges the
update's fields into local state. A missed or late update is therefore
harmless: the next pull always returns the current committed state.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING, Generic, TypeVar

import structlog

from car_tracker.domain.stages import CarStatus
from car_tracker.schemas.updates import CarStatusUpdate

if TYPE_CHECKING:
    from car_tracker.client.observer_channel import CarUpdatesChannel

logger = structlog.get_logger(__name__)

T = TypeVar("T")

StatusFilter = CarStatus | Iterable[CarStatus] | None


def _normalize_statuses(status_filter: StatusFilter) -> frozenset[str]:
    if status_filter is None:
        return frozenset()
    if isinstance(status_filter, CarStatus):
        return frozenset({status_filter.value})
    return frozenset(CarStatus(status).value for status in status_filter)


class UpdateInterest:
    """What a subscriber wants to hear about.

    An empty status filter matches every status; a missing car ID matches
    every car. The status filter is checked against both the old and the new
    status, so a view listing ON_DECK cars refreshes when a car leaves
    ON_DECK as well as when one arrives.
    """

    def __init__(self, status_filter: StatusFilter = None, car_id_filter: int | None = None):
        self.statuses = _normalize_statuses(status_filter)
        self.car_id = car_id_filter

    def __repr__(self) -> str:
        return f"UpdateInterest(statuses={sorted(self.statuses)}, car_id={self.car_id})"

    def matches(self, update: CarStatusUpdate) -> bool:
        status_ok = (
            not self.statuses
            or update.old_status in self.statuses
            or update.new_status.value in self.statuses
        )
        car_ok = self.car_id is None or update.car_id == self.car_id
        return status_ok and car_ok


def watch_car_updates(
    channel: CarUpdatesChannel,
    refetch: Callable[[], object],
    status_filter: StatusFilter = None,
    car_id_filter: int | None = None,
) -> Callable[[], None]:
    """Call refetch() whenever a matching update arrives.

    The update itself is deliberately not passed to refetch.

    Returns:
        Unsubscribe callable
    """
    interest = UpdateInterest(status_filter, car_id_filter)

    async def _on_update(update: CarStatusUpdate) -> None:
        logger.debug("reconciliation_refetch_triggered", car_id=update.car_id, new_status=update.new_status.value)
        result = refetch()
        if inspect.isawaitable(result):
            await result

    return channel.subscribe(_on_update, interest)


class ReconciledView(Generic[T]):
    """Latest server state for one query, refreshed on matching signals.

    Usage:
        view = ReconciledView(client.get_projector)
        view.attach(channel, status_filter=[CarStatus.REGISTERED, CarStatus.ON_DECK, CarStatus.DONE])
        await view.refresh()
        print(view.state)
    """

    def __init__(self, loader: Callable[[], Awaitable[T]], on_change: Callable[[T], object] | None = None):
        self._loader = loader
        self._on_change = on_change
        self._lock = asyncio.Lock()
        self._unsubscribe: list[Callable[[], None]] = []
        self.state: T | None = None
        self.refresh_count = 0

    async def refresh(self) -> T | None:
        """Reload state from the loader. Concurrent refreshes are serialized.

        A failed load keeps the previous state; the next signal retries.
        """
        async with self._lock:
            try:
                state = await self._loader()
            except Exception as exc:
                logger.warning("reconciled_view_refresh_failed", error=str(exc), error_type=type(exc).__name__)
                return self.state
            self.state = state
            self.refresh_count += 1

        if self._on_change is not None:
            result = self._on_change(state)
            if inspect.isawaitable(result):
                await result
        return state

    def attach(
        self,
        channel: CarUpdatesChannel,
        status_filter: StatusFilter = None,
        car_id_filter: int | None = None,
    ) -> None:
        """Refresh on matching updates and after every (re)connect."""
        self._unsubscribe.append(watch_car_updates(channel, self.refresh, status_filter, car_id_filter))
        self._unsubscribe.append(channel.on_open(self.refresh))

    def detach(self) -> None:
        while self._unsubscribe:
            self._unsubscribe.pop()()
