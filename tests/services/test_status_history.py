"""Tests for StatusHistoryLedger reads and duration analytics."""

from datetime import datetime, timedelta, timezone

import pytest

from car_tracker.domain.stages import CarStatus
from car_tracker.schemas.cars import DurationStats
from car_tracker.services.status_history import StatusHistoryLedger, summarize_durations
from car_tracker.services.transition_service import TransitionService
from tests.conftest import make_car

pytestmark = pytest.mark.unit

T0 = datetime(2026, 5, 17, 9, 0, tzinfo=timezone.utc)


def at(minutes: float) -> datetime:
    return T0 + timedelta(minutes=minutes)


class TestSummarizeDurations:
    def test_empty(self):
        assert summarize_durations([]) == DurationStats(count=0, min=0.0, max=0.0, avg=0.0)

    def test_rounds_to_two_places(self):
        stats = summarize_durations([1.0, 2.0, 2.0])
        assert stats.count == 3
        assert stats.min == 1.0
        assert stats.max == 2.0
        assert stats.avg == 1.67


class TestGetHistory:
    @pytest.mark.asyncio
    async def test_newest_first(self, store, session_factory):
        await store.create_car(make_car(1))
        service = TransitionService(session_factory)
        await service.apply_transition(1, CarStatus.REGISTERED, now=at(0))
        await service.apply_transition(1, CarStatus.ON_DECK, now=at(3))
        await service.apply_transition(1, CarStatus.DONE, now=at(7))

        history = await StatusHistoryLedger(session_factory).get_history(1)

        assert [entry.new_status for entry in history] == ["DONE", "ON_DECK", "REGISTERED"]

    @pytest.mark.asyncio
    async def test_only_requested_car(self, store, session_factory):
        service = TransitionService(session_factory)
        for car_id in (1, 2):
            await store.create_car(make_car(car_id))
            await service.apply_transition(car_id, CarStatus.REGISTERED, now=at(car_id))

        history = await StatusHistoryLedger(session_factory).get_history(2)
        assert [entry.car_id for entry in history] == [2]

    @pytest.mark.asyncio
    async def test_unknown_car_has_empty_history(self, session_factory):
        assert await StatusHistoryLedger(session_factory).get_history(99) == []


class TestAggregateDurations:
    @pytest.mark.asyncio
    async def test_elapsed_time_attributed_to_newer_stage(self, store, session_factory):
        service = TransitionService(session_factory)
        for car_id in (1, 2, 3):
            await store.create_car(make_car(car_id))

        # Car 1 runs the whole pipeline
        await service.apply_transition(1, CarStatus.REGISTERED, now=at(0))
        await service.apply_transition(1, CarStatus.ON_DECK, now=at(5))
        await service.apply_transition(1, CarStatus.DONE, now=at(15))
        await service.apply_transition(1, CarStatus.PICKED_UP, now=at(20))
        # Car 2 stops on deck
        await service.apply_transition(2, CarStatus.REGISTERED, now=at(1))
        await service.apply_transition(2, CarStatus.ON_DECK, now=at(10))
        # Car 3 is sent back to registration
        await service.apply_transition(3, CarStatus.ON_DECK, now=at(2))
        await service.apply_transition(3, CarStatus.REGISTERED, now=at(3.5))

        stages = await StatusHistoryLedger(session_factory).get_aggregate_durations()

        assert set(stages) == {CarStatus.REGISTERED, CarStatus.ON_DECK, CarStatus.DONE}
        assert stages[CarStatus.ON_DECK] == DurationStats(count=2, min=5.0, max=9.0, avg=7.0)
        assert stages[CarStatus.DONE] == DurationStats(count=1, min=10.0, max=10.0, avg=10.0)
        assert stages[CarStatus.REGISTERED] == DurationStats(count=1, min=1.5, max=1.5, avg=1.5)

    @pytest.mark.asyncio
    async def test_no_history(self, session_factory):
        stages = await StatusHistoryLedger(session_factory).get_aggregate_durations()
        assert all(stats.count == 0 for stats in stages.values())
