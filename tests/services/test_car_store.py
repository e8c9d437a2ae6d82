"""Tests for CarStore reads, search, and administrative writes."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from car_tracker.core.exceptions import CarNotFoundError, DuplicateCarError
from car_tracker.db.models.status_history import StatusHistory
from car_tracker.domain.stages import CarColor, CarStatus
from car_tracker.schemas.cars import CarDetails
from car_tracker.services.transition_service import TransitionService
from tests.conftest import make_car

pytestmark = pytest.mark.unit


async def _history_count(session_factory) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count(StatusHistory.id)))
        return result.scalar_one()


class TestCreateAndRead:
    @pytest.mark.asyncio
    async def test_new_car_starts_in_pre_arrival(self, store):
        car = await store.create_car(make_car(7))

        assert car.status == CarStatus.PRE_ARRIVAL.value
        assert car.created_at is not None
        assert car.registered_at is None
        assert car.on_deck_at is None
        assert car.completed_at is None
        assert car.picked_up_at is None

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, store):
        await store.create_car(make_car(7))
        with pytest.raises(DuplicateCarError):
            await store.create_car(make_car(7, license_plate="OTHER1"))

    @pytest.mark.asyncio
    async def test_get_by_id_missing_returns_none(self, store):
        assert await store.get_by_id(404) is None

    @pytest.mark.asyncio
    async def test_get_all_ordered_by_id(self, store):
        for car_id in (3, 1, 2):
            await store.create_car(make_car(car_id))
        assert [car.id for car in await store.get_all()] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_get_all_by_status(self, store, session_factory):
        for car_id in (1, 2, 3):
            await store.create_car(make_car(car_id))
        await TransitionService(session_factory).apply_transition(2, CarStatus.REGISTERED)

        registered = await store.get_all_by_status(CarStatus.REGISTERED)
        pre_arrival = await store.get_all_by_status(CarStatus.PRE_ARRIVAL)

        assert [car.id for car in registered] == [2]
        assert [car.id for car in pre_arrival] == [1, 3]


class TestSearch:
    @pytest.mark.asyncio
    async def test_integer_term_matches_id(self, store):
        await store.create_car(make_car(42, license_plate="XYZ999"))
        car = await store.search("42")
        assert car.id == 42

    @pytest.mark.asyncio
    async def test_plate_match(self, store):
        await store.create_car(make_car(42, license_plate="XYZ999"))
        car = await store.search("  XYZ999 ")
        assert car.id == 42

    @pytest.mark.asyncio
    async def test_integer_term_falls_back_to_plate(self, store):
        """A numeric plate is still found when no car has that ID."""
        await store.create_car(make_car(5, license_plate="1234"))
        car = await store.search("1234")
        assert car.id == 5

    @pytest.mark.asyncio
    async def test_id_match_wins_over_plate(self, store):
        await store.create_car(make_car(8, license_plate="9"))
        await store.create_car(make_car(9, license_plate="AAA111"))
        car = await store.search("9")
        assert car.id == 9

    @pytest.mark.asyncio
    async def test_ambiguous_plate_returns_lowest_id(self, store):
        await store.create_car(make_car(20, license_plate="DUP1"))
        await store.create_car(make_car(10, license_plate="DUP1"))
        car = await store.search("DUP1")
        assert car.id == 10

    @pytest.mark.asyncio
    async def test_plate_match_is_exact(self, store):
        await store.create_car(make_car(1, license_plate="ABC123"))
        assert await store.search("abc123") is None
        assert await store.search("ABC") is None

    @pytest.mark.asyncio
    async def test_out_of_range_number_skips_id_lookup(self, store):
        await store.create_car(make_car(1, license_plate="X1"))
        assert await store.search("99999999999999999999") is None

    @pytest.mark.asyncio
    async def test_out_of_range_number_matches_plate(self, store):
        await store.create_car(make_car(3, license_plate="99999999999999999999"))
        car = await store.search("99999999999999999999")
        assert car.id == 3

    @pytest.mark.asyncio
    async def test_largest_id_is_searchable(self, store):
        await store.create_car(make_car(2**31 - 1, license_plate="MAXID"))
        car = await store.search(str(2**31 - 1))
        assert car.id == 2**31 - 1

    @pytest.mark.asyncio
    async def test_blank_term_returns_none(self, store):
        await store.create_car(make_car(1))
        assert await store.search("   ") is None


class TestGroupings:
    @pytest.mark.asyncio
    async def test_board_has_every_status(self, store, session_factory):
        await store.create_car(make_car(1))
        await store.create_car(make_car(2))
        await TransitionService(session_factory).apply_transition(2, CarStatus.DONE)

        board = await store.get_board()

        assert set(board) == set(CarStatus)
        assert [car.id for car in board[CarStatus.PRE_ARRIVAL]] == [1]
        assert [car.id for car in board[CarStatus.DONE]] == [2]
        assert board[CarStatus.ON_DECK] == []

    @pytest.mark.asyncio
    async def test_projector_groups(self, store, session_factory):
        service = TransitionService(session_factory)
        for car_id in (1, 2, 3, 4, 5):
            await store.create_car(make_car(car_id))
        await service.apply_transition(1, CarStatus.REGISTERED)
        await service.apply_transition(2, CarStatus.ON_DECK)
        await service.apply_transition(3, CarStatus.DONE)
        await service.apply_transition(4, CarStatus.PICKED_UP)

        in_progress, done = await store.get_projector_cars()

        assert [car.id for car in in_progress] == [1, 2]
        assert [car.id for car in done] == [3]

    @pytest.mark.asyncio
    async def test_statistics(self, store, session_factory):
        for car_id in (1, 2, 3):
            await store.create_car(make_car(car_id))
        await TransitionService(session_factory).apply_transition(3, CarStatus.ON_DECK)

        total, by_status = await store.get_statistics()

        assert total == 3
        assert by_status[CarStatus.PRE_ARRIVAL] == 2
        assert by_status[CarStatus.ON_DECK] == 1
        assert by_status[CarStatus.PICKED_UP] == 0


class TestAdministrativeWrites:
    @pytest.mark.asyncio
    async def test_update_details_leaves_status_alone(self, store, session_factory):
        await store.create_car(make_car(1))
        await TransitionService(session_factory).apply_transition(1, CarStatus.REGISTERED)

        car = await store.update_details(
            1, CarDetails(make="Honda", model="Civic", color=CarColor.RED, license_plate="NEW001")
        )

        assert (car.make, car.model, car.color, car.license_plate) == ("Honda", "Civic", "red", "NEW001")
        assert car.status == CarStatus.REGISTERED.value
        assert await _history_count(session_factory) == 1

    @pytest.mark.asyncio
    async def test_update_missing_car(self, store):
        with pytest.raises(CarNotFoundError):
            await store.update_details(
                99, CarDetails(make="Honda", model="Civic", color=CarColor.RED, license_plate="X")
            )

    @pytest.mark.asyncio
    async def test_delete_removes_history(self, store, session_factory):
        await store.create_car(make_car(1))
        await TransitionService(session_factory).apply_transition(1, CarStatus.REGISTERED)

        await store.delete_car(1)

        assert await store.get_by_id(1) is None
        assert await _history_count(session_factory) == 0

    @pytest.mark.asyncio
    async def test_delete_missing_car(self, store):
        with pytest.raises(CarNotFoundError):
            await store.delete_car(1)


class TestBulkImport:
    @pytest.mark.asyncio
    async def test_import_writes_no_history(self, store, session_factory):
        imported = await store.import_cars([make_car(1), make_car(2)])

        assert imported == 2
        assert all(car.status == CarStatus.PRE_ARRIVAL.value for car in await store.get_all())
        assert await _history_count(session_factory) == 0

    @pytest.mark.asyncio
    async def test_append_rejects_existing_id_and_imports_nothing(self, store):
        await store.create_car(make_car(1))

        with pytest.raises(DuplicateCarError):
            await store.import_cars([make_car(2), make_car(1)])

        assert [car.id for car in await store.get_all()] == [1]

    @pytest.mark.asyncio
    async def test_duplicate_within_batch(self, store):
        with pytest.raises(DuplicateCarError):
            await store.import_cars([make_car(3), make_car(3)])
        assert await store.get_all() == []

    @pytest.mark.asyncio
    async def test_replace_wipes_cars_and_history(self, store, session_factory):
        await store.create_car(make_car(1))
        await TransitionService(session_factory).apply_transition(1, CarStatus.REGISTERED)

        await store.import_cars([make_car(1), make_car(5)], mode="replace")

        cars = await store.get_all()
        assert [car.id for car in cars] == [1, 5]
        assert cars[0].status == CarStatus.PRE_ARRIVAL.value
        assert await _history_count(session_factory) == 0
