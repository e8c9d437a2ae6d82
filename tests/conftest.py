"""Shared test fixtures for all test groups."""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from car_tracker.db.base import create_engine, create_tables
from car_tracker.domain.stages import CarColor
from car_tracker.schemas.cars import CarCreate
from car_tracker.services.broadcast_hub import BroadcastHub
from car_tracker.services.car_store import CarStore


class FakeChannel:
    """Observer channel double that records frames or fails on send."""

    def __init__(self, channel_id: str, fail: bool = False):
        self.channel_id = channel_id
        self.fail = fail
        self.sent: list[str] = []

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("socket already closed")
        self.sent.append(data)


def make_car(car_id: int, license_plate: str | None = None, **overrides) -> CarCreate:
    fields = {
        "id": car_id,
        "make": "Toyota",
        "model": "Camry",
        "color": CarColor.WHITE,
        "license_plate": license_plate or f"PLT{car_id:04d}",
    }
    fields.update(overrides)
    return CarCreate(**fields)


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_engine("sqlite+aiosqlite://")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def store(session_factory) -> CarStore:
    return CarStore(session_factory)


@pytest_asyncio.fixture
async def hub():
    """In-process hub (no Redis relay), stopped after the test."""
    hub = BroadcastHub()
    await hub.start()
    yield hub
    await hub.stop()
