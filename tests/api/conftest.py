"""API-specific test fixtures."""

from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient


@pytest.fixture
def api_client(tmp_path):
    """FastAPI test client backed by a throwaway SQLite file.

    The database and the broadcast hub are created inside the TestClient's
    own event loop so route handlers and WebSocket handlers share them.
    """
    import car_tracker.db.base as db_mod
    from car_tracker.api.routes import api_router
    from car_tracker.core.exceptions import CarNotFoundError
    from car_tracker.db import close_db, init_db
    from car_tracker.main import (
        car_not_found_handler,
        generic_exception_handler,
        http_exception_handler,
    )
    from car_tracker.middleware.correlation import setup_correlation_middleware
    from car_tracker.services.broadcast_hub import BroadcastHub

    db_url = f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"

    @asynccontextmanager
    async def test_lifespan(app: FastAPI):
        db_mod._engine = None
        db_mod._session_factory = None
        await init_db(db_url)
        hub = BroadcastHub()
        await hub.start()
        app.state.shutting_down = False
        app.state.broadcast_hub = hub
        yield
        await hub.stop()
        await close_db()

    app = FastAPI(title="Car Tracker - Test Client", lifespan=test_lifespan)
    setup_correlation_middleware(app)
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(CarNotFoundError)(car_not_found_handler)
    app.exception_handler(Exception)(generic_exception_handler)
    app.include_router(api_router, prefix="/api")

    with TestClient(app) as client:
        yield client


def register(client: TestClient, car_id: int, plate: str | None = None, **overrides) -> dict:
    body = {
        "id": car_id,
        "make": "Subaru",
        "model": "Outback",
        "color": "blue",
        "license_plate": plate or f"CAR{car_id:04d}",
    }
    body.update(overrides)
    response = client.post("/api/cars", json=body)
    assert response.status_code == 201, response.text
    return response.json()
