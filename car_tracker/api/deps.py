"""FastAPI dependencies for the car tracker services.

The broadcast hub lives on app.state (created in the lifespan). Services are
cheap wrappers around the shared session factory and are built per request.
Tests replace any of these through app.dependency_overrides.
"""

from fastapi import Request, WebSocket

from car_tracker.db.base import get_session_factory
from car_tracker.services.broadcast_hub import BroadcastHub
from car_tracker.services.car_store import CarStore
from car_tracker.services.status_history import StatusHistoryLedger
from car_tracker.services.transition_service import TransitionService


def get_hub(request: Request) -> BroadcastHub:
    return request.app.state.broadcast_hub


def get_ws_hub(websocket: WebSocket) -> BroadcastHub:
    return websocket.app.state.broadcast_hub


def get_car_store() -> CarStore:
    return CarStore(get_session_factory())


def get_history_ledger() -> StatusHistoryLedger:
    return StatusHistoryLedger(get_session_factory())


def get_transition_service(request: Request) -> TransitionService:
    return TransitionService(get_session_factory(), get_hub(request))
