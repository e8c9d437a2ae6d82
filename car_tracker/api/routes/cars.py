"""Car registry, lookup, and the transition trigger."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response

from car_tracker.api.deps import get_car_store, get_history_ledger, get_transition_service
from car_tracker.core.exceptions import CarNotFoundError, DuplicateCarError, StorageError
from car_tracker.domain.stages import MAX_CAR_ID, CarStatus, suggested_transitions
from car_tracker.schemas.cars import (
    BoardResponse,
    CarCreate,
    CarDetails,
    CarImportRequest,
    CarImportResponse,
    CarResponse,
    HistoryEntryResponse,
    StatisticsResponse,
    StatusActionResponse,
    StatusActionsResponse,
    StatusChangeRequest,
)
from car_tracker.services.car_store import CarStore
from car_tracker.services.status_history import StatusHistoryLedger
from car_tracker.services.transition_service import TransitionService

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("", response_model=list[CarResponse])
async def list_cars(
    status: CarStatus | None = Query(None),
    store: CarStore = Depends(get_car_store),
):
    """List all cars ordered by ID, optionally restricted to one status."""
    if status is not None:
        return await store.get_all_by_status(status)
    return await store.get_all()


@router.get("/board", response_model=BoardResponse)
async def get_board(store: CarStore = Depends(get_car_store)):
    """All cars grouped by status for the admin board."""
    board = await store.get_board()
    return BoardResponse(
        cars_by_status={
            status: [CarResponse.model_validate(car) for car in cars] for status, cars in board.items()
        }
    )


@router.get("/search", response_model=CarResponse)
async def search_cars(
    term: str = Query(..., min_length=1, max_length=50),
    store: CarStore = Depends(get_car_store),
):
    """Find a car by ID or exact license plate."""
    car = await store.search(term)
    if car is None:
        raise HTTPException(status_code=404, detail=f"No car found for '{term.strip()}'")
    return car


@router.get("/statistics", response_model=StatisticsResponse)
async def get_statistics(store: CarStore = Depends(get_car_store)):
    total, by_status = await store.get_statistics()
    return StatisticsResponse(total=total, by_status=by_status)


@router.post("/import", response_model=CarImportResponse)
async def import_cars(
    request: CarImportRequest,
    store: CarStore = Depends(get_car_store),
):
    """Bulk load cars for pre-event seeding.

    Cars land in PRE_ARRIVAL without history entries and without a broadcast.
    """
    try:
        imported = await store.import_cars(request.cars, mode=request.mode)
    except DuplicateCarError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StorageError:
        raise HTTPException(status_code=500, detail="Failed to import cars")
    return CarImportResponse(mode=request.mode, imported=imported)


@router.post("", status_code=201, response_model=CarResponse)
async def create_car(
    request: CarCreate,
    store: CarStore = Depends(get_car_store),
):
    """Manually register a car in PRE_ARRIVAL."""
    try:
        return await store.create_car(request)
    except DuplicateCarError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StorageError:
        raise HTTPException(status_code=500, detail="Failed to register car")


@router.get("/{car_id}", response_model=CarResponse)
async def get_car(
    car_id: int = Path(..., gt=0, le=MAX_CAR_ID),
    store: CarStore = Depends(get_car_store),
):
    car = await store.get_by_id(car_id)
    if car is None:
        raise CarNotFoundError(car_id)
    return car


@router.patch("/{car_id}", response_model=CarResponse)
async def update_car(
    request: CarDetails,
    car_id: int = Path(..., gt=0, le=MAX_CAR_ID),
    store: CarStore = Depends(get_car_store),
):
    """Edit make, model, color and plate. Never changes status, never broadcasts."""
    try:
        return await store.update_details(car_id, request)
    except StorageError:
        raise HTTPException(status_code=500, detail="Failed to update car")


@router.delete("/{car_id}", status_code=204)
async def delete_car(
    car_id: int = Path(..., gt=0, le=MAX_CAR_ID),
    store: CarStore = Depends(get_car_store),
):
    """Administrative delete. History goes with the car."""
    try:
        await store.delete_car(car_id)
    except StorageError:
        raise HTTPException(status_code=500, detail="Failed to delete car")
    return Response(status_code=204)


@router.post("/{car_id}/status", response_model=CarResponse)
async def change_status(
    request: StatusChangeRequest,
    car_id: int = Path(..., gt=0, le=MAX_CAR_ID),
    service: TransitionService = Depends(get_transition_service),
):
    """Transition trigger: move a car to any stage.

    Responds once the change is committed. Observers are notified in the
    background; delivery never holds up this response.
    """
    try:
        return await service.apply_transition(car_id, request.target_status)
    except StorageError:
        raise HTTPException(status_code=500, detail="Failed to update car status")


@router.get("/{car_id}/history", response_model=list[HistoryEntryResponse])
async def get_history(
    car_id: int = Path(..., gt=0, le=MAX_CAR_ID),
    store: CarStore = Depends(get_car_store),
    ledger: StatusHistoryLedger = Depends(get_history_ledger),
):
    """Status history for one car, newest first."""
    if await store.get_by_id(car_id) is None:
        raise CarNotFoundError(car_id)
    return await ledger.get_history(car_id)


@router.get("/{car_id}/actions", response_model=StatusActionsResponse)
async def get_actions(
    car_id: int = Path(..., gt=0, le=MAX_CAR_ID),
    store: CarStore = Depends(get_car_store),
):
    """Suggested next stages for the operator screen. Advisory only."""
    car = await store.get_by_id(car_id)
    if car is None:
        raise CarNotFoundError(car_id)

    current = CarStatus(car.status)
    actions = suggested_transitions(current)
    return StatusActionsResponse(
        current_status=current,
        primary=(
            StatusActionResponse(target_status=actions.primary.target_status, label=actions.primary.label)
            if actions.primary is not None
            else None
        ),
        secondary=[
            StatusActionResponse(target_status=action.target_status, label=action.label)
            for action in actions.secondary
        ],
    )
