from fastapi import APIRouter, Depends

from car_tracker.api.deps import get_car_store
from car_tracker.schemas.cars import CarResponse, ProjectorResponse
from car_tracker.services.car_store import CarStore

router = APIRouter()


@router.get("", response_model=ProjectorResponse)
async def get_projector(store: CarStore = Depends(get_car_store)):
    """Public display: cars in progress (registered or on deck) and cars ready for pickup."""
    in_progress, done = await store.get_projector_cars()
    return ProjectorResponse(
        in_progress_cars=[CarResponse.model_validate(car) for car in in_progress],
        done_cars=[CarResponse.model_validate(car) for car in done],
    )
