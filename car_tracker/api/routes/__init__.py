from fastapi import APIRouter

from car_tracker.api.routes import analytics, cars, health, projector, updates

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(updates.router, tags=["updates"])
api_router.include_router(cars.router, prefix="/cars", tags=["cars"])
api_router.include_router(projector.router, prefix="/projector", tags=["projector"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
