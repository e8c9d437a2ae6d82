from fastapi import APIRouter, Depends

from car_tracker.api.deps import get_history_ledger
from car_tracker.schemas.cars import DurationAnalyticsResponse
from car_tracker.services.status_history import StatusHistoryLedger

router = APIRouter()


@router.get("/durations", response_model=DurationAnalyticsResponse)
async def get_durations(ledger: StatusHistoryLedger = Depends(get_history_ledger)):
    """Per-stage time statistics in minutes, computed from status history."""
    return DurationAnalyticsResponse(stages=await ledger.get_aggregate_durations())
