"""Re-export all models so Base.metadata sees them."""

from car_tracker.db.models.car import Car
from car_tracker.db.models.status_history import StatusHistory

__all__ = [
    "Car",
    "StatusHistory",
]
