"""Car model: tracked vehicles and their first-arrival stage timestamps."""

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String

from car_tracker.db.base import Base
from car_tracker.domain.stages import CarStatus

_STATUS_VALUES = ", ".join(f"'{status.value}'" for status in CarStatus)


class Car(Base):
    __tablename__ = "cars"
    __table_args__ = (
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_cars_status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=False)  # externally assigned

    make = Column(String(50), nullable=False)
    model = Column(String(50), nullable=False)
    color = Column(String(30), nullable=False)
    license_plate = Column(String(20), nullable=False, index=True)

    status = Column(String(20), nullable=False, default=CarStatus.PRE_ARRIVAL.value, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    # Set on first arrival only, never cleared
    registered_at = Column(DateTime(timezone=True), nullable=True)
    on_deck_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    picked_up_at = Column(DateTime(timezone=True), nullable=True)
