"""StatusHistory model: append-only audit log of car status transitions."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String

from car_tracker.db.base import Base


class StatusHistory(Base):
    __tablename__ = "status_history"
    __table_args__ = (
        Index("idx_status_history_car_status", "car_id", "new_status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    car_id = Column(Integer, ForeignKey("cars.id", ondelete="CASCADE"), nullable=False, index=True)

    previous_status = Column(String(20), nullable=True)  # null only for a synthesized first entry
    new_status = Column(String(20), nullable=False, index=True)

    changed_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True)
    # No updated_at; entries are immutable
