"""Wire format for car status update broadcasts.

Envelope pushed to every observer connection:

    {"type": "car_status_update",
     "data": {"carId": 12, "oldStatus": "REGISTERED", "newStatus": "ON_DECK",
              "timestamp": "2025-05-17T14:03:22.120000+00:00"}}

The payload is a wake-up signal for observers, not state to merge.
"""

import json
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from car_tracker.domain.stages import CarStatus

UPDATE_MESSAGE_TYPE = "car_status_update"

# Sent as oldStatus when the prior status could not be determined
UNKNOWN_STATUS = "UNKNOWN"

_OLD_STATUS_VALUES = {status.value for status in CarStatus} | {UNKNOWN_STATUS}


class CarStatusUpdate(BaseModel):
    """Ephemeral transition event. Never persisted."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    car_id: int = Field(..., alias="carId", gt=0, strict=True)
    old_status: str = Field(..., alias="oldStatus")
    new_status: CarStatus = Field(..., alias="newStatus")
    timestamp: datetime

    @field_validator("timestamp", mode="before")
    @classmethod
    def _iso_timestamp(cls, value: Any) -> Any:
        # Wire form is ISO-8601 text; epoch numbers are rejected
        if isinstance(value, datetime):
            return value
        if not isinstance(value, str):
            raise ValueError("timestamp must be an ISO-8601 string")
        return datetime.fromisoformat(value)

    @field_validator("old_status")
    @classmethod
    def _known_old_status(cls, value: str) -> str:
        if value not in _OLD_STATUS_VALUES:
            raise ValueError(f"oldStatus must be a car status or {UNKNOWN_STATUS}")
        return value


class CarUpdateMessage(BaseModel):
    """Typed envelope around a CarStatusUpdate."""

    model_config = ConfigDict(frozen=True)

    type: Literal["car_status_update"]
    data: CarStatusUpdate


def build_update(
    car_id: int,
    old_status: CarStatus | str | None,
    new_status: CarStatus,
    now: datetime | None = None,
) -> CarStatusUpdate:
    """Construct the update for a committed transition.

    Args:
        car_id: Car that changed
        old_status: Status before the change (None maps to the UNKNOWN sentinel)
        new_status: Status after the change
        now: Current time (for deterministic testing)
    """
    if old_status is None:
        old_value = UNKNOWN_STATUS
    else:
        old_value = old_status.value if isinstance(old_status, CarStatus) else old_status
    return CarStatusUpdate(
        car_id=car_id,
        old_status=old_value,
        new_status=new_status,
        timestamp=now or datetime.now(UTC),
    )


def serialize_update_message(update: CarStatusUpdate) -> str:
    """Serialize an update into the JSON envelope sent to observers."""
    message = CarUpdateMessage(type=UPDATE_MESSAGE_TYPE, data=update)
    return message.model_dump_json(by_alias=True)


def parse_update_message(raw: str | bytes | dict[str, Any]) -> CarStatusUpdate | None:
    """Validate an inbound envelope.

    Returns None for invalid JSON, a different ``type``, or ``data`` failing
    validation. Callers decide how to log the rejection.
    """
    try:
        payload = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        return CarUpdateMessage.model_validate(payload).data
    except (ValueError, ValidationError):
        return None
