"""Pydantic schemas for car registration, lookup, transitions, and reporting."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from car_tracker.domain.stages import MAX_CAR_ID, CarColor, CarStatus


class CarDetails(BaseModel):
    """Descriptive attributes shared by registration and edit forms."""

    model_config = ConfigDict(str_strip_whitespace=True)

    make: str = Field(..., min_length=1, max_length=50)
    model: str = Field(..., min_length=1, max_length=50)
    color: CarColor
    license_plate: str = Field(..., min_length=1, max_length=20)


class CarCreate(CarDetails):
    """Manual registration with an externally assigned ID."""

    id: int = Field(..., gt=0, le=MAX_CAR_ID)


class CarResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    make: str
    model: str
    color: str
    license_plate: str
    status: CarStatus
    created_at: datetime
    registered_at: datetime | None = None
    on_deck_at: datetime | None = None
    completed_at: datetime | None = None
    picked_up_at: datetime | None = None


class StatusChangeRequest(BaseModel):
    """Transition trigger body: {"targetStatus": "ON_DECK"}."""

    model_config = ConfigDict(populate_by_name=True)

    target_status: CarStatus = Field(..., alias="targetStatus")


class HistoryEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    car_id: int
    previous_status: str | None = None
    new_status: str
    changed_at: datetime


class StatusActionResponse(BaseModel):
    target_status: CarStatus
    label: str


class StatusActionsResponse(BaseModel):
    current_status: CarStatus
    primary: StatusActionResponse | None = None
    secondary: list[StatusActionResponse] = Field(default_factory=list)


class BoardResponse(BaseModel):
    """All cars grouped by status; every status key is always present."""

    cars_by_status: dict[CarStatus, list[CarResponse]]


class ProjectorResponse(BaseModel):
    in_progress_cars: list[CarResponse] = Field(default_factory=list)
    done_cars: list[CarResponse] = Field(default_factory=list)


class StatisticsResponse(BaseModel):
    total: int = 0
    by_status: dict[CarStatus, int]


class DurationStats(BaseModel):
    """Time spent per stage, in minutes."""

    count: int = 0
    min: float = 0.0
    max: float = 0.0
    avg: float = 0.0


class DurationAnalyticsResponse(BaseModel):
    stages: dict[CarStatus, DurationStats]


class CarImportRequest(BaseModel):
    mode: Literal["append", "replace"] = "append"
    cars: list[CarCreate] = Field(..., min_length=1)


class CarImportResponse(BaseModel):
    mode: Literal["append", "replace"]
    imported: int
