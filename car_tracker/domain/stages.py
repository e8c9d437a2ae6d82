"""Car status enum, colors, and next-stage suggestions.

Pure domain logic with no external dependencies. The service layer performs
unconditional stage replacement; nothing here restricts which status a car may
move to. Ordering and suggestions exist only for display and operator guidance.
"""
from dataclasses import dataclass, field
from enum import Enum


class CarStatus(str, Enum):
    """Service stages in pipeline order."""

    PRE_ARRIVAL = "PRE_ARRIVAL"
    REGISTERED = "REGISTERED"
    ON_DECK = "ON_DECK"
    DONE = "DONE"
    PICKED_UP = "PICKED_UP"

    @property
    def order(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = list(CarStatus)


class CarColor(str, Enum):
    WHITE = "white"
    BLACK = "black"
    GRAY = "gray"
    SILVER = "silver"
    BLUE = "blue"
    RED = "red"
    GREEN = "green"
    BROWN = "brown"
    ORANGE = "orange"
    GOLD = "gold"
    PURPLE = "purple"
    YELLOW = "yellow"


VALID_CAR_COLORS: tuple[str, ...] = tuple(color.value for color in CarColor)

# Car IDs are stored in a 32-bit signed INTEGER column
MAX_CAR_ID = 2**31 - 1

# Column recording the first arrival at each stage. PRE_ARRIVAL has none.
STAGE_TIMESTAMP_FIELDS: dict[CarStatus, str] = {
    CarStatus.REGISTERED: "registered_at",
    CarStatus.ON_DECK: "on_deck_at",
    CarStatus.DONE: "completed_at",
    CarStatus.PICKED_UP: "picked_up_at",
}

# Stages measured by duration analytics (boundary stages excluded)
MEASURED_STAGES: tuple[CarStatus, ...] = (
    CarStatus.REGISTERED,
    CarStatus.ON_DECK,
    CarStatus.DONE,
)

# Stages shown on the public projector board
PROJECTOR_IN_PROGRESS: tuple[CarStatus, ...] = (CarStatus.REGISTERED, CarStatus.ON_DECK)
PROJECTOR_DONE: tuple[CarStatus, ...] = (CarStatus.DONE,)


def timestamp_field_for(status: CarStatus) -> str | None:
    """Return the first-arrival timestamp column for a status, if it has one."""
    return STAGE_TIMESTAMP_FIELDS.get(status)


def is_valid_car_color(color: str) -> bool:
    return color in VALID_CAR_COLORS


@dataclass(frozen=True)
class StatusDisplay:
    title: str
    description: str


STATUS_DISPLAY: dict[CarStatus, StatusDisplay] = {
    CarStatus.PRE_ARRIVAL: StatusDisplay("Pre-Arrival", "Waiting to arrive"),
    CarStatus.REGISTERED: StatusDisplay("Registered", "Arrived and registered"),
    CarStatus.ON_DECK: StatusDisplay("On Deck", "Being serviced"),
    CarStatus.DONE: StatusDisplay("Ready for Pickup", "Service complete"),
    CarStatus.PICKED_UP: StatusDisplay("Picked Up", "Collected by owner"),
}


@dataclass(frozen=True)
class StatusAction:
    """One suggested move from the current stage."""

    target_status: CarStatus
    label: str


@dataclass(frozen=True)
class StatusActions:
    """Suggested transitions: one primary (or none) and the rest as secondary."""

    primary: StatusAction | None
    secondary: list[StatusAction] = field(default_factory=list)


def _action_label(current: CarStatus, target: CarStatus) -> str:
    title = STATUS_DISPLAY[target].title
    if target == CarStatus.PICKED_UP and current == CarStatus.DONE:
        return "Mark as Picked Up"
    if target.order == current.order + 1:
        return f"Move to {title}"
    if target.order > current.order:
        return f"Skip to {title}"
    return f"Return to {title}"


def suggested_transitions(current: CarStatus) -> StatusActions:
    """Suggest the next stage (primary) and every other stage (secondary).

    Pure function with no DB access. The primary suggestion is
    the next stage in pipeline order; PICKED_UP has no primary. Secondary
    suggestions list all remaining stages in pipeline order.

    Args:
        current: Current status of the car

    Returns:
        StatusActions with primary and secondary suggestions
    """
    next_order = current.order + 1
    primary_target = _STATUS_ORDER[next_order] if next_order < len(_STATUS_ORDER) else None

    primary = (
        StatusAction(primary_target, _action_label(current, primary_target))
        if primary_target is not None
        else None
    )
    secondary = [
        StatusAction(target, _action_label(current, target))
        for target in _STATUS_ORDER
        if target not in (current, primary_target)
    ]
    return StatusActions(primary=primary, secondary=secondary)
