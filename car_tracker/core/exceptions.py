class CarTrackerError(Exception):
    """Base exception for Car Tracker application."""

    pass


class CarNotFoundError(CarTrackerError):
    """Raised when a referenced car does not exist."""

    def __init__(self, car_id: int):
        self.car_id = car_id
        super().__init__(f"Car {car_id} not found")


class DuplicateCarError(CarTrackerError):
    """Raised when registering a car whose ID is already taken."""

    def __init__(self, car_id: int):
        self.car_id = car_id
        super().__init__(f"Car with ID {car_id} already exists")


class CarValidationError(CarTrackerError):
    """Raised when car input fails validation.

    Carries field-level errors as a mapping of field name to messages.
    """

    def __init__(self, field_errors: dict[str, list[str]]):
        self.field_errors = field_errors
        super().__init__("; ".join(f"{field}: {', '.join(msgs)}" for field, msgs in field_errors.items()))


class StorageError(CarTrackerError):
    """Raised when a durable write fails. Nothing from the unit of work persists."""

    pass


class BroadcastDeliveryError(CarTrackerError):
    """Raised when pushing an update to one observer fails.

    Always handled inside the broadcast hub; never reaches transition callers.
    """

    def __init__(self, channel_id: str, reason: str):
        self.channel_id = channel_id
        self.reason = reason
        super().__init__(f"Delivery to channel {channel_id} failed: {reason}")
