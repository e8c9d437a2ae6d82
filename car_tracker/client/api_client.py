"""HTTP client for the car tracker API.

Used by observers to re-pull authoritative state after an update signal and
by operator tooling to trigger transitions. Reads are retried on transient
transport errors; the transition trigger is not, since a retried POST after
a lost response would append a second history entry.
"""

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from car_tracker.domain.stages import CarStatus
from car_tracker.schemas.cars import CarResponse, ProjectorResponse, StatisticsResponse

logger = structlog.get_logger(__name__)

_TRANSIENT_ERRORS = (httpx.ConnectError, httpx.ReadTimeout, httpx.RemoteProtocolError)

_read_retry = retry(
    retry=retry_if_exception_type(_TRANSIENT_ERRORS),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    reraise=True,
    before_sleep=lambda rs: logger.warning(
        "api_request_retrying",
        attempt=rs.attempt_number,
        sleep_seconds=rs.next_action.sleep,
        error=str(rs.outcome.exception()),
    ),
)


class CarTrackerClient:
    """Thin async wrapper over the /api routes.

    Usage:
        async with CarTrackerClient("http://localhost:8000") as client:
            projector = await client.get_projector()
    """

    def __init__(self, base_url: str, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "CarTrackerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @_read_retry
    async def get_car(self, car_id: int) -> CarResponse | None:
        response = await self._client.get(f"/api/cars/{car_id}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return CarResponse.model_validate(response.json())

    @_read_retry
    async def list_cars(self, status: CarStatus | None = None) -> list[CarResponse]:
        params = {"status": status.value} if status is not None else None
        response = await self._client.get("/api/cars", params=params)
        response.raise_for_status()
        return [CarResponse.model_validate(item) for item in response.json()]

    @_read_retry
    async def search(self, term: str) -> CarResponse | None:
        response = await self._client.get("/api/cars/search", params={"term": term})
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return CarResponse.model_validate(response.json())

    @_read_retry
    async def get_projector(self) -> ProjectorResponse:
        response = await self._client.get("/api/projector")
        response.raise_for_status()
        return ProjectorResponse.model_validate(response.json())

    @_read_retry
    async def get_statistics(self) -> StatisticsResponse:
        response = await self._client.get("/api/cars/statistics")
        response.raise_for_status()
        return StatisticsResponse.model_validate(response.json())

    async def transition(self, car_id: int, target_status: CarStatus) -> CarResponse:
        """Move a car to target_status.

        Raises:
            httpx.HTTPStatusError: 404 for an unknown car, 422 for a bad status
        """
        response = await self._client.post(
            f"/api/cars/{car_id}/status",
            json={"targetStatus": target_status.value},
        )
        response.raise_for_status()
        return CarResponse.model_validate(response.json())
