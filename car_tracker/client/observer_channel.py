"""Observer channel: one persistent WebSocket to /api/car-updates per client.

State machine:
    CONNECTING -> OPEN -> CLOSED_CLEAN                         (stop)
    CONNECTING -> OPEN -> CLOSED_ERROR -> RECONNECT_SCHEDULED -> CONNECTING ...
    CONNECTING -> CLOSED_ERROR -> RECONNECT_SCHEDULED -> ...   (connect failed)

Close code 1000 (or an explicit close()) is a clean close and ends the loop.
Any other close code, a dropped connection or a failed handshake schedules a
reconnect after a fixed delay. The delay is constant because the observer
count per event is small.

Many subscribers share one socket. Each registers a callback with an optional
UpdateInterest; callbacks may be plain functions or coroutines.
"""

import asyncio
import enum
import inspect
import itertools
import time
from collections.abc import Callable

import structlog
import websockets
from tenacity import AsyncRetrying, retry_if_exception_type, wait_fixed
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from car_tracker.client.reconciliation import UpdateInterest
from car_tracker.schemas.updates import CarStatusUpdate, parse_update_message

logger = structlog.get_logger(__name__)

CLEAN_CLOSE_CODE = 1000
ABNORMAL_CLOSE_CODE = 1006
CLIENT_CLOSE_REASON = "User disconnected"

UpdateCallback = Callable[[CarStatusUpdate], object]
OpenCallback = Callable[[], object]


class ChannelState(str, enum.Enum):
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSED_CLEAN = "CLOSED_CLEAN"
    CLOSED_ERROR = "CLOSED_ERROR"
    RECONNECT_SCHEDULED = "RECONNECT_SCHEDULED"


# What a UI shows for each internal state
_CONNECTION_STATUS = {
    ChannelState.CONNECTING: "connecting",
    ChannelState.OPEN: "connected",
    ChannelState.CLOSED_ERROR: "reconnecting",
    ChannelState.RECONNECT_SCHEDULED: "reconnecting",
    ChannelState.CLOSED_CLEAN: "disconnected",
}


class ChannelDropped(Exception):
    """The connection ended abnormally or could not be established."""

    def __init__(self, code: int, reason: str = ""):
        self.code = code
        self.reason = reason
        super().__init__(f"Channel dropped (code={code}): {reason}")


def _close_code(exc: ConnectionClosed) -> tuple[int, str]:
    frame = exc.rcvd or exc.sent
    if frame is None:
        return ABNORMAL_CLOSE_CODE, ""
    return frame.code, frame.reason


class CarUpdatesChannel:
    """Auto-reconnecting subscription to live car status updates.

    Args:
        url: WebSocket URL of the subscription endpoint
        connect: Coroutine factory returning a connection with recv()/close()
            (websockets.connect by default, replaced in tests)
        reconnect_delay: Fixed seconds between a drop and the next attempt
        disconnect_grace: Seconds of disconnection before UIs should show an indicator
    """

    def __init__(
        self,
        url: str,
        connect: Callable = websockets.connect,
        reconnect_delay: float = 3.0,
        disconnect_grace: float = 10.0,
    ):
        self.url = url
        self._connect = connect
        self.reconnect_delay = reconnect_delay
        self.disconnect_grace = disconnect_grace

        self.state = ChannelState.CLOSED_CLEAN
        self.connect_attempts = 0
        self._connection = None
        self._task: asyncio.Task | None = None
        self._closing = False
        self._disconnected_since: float | None = None

        self._ids = itertools.count(1)
        self._subscribers: dict[int, tuple[UpdateCallback, UpdateInterest | None]] = {}
        self._open_listeners: dict[int, OpenCallback] = {}

        self._log = logger.bind(url=url)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def connection_status(self) -> str:
        return _CONNECTION_STATUS[self.state]

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def should_show_disconnected_indicator(self, now: float | None = None) -> bool:
        """True once the channel has been down longer than the grace period.

        Short blips during reconnect stay invisible to users.
        """
        if self._disconnected_since is None:
            return False
        now = time.monotonic() if now is None else now
        return now - self._disconnected_since >= self.disconnect_grace

    def _set_state(self, state: ChannelState) -> None:
        self.state = state
        if state in (ChannelState.OPEN, ChannelState.CLOSED_CLEAN):
            self._disconnected_since = None
        elif self._disconnected_since is None:
            self._disconnected_since = time.monotonic()

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def subscribe(self, callback: UpdateCallback, interest: UpdateInterest | None = None) -> Callable[[], None]:
        """Register a callback for updates matching interest (all updates if None).

        Returns:
            Unsubscribe callable. Removes only this callback; the socket stays open.
        """
        token = next(self._ids)
        self._subscribers[token] = (callback, interest)

        def unsubscribe() -> None:
            self._subscribers.pop(token, None)

        return unsubscribe

    def on_open(self, callback: OpenCallback) -> Callable[[], None]:
        """Register a callback run every time the socket (re)opens."""
        token = next(self._ids)
        self._open_listeners[token] = callback

        def remove() -> None:
            self._open_listeners.pop(token, None)

        return remove

    async def _invoke(self, callback: Callable, *args) -> None:
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            self._log.warning(
                "observer_channel_subscriber_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def dispatch(self, raw: str | bytes) -> int:
        """Validate one inbound message and hand it to matching subscribers.

        Malformed messages are logged and dropped; the socket stays up.

        Returns:
            Number of subscribers notified
        """
        update = parse_update_message(raw)
        if update is None:
            self._log.warning("observer_channel_malformed_message", preview=str(raw)[:120])
            return 0

        targets = [
            callback
            for callback, interest in list(self._subscribers.values())
            if interest is None or interest.matches(update)
        ]
        for callback in targets:
            await self._invoke(callback, update)
        return len(targets)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> asyncio.Task:
        """Begin connecting in the background. Calling twice is a no-op."""
        if self._task is None or self._task.done():
            self._closing = False
            self._task = asyncio.create_task(self._run())
        return self._task

    async def close(self) -> None:
        """Intentional teardown: close with code 1000 and never reconnect."""
        self._closing = True
        connection = self._connection
        if connection is not None:
            try:
                await connection.close(code=CLEAN_CLOSE_CODE, reason=CLIENT_CLOSE_REASON)
            except Exception as exc:
                self._log.debug("observer_channel_close_failed", error=str(exc))

        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._connection = None
        self._set_state(ChannelState.CLOSED_CLEAN)
        self._log.info("observer_channel_closed", code=CLEAN_CLOSE_CODE)

    async def _run(self) -> None:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(ChannelDropped),
            wait=wait_fixed(self.reconnect_delay),
            before_sleep=self._schedule_reconnect,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                await self._connect_once()

    def _schedule_reconnect(self, retry_state) -> None:
        self._set_state(ChannelState.RECONNECT_SCHEDULED)
        exc = retry_state.outcome.exception()
        self._log.warning(
            "observer_channel_reconnect_scheduled",
            attempt=retry_state.attempt_number,
            delay_seconds=retry_state.next_action.sleep,
            close_code=getattr(exc, "code", None),
        )

    async def _connect_once(self) -> None:
        """One connection lifetime. Returns on clean close, raises ChannelDropped otherwise."""
        if self._closing:
            return

        self._set_state(ChannelState.CONNECTING)
        self.connect_attempts += 1
        try:
            connection = await self._connect(self.url)
        except (OSError, InvalidHandshake, asyncio.TimeoutError) as exc:
            self._set_state(ChannelState.CLOSED_ERROR)
            self._log.warning("observer_channel_connect_failed", error=str(exc), error_type=type(exc).__name__)
            raise ChannelDropped(ABNORMAL_CLOSE_CODE, str(exc)) from exc

        self._connection = connection
        self._set_state(ChannelState.OPEN)
        self._log.info("observer_channel_open", attempt=self.connect_attempts)
        for callback in list(self._open_listeners.values()):
            await self._invoke(callback)

        try:
            while True:
                raw = await connection.recv()
                await self.dispatch(raw)
        except ConnectionClosed as exc:
            code, reason = _close_code(exc)
        finally:
            self._connection = None

        if self._closing or code == CLEAN_CLOSE_CODE:
            self._set_state(ChannelState.CLOSED_CLEAN)
            self._log.info("observer_channel_closed", code=code, reason=reason)
            return

        self._set_state(ChannelState.CLOSED_ERROR)
        self._log.warning("observer_channel_dropped", code=code, reason=reason)
        raise ChannelDropped(code, reason)
