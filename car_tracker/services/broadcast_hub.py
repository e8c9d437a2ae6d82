"""BroadcastHub: process-wide fan-out of car status updates to live observers.

The hub holds the set of currently connected observer channels (WebSockets)
and pushes every CarStatusUpdate to all of them. It keeps no queue and no
history: an update published while nobody is connected is simply dropped,
because observers re-pull state from the database when they (re)connect.

Relay mode:
    When constructed with a Redis client, notify() publishes the envelope to
    the Redis Pub/Sub channel named after the hub ("car-updates") and every
    process's hub fans out what arrives on its subscription. This lets several
    uvicorn workers act as one logical hub. Without Redis, notify() fans out
    in-process directly.

Usage:
    hub = BroadcastHub()
    await hub.start()
    await hub.register(websocket)
    hub.notify(update)          # fire-and-forget from the request path
    await hub.unregister(websocket)
    await hub.stop()
"""

import asyncio
from typing import Any, Protocol

import structlog

from car_tracker.core.exceptions import BroadcastDeliveryError
from car_tracker.schemas.updates import CarStatusUpdate, parse_update_message, serialize_update_message

logger = structlog.get_logger(__name__)

# Well-known hub address (also the Redis Pub/Sub channel in relay mode)
DEFAULT_HUB_NAME = "car-updates"

_RELAY_POLL_TIMEOUT = 1.0  # seconds for get_message blocking poll
_RELAY_ERROR_BACKOFF = 1.0  # seconds to wait after a relay read failure


class ObserverChannel(Protocol):
    """Anything the hub can push text frames to (Starlette WebSocket fits)."""

    async def send_text(self, data: str) -> None: ...


def _channel_id(channel: Any) -> str:
    return str(getattr(channel, "channel_id", None) or hex(id(channel)))


class BroadcastHub:
    """Concurrency-safe registry of observer channels with best-effort fan-out.

    register/unregister/broadcast may run concurrently from independent request
    handlers. Membership changes are serialized by an asyncio.Lock and broadcast
    iterates over a snapshot, so a channel closing mid-broadcast cannot disturb
    delivery to the others.
    """

    def __init__(self, name: str = DEFAULT_HUB_NAME, redis: Any | None = None) -> None:
        self.name = name
        self._redis = redis
        self._channels: set[ObserverChannel] = set()
        self._lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()
        self._pubsub = None
        self._listener: asyncio.Task | None = None
        self._running = False
        self._log = logger.bind(hub=name, relay=redis is not None)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def channel_count(self) -> int:
        return len(self._channels)

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    async def start(self) -> None:
        """Start the hub. In relay mode, subscribe to the Redis channel."""
        if self._running:
            return

        if self._redis is not None:
            self._pubsub = self._redis.pubsub()
            await self._pubsub.subscribe(self.name)
            self._listener = asyncio.create_task(self._listen())

        self._running = True
        self._log.info("broadcast_hub_started")

    async def stop(self) -> None:
        """Stop relaying, wait for in-flight broadcasts, and forget all channels."""
        if not self._running:
            return
        self._running = False

        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None

        await self.drain()

        if self._pubsub is not None:
            await self._pubsub.unsubscribe(self.name)
            await self._pubsub.aclose()
            self._pubsub = None

        async with self._lock:
            self._channels.clear()

        self._log.info("broadcast_hub_stopped")

    # -----------------------------------------------------------------------
    # Membership
    # -----------------------------------------------------------------------

    async def register(self, channel: ObserverChannel) -> None:
        """Add a channel to the live set. Registering twice is a no-op."""
        async with self._lock:
            self._channels.add(channel)
            count = len(self._channels)
        self._log.info("observer_registered", channel_id=_channel_id(channel), channels=count)

    async def unregister(self, channel: ObserverChannel) -> None:
        """Remove a channel. Safe to call when it is already gone."""
        async with self._lock:
            self._channels.discard(channel)
            count = len(self._channels)
        self._log.info("observer_unregistered", channel_id=_channel_id(channel), channels=count)

    # -----------------------------------------------------------------------
    # Delivery
    # -----------------------------------------------------------------------

    async def broadcast(self, update: CarStatusUpdate) -> int:
        """Send an update to every registered channel.

        Failures are caught and logged per channel; they never stop delivery to
        the remaining channels and never propagate.

        Returns:
            Number of channels the update was delivered to
        """
        message = serialize_update_message(update)

        async with self._lock:
            snapshot = list(self._channels)

        if not snapshot:
            self._log.debug("broadcast_dropped_no_observers", car_id=update.car_id)
            return 0

        results = await asyncio.gather(*(self._deliver(channel, message) for channel in snapshot))
        delivered = sum(results)
        self._log.debug(
            "broadcast_sent",
            car_id=update.car_id,
            new_status=update.new_status.value,
            delivered=delivered,
            failed=len(snapshot) - delivered,
        )
        return delivered

    async def _deliver(self, channel: ObserverChannel, message: str) -> bool:
        try:
            await channel.send_text(message)
            return True
        except Exception as exc:
            error = BroadcastDeliveryError(_channel_id(channel), str(exc) or type(exc).__name__)
            self._log.warning(
                "broadcast_delivery_failed",
                channel_id=error.channel_id,
                error=error.reason,
                error_type=type(exc).__name__,
            )
            return False

    def notify(self, update: CarStatusUpdate) -> asyncio.Task:
        """Schedule publication of an update without waiting for delivery.

        Called from the transition request path. The returned task is tracked
        so stop()/drain() can wait for it.
        """
        task = asyncio.create_task(self._publish(update))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled publication to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _publish(self, update: CarStatusUpdate) -> None:
        try:
            if self._redis is not None:
                await self._redis.publish(self.name, serialize_update_message(update))
            else:
                await self.broadcast(update)
        except Exception as exc:
            self._log.warning(
                "car_update_publish_failed",
                car_id=update.car_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def _listen(self) -> None:
        """Relay loop: fan out every update received on the Redis channel."""
        while True:
            try:
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=_RELAY_POLL_TIMEOUT,
                )
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._log.warning("broadcast_relay_read_failed", error=str(exc))
                await asyncio.sleep(_RELAY_ERROR_BACKOFF)
                continue

            if not message or message.get("type") != "message":
                continue

            update = parse_update_message(message["data"])
            if update is None:
                self._log.warning("broadcast_relay_invalid_message")
                continue

            await self.broadcast(update)
