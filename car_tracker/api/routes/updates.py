"""Subscription endpoint for live car status updates.

Observers connect to /api/car-updates and receive the car_status_update
envelope for every committed transition. Inbound text is only echoed; the
socket carries no commands.
"""

import uuid

import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from car_tracker.api.deps import get_ws_hub
from car_tracker.core.logging import observer_context
from car_tracker.services.broadcast_hub import BroadcastHub

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.websocket("/car-updates")
async def car_updates(websocket: WebSocket, hub: BroadcastHub = Depends(get_ws_hub)):
    with observer_context(uuid.uuid4().hex[:12]):
        await websocket.accept()
        await hub.register(websocket)
        try:
            while True:
                text = await websocket.receive_text()
                await websocket.send_text(f"Received: {text}")
        except WebSocketDisconnect as e:
            logger.info("observer_disconnected", code=e.code)
        finally:
            await hub.unregister(websocket)
