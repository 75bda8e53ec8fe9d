"""
Event stream - pushes reconciliation events to dashboard clients
"""
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
import asyncio
import logging

from ledgerlink.core.deps import get_event_bus
from ledgerlink.core.events import EventBus, ReconEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["Events"])


@router.websocket("/ws")
async def event_stream(websocket: WebSocket, event_bus: EventBus = Depends(get_event_bus)):
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    # Publishers may run in the threadpool
    def forward(event: ReconEvent):
        loop.call_soon_threadsafe(queue.put_nowait, event.to_message())

    async def pump():
        while True:
            message = await queue.get()
            await websocket.send_json(message)

    event_bus.subscribe(forward)
    await websocket.accept()
    logger.info("Event stream client connected")
    sender = asyncio.create_task(pump())
    try:
        # Inbound frames are ignored; reading detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Event stream client disconnected")
    finally:
        sender.cancel()
        event_bus.unsubscribe(forward)
