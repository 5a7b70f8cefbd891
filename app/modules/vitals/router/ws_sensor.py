"""WebSocket endpoint for sensors that stream readings instead of POSTing them."""

import json

import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from app.core.context import AppContext
from app.shared.deps import get_context
from app.shared.exceptions import ReadingValidationError

router = APIRouter()
log = structlog.get_logger()


def _process_sensor_message(raw_message: str, context: AppContext) -> bool:
    """Feed one inbound frame through the ingest path. Returns False when it was dropped."""
    try:
        context.vitals.accept(json.loads(raw_message))
    except json.JSONDecodeError:
        log.debug("sensor frame is not json")
        return False
    except ReadingValidationError as exc:
        # Ignore invalid data rather than tearing down the socket
        log.info("sensor reading rejected", error=str(exc))
        return False
    return True


@router.websocket("/ws/sensor")
async def websocket_sensor(
    websocket: WebSocket,
    context: AppContext = Depends(get_context),
) -> None:
    """
    WebSocket endpoint for the sensor (producer).
    Every text frame is one reading in the same shape accepted by ``POST /vitals``.
    """
    await websocket.accept()
    log.info("sensor websocket connected")
    try:
        while True:
            raw_message = await websocket.receive_text()
            _process_sensor_message(raw_message, context)
    except WebSocketDisconnect:
        log.info("sensor websocket disconnected")
