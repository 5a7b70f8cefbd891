"""Compose vitals HTTP, SSE and WebSocket routers."""

from fastapi import APIRouter

from .http import ingest_vitals, read_history, read_latest, router as http_router
from .ws_frontend import (
    _process_dashboard_message,
    router as ws_frontend_router,
    stream_vitals,
    websocket_frontend,
)
from .ws_sensor import _process_sensor_message, router as ws_sensor_router, websocket_sensor

router = APIRouter()
router.include_router(http_router, prefix="/vitals")
router.include_router(ws_sensor_router, prefix="/vitals")
router.include_router(ws_frontend_router, prefix="/vitals")

__all__ = [
    "router",
    "ingest_vitals",
    "read_history",
    "read_latest",
    "stream_vitals",
    "websocket_frontend",
    "websocket_sensor",
    "_process_dashboard_message",
    "_process_sensor_message",
]
