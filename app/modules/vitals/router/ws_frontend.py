"""Dashboard-facing live streams: WebSocket and Server-Sent Events."""

import asyncio
import json

import structlog
from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from app.core.context import AppContext
from app.modules.emergency.schemas import LocationReport
from app.modules.vitals.manager import Channel
from app.shared.deps import get_context
from app.shared.exceptions import TransportError

router = APIRouter()
log = structlog.get_logger()

KEEPALIVE_SECONDS = 30.0


async def _send(websocket: WebSocket, message: dict) -> None:
    try:
        await websocket.send_text(json.dumps(message))
    except Exception as exc:
        raise TransportError(str(exc) or type(exc).__name__) from exc


async def _pump(websocket: WebSocket, channel: Channel) -> None:
    """Forward queued messages to one socket until sending fails or the task is cancelled."""
    while True:
        message = await channel.queue.get()
        try:
            await _send(websocket, message)
        except TransportError as exc:
            log.warning("frontend websocket send failed", channel_id=channel.id, error=str(exc))
            return


async def _receive(websocket: WebSocket, context: AppContext, channel: Channel) -> None:
    try:
        while True:
            raw_message = await websocket.receive_text()
            await _process_dashboard_message(raw_message, context)
    except WebSocketDisconnect:
        log.info("frontend websocket disconnected", channel_id=channel.id)


async def _close_quietly(websocket: WebSocket, channel: Channel) -> None:
    try:
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
    except (RuntimeError, OSError, WebSocketDisconnect) as exc:
        log.debug("frontend websocket already closed", channel_id=channel.id, error=str(exc))


async def _process_dashboard_message(raw_message: str, context: AppContext) -> None:
    """Handle the few messages dashboards send upstream; anything else is ignored."""
    try:
        data = json.loads(raw_message)
    except json.JSONDecodeError:
        return
    if not isinstance(data, dict):
        return

    msg_type = data.get("type") or data.get("event")
    if msg_type == "location":
        locator = context.reported_locator
        if locator is None:
            return
        try:
            locator.report(LocationReport.model_validate(data))
        except ValidationError:
            return
    elif msg_type == "dismiss":
        alert_id = data.get("alertId") or data.get("alert_id")
        if alert_id:
            context.alerts.dismiss(str(alert_id))


@router.websocket("/ws/frontend")
async def websocket_frontend(
    websocket: WebSocket,
    context: AppContext = Depends(get_context),
) -> None:
    """
    WebSocket endpoint for dashboards (consumers).
    Streams ``connected``, ``vitals``, ``alert`` and ``emergency`` messages.

    The socket is released as soon as either direction fails: a client disconnect
    ends the receive side, a failed send ends the pump and closes the socket.
    """
    await websocket.accept()
    channel = context.broadcaster.subscribe(transport="websocket")
    sender = asyncio.create_task(_pump(websocket, channel))
    receiver = asyncio.create_task(_receive(websocket, context, channel))
    try:
        done, _ = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        sender.cancel()
        receiver.cancel()
        await asyncio.gather(sender, receiver, return_exceptions=True)
        context.broadcaster.unsubscribe(channel)

    if sender in done:
        await _close_quietly(websocket, channel)
    for task in done:
        # Surface anything other than the handled disconnect/transport failures
        task.result()


@router.get("/stream")
async def stream_vitals(
    request: Request,
    context: AppContext = Depends(get_context),
) -> StreamingResponse:
    """
    Server-Sent Events alternative to the WebSocket for read-only dashboards.
    Each message is one ``data:`` line of JSON; a keepalive comment is sent every 30s.
    """

    async def event_generator():
        channel = context.broadcaster.subscribe(transport="sse")
        try:
            while True:
                if await request.is_disconnected():
                    log.info("sse client disconnected", channel_id=channel.id)
                    break
                try:
                    message = await asyncio.wait_for(channel.queue.get(), timeout=KEEPALIVE_SECONDS)
                    yield f"data: {json.dumps(message)}\n\n"
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
        finally:
            context.broadcaster.unsubscribe(channel)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
