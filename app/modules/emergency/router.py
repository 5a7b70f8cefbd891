"""HTTP endpoints for emergency status, manual escalation and notification."""

from typing import List, Optional

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, status

from app.core.context import AppContext
from app.modules.emergency.schemas import (
    EmergencyIncident,
    EmergencyStatus,
    IncidentRecord,
    LocationReport,
    ManualTriggerRequest,
    NotifyRequest,
    NotifyResponse,
)
from app.modules.emergency.workflow import manual_incident
from app.shared.deps import get_context
from app.shared.schemas import StatusResponse

router = APIRouter()
log = structlog.get_logger()


@router.get("/status", response_model=EmergencyStatus, summary="Current emergency banner")
async def read_status(context: AppContext = Depends(get_context)) -> EmergencyStatus:
    return context.status.current()


@router.post("/resolve", response_model=EmergencyStatus, summary="Clear the emergency flag")
async def resolve_emergency(context: AppContext = Depends(get_context)) -> EmergencyStatus:
    """
    Acknowledge the emergency. Clears the banner on every dashboard;
    escalations already in flight are not cancelled.
    """
    current = context.status.resolve()
    context.broadcaster.publish_event(
        "emergency_status", current.model_dump(by_alias=True, mode="json")
    )
    return current


@router.post(
    "/trigger",
    response_model=EmergencyIncident,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start a manual escalation",
)
async def trigger_emergency(
    payload: Optional[ManualTriggerRequest] = Body(default=None),
    context: AppContext = Depends(get_context),
) -> EmergencyIncident:
    """
    Escalate without a detected fall, e.g. from a panic button.

    The incident carries the most recent reading's vitals. Location lookup and
    notification run in the background; follow progress through
    ``/emergency/incidents`` or the dashboard stream.
    """
    incident = manual_incident(context.history.latest())
    log.warning(
        "manual emergency requested",
        incident_id=incident.id,
        note=payload.note if payload else None,
    )
    context.workflow.start(incident)
    return incident


@router.get("/incidents", response_model=List[IncidentRecord], summary="Recent incidents")
async def read_incidents(context: AppContext = Depends(get_context)) -> List[IncidentRecord]:
    """Escalations of this session, newest first, including ones still in progress."""
    return context.workflow.incidents()


@router.post("/location", response_model=StatusResponse, summary="Report the device position")
async def report_location(
    report: LocationReport,
    context: AppContext = Depends(get_context),
) -> StatusResponse:
    """
    Dashboards relay the browser position (or the reason it is unavailable) here.
    Only used when ``GEOLOCATION_PROVIDER`` is ``reported``.
    """
    locator = context.reported_locator
    if locator is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Location reports are not used by the configured geolocation provider",
        )
    locator.report(report)
    return StatusResponse(success=True, message="Location recorded")


@router.post("/notify", response_model=NotifyResponse, summary="Send an emergency message")
async def send_notification(
    payload: NotifyRequest,
    context: AppContext = Depends(get_context),
) -> NotifyResponse:
    """
    Send one message through the configured notification channel.

    **Errors:**
    - 503 when no channel is configured
    - 502 when the channel rejects the message or times out
    """
    message_id = await context.workflow.dispatch(payload.to, payload.subject, payload.html)
    log.info("notification sent on request", message_id=message_id)
    return NotifyResponse(success=True, message_id=message_id)
