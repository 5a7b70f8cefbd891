from __future__ import annotations

import asyncio
from collections import deque
from html import escape
from typing import Deque, Optional, Sequence

import structlog

from app.modules.alerts.models import FallClassification, FallSeverity
from app.modules.emergency.facilities import find_nearest
from app.modules.emergency.geolocation import Locator
from app.modules.emergency.models import FallType, IncidentState, NotifyOutcome
from app.modules.emergency.notifier import Notifier
from app.modules.emergency.schemas import EmergencyIncident, Facility, IncidentRecord
from app.modules.emergency.status import EmergencyStatusStore
from app.modules.vitals.manager import VitalsBroadcaster
from app.modules.vitals.schemas import Reading, VitalsSnapshot
from app.shared.exceptions import (
    ConfigurationError,
    GeolocationError,
    NotificationDispatchError,
)

log = structlog.get_logger()


def incident_from_fall(reading: Reading, fall: FallClassification) -> EmergencyIncident:
    fall_type = (
        FallType.HIGH_IMPACT if fall.severity == FallSeverity.HIGH_IMPACT else FallType.FALL
    )
    return EmergencyIncident(
        fall_type=fall_type,
        impact_force=round(fall.total_accel, 1),
        vitals=reading.vitals_snapshot(),
    )


def manual_incident(latest: Optional[Reading]) -> EmergencyIncident:
    vitals = latest.vitals_snapshot() if latest is not None else VitalsSnapshot()
    return EmergencyIncident(fall_type=FallType.MANUAL, impact_force=0.0, vitals=vitals)


def describe(record: IncidentRecord) -> str:
    """One-line incident text for the dashboard, degraded when location is missing."""
    incident = record.incident
    text = f"{incident.fall_type.label}! Impact: {incident.impact_force:.1f} m/s²."
    if record.nearest is not None:
        facility = record.nearest.facility
        return f"{text} Hospital: {facility.name} ({record.nearest.distance_km:.2f} km)"
    if record.location is not None:
        return f"{text} No facility on file."
    if record.location_error == "unsupported":
        return f"{text} Geolocation not supported."
    return f"{text} Unable to get location."


def compose_notification(record: IncidentRecord) -> tuple[str, str]:
    """Build the subject and HTML body sent to the emergency contact."""
    incident = record.incident
    subject = f"EMERGENCY ALERT: {incident.fall_type.label}"

    sections = [
        "<h2>Incident Details</h2>"
        f"<p><strong>Type:</strong> {escape(incident.fall_type.label)}</p>"
        f"<p><strong>Impact Force:</strong> {incident.impact_force:.1f} m/s²</p>"
        f"<p><strong>Time:</strong> {incident.timestamp.isoformat()}</p>"
    ]

    if record.location is not None:
        location = record.location
        sections.append(
            "<h2>Patient Location</h2>"
            f"<p><strong>Coordinates:</strong> {location.lat:.6f}, {location.lon:.6f}</p>"
            f'<p><a href="{escape(location.map_link)}">View on Google Maps</a></p>'
        )
    else:
        reason = escape(record.location_error or "unavailable")
        sections.append(
            "<h2>Patient Location</h2>"
            f"<p>Location could not be determined ({reason}).</p>"
        )

    if record.nearest is not None:
        facility = record.nearest.facility
        sections.append(
            "<h2>Nearest Hospital</h2>"
            f"<p><strong>Name:</strong> {escape(facility.name)}</p>"
            f"<p><strong>Distance:</strong> {record.nearest.distance_km:.2f} km</p>"
            f"<p><strong>Contact:</strong> {escape(facility.contact)}</p>"
            f"<p><strong>Address:</strong> {escape(facility.address)}</p>"
        )

    vitals = incident.vitals
    sections.append(
        "<h2>Patient Vitals</h2>"
        f"<p><strong>Heart Rate:</strong> {vitals.heart_rate:g} bpm</p>"
        f"<p><strong>SpO2:</strong> {vitals.spo2:g}%</p>"
        f"<p><strong>Temperature:</strong> {vitals.temperature:g}°C</p>"
    )

    body = "".join(f"<div>{section}</div>" for section in sections)
    html = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        "<h1>EMERGENCY FALL ALERT</h1>"
        f"{body}"
        "<h3>IMMEDIATE MEDICAL ATTENTION REQUIRED</h3>"
        "</div>"
    )
    return subject, html


class EscalationWorkflow:
    """
    One independent locate → notify cycle per incident.

    Each incident runs in its own task, walking IDLE → AWAITING_LOCATION →
    NOTIFYING → RESOLVED. Location failure degrades the notification instead of
    aborting it; notification failure is recorded and never retried. The
    emergency status is activated once the location step is over, whatever the
    notification outcome.
    """

    def __init__(
        self,
        locator: Locator,
        notifier: Optional[Notifier],
        directory: Sequence[Facility],
        status: EmergencyStatusStore,
        broadcaster: Optional[VitalsBroadcaster] = None,
        recipient: str = "",
        notify_timeout: float = 15.0,
        geolocation_timeout: float = 10.0,
        history_size: int = 50,
    ) -> None:
        self._locator = locator
        self._notifier = notifier
        self._directory = list(directory)
        self._status = status
        self._broadcaster = broadcaster
        self._recipient = recipient
        self._notify_timeout = notify_timeout
        self._geolocation_timeout = geolocation_timeout
        self._records: Deque[IncidentRecord] = deque(maxlen=history_size)
        self._tasks: set[asyncio.Task[Optional[IncidentRecord]]] = set()

    @property
    def notifier(self) -> Optional[Notifier]:
        return self._notifier

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def incidents(self) -> list[IncidentRecord]:
        """Recent incidents, newest first."""
        return list(reversed(self._records))

    def start(self, incident: EmergencyIncident) -> asyncio.Task[Optional[IncidentRecord]]:
        """Schedule an escalation without waiting for it."""
        task = asyncio.create_task(self._run_isolated(incident), name=f"incident-{incident.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight escalations, e.g. on shutdown."""
        if not self._tasks:
            return
        await asyncio.wait(list(self._tasks), timeout=timeout)

    async def run(self, incident: EmergencyIncident) -> IncidentRecord:
        record = IncidentRecord(incident=incident)
        self._records.append(record)
        bound = log.bind(incident_id=incident.id, fall_type=incident.fall_type.value)
        bound.warning("escalation started", impact_force=incident.impact_force)

        record.state = IncidentState.AWAITING_LOCATION
        try:
            await self._locate(record)
        except Exception as exc:
            record.error = str(exc) or type(exc).__name__
            raise
        finally:
            # The emergency is real whether or not the locator worked
            status = self._status.activate(record.location)
            self._publish("emergency_status", status.model_dump(by_alias=True, mode="json"))

        record.state = IncidentState.NOTIFYING
        record.summary = describe(record)
        subject, html = compose_notification(record)
        try:
            record.message_id = await self.dispatch(self._recipient, subject, html)
            record.outcome = NotifyOutcome.SENT
            bound.info("emergency notification sent", message_id=record.message_id)
        except (NotificationDispatchError, ConfigurationError) as exc:
            record.outcome = NotifyOutcome.FAILED
            record.error = str(exc)
            bound.error("emergency notification failed", error=str(exc))

        record.state = IncidentState.RESOLVED
        self._publish("emergency", {"incident": record.model_dump(by_alias=True, mode="json")})
        return record

    async def dispatch(self, to: str, subject: str, html: str) -> str:
        """Send once through the notify capability, bounded by the notify timeout."""
        if self._notifier is None:
            raise ConfigurationError("no notification channel is configured")
        if not to:
            raise ConfigurationError("NOTIFY_RECIPIENT is not set")
        try:
            return await asyncio.wait_for(
                self._notifier.notify(to, subject, html), timeout=self._notify_timeout
            )
        except asyncio.TimeoutError as exc:
            raise NotificationDispatchError(
                f"notification timed out after {self._notify_timeout:g}s"
            ) from exc

    async def _locate(self, record: IncidentRecord) -> None:
        try:
            position = await asyncio.wait_for(
                self._locator.get_current_position(), timeout=self._geolocation_timeout
            )
        except GeolocationError as exc:
            record.location_error = exc.reason
            log.warning(
                "escalation without location",
                incident_id=record.incident.id,
                reason=exc.reason,
                error=str(exc),
            )
            return
        except asyncio.TimeoutError:
            record.location_error = "timeout"
            log.warning("escalation without location", incident_id=record.incident.id, reason="timeout")
            return

        record.location = position
        record.nearest = find_nearest(self._directory, position)
        if record.nearest is not None:
            log.info(
                "nearest facility resolved",
                incident_id=record.incident.id,
                facility=record.nearest.facility.name,
                distance_km=round(record.nearest.distance_km, 2),
            )

    async def _run_isolated(self, incident: EmergencyIncident) -> Optional[IncidentRecord]:
        # A failing incident must not take down the monitor or other incidents
        try:
            return await self.run(incident)
        except Exception:
            log.exception("escalation crashed", incident_id=incident.id)
            return None

    def _publish(self, event_type: str, payload: dict) -> None:
        if self._broadcaster is not None:
            self._broadcaster.publish_event(event_type, payload)
