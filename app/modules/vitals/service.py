from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, List

import structlog
from pydantic import ValidationError

from app.modules.alerts.engine import VitalsMonitor
from app.modules.vitals.manager import VitalsBroadcaster
from app.modules.vitals.schemas import Reading
from app.shared.exceptions import ReadingValidationError

log = structlog.get_logger()


def ingest(raw: Any) -> Reading:
    """
    Turn an arbitrary decoded payload into a Reading.

    Only a JSON object is accepted. Alias field names are folded onto the canonical
    schema. ``timestamp`` is always the server's receive time: sensors report their
    own clock (often uptime in milliseconds), which is kept as ``deviceTimestamp``.
    """
    if not isinstance(raw, dict):
        raise ReadingValidationError(
            f"vitals payload must be a JSON object, got {type(raw).__name__}"
        )
    payload = dict(raw)
    device_clock = payload.pop("timestamp", None)
    if device_clock is not None and not {"deviceTimestamp", "device_timestamp"} & payload.keys():
        payload["deviceTimestamp"] = device_clock
    payload["timestamp"] = datetime.now(timezone.utc)
    try:
        return Reading.model_validate(payload)
    except ValidationError as exc:
        fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
        raise ReadingValidationError(f"invalid vitals payload: {', '.join(fields)}") from exc


class VitalsHistory:
    """Bounded window of the most recent readings, oldest first."""

    def __init__(self, size: int = 6) -> None:
        self._readings: Deque[Reading] = deque(maxlen=size)

    def append(self, reading: Reading) -> None:
        self._readings.append(reading)

    def latest(self) -> Reading | None:
        return self._readings[-1] if self._readings else None

    def list_readings(self) -> List[Reading]:
        return list(self._readings)

    def clear(self) -> None:
        self._readings.clear()

    def __len__(self) -> int:
        return len(self._readings)


class VitalService:
    """Ingest path: validate, record in the rolling window, fan out, hand off to the monitor."""

    def __init__(
        self,
        broadcaster: VitalsBroadcaster,
        history: VitalsHistory,
        monitor: VitalsMonitor,
    ) -> None:
        self._broadcaster = broadcaster
        self._history = history
        self._monitor = monitor

    def accept(self, raw: Any) -> Reading:
        """
        Process one inbound reading without awaiting anything downstream:
        1. Validate and normalise it.
        2. Append it to the rolling history.
        3. Queue it on every subscriber channel.
        4. Queue it for rule evaluation.
        """
        reading = ingest(raw)
        self._history.append(reading)
        delivered = self._broadcaster.publish(reading)
        self._monitor.submit(reading)
        log.debug(
            "reading accepted",
            heart_rate=reading.heart_rate,
            spo2=reading.spo2,
            temperature=reading.temperature,
            fall_alert=reading.fall_alert,
            channels=delivered,
        )
        return reading
