from datetime import datetime, timezone
from typing import Callable, Optional

import structlog

from app.modules.emergency.schemas import Coordinates, EmergencyStatus

log = structlog.get_logger()


class EmergencyStatusStore:
    """
    Process-wide emergency flag shown as the dashboard banner.

    ``activate`` may be called repeatedly and refreshes ``last_triggered`` each
    time; only ``resolve`` clears the flag. There is no automatic expiry.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._status = EmergencyStatus()

    def activate(self, location: Optional[Coordinates] = None) -> EmergencyStatus:
        self._status = EmergencyStatus(
            is_active=True, last_triggered=self._clock(), location=location
        )
        log.warning(
            "emergency activated",
            last_triggered=self._status.last_triggered.isoformat(),
            has_location=location is not None,
        )
        return self._status

    def resolve(self) -> EmergencyStatus:
        was_active = self._status.is_active
        self._status = EmergencyStatus()
        if was_active:
            log.info("emergency resolved")
        return self._status

    def current(self) -> EmergencyStatus:
        return self._status
